"""Sequential composition tests."""

import asyncio

import pytest

from workweave import (
    ExecutionError,
    RunContext,
    Step,
    StepInput,
    Steps,
    StepsExecutionError,
    UnsupportedNodeTypeError,
)
from workweave.steps import pipeline, sequential, try_all


def fail(step_input):
    raise RuntimeError("bad step")


@pytest.mark.asyncio
async def test_sequence_threads_previous_content():
    steps = Steps(
        name="chain",
        steps=[
            Step(name="first", executor=lambda s: s.message + " one"),
            Step(name="second", executor=lambda s: s.previous_step_content + " two"),
        ],
        collect_outputs=False,
    )

    output = await steps.execute(RunContext(), StepInput(message="zero"))

    assert output.content == "zero one two"
    assert output.executor_type == "steps"
    assert output.metadata["success_count"] == 2


@pytest.mark.asyncio
async def test_collecting_sequence_maps_names_to_content():
    steps = sequential(
        Step(name="a", executor=lambda s: "A"),
        lambda s: "B",
        name="group",
    )

    output = await steps.execute(RunContext(), StepInput())

    assert output.content == {"a": "A", "group_step_1": "B"}
    assert list(output.parallel_step_outputs) == ["a", "group_step_1"]
    assert output.parallel_step_outputs["a"].content == "A"


@pytest.mark.asyncio
async def test_later_steps_see_earlier_outputs():
    seen = {}

    def inspect_outputs(step_input):
        seen["names"] = list(step_input.previous_step_outputs)
        return "done"

    steps = Steps(
        name="group",
        steps=[Step(name="a", executor=lambda s: "A"), inspect_outputs],
    )
    outer_input = StepInput(message="m")

    await steps.execute(RunContext(), outer_input)

    assert seen["names"] == ["a"]
    assert outer_input.previous_step_outputs == {}


@pytest.mark.asyncio
async def test_stop_on_first_error_identifies_index():
    ran = []
    steps = Steps(
        name="strict",
        steps=[lambda s: "ok", fail, lambda s: ran.append(1)],
    )

    with pytest.raises(ExecutionError) as exc_info:
        await steps.execute(RunContext(), StepInput())

    assert exc_info.value.index == 1
    assert exc_info.value.node_name == "strict"
    assert ran == []


@pytest.mark.asyncio
async def test_continue_on_error_records_partial_failures():
    steps = try_all(lambda s: "ok", fail, name="lenient")

    output = await steps.execute(RunContext(), StepInput())

    assert output.metadata["success_count"] == 1
    assert output.metadata["failure_count"] == 1
    assert output.metadata["errors"][0].startswith("step 1 failed")
    assert output.content == {"lenient_step_0": "ok"}


@pytest.mark.asyncio
async def test_all_failed_raises_with_aggregate_output():
    steps = try_all(fail, fail, name="doomed")

    with pytest.raises(StepsExecutionError) as exc_info:
        await steps.execute(RunContext(), StepInput())

    assert exc_info.value.output.metadata["failure_count"] == 2
    assert len(exc_info.value.errors) == 2


@pytest.mark.asyncio
async def test_empty_sequence_is_a_noop():
    output = await Steps(name="nothing").execute(RunContext(), StepInput())

    assert output.metadata == {"message": "no steps to execute"}
    assert output.content is None


@pytest.mark.asyncio
async def test_pipeline_keeps_only_last_content():
    steps = pipeline("pipe", lambda s: "first", lambda s: "last")

    output = await steps.execute(RunContext(), StepInput())

    assert output.content == "last"
    assert output.parallel_step_outputs is None


def test_add_and_len():
    steps = Steps(name="grow")
    steps.add(lambda s: "x").add(Step(name="y", executor=lambda s: "y"))

    assert len(steps) == 2
    assert isinstance(steps.steps[0], Step)


def test_unsupported_node_rejected_at_construction():
    with pytest.raises(UnsupportedNodeTypeError):
        Steps(name="bad", steps=["not a step"])


@pytest.mark.asyncio
async def test_concurrent_executions_keep_separate_outputs():
    async def echo(step_input):
        await asyncio.sleep(0.01)
        return step_input.get_message_as_string()

    steps = Steps(name="shared", steps=[Step(name="echo", executor=echo)])

    first, second = await asyncio.gather(
        steps.execute(RunContext(), StepInput(message="one")),
        steps.execute(RunContext(), StepInput(message="two")),
    )

    assert first.content == {"echo": "one"}
    assert second.content == {"echo": "two"}
    assert first.parallel_step_outputs["echo"].content == "one"
