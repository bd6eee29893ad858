"""Conditional branch tests."""

import pytest

from workweave import Condition, ConfigurationError, ExecutionError, RunContext, Step, StepInput, StepOutput
from workweave.condition import (
    if_and,
    if_content_contains,
    if_content_equals,
    if_has_output,
    if_metadata_equals,
    if_metadata_exists,
    if_not,
    if_or,
    if_true,
    simple_if,
)


def length_condition():
    return Condition(
        name="length_check",
        predicate=lambda s: len(s.get_message_as_string()) > 5,
        then_steps=[Step(name="long", executor=lambda s: "Long message")],
        else_steps=[Step(name="short", executor=lambda s: "Short message")],
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message,expected,branch",
    [("hi", "Short message", "else"), ("hello world", "Long message", "then")],
)
async def test_selects_branch_by_predicate(message, expected, branch):
    output = await length_condition().execute(RunContext(), StepInput(message=message))

    assert output.content == expected
    assert output.metadata["executed_branch"] == branch
    assert output.metadata["steps_executed"] == 1
    assert output.executor_type == "condition"


@pytest.mark.asyncio
async def test_missing_else_branch_returns_placeholder():
    condition = simple_if(lambda s: False, then_step=lambda s: "never", name="opt")

    output = await condition.execute(RunContext(), StepInput())

    assert output.content is None
    assert output.metadata["condition_result"] is False
    assert output.metadata["executed_branch"] == "else"
    assert "no steps defined" in output.metadata["message"]


@pytest.mark.asyncio
async def test_branch_names_are_qualified():
    seen = []

    def observe(step_input):
        seen.extend(step_input.previous_step_outputs)
        return "x"

    condition = Condition(
        name="check",
        predicate=lambda s: True,
        then_steps=[Step(name="prep", executor=lambda s: 1), lambda s: 2, observe],
    )

    await condition.execute(RunContext(), StepInput())

    assert seen == ["prep_then", "check_then_step_1"]


@pytest.mark.asyncio
async def test_async_predicate_is_awaited():
    async def is_ready(step_input):
        return step_input.additional_data.get("ready", False)

    condition = Condition(name="ready", predicate=is_ready, then_steps=[lambda s: "go"])

    output = await condition.execute(RunContext(), StepInput(additional_data={"ready": True}))

    assert output.content == "go"


@pytest.mark.asyncio
async def test_branch_failure_names_branch_and_index():
    def boom(step_input):
        raise RuntimeError("boom")

    condition = Condition(name="risky", predicate=lambda s: True, then_steps=[lambda s: 1, boom])

    with pytest.raises(ExecutionError) as exc_info:
        await condition.execute(RunContext(), StepInput())

    assert exc_info.value.branch == "then"
    assert exc_info.value.index == 1


def test_predicate_required():
    with pytest.raises(ConfigurationError):
        Condition(name="empty", then_steps=[lambda s: 1])


def test_content_predicates():
    step_input = StepInput(previous_step_content="all good here")

    assert if_content_equals("all good here")(step_input)
    assert not if_content_equals("all good")(step_input)
    assert if_content_contains("good")(step_input)
    assert not if_content_contains("good")(StepInput(previous_step_content=42))


def test_output_and_metadata_predicates():
    step_input = StepInput(
        previous_step_outputs={"research": StepOutput(content="notes")},
        additional_data={"mode": "fast"},
    )

    assert if_has_output("research")(step_input)
    assert not if_has_output("draft")(step_input)
    assert if_metadata_exists("mode")(step_input)
    assert if_metadata_equals("mode", "fast")(step_input)
    assert not if_metadata_equals("mode", "slow")(step_input)


@pytest.mark.asyncio
async def test_predicate_combinators():
    yes = if_true(lambda s: True)
    no = if_true(lambda s: False)
    step_input = StepInput()

    assert await if_and(yes, yes)(step_input)
    assert not await if_and(yes, no)(step_input)
    assert await if_or(no, yes)(step_input)
    assert not await if_or(no, no)(step_input)
    assert await if_not(no)(step_input)


@pytest.mark.asyncio
async def test_combinators_await_async_predicates():
    calls = []

    async def async_false(step_input):
        calls.append("false")
        return False

    async def async_true(step_input):
        calls.append("true")
        return True

    step_input = StepInput()

    assert not await if_and(async_false, async_true)(step_input)
    assert calls == ["false"]
    assert await if_or(async_false, async_true)(step_input)
    assert await if_not(async_false)(step_input)
    assert not await if_not(async_true)(step_input)


@pytest.mark.asyncio
async def test_negated_async_predicate_selects_then_branch():
    async def never(step_input):
        return False

    condition = Condition(
        name="negated",
        predicate=if_not(never),
        then_steps=[lambda s: "then ran"],
        else_steps=[lambda s: "else ran"],
    )

    output = await condition.execute(RunContext(), StepInput())

    assert output.content == "then ran"


@pytest.mark.asyncio
async def test_predicate_failure_names_condition():
    def broken(step_input):
        raise KeyError("missing")

    condition = Condition(name="guarded", predicate=broken, then_steps=[lambda s: 1])

    with pytest.raises(ExecutionError) as exc_info:
        await condition.execute(RunContext(), StepInput())

    assert exc_info.value.node_name == "guarded"
    assert isinstance(exc_info.value.__cause__, KeyError)
