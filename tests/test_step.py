"""Step execution tests."""

import asyncio

import pytest

from workweave import (
    CancellationError,
    ConfigurationError,
    InputValidationError,
    RunContext,
    Step,
    StepExecutionError,
    StepInput,
    StepOutput,
    StepTimeoutError,
)


class EchoAgent:
    def __init__(self, name="echo"):
        self.name = name
        self.messages = []

    async def run(self, message):
        self.messages.append(message)
        return f"agent saw: {message}"


def upper(step_input: StepInput) -> StepOutput:
    return StepOutput(content=step_input.get_message_as_string().upper())


@pytest.mark.asyncio
async def test_function_step_enriches_output():
    step = Step(name="upper", executor=upper)

    output = await step.execute(RunContext(), StepInput(message="hello"))

    assert output.content == "HELLO"
    assert output.step_name == "upper"
    assert output.executor_name == "upper"
    assert output.executor_type == "function"
    assert output.metrics is not None
    assert output.metrics.success is True
    assert output.metrics.retry_count == 0


@pytest.mark.asyncio
async def test_plain_return_values_become_content():
    step = Step(name="count", executor=lambda step_input: len(step_input.message))

    output = await step.execute(RunContext(), StepInput(message="four"))

    assert output.content == 4


@pytest.mark.asyncio
async def test_coroutine_executor_is_awaited():
    async def shout(step_input):
        await asyncio.sleep(0)
        return step_input.message + "!"

    output = await Step(name="shout", executor=shout).execute(
        RunContext(), StepInput(message="hey")
    )
    assert output.content == "hey!"


@pytest.mark.asyncio
async def test_retries_then_fails_with_attempt_count():
    attempts = []

    def always_fails(step_input):
        attempts.append(1)
        raise RuntimeError("boom")

    step = Step(name="flaky", executor=always_fails, max_retries=2, retry_delay=0)

    with pytest.raises(StepExecutionError) as exc_info:
        await step.execute(RunContext(), StepInput(message="x"))

    assert len(attempts) == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.node_name == "flaky"
    assert "flaky" in str(exc_info.value)
    assert "3 attempts" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_skip_on_failure_returns_marked_output():
    def always_fails(step_input):
        raise RuntimeError("boom")

    step = Step(
        name="optional",
        executor=always_fails,
        max_retries=2,
        retry_delay=0,
        skip_on_failure=True,
    )

    output = await step.execute(RunContext(), StepInput(message="x"))

    assert output.skipped
    assert output.event == "StepSkipped"
    assert output.metadata["reason"] == "skip_on_failure"
    assert "boom" in output.metadata["error"]
    assert output.metrics.skipped is True
    assert output.metrics.retry_count == 2


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    calls = {"n": 0}

    def flaky(step_input):
        calls["n"] += 1
        if calls["n"] < 3:
            raise RuntimeError("not yet")
        return "ok"

    output = await Step(name="flaky", executor=flaky, retry_delay=0).execute(
        RunContext(), StepInput()
    )

    assert output.content == "ok"
    assert output.metrics.retry_count == 2


@pytest.mark.asyncio
async def test_timeout_stops_retrying():
    calls = {"n": 0}

    async def slow(step_input):
        calls["n"] += 1
        await asyncio.sleep(5)

    step = Step(name="slow", executor=slow, timeout_seconds=0.05, retry_delay=0)

    with pytest.raises(StepExecutionError) as exc_info:
        await asyncio.wait_for(step.execute(RunContext(), StepInput()), 2)

    assert calls["n"] == 1
    assert isinstance(exc_info.value.__cause__, StepTimeoutError)


@pytest.mark.asyncio
async def test_timeout_does_not_cancel_outer_context():
    async def slow(step_input):
        await asyncio.sleep(5)

    context = RunContext()
    step = Step(name="slow", executor=slow, timeout_seconds=0.05, skip_on_failure=True)

    output = await step.execute(context, StepInput())

    assert output.skipped
    assert not context.cancelled


@pytest.mark.asyncio
async def test_cancelled_context_prevents_execution():
    called = []
    context = RunContext()
    context.cancel()

    step = Step(name="never", executor=lambda step_input: called.append(1))

    with pytest.raises(CancellationError):
        await step.execute(context, StepInput())
    assert called == []


@pytest.mark.asyncio
async def test_cancellation_interrupts_backoff():
    def always_fails(step_input):
        raise RuntimeError("boom")

    context = RunContext()
    step = Step(name="flaky", executor=always_fails, max_retries=3, retry_delay=10)
    asyncio.get_running_loop().call_later(0.05, context.cancel)

    with pytest.raises(CancellationError):
        await asyncio.wait_for(step.execute(context, StepInput()), 2)


@pytest.mark.asyncio
async def test_agent_step_uses_previous_content_when_message_empty():
    agent = EchoAgent()
    step = Step(name="review", agent=agent)

    output = await step.execute(
        RunContext(), StepInput(message=None, previous_step_content="draft")
    )

    assert agent.messages == ["draft"]
    assert output.content == "agent saw: draft"
    assert output.executor_name == "echo"
    assert output.executor_type == "agent"


@pytest.mark.asyncio
async def test_team_step_reports_team_type():
    output = await Step(team=EchoAgent("crew")).execute(RunContext(), StepInput(message="go"))

    assert output.executor_type == "team"
    assert output.executor_name == "crew"
    assert output.step_name is None


@pytest.mark.asyncio
async def test_strict_input_validation_rejects_missing_input():
    step = Step(name="strict", executor=upper, strict_input_validation=True)

    with pytest.raises(InputValidationError):
        await step.execute(RunContext(), None)


def test_step_requires_exactly_one_executor():
    with pytest.raises(ConfigurationError):
        Step(name="empty")

    with pytest.raises(ConfigurationError):
        Step(name="both", executor=upper, agent=EchoAgent())


def test_step_rejects_negative_retries():
    with pytest.raises(ConfigurationError):
        Step(name="bad", executor=upper, max_retries=-1)
