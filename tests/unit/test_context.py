"""Run context tests."""

import asyncio

import pytest

from workweave import CancellationError, RunContext, WorkflowEvent


def test_cancellation_propagates_to_children():
    parent = RunContext()
    child = parent.with_timeout(60)

    parent.cancel("shutdown")

    assert child.cancelled
    assert child.reason == "shutdown"
    with pytest.raises(CancellationError):
        child.raise_if_cancelled()


def test_child_cancel_does_not_touch_parent():
    parent = RunContext()
    child = RunContext(parent=parent)

    child.cancel()

    assert child.cancelled
    assert not parent.cancelled


def test_child_deadline_never_extends_parent():
    parent = RunContext().with_timeout(1)
    child = parent.with_timeout(100)

    assert child.deadline == parent.deadline
    assert child.remaining() <= 1


@pytest.mark.asyncio
async def test_guard_returns_result():
    async def answer():
        return 42

    assert await RunContext().guard(answer()) == 42


@pytest.mark.asyncio
async def test_guard_cancels_pending_work():
    context = RunContext()
    finished = []

    async def slow():
        await asyncio.sleep(5)
        finished.append(True)

    asyncio.get_running_loop().call_later(0.02, context.cancel)
    with pytest.raises(CancellationError):
        await context.guard(slow())

    assert finished == []


@pytest.mark.asyncio
async def test_deadline_does_not_cancel_context():
    context = RunContext().with_timeout(0.01)
    await asyncio.sleep(0.02)

    assert context.deadline_exceeded
    assert not context.cancelled
    assert context.remaining() == 0.0


@pytest.mark.asyncio
async def test_emit_forwards_to_emitter():
    received = []

    async def emitter(event):
        received.append(event)

    context = RunContext(emitter=emitter)
    await context.emit(WorkflowEvent.STEP_STARTED, None, step_name="s")
    await RunContext().emit(WorkflowEvent.STEP_STARTED)

    assert received[0].event == WorkflowEvent.STEP_STARTED
    assert received[0].metadata == {"step_name": "s"}
