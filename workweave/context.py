"""Run context: cancellation, local deadlines and event emission."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from .contracts import WorkflowEvent, WorkflowRunEvent
from .errors import CancellationError

T = TypeVar("T")

Emitter = Callable[[WorkflowRunEvent], Awaitable[None]]


class RunContext:
    """Context threaded from ``Workflow.run`` through every nested node.

    Cancelling a context cancels every context derived from it. A derived
    context's deadline is local: it bounds waits made through that context
    but never cancels the parent.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        *,
        emitter: Optional[Emitter] = None,
        parent: Optional["RunContext"] = None,
        deadline: Optional[float] = None,
    ) -> None:
        self.run_id = run_id or str(uuid.uuid4())
        self._emitter = emitter
        self._parent = parent
        self._deadline = deadline
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    # ------------------------------------------------------------------
    # Cancellation
    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str:
        if self._reason:
            return self._reason
        if self._parent is not None:
            return self._parent.reason
        return "run cancelled"

    def cancel(self, reason: str = "run cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError(self.reason)

    def _chain(self) -> List["RunContext"]:
        chain: List[RunContext] = []
        ctx: Optional[RunContext] = self
        while ctx is not None:
            chain.append(ctx)
            ctx = ctx._parent
        return chain

    async def wait_cancelled(self) -> None:
        """Block until this context or any ancestor is cancelled."""
        waiters = [asyncio.ensure_future(ctx._event.wait()) for ctx in self._chain()]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the context is cancelled first.

        On cancellation the pending work is cancelled and
        ``CancellationError`` is raised immediately.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CancellationError(self.reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait_cancelled())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()
        task.cancel()
        raise CancellationError(self.reason)

    async def sleep(self, delay: float) -> None:
        if delay <= 0:
            self.raise_if_cancelled()
            return
        await self.guard(asyncio.sleep(delay))

    # ------------------------------------------------------------------
    # Deadlines
    def with_timeout(self, seconds: float) -> "RunContext":
        deadline = time.monotonic() + seconds
        if self._deadline is not None:
            deadline = min(deadline, self._deadline)
        return RunContext(
            self.run_id, emitter=self._emitter, parent=self, deadline=deadline
        )

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    # ------------------------------------------------------------------
    # Events
    async def emit(self, event: WorkflowEvent, data: Any = None, **metadata: Any) -> None:
        if self._emitter is None:
            return
        await self._emitter(WorkflowRunEvent(event=event, data=data, metadata=metadata))
