"""In-memory event transport for testing."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, List, Optional

from ..contracts import WorkflowEvent, WorkflowRunEvent
from .base import BaseEventTransport

EventCallback = Callable[[WorkflowRunEvent], Any]


class InMemoryEventTransport(BaseEventTransport):
    """Collect published events in process, optionally forwarding each one."""

    def __init__(self, callback: Optional[EventCallback] = None) -> None:
        self._events: List[WorkflowRunEvent] = []
        self._callback = callback
        self._lock = asyncio.Lock()

    async def publish(self, event: WorkflowRunEvent) -> None:
        async with self._lock:
            self._events.append(event)
        if self._callback is not None:
            result = self._callback(event)
            if inspect.isawaitable(result):
                await result

    @property
    def events(self) -> List[WorkflowRunEvent]:
        return list(self._events)

    def events_of(self, kind: WorkflowEvent) -> List[WorkflowRunEvent]:
        return [event for event in self._events if event.event == kind]

    def clear(self) -> None:
        self._events.clear()
