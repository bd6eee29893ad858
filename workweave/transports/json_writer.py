"""Event transport that serialises each event to a JSON line."""

from __future__ import annotations

import inspect
from typing import Any, Callable

from ..contracts import WorkflowRunEvent
from ..errors import TransportError
from .base import BaseEventTransport

JSONWriter = Callable[[str], Any]


class JSONEventTransport(BaseEventTransport):
    """Hand each event's JSON encoding to ``writer``.

    ``writer`` may be a plain function (for example ``sys.stdout.write``
    wrapped to add a newline) or a coroutine function such as a websocket
    ``send``.
    """

    def __init__(self, writer: JSONWriter) -> None:
        self._writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, event: WorkflowRunEvent) -> None:
        if self._closed:
            raise TransportError("cannot publish on a closed JSON transport")
        result = self._writer(event.to_json())
        if inspect.isawaitable(result):
            await result

    async def disconnect(self) -> None:
        self._closed = True
