"""Base transport interface for workflow events."""

from __future__ import annotations

import abc

from ..contracts import WorkflowRunEvent


class BaseEventTransport(metaclass=abc.ABCMeta):
    """Abstract sink receiving the events of a workflow run."""

    async def connect(self) -> None:
        """Open connection to the sink (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the sink (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, event: WorkflowRunEvent) -> None:
        """Deliver one event."""
        raise NotImplementedError

    async def close(self) -> None:
        await self.disconnect()
