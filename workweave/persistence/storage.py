"""Storage abstraction for workflow sessions."""

from __future__ import annotations

from typing import Protocol

from .models import WorkflowSession


class SessionStorage(Protocol):
    """Protocol for session persistence backends."""

    async def save(self, session: WorkflowSession) -> None:
        """Insert or replace ``session``."""

    async def load(self, session_id: str) -> WorkflowSession | None:
        """Return the stored session or ``None`` when it does not exist."""

    async def delete(self, session_id: str) -> None:
        """Remove the session; missing sessions are ignored."""
