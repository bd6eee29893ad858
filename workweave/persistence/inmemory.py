"""In-memory implementation of session storage."""

from __future__ import annotations

from typing import Dict

from .models import WorkflowSession
from .storage import SessionStorage


class InMemorySessionStorage(SessionStorage):
    """Store sessions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, WorkflowSession] = {}

    async def save(self, session: WorkflowSession) -> None:
        self._sessions[session.session_id] = session.model_copy(deep=True)

    async def load(self, session_id: str) -> WorkflowSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def list_sessions(self) -> list[WorkflowSession]:
        return [s.model_copy(deep=True) for s in self._sessions.values()]
