"""Data models for persisted workflow sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowSession(BaseModel):
    """Opaque session state saved between workflow runs."""

    session_id: str
    workflow_id: str
    user_id: Optional[str] = None
    state: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_accessed_at: Optional[datetime] = None

    def touch(self) -> None:
        now = _utcnow()
        self.updated_at = now
        self.last_accessed_at = now
