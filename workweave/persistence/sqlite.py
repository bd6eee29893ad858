"""SQLite implementation of session storage."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import WorkflowSession
from .storage import SessionStorage


class SQLiteSessionStorage(SessionStorage):
    """Persist workflow sessions using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_sessions (
                session_id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT,
                state TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                last_accessed_at TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Storage API
    async def save(self, session: WorkflowSession) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO workflow_sessions
                (session_id, workflow_id, user_id, state, created_at, updated_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            session.session_id,
            session.workflow_id,
            session.user_id,
            json.dumps(session.state, default=str),
            session.created_at.isoformat(),
            session.updated_at.isoformat(),
            session.last_accessed_at.isoformat() if session.last_accessed_at else None,
        )

    async def load(self, session_id: str) -> WorkflowSession | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT session_id, workflow_id, user_id, state, created_at, updated_at, last_accessed_at FROM workflow_sessions WHERE session_id = ?",
            session_id,
        )
        if not row:
            return None
        return WorkflowSession(
            session_id=row["session_id"],
            workflow_id=row["workflow_id"],
            user_id=row["user_id"],
            state=json.loads(row["state"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_accessed_at=datetime.fromisoformat(row["last_accessed_at"])
            if row["last_accessed_at"]
            else None,
        )

    async def delete(self, session_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM workflow_sessions WHERE session_id = ?",
            session_id,
        )
