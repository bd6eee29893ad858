"""PostgreSQL implementation of session storage."""

from __future__ import annotations

import json

import asyncpg

from .models import WorkflowSession
from .storage import SessionStorage


class PostgresSessionStorage(SessionStorage):
    """Persist workflow sessions using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_sessions (
                session_id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT,
                state JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                last_accessed_at TIMESTAMPTZ
            )
            """
        )

    # ------------------------------------------------------------------
    async def save(self, session: WorkflowSession) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflow_sessions
                    (session_id, workflow_id, user_id, state, created_at, updated_at, last_accessed_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (session_id) DO UPDATE SET
                    workflow_id = EXCLUDED.workflow_id,
                    user_id = EXCLUDED.user_id,
                    state = EXCLUDED.state,
                    updated_at = EXCLUDED.updated_at,
                    last_accessed_at = EXCLUDED.last_accessed_at
                """,
                session.session_id,
                session.workflow_id,
                session.user_id,
                json.dumps(session.state, default=str),
                session.created_at,
                session.updated_at,
                session.last_accessed_at,
            )
        finally:
            await conn.close()

    async def load(self, session_id: str) -> WorkflowSession | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT session_id, workflow_id, user_id, state, created_at, updated_at, last_accessed_at FROM workflow_sessions WHERE session_id = $1",
                session_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        state = row["state"]
        return WorkflowSession(
            session_id=row["session_id"],
            workflow_id=row["workflow_id"],
            user_id=row["user_id"],
            state=json.loads(state) if isinstance(state, str) else state,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_accessed_at=row["last_accessed_at"],
        )

    async def delete(self, session_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM workflow_sessions WHERE session_id = $1", session_id
            )
        finally:
            await conn.close()
