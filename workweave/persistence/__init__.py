"""Session persistence for workweave workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WorkweaveConfig, load_config
from .inmemory import InMemorySessionStorage
from .models import WorkflowSession
from .sqlite import SQLiteSessionStorage
from .storage import SessionStorage


def get_storage(
    database_url: Optional[str] = None, config: Optional[WorkweaveConfig] = None
) -> SessionStorage:
    """Factory function to obtain a session storage backend.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``WORKWEAVE_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory storage is returned.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("WORKWEAVE_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        return InMemorySessionStorage()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteSessionStorage(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresSessionStorage

        return PostgresSessionStorage(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "WorkflowSession",
    "SessionStorage",
    "InMemorySessionStorage",
    "SQLiteSessionStorage",
    "get_storage",
]
