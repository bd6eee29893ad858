"""Event transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WorkweaveConfig, load_config
from .base import BaseEventTransport
from .inmemory import InMemoryEventTransport
from .json_writer import JSONEventTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[WorkweaveConfig] = None
) -> BaseEventTransport:
    """Factory function to get the configured event transport."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("WORKWEAVE_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryEventTransport()
    elif backend == "redis":
        from .redis import RedisEventTransport

        redis_conf = config.transport.redis
        return RedisEventTransport(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            channel=redis_conf.channel,
        )
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = [
    "BaseEventTransport",
    "InMemoryEventTransport",
    "JSONEventTransport",
    "get_transport",
]
