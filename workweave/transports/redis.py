"""Redis pub/sub transport for cross-process event delivery."""

from __future__ import annotations

import logging
from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..contracts import WorkflowRunEvent
from .base import BaseEventTransport

logger = logging.getLogger(__name__)


class RedisEventTransport(BaseEventTransport):
    """Publish events as JSON on the ``workweave:<channel>`` Redis channel."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        channel: str = "events",
        client: Optional[Any] = None,
    ) -> None:
        if redis is None and client is None:
            raise ImportError("redis package is required for RedisEventTransport")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.channel = channel
        self._redis: Optional[Any] = client

    @property
    def channel_name(self) -> str:
        return f"workweave:{self.channel}"

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, event: WorkflowRunEvent) -> None:
        if not self._redis:
            await self.connect()
        receivers = await self._redis.publish(self.channel_name, event.to_json())
        logger.debug(f"Published {event.event.value} to {self.channel_name} ({receivers} receivers)")
