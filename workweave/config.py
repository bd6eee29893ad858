from __future__ import annotations

import logging
import os
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel


class RedisConfig(BaseModel):
    """Configuration for the Redis event transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    channel: str = "events"


class TransportConfig(BaseModel):
    """Event transport settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class StepDefaults(BaseModel):
    """Retry policy applied to steps built from configuration."""

    max_retries: int = 3
    retry_delay: float = 1.0
    timeout_seconds: Optional[float] = None

    def as_kwargs(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WorkweaveConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"
    step: StepDefaults = StepDefaults()

    def setup_logging(self) -> None:
        """Configure the ``workweave`` logger hierarchy at ``log_level``."""
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        logging.basicConfig(
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logging.getLogger("workweave").setLevel(level)


def load_config(path: Optional[str] = None) -> WorkweaveConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WORKWEAVE_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("WORKWEAVE_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WorkweaveConfig(**data)
    else:
        config = WorkweaveConfig()

    env_db_url = os.getenv("WORKWEAVE_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_level = os.getenv("WORKWEAVE_LOG_LEVEL")
    if env_level:
        config.log_level = env_level
    return config
