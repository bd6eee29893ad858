"""Tests for configuration loading."""

import logging

import pytest

from workweave import Step
from workweave.config import StepDefaults, WorkweaveConfig, load_config
from workweave.transports import InMemoryEventTransport, get_transport
from workweave.transports.redis import RedisEventTransport


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: testhost
    port: 1234
step:
  max_retries: 5
  retry_delay: 0.5
"""
    )
    monkeypatch.setenv("WORKWEAVE_CONFIG", str(config_path))

    config = load_config()
    assert config.transport.backend == "redis"
    assert config.transport.redis.host == "testhost"
    assert config.transport.redis.port == 1234
    assert config.step.max_retries == 5


def test_missing_config_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKWEAVE_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("WORKWEAVE_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("WORKWEAVE_LOG_LEVEL", raising=False)

    config = load_config()
    assert config.transport.backend == "inmemory"
    assert config.database_url is None
    assert config.log_level == "INFO"


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKWEAVE_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("WORKWEAVE_DATABASE_URL", "sqlite://sessions.db")
    monkeypatch.setenv("WORKWEAVE_LOG_LEVEL", "debug")

    config = load_config()
    assert config.database_url == "sqlite://sessions.db"
    assert config.log_level == "debug"


def test_get_transport_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: confighost
    port: 6380
    channel: runs
"""
    )
    monkeypatch.setenv("WORKWEAVE_CONFIG", str(config_path))
    monkeypatch.delenv("WORKWEAVE_TRANSPORT", raising=False)

    transport = get_transport()
    assert isinstance(transport, RedisEventTransport)
    assert transport.host == "confighost"
    assert transport.port == 6380
    assert transport.channel_name == "workweave:runs"


def test_get_transport_backend_argument():
    config = WorkweaveConfig()

    assert isinstance(get_transport("inmemory", config=config), InMemoryEventTransport)
    with pytest.raises(ValueError):
        get_transport("carrier-pigeon", config=config)


def test_step_defaults_apply_to_steps():
    defaults = StepDefaults(max_retries=1, retry_delay=0.0)

    step = Step(name="configured", executor=lambda s: None, **defaults.as_kwargs())

    assert step.max_retries == 1
    assert step.retry_delay == 0.0
    assert step.timeout_seconds is None


def test_setup_logging_sets_package_level():
    WorkweaveConfig(log_level="warning").setup_logging()
    assert logging.getLogger("workweave").level == logging.WARNING

    with pytest.raises(ValueError):
        WorkweaveConfig(log_level="chatty").setup_logging()
