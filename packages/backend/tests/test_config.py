"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from flagrelay.config import Settings


def test_defaults():
    s = Settings()
    assert s.store_backend in ("memory", "redis")
    assert s.replay_timeout_seconds > 0


def test_environments_from_env_json(monkeypatch):
    monkeypatch.setenv("FLAGRELAY_ENVIRONMENTS", '{"production": "sdk-1", "staging": "sdk-2"}')
    monkeypatch.setenv("FLAGRELAY_HEARTBEAT_INTERVAL_SECONDS", "0")
    s = Settings()
    assert s.environments == {"production": "sdk-1", "staging": "sdk-2"}
    assert s.heartbeat_interval_seconds == 0


def test_unknown_store_backend_rejected():
    with pytest.raises(ValidationError, match="STORE_BACKEND"):
        Settings(store_backend="etcd")


def test_duplicate_sdk_keys_rejected():
    with pytest.raises(ValidationError, match="duplicate SDK keys"):
        Settings(environments={"a": "sdk-1", "b": "sdk-1"})


def test_buffer_size_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(subscriber_buffer_size=0)
