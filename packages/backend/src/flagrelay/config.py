"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with FLAGRELAY_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: Environments are a JSON object of name → SDK key:
    FLAGRELAY_ENVIRONMENTS='{"production": "sdk-abc", "staging": "sdk-def"}'
The SDK key is the tenant key: it scopes one dataset and one population
of stream subscribers.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings

STORE_BACKENDS = ("memory", "redis")


class Settings(BaseSettings):
    """All app configuration. Set via FLAGRELAY_* env vars."""

    # Environments (name → SDK key)
    environments: dict[str, str] = {}

    # Store
    store_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_prefix: str = "flagrelay"

    # Streaming
    heartbeat_interval_seconds: int = 180  # <= 0 disables heartbeats
    replay_timeout_seconds: float = 5.0
    subscriber_buffer_size: int = 256

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8030

    # CORS
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "FLAGRELAY_"}

    @model_validator(mode="after")
    def validate_relay_settings(self):
        """Reject unknown store backends and SDK keys shared by two environments."""
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"FLAGRELAY_STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, "
                f"got '{self.store_backend}'"
            )
        keys = list(self.environments.values())
        if len(keys) != len(set(keys)):
            raise ValueError("FLAGRELAY_ENVIRONMENTS contains duplicate SDK keys")
        if self.subscriber_buffer_size < 1:
            raise ValueError("FLAGRELAY_SUBSCRIBER_BUFFER_SIZE must be at least 1")
        return self


# Singleton: import this everywhere
settings = Settings()
