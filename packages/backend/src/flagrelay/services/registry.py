"""Relay registry — one relay per configured environment.

Learn: Both channel publishers are shared by every environment; isolation
comes from the SDK key each relay publishes under. Each environment gets
its own store (its own Redis prefix with the redis backend), so datasets
never mix either.

Built in the FastAPI lifespan:
    registry = RelayRegistry(settings)
    await registry.start()
    relay = registry.get(sdk_key)
"""

from typing import Optional

import structlog

from flagrelay.config import Settings
from flagrelay.events.types import ALL_CHANNEL, FLAGS_CHANNEL
from flagrelay.realtime.publisher import EventPublisher
from flagrelay.services.relay import FeatureStoreRelay
from flagrelay.store.base import FeatureStore
from flagrelay.store.memory import InMemoryFeatureStore

logger = structlog.get_logger()


class RelayRegistry:
    """Owns the channel publishers and every environment's relay."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.all_publisher = EventPublisher(
            ALL_CHANNEL,
            buffer_size=settings.subscriber_buffer_size,
            replay_timeout=settings.replay_timeout_seconds,
        )
        self.flags_publisher = EventPublisher(
            FLAGS_CHANNEL,
            buffer_size=settings.subscriber_buffer_size,
            replay_timeout=settings.replay_timeout_seconds,
        )
        self._relays: dict[str, FeatureStoreRelay] = {}
        self._names: dict[str, str] = {}

    async def start(self) -> None:
        """Create a store and a relay for every configured environment."""
        for name, sdk_key in self.settings.environments.items():
            store = self._make_store(name)
            self.add(name, sdk_key, store)

    def add(self, name: str, sdk_key: str, store: FeatureStore) -> FeatureStoreRelay:
        if sdk_key in self._relays:
            raise ValueError(f"Environment '{self._names[sdk_key]}' already uses this SDK key")
        relay = FeatureStoreRelay(
            sdk_key,
            self.all_publisher,
            self.flags_publisher,
            store,
            heartbeat_interval=self.settings.heartbeat_interval_seconds,
            name=name,
        )
        self._relays[sdk_key] = relay
        self._names[sdk_key] = name
        logger.info("registry.environment_added", environment=name, store=type(store).__name__)
        return relay

    def get(self, sdk_key: str) -> Optional[FeatureStoreRelay]:
        return self._relays.get(sdk_key)

    def environments(self) -> dict[str, FeatureStoreRelay]:
        """Environment name → relay."""
        return {self._names[key]: relay for key, relay in self._relays.items()}

    async def close(self) -> None:
        for relay in self._relays.values():
            await relay.close()
        self._relays.clear()
        self._names.clear()
        self.all_publisher.close()
        self.flags_publisher.close()

    def _make_store(self, name: str) -> FeatureStore:
        if self.settings.store_backend == "redis":
            from flagrelay.store.redis import RedisFeatureStore, get_redis

            return RedisFeatureStore(get_redis(), prefix=f"{self.settings.redis_prefix}:{name}")
        return InMemoryFeatureStore()
