"""Test fixtures — in-memory stores, recording publishers, a wired app.

Learn: Most relay tests don't need real fan-out. RecordingPublisher has the
EventPublisher surface the relay uses (register / unregister / publish) and
just remembers every call, so a test can assert exactly which events went
out, in which order, to which SDK keys.

The HTTP fixtures build a real RelayRegistry (in-memory stores, heartbeats
off) and swap it in through dependency_overrides, the same way the app's
lifespan would have stored it on app.state.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from flagrelay.auth.dependencies import get_registry
from flagrelay.config import Settings
from flagrelay.main import app
from flagrelay.services.registry import RelayRegistry
from flagrelay.services.relay import FeatureStoreRelay
from flagrelay.store.memory import InMemoryFeatureStore

SDK_KEY = "sdk-test"


class RecordingPublisher:
    """Publisher double: records (tenant_keys, event) for every publish."""

    def __init__(self, channel: str):
        self.channel = channel
        self.published = []
        self.repositories = {}

    def register(self, tenant_key, repository):
        self.repositories[tenant_key] = repository

    def unregister(self, tenant_key):
        self.repositories.pop(tenant_key, None)

    def publish(self, tenant_keys, event):
        self.published.append((list(tenant_keys), event))

    @property
    def events(self):
        return [event for _, event in self.published]

    @property
    def data_events(self):
        return [event for event in self.events if not event.is_heartbeat]

    @property
    def heartbeats(self):
        return [event for event in self.events if event.is_heartbeat]


@pytest.fixture()
def make_publisher():
    """Factory for extra publisher doubles."""
    return RecordingPublisher


@pytest.fixture()
def store():
    return InMemoryFeatureStore()


@pytest.fixture()
def all_publisher():
    return RecordingPublisher("all")


@pytest.fixture()
def flags_publisher():
    return RecordingPublisher("flags")


@pytest_asyncio.fixture()
async def relay(store, all_publisher, flags_publisher):
    """Relay over an in-memory store, heartbeats disabled."""
    relay = FeatureStoreRelay(SDK_KEY, all_publisher, flags_publisher, store, heartbeat_interval=0)
    try:
        yield relay
    finally:
        await relay.close()


@pytest.fixture()
def relay_settings():
    return Settings(
        environments={"production": "sdk-prod", "staging": "sdk-staging"},
        heartbeat_interval_seconds=0,
        replay_timeout_seconds=1.0,
        subscriber_buffer_size=16,
    )


@pytest_asyncio.fixture()
async def registry(relay_settings):
    registry = RelayRegistry(relay_settings)
    await registry.start()
    try:
        yield registry
    finally:
        await registry.close()


@pytest_asyncio.fixture()
async def client(registry):
    """HTTP client with the app's registry overridden for testing."""
    app.dependency_overrides[get_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
