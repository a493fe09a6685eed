"""Relay feature store — a FeatureStore that republishes its own mutations.

Learn: This is the CORE of the relay. FeatureStoreRelay wraps a real store
and exposes the same method set, so anything that writes to a store can
write to the relay instead. Every mutation follows the same pipeline:

1. Forward the call to the wrapped store (the store is authoritative)
2. If the store raised, re-raise: nothing is published
3. Shape one event per channel (all / flags)
4. Hand the events to the channel publishers for this SDK key only

Upserts publish what the store holds *after* the write, not what the
caller passed in. The store may resolve conflicts by version; if the key
is gone after the write (deleted concurrently), there is nothing to relay.

The relay also registers itself as the replay source for its SDK key on
both publishers, so a subscriber that connects gets a full put built
from the current store contents before any live delta.
"""

import asyncio
from typing import Callable, Optional

import structlog

from flagrelay.events.shaper import ALL, FLAGS, ChannelShape, Event, make_heartbeat_event
from flagrelay.flags.models import FeatureFlag, FlagMap
from flagrelay.realtime.publisher import EventPublisher
from flagrelay.services.heartbeat import HeartbeatDriver
from flagrelay.store.base import FeatureStore

logger = structlog.get_logger()


class ChannelRepository:
    """Replay source for one (SDK key, channel) pair.

    Learn: Yields nothing until the store has been initialized; the
    subscriber just waits for the first live put. A failed read is logged
    and swallowed. The subscriber stays connected and still receives
    live deltas, it only misses the bootstrap.
    """

    def __init__(self, relay: "FeatureStoreRelay", shape: ChannelShape):
        self.relay = relay
        self.shape = shape

    async def replay(self, channel: str, last_event_id: Optional[str] = None):
        try:
            if not await self.relay.initialized():
                return
            event = self.shape.put(await self.relay.all())
        except Exception:
            logger.exception("relay.replay_failed", environment=self.relay.name, channel=self.shape.name)
            return
        yield event


class FeatureStoreRelay(FeatureStore):
    """Feature store decorator that relays mutations to SSE subscribers.

    Must be constructed inside a running event loop when heartbeats are
    enabled (heartbeat_interval > 0): the heartbeat task starts right away.
    """

    def __init__(
        self,
        sdk_key: str,
        all_publisher: EventPublisher,
        flags_publisher: EventPublisher,
        store: FeatureStore,
        heartbeat_interval: float = 0,
        name: str = "",
    ):
        self.sdk_key = sdk_key
        self.store = store
        self.name = name
        self._channels: tuple[tuple[EventPublisher, ChannelShape], ...] = (
            (all_publisher, ALL),
            (flags_publisher, FLAGS),
        )

        for publisher, shape in self._channels:
            publisher.register(sdk_key, ChannelRepository(self, shape))

        self._heartbeat: Optional[HeartbeatDriver] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        if heartbeat_interval > 0:
            self._heartbeat = HeartbeatDriver(heartbeat_interval, self.heartbeat)
            self._heartbeat_task = asyncio.create_task(self._heartbeat.run_loop())

    def keys(self) -> list[str]:
        return [self.sdk_key]

    # ─── Reads (pure delegation) ─────────────────────────

    async def get(self, key: str) -> Optional[FeatureFlag]:
        return await self.store.get(key)

    async def all(self) -> FlagMap:
        return await self.store.all()

    async def initialized(self) -> bool:
        return await self.store.initialized()

    # ─── Mutations ───────────────────────────────────────

    async def init(self, flags: FlagMap) -> None:
        """Replace the dataset, then publish a full put on both channels."""
        await self.store.init(flags)
        self._publish("put", lambda shape: shape.put(flags))
        logger.info("relay.init", environment=self.name, count=len(flags))

    async def upsert(self, key: str, flag: FeatureFlag) -> None:
        """Write, re-read the authoritative value, publish it if still present."""
        await self.store.upsert(key, flag)

        current = await self.store.get(key)
        if current is None:
            logger.info("relay.upsert_voided", environment=self.name, key=key)
            return

        self._publish("patch", lambda shape: shape.patch(current))

    async def delete(self, key: str, version: int) -> None:
        await self.store.delete(key, version)
        self._publish("delete", lambda shape: shape.delete(key, version))

    # ─── Heartbeat ───────────────────────────────────────

    def heartbeat(self) -> None:
        event = make_heartbeat_event()
        for publisher, _ in self._channels:
            publisher.publish(self.keys(), event)

    # ─── Lifecycle ───────────────────────────────────────

    async def close(self) -> None:
        """Stop the heartbeat and stop serving replays for this SDK key."""
        if self._heartbeat is not None:
            self._heartbeat.stop()
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        for publisher, _ in self._channels:
            publisher.unregister(self.sdk_key)

    def _publish(self, kind: str, build: Callable[[ChannelShape], Event]) -> None:
        """Shape and publish one event per channel.

        Shaping or publishing failures drop that single event; they are
        never raised to the mutation caller, whose store write already
        succeeded.
        """
        for publisher, shape in self._channels:
            try:
                event = build(shape)
            except (TypeError, ValueError):
                logger.exception("relay.serialization_failed", environment=self.name, channel=shape.name, kind=kind)
                continue
            try:
                publisher.publish(self.keys(), event)
            except Exception:
                logger.exception("relay.publish_failed", environment=self.name, channel=shape.name, kind=kind)
                continue
            logger.debug("relay.published", environment=self.name, channel=shape.name, kind=kind)
