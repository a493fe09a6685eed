"""Event publisher — in-process SSE fan-out for one channel.

Learn: One EventPublisher per channel, shared by every environment.
Subscribers are indexed by tenant (SDK) key, so publish(["sdk-a"], ...)
can't reach a subscriber of "sdk-b".

publish() is synchronous and never blocks: each subscriber owns a bounded
asyncio.Queue and events are handed over with put_nowait(). A subscriber
that can't keep up loses events (counted in `dropped`) instead of stalling
the mutation caller or the other subscribers.

Bootstrapping a new subscriber:
1. subscribe() attaches the subscription immediately, in "replaying" mode
2. A replay task asks the tenant's repository for a snapshot (at most one put)
3. Live events published meanwhile are held back, not queued
4. When replay ends, the snapshot is queued first, then the held events

So a subscriber always sees snapshot-then-deltas, never a delta it would
later overwrite with an older snapshot.
"""

import asyncio
from typing import AsyncIterator, Iterable, Optional, Protocol

import structlog

from flagrelay.events.shaper import Event

logger = structlog.get_logger()

_CLOSED = object()


class Repository(Protocol):
    """Source of the bootstrap snapshot for one tenant."""

    def replay(self, channel: str, last_event_id: Optional[str]) -> AsyncIterator[Event]:
        ...


class Subscription:
    """One connected subscriber. Iterate it to receive events."""

    def __init__(self, publisher: "EventPublisher", tenant_key: str, buffer_size: int):
        self.publisher = publisher
        self.tenant_key = tenant_key
        self.dropped = 0
        self.closed = False
        # Live events are bounded by buffer_size; the extra slot fits the
        # replay snapshot ahead of up to buffer_size held events
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size + 1)
        self._buffer_size = buffer_size
        self._replaying = True
        self._held: list[Event] = []
        self.replay_task: Optional[asyncio.Task] = None

    @property
    def replaying(self) -> bool:
        return self._replaying

    def offer(self, event: Event) -> None:
        """Hand a live event over without blocking."""
        if self.closed:
            return
        if self._replaying:
            if len(self._held) >= self._buffer_size:
                self._drop(event)
            else:
                self._held.append(event)
            return
        self._enqueue(event)

    def finish_replay(self, events: list[Event]) -> None:
        """Queue the snapshot, then everything held back while it was built."""
        for event in events:
            self._enqueue(event, reserved=True)
        held, self._held = self._held, []
        for event in held:
            self._enqueue(event, reserved=True)
        self._replaying = False

    def close(self) -> None:
        """Detach from the publisher and end iteration."""
        if self.closed:
            return
        self.closed = True
        if self.replay_task is not None and not self.replay_task.done():
            self.replay_task.cancel()
        self.publisher.discard(self)
        # Make room for the sentinel so a waiting consumer wakes up
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def _enqueue(self, event: Event, reserved: bool = False) -> None:
        if not reserved and self._queue.qsize() >= self._buffer_size:
            self._drop(event)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._drop(event)

    def _drop(self, event: Event) -> None:
        self.dropped += 1
        logger.warning(
            "publisher.subscriber_dropped_event",
            channel=self.publisher.channel,
            kind=event.event or "heartbeat",
            dropped=self.dropped,
        )


class EventPublisher:
    """Fan-out of events to every subscriber of one channel, per tenant key."""

    def __init__(self, channel: str, buffer_size: int = 256, replay_timeout: float = 5.0):
        self.channel = channel
        self.buffer_size = buffer_size
        self.replay_timeout = replay_timeout
        self._repositories: dict[str, Repository] = {}
        self._subscribers: dict[str, set[Subscription]] = {}

    # ─── Registration ────────────────────────────────────

    def register(self, tenant_key: str, repository: Repository) -> None:
        """Register the replay source consulted when a tenant's subscriber connects."""
        self._repositories[tenant_key] = repository
        logger.debug("publisher.registered", channel=self.channel)

    def unregister(self, tenant_key: str) -> None:
        self._repositories.pop(tenant_key, None)

    # ─── Publishing ──────────────────────────────────────

    def publish(self, tenant_keys: Iterable[str], event: Event) -> None:
        """Deliver `event` to every current subscriber of the given tenants."""
        for tenant_key in tenant_keys:
            for subscription in list(self._subscribers.get(tenant_key, ())):
                subscription.offer(event)

    # ─── Subscribing ─────────────────────────────────────

    def subscribe(self, tenant_key: str, last_event_id: Optional[str] = None) -> Subscription:
        """Attach a new subscriber and start its replay in the background.

        Must be called from a running event loop.
        """
        subscription = Subscription(self, tenant_key, self.buffer_size)
        self._subscribers.setdefault(tenant_key, set()).add(subscription)
        subscription.replay_task = asyncio.create_task(
            self._replay(subscription, last_event_id)
        )
        logger.info(
            "publisher.subscribed",
            channel=self.channel,
            subscribers=len(self._subscribers[tenant_key]),
        )
        return subscription

    def discard(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.tenant_key)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.tenant_key]
        logger.info("publisher.unsubscribed", channel=self.channel, dropped=subscription.dropped)

    def subscriber_count(self, tenant_key: str) -> int:
        return len(self._subscribers.get(tenant_key, ()))

    def close(self) -> None:
        """Close every subscription (shutdown)."""
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                subscription.close()
        self._repositories.clear()

    async def _replay(self, subscription: Subscription, last_event_id: Optional[str]) -> None:
        """Collect the tenant's snapshot, bounded by replay_timeout."""
        events: list[Event] = []
        repository = self._repositories.get(subscription.tenant_key)

        async def collect() -> None:
            async for event in repository.replay(self.channel, last_event_id):
                events.append(event)

        try:
            if repository is not None:
                await asyncio.wait_for(collect(), timeout=self.replay_timeout)
        except asyncio.TimeoutError:
            logger.warning("publisher.replay_timeout", channel=self.channel, timeout=self.replay_timeout)
            events.clear()
        except Exception:
            logger.exception("publisher.replay_error", channel=self.channel)
            events.clear()
        finally:
            if not subscription.closed:
                subscription.finish_replay(events)
