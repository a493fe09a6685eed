#!/usr/bin/env python3
"""
flagrelay Quickstart — the relay lifecycle in one script, no server needed.

Wires an in-memory store and the two channel publishers into a relay,
connects one subscriber per channel, then plays the part of an upstream
feed: a full init, an update, a stale delete the store rejects, and a
real delete. Every frame each subscriber receives is printed.

Run with: python examples/quickstart.py
"""

import asyncio

from flagrelay.events.types import ALL_CHANNEL, FLAGS_CHANNEL
from flagrelay.flags.models import FeatureFlag
from flagrelay.realtime.publisher import EventPublisher
from flagrelay.services.relay import FeatureStoreRelay
from flagrelay.store import InMemoryFeatureStore, StaleVersionError

SDK_KEY = "sdk-quickstart"


async def tail(name: str, subscription, frames: int) -> None:
    """Print `frames` frames from one subscription."""
    for _ in range(frames):
        event = await subscription.__anext__()
        print(f"[{name}] {event.encode().strip()}")


async def main():
    all_publisher = EventPublisher(ALL_CHANNEL)
    flags_publisher = EventPublisher(FLAGS_CHANNEL)
    relay = FeatureStoreRelay(
        SDK_KEY,
        all_publisher,
        flags_publisher,
        InMemoryFeatureStore(),
        heartbeat_interval=1,
    )

    # ── Subscribers connect before any data exists ────────────────
    print("1. Subscribing (store not initialized yet, so no replay)...")
    all_sub = all_publisher.subscribe(SDK_KEY)
    flags_sub = flags_publisher.subscribe(SDK_KEY)
    await asyncio.gather(all_sub.replay_task, flags_sub.replay_task)

    # ── Upstream feed ─────────────────────────────────────────────
    print("\n2. Init with one flag...")
    await relay.init({"beta": FeatureFlag(key="beta", version=1, on=False)})

    print("3. Turn it on (version 2)...")
    await relay.upsert("beta", FeatureFlag(key="beta", version=2, on=True))

    print("4. Stale delete (version 1) is rejected by the store...")
    try:
        await relay.delete("beta", 1)
    except StaleVersionError as e:
        print(f"   rejected: {e}")

    print("5. Delete at version 3...")
    await relay.delete("beta", 3)

    # heartbeat + put + patch + delete
    print("\nFrames received:")
    await tail("all", all_sub, 4)
    await tail("flags", flags_sub, 4)

    # ── A late subscriber bootstraps from the current state ───────
    print("\n6. Late subscriber on /flags gets a replay put...")
    late = flags_publisher.subscribe(SDK_KEY)
    await tail("late", late, 1)

    for subscription in (all_sub, flags_sub, late):
        subscription.close()
    await relay.close()
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
