"""SDK endpoint tests — auth, snapshots, and the SSE stream body.

Learn: httpx's ASGITransport waits for the whole response body, so an
endless SSE response can't be read through the client. Auth failures
return before streaming and are tested over HTTP; the stream body is
tested by driving the event_stream() generator directly.
"""

import asyncio
import json

import pytest

from flagrelay.flags.models import FeatureFlag
from flagrelay.realtime.stream import event_stream

PROD = {"Authorization": "sdk-prod"}


# ═══════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/all", "/flags", "/sdk/latest-all", "/sdk/latest-flags"])
async def test_missing_sdk_key_is_rejected(client, path):
    r = await client.get(path)
    assert r.status_code == 401
    assert r.json()["detail"] == "SDK key required"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/all", "/flags", "/sdk/latest-flags"])
async def test_unknown_sdk_key_is_rejected(client, path):
    r = await client.get(path, headers={"Authorization": "sdk-nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Unknown SDK key"


@pytest.mark.asyncio
async def test_bearer_form_is_accepted(client, registry):
    await registry.get("sdk-prod").init({})
    r = await client.get("/sdk/latest-flags", headers={"Authorization": "Bearer sdk-prod"})
    assert r.status_code == 200
    assert r.json() == {}


# ═══════════════════════════════════════════════════════════
# Snapshots
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_snapshot_before_init_is_503(client):
    r = await client.get("/sdk/latest-all", headers=PROD)
    assert r.status_code == 503
    assert r.json()["detail"] == "Environment not initialized yet"


@pytest.mark.asyncio
async def test_snapshots_use_channel_shapes(client, registry):
    await registry.get("sdk-prod").init({"beta": FeatureFlag(key="beta", version=1)})

    r = await client.get("/sdk/latest-all", headers=PROD)
    assert r.status_code == 200
    assert r.json() == {"flags": {"beta": {"key": "beta", "version": 1}}, "segments": {}}

    r = await client.get("/sdk/latest-flags", headers=PROD)
    assert r.json() == {"beta": {"key": "beta", "version": 1}}

    r = await client.get("/sdk/latest-flags/beta", headers=PROD)
    assert r.json() == {"key": "beta", "version": 1}


@pytest.mark.asyncio
async def test_single_flag_not_found(client, registry):
    relay = registry.get("sdk-prod")
    await relay.init({"beta": FeatureFlag(key="beta", version=1)})
    await relay.delete("beta", 2)

    r = await client.get("/sdk/latest-flags/beta", headers=PROD)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_environments_are_isolated(client, registry):
    await registry.get("sdk-prod").init({"prod-only": FeatureFlag(key="prod-only", version=1)})
    await registry.get("sdk-staging").init({"staging-only": FeatureFlag(key="staging-only", version=1)})

    prod = await client.get("/sdk/latest-flags", headers=PROD)
    staging = await client.get("/sdk/latest-flags", headers={"Authorization": "sdk-staging"})

    assert set(prod.json()) == {"prod-only"}
    assert set(staging.json()) == {"staging-only"}


# ═══════════════════════════════════════════════════════════
# Stream body
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_stream_sends_replay_then_live_events(registry):
    relay = registry.get("sdk-prod")
    await relay.init({"beta": FeatureFlag(key="beta", version=1)})

    stream = event_stream(registry.all_publisher, "sdk-prod")
    first = await anext(stream)
    assert first.startswith("event: put\ndata: ")
    assert json.loads(first.split("data: ", 1)[1]) == {
        "flags": {"beta": {"key": "beta", "version": 1}},
        "segments": {},
    }

    await relay.upsert("beta", FeatureFlag(key="beta", version=2))
    second = await anext(stream)
    assert second == 'event: patch\ndata: {"data":{"key":"beta","version":2},"path":"/flags/beta"}\n\n'

    assert registry.all_publisher.subscriber_count("sdk-prod") == 1
    await stream.aclose()
    assert registry.all_publisher.subscriber_count("sdk-prod") == 0


@pytest.mark.asyncio
async def test_stream_heartbeat_frame(registry):
    stream = event_stream(registry.flags_publisher, "sdk-staging")
    frame = asyncio.ensure_future(anext(stream))
    await asyncio.sleep(0)  # subscribes on first iteration
    registry.get("sdk-staging").heartbeat()

    assert await asyncio.wait_for(frame, timeout=1.0) == ":hb\n\n"
    await stream.aclose()
