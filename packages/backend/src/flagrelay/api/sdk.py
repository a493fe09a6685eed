"""SDK snapshot endpoints — the current dataset, without streaming.

Learn: Same shapes as the `put` events on the two channels, so an SDK that
polls instead of streaming parses the same JSON:
  GET /sdk/latest-all          {"flags": {...}, "segments": {}}
  GET /sdk/latest-flags        {<key>: <flag>, ...}
  GET /sdk/latest-flags/{key}  <flag>

An environment that has not received its first dataset yet answers 503,
not an empty map: "no flags" and "don't know yet" are different states.
"""

from typing import Any, Awaitable, Callable

import structlog
from fastapi import APIRouter, Depends, HTTPException

from flagrelay.auth.dependencies import get_current_relay
from flagrelay.events.shaper import all_payload, flags_payload
from flagrelay.flags.models import FlagMap
from flagrelay.services.relay import FeatureStoreRelay

logger = structlog.get_logger()
router = APIRouter(prefix="/sdk")


async def _read(relay: FeatureStoreRelay, read: Callable[[], Awaitable[Any]]) -> Any:
    """Run `read` once the environment is initialized; store failures map to 503."""
    try:
        ready = await relay.initialized()
        result = await read() if ready else None
    except Exception as e:
        logger.warning("sdk.read_failed", environment=relay.name, error=str(e))
        raise HTTPException(status_code=503, detail="Feature store unavailable")

    if not ready:
        raise HTTPException(status_code=503, detail="Environment not initialized yet")
    return result


async def _snapshot(relay: FeatureStoreRelay) -> FlagMap:
    return await _read(relay, relay.all)


@router.get("/latest-all")
async def latest_all(relay: FeatureStoreRelay = Depends(get_current_relay)):
    return all_payload(await _snapshot(relay))


@router.get("/latest-flags")
async def latest_flags(relay: FeatureStoreRelay = Depends(get_current_relay)):
    return flags_payload(await _snapshot(relay))


@router.get("/latest-flags/{key}")
async def latest_flag(key: str, relay: FeatureStoreRelay = Depends(get_current_relay)):
    flag = await _read(relay, lambda: relay.get(key))
    if flag is None:
        raise HTTPException(status_code=404, detail=f"Flag '{key}' not found")
    return flag.to_json()
