"""SSE stream endpoints — /all and /flags.

Learn: Each SDK connects with its SDK key in the Authorization header.
The handler:
1. Resolves the key to the environment's relay (401 otherwise)
2. Subscribes to the channel's publisher under that key
3. Streams every event as SSE text until the client goes away

The subscription is created inside the body generator, so a client that
disconnects before the first chunk never leaves a subscriber behind;
Starlette cancels the generator on disconnect and `finally` detaches it.

The first event on a fresh connection is the replay `put` (if the
environment is initialized); live `patch`/`delete` events and `:hb`
heartbeats follow.
"""

from typing import AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse

from flagrelay.auth.dependencies import get_current_relay, get_registry
from flagrelay.realtime.publisher import EventPublisher
from flagrelay.services.registry import RelayRegistry
from flagrelay.services.relay import FeatureStoreRelay

logger = structlog.get_logger()
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx: don't buffer the stream
}


async def event_stream(
    publisher: EventPublisher,
    sdk_key: str,
    last_event_id: Optional[str] = None,
) -> AsyncIterator[str]:
    """Yield SSE-encoded events for one subscriber until it disconnects."""
    subscription = publisher.subscribe(sdk_key, last_event_id=last_event_id)
    try:
        async for event in subscription:
            yield event.encode()
    finally:
        subscription.close()


def _stream_response(
    publisher: EventPublisher,
    relay: FeatureStoreRelay,
    last_event_id: Optional[str],
) -> StreamingResponse:
    logger.info("stream.connected", channel=publisher.channel, environment=relay.name)
    return StreamingResponse(
        event_stream(publisher, relay.sdk_key, last_event_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/all")
async def stream_all(
    last_event_id: Optional[str] = Header(None),
    relay: FeatureStoreRelay = Depends(get_current_relay),
    registry: RelayRegistry = Depends(get_registry),
):
    """Dataset-shaped stream: flags nested under /flags/, empty segments."""
    return _stream_response(registry.all_publisher, relay, last_event_id)


@router.get("/flags")
async def stream_flags(
    last_event_id: Optional[str] = Header(None),
    relay: FeatureStoreRelay = Depends(get_current_relay),
    registry: RelayRegistry = Depends(get_registry),
):
    """Flat flag-map stream: paths are /<key>."""
    return _stream_response(registry.flags_publisher, relay, last_event_id)
