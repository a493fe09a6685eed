"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to resolve the
SDK key in the request to the environment's relay.

Accepted header forms:
1. Authorization: sdk-xxxx          (what SDKs send)
2. Authorization: Bearer sdk-xxxx   (handy with curl)
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request

from flagrelay.services.registry import RelayRegistry
from flagrelay.services.relay import FeatureStoreRelay


def get_registry(request: Request) -> RelayRegistry:
    """The RelayRegistry built in the app lifespan."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Relay is not started")
    return registry


def parse_sdk_key(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None


async def get_current_relay(
    authorization: Optional[str] = Header(None),
    registry: RelayRegistry = Depends(get_registry),
) -> FeatureStoreRelay:
    """Resolve the SDK key to a relay (401 if missing or unknown)."""
    sdk_key = parse_sdk_key(authorization)
    if sdk_key is None:
        raise HTTPException(status_code=401, detail="SDK key required")

    relay = registry.get(sdk_key)
    if relay is None:
        raise HTTPException(status_code=401, detail="Unknown SDK key")

    structlog.contextvars.bind_contextvars(environment=relay.name)
    return relay
