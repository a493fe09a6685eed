"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Two families of routes:
1. /api/v1/*  — operational (health), open
2. /sdk/*     — snapshot reads for SDKs, SDK key required

The long-lived /all and /flags streams live in flagrelay.realtime.stream.
Auth is applied per route through the get_current_relay dependency, since
the dependency also returns the relay the handler needs.
"""

from fastapi import APIRouter

from flagrelay.api.health import router as health_router
from flagrelay.api.sdk import router as sdk_router

api_router = APIRouter(prefix="/api/v1")

# Open routes, no auth required
api_router.include_router(health_router, tags=["health"])

__all__ = ["api_router", "sdk_router"]
