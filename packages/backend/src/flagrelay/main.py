"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, the relay registry
and its heartbeat tasks). Middleware, CORS, and routers all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flagrelay import __version__
from flagrelay.api import api_router, sdk_router
from flagrelay.config import settings
from flagrelay.services.registry import RelayRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Relays must be built here, inside the running loop, because
    each one starts its heartbeat task on construction.
    """
    logger.info(
        "flagrelay.starting",
        version=__version__,
        environment=settings.environment,
        store_backend=settings.store_backend,
        environments=sorted(settings.environments),
        port=settings.port,
    )

    if settings.store_backend == "redis":
        from flagrelay.store.redis import init_redis

        # Unlike a cache, the store is required; fail startup if Redis is down
        await init_redis()
        logger.info("flagrelay.redis_connected", url=settings.redis_url)

    registry = RelayRegistry(settings)
    await registry.start()
    app.state.registry = registry
    logger.info("flagrelay.relays_started", count=len(settings.environments))

    yield

    # Shutdown
    logger.info("flagrelay.shutdown")
    await registry.close()
    app.state.registry = None

    if settings.store_backend == "redis":
        from flagrelay.store.redis import close_redis

        await close_redis()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="flagrelay",
        description="Feature flag change relay — SSE streams of store mutations",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from flagrelay.middleware.request_id import RequestIdMiddleware
    from flagrelay.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Authorization", "Last-Event-ID", "X-Request-ID"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Mount API routes
    app.include_router(api_router)
    app.include_router(sdk_router, tags=["sdk"])

    # Mount SSE stream routes
    from flagrelay.realtime.stream import router as stream_router
    app.include_router(stream_router, tags=["streams"])

    return app


# Default app instance (used by uvicorn: flagrelay.main:app)
app = create_app()
