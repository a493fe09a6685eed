"""Health check endpoint.

Learn: Reports whether the server is up, whether each environment's store
has received its first full dataset, how many SDKs are streaming from it,
and (redis backend only) whether Redis is reachable.
"""

from fastapi import APIRouter, Depends

from flagrelay import __version__
from flagrelay.auth.dependencies import get_registry
from flagrelay.services.registry import RelayRegistry

router = APIRouter()


@router.get("/health")
async def health_check(registry: RelayRegistry = Depends(get_registry)):
    """Check server health and per-environment readiness."""
    checks = {"server": "ok", "version": __version__}

    environments = {}
    for name, relay in registry.environments().items():
        try:
            initialized = await relay.initialized()
        except Exception as e:
            environments[name] = {"initialized": False, "error": str(e)}
            continue
        environments[name] = {
            "initialized": initialized,
            "subscribers": {
                "all": registry.all_publisher.subscriber_count(relay.sdk_key),
                "flags": registry.flags_publisher.subscriber_count(relay.sdk_key),
            },
        }

    if registry.settings.store_backend == "redis":
        try:
            from flagrelay.store.redis import get_redis

            await get_redis().ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    ready = all(env.get("initialized") for env in environments.values())
    status = "healthy" if ready and all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks, "environments": environments}
