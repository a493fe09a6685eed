"""Redis feature store — flags shared across relay processes.

Learn: Each environment gets its own key prefix:
  {prefix}:features   hash, flag key → flag JSON (tombstones included)
  {prefix}:$inited    marker set by init()

Upserts and deletes are version-checked with WATCH/MULTI. If another
writer touches the hash between our read and our EXEC, Redis aborts the
transaction (WatchError) and we retry against the fresh value. That makes
Redis the ordering authority for a single key, which is exactly what the
relay's post-write read relies on.
"""

from typing import Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import WatchError

from flagrelay.config import settings
from flagrelay.flags.models import FeatureFlag, FlagMap, tombstone
from flagrelay.store.base import FeatureStore, StaleVersionError

logger = structlog.get_logger()

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisFeatureStore(FeatureStore):
    """Feature store backed by one Redis hash per environment."""

    def __init__(self, redis: aioredis.Redis, prefix: str):
        self.redis = redis
        self.prefix = prefix
        self._features_key = f"{prefix}:features"
        self._inited_key = f"{prefix}:$inited"
        self._inited = False  # once true, never re-checked

    async def get(self, key: str) -> Optional[FeatureFlag]:
        raw = await self.redis.hget(self._features_key, key)
        if raw is None:
            return None
        flag = FeatureFlag.model_validate_json(raw)
        return None if flag.deleted else flag

    async def all(self) -> FlagMap:
        raw_flags = await self.redis.hgetall(self._features_key)
        flags: FlagMap = {}
        for key, raw in raw_flags.items():
            flag = FeatureFlag.model_validate_json(raw)
            if not flag.deleted:
                flags[key] = flag
        return flags

    async def init(self, flags: FlagMap) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._features_key)
            if flags:
                pipe.hset(
                    self._features_key,
                    mapping={key: flag.model_dump_json(exclude_unset=True) for key, flag in flags.items()},
                )
            pipe.set(self._inited_key, "1")
            await pipe.execute()
        self._inited = True
        logger.info("redis_store.initialized", prefix=self.prefix, count=len(flags))

    async def upsert(self, key: str, flag: FeatureFlag) -> None:
        await self._versioned_write(key, flag)

    async def delete(self, key: str, version: int) -> None:
        await self._versioned_write(key, tombstone(key, version))

    async def initialized(self) -> bool:
        if not self._inited:
            self._inited = bool(await self.redis.exists(self._inited_key))
        return self._inited

    async def _versioned_write(self, key: str, flag: FeatureFlag) -> None:
        """Write `flag` under `key` unless the stored version is newer or equal."""
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(self._features_key)
                    raw = await pipe.hget(self._features_key, key)
                    if raw is not None:
                        current = FeatureFlag.model_validate_json(raw)
                        if current.version >= flag.version:
                            await pipe.unwatch()
                            raise StaleVersionError(key, flag.version, current.version)

                    pipe.multi()
                    pipe.hset(self._features_key, key, flag.model_dump_json(exclude_unset=True))
                    await pipe.execute()
                    return
                except WatchError:
                    logger.debug("redis_store.write_conflict", prefix=self.prefix, key=key)
                    continue
