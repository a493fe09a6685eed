"""In-memory feature store.

Learn: A dict guarded by an asyncio.Lock. Deletes keep a tombstone so a
late upsert carrying an older version can't resurrect a deleted flag.
Reads hand out deep copies; callers can't mutate stored state.
"""

import asyncio
from typing import Optional

from flagrelay.flags.models import FeatureFlag, FlagMap, tombstone
from flagrelay.store.base import FeatureStore, StaleVersionError


class InMemoryFeatureStore(FeatureStore):
    """Process-local store for tests and single-node deployments."""

    def __init__(self) -> None:
        self._flags: dict[str, FeatureFlag] = {}
        self._initialized = False
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[FeatureFlag]:
        flag = self._flags.get(key)
        if flag is None or flag.deleted:
            return None
        return flag.model_copy(deep=True)

    async def all(self) -> FlagMap:
        return {
            key: flag.model_copy(deep=True)
            for key, flag in self._flags.items()
            if not flag.deleted
        }

    async def init(self, flags: FlagMap) -> None:
        async with self._lock:
            self._flags = {key: flag.model_copy(deep=True) for key, flag in flags.items()}
            self._initialized = True

    async def upsert(self, key: str, flag: FeatureFlag) -> None:
        async with self._lock:
            self._check_version(key, flag.version)
            self._flags[key] = flag.model_copy(deep=True)

    async def delete(self, key: str, version: int) -> None:
        async with self._lock:
            self._check_version(key, version)
            self._flags[key] = tombstone(key, version)

    async def initialized(self) -> bool:
        return self._initialized

    def _check_version(self, key: str, version: int) -> None:
        current = self._flags.get(key)
        if current is not None and current.version >= version:
            raise StaleVersionError(key, version, current.version)
