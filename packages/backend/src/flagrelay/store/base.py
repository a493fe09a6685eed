"""Feature store base — the contract every store backend implements.

Learn: Errors are exceptions, not return values. A store method that
returns normally has durably applied the write, and the very next get()/all()
from this process must observe it. The relay relies on that to re-read
the authoritative value after an upsert.
"""

from abc import ABC, abstractmethod
from typing import Optional

from flagrelay.flags.models import FeatureFlag, FlagMap


class FeatureStoreError(Exception):
    """Base class for store failures surfaced to mutation callers."""
    pass


class StaleVersionError(FeatureStoreError):
    """Raised when a write carries a version not newer than the stored one."""

    def __init__(self, key: str, version: int, current_version: int):
        self.key = key
        self.version = version
        self.current_version = current_version
        super().__init__(
            f"Stale write for '{key}': version {version} <= stored {current_version}"
        )


class FeatureStore(ABC):
    """Abstract feature store.

    Implemented by the store backends and by FeatureStoreRelay, which
    wraps one of them.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[FeatureFlag]:
        """Return the live flag for `key`, or None if absent or deleted."""

    @abstractmethod
    async def all(self) -> FlagMap:
        """Return every live (non-deleted) flag."""

    @abstractmethod
    async def init(self, flags: FlagMap) -> None:
        """Replace the whole dataset and mark the store initialized."""

    @abstractmethod
    async def upsert(self, key: str, flag: FeatureFlag) -> None:
        """Insert or update a flag if its version is newer."""

    @abstractmethod
    async def delete(self, key: str, version: int) -> None:
        """Delete a flag if `version` is newer, leaving a tombstone."""

    @abstractmethod
    async def initialized(self) -> bool:
        """True once init() has succeeded at least once."""
