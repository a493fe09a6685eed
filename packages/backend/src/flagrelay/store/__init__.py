"""Feature stores — the persistence seam the relay writes through.

Learn: The relay wraps a FeatureStore and exposes the same method set, so
anything that talks to a store can talk to the relay instead. Two backends
ship here:
1. InMemoryFeatureStore — single process, tests and local development
2. RedisFeatureStore — shared across relay processes

Both resolve write conflicts by version: a write whose version is not newer
than what is stored raises StaleVersionError.
"""

from flagrelay.store.base import FeatureStore, FeatureStoreError, StaleVersionError
from flagrelay.store.memory import InMemoryFeatureStore

__all__ = [
    "FeatureStore",
    "FeatureStoreError",
    "InMemoryFeatureStore",
    "StaleVersionError",
]
