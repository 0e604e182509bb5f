"""Snapshot cache for listing results.

- The engine only reads the cache: a hit short-circuits aggregation, a miss recomputes
- Populating and invalidating the cache is up to whoever owns the cache policy
- There is no TTL logic here: a cached snapshot is stale-but-valid until invalidated
- Concurrent callers on a cache miss each aggregate independently
"""

import logging
import threading
from typing import Generic, Protocol, TypeVar

import cachetools


logger = logging.getLogger(__name__)


T = TypeVar("T")


#: Process-wide storage for cached snapshots
DEFAULT_SNAPSHOT_CACHE = cachetools.LRUCache(maxsize=64)


class SnapshotCache(Protocol[T]):
    """Read side of a snapshot cache."""

    def fetch(self) -> T | None:
        """Get the cached snapshot.

        :return:
            ``None`` on a miss
        """


class CachedFetcher(Generic[T]):
    """A named snapshot slot in a :py:mod:`cachetools` cache.

    Example:

    .. code-block:: python

        cache = CachedFetcher("vaults/get", chain_id=1)
        vaults = cache.fetch()
        if vaults is None:
            vaults = service.list_vaults()
            cache.store(vaults)
    """

    def __init__(
        self,
        path: str,
        chain_id: int,
        cache: cachetools.Cache = DEFAULT_SNAPSHOT_CACHE,
        enabled: bool = True,
    ):
        """
        :param path:
            Slot name, e.g. ``"vaults/get"``

        :param enabled:
            Disabled fetchers always miss
        """
        self.path = path
        self.chain_id = chain_id
        self.cache = cache
        self.enabled = enabled
        self.lock = threading.Lock()

    def __repr__(self):
        return f"<CachedFetcher {self.path} chain:{self.chain_id} enabled:{self.enabled}>"

    @property
    def key(self) -> tuple[int, str]:
        return self.chain_id, self.path

    def fetch(self) -> T | None:
        if not self.enabled:
            return None
        with self.lock:
            value = self.cache.get(self.key)
        if value is not None:
            logger.debug("Cache hit %s", self.key)
        return value

    def store(self, value: T):
        """Populate the slot."""
        assert value is not None, "Cannot cache None"
        with self.lock:
            self.cache[self.key] = value

    def invalidate(self):
        """Drop the cached snapshot."""
        with self.lock:
            self.cache.pop(self.key, None)


class NoCache(Generic[T]):
    """Cache that always misses."""

    def fetch(self) -> T | None:
        return None
