"""In-process TTL cache with least-recently-used eviction."""

import fnmatch
import logging
import time
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)


class InMemoryCache:
    """
    Bounded in-process cache implementing the ``CacheService`` contract.

    Entries expire after their TTL; when full, the least recently used
    entry is evicted. Safe to share between coroutines on one event loop:
    every operation completes without awaiting.
    """

    def __init__(self, ttl_seconds: int = 300, max_entries: int = 10_000, clock=time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats, size=len(self._entries))

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None

        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            self._stats["misses"] += 1
            return None

        self._entries.move_to_end(key)
        self._stats["hits"] += 1
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (self._clock() + ttl, value)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug(f"Evicted LRU cache entry: {evicted}")
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def invalidate_pattern(self, pattern: str) -> int:
        keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.debug(f"Cache invalidated {len(keys)} keys matching pattern: {pattern}")
        return len(keys)
