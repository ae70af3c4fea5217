"""
Shared Redis backend for the result and embedding caches.

One client serves both caches across service instances. Values are stored
as JSON under a common key prefix, each write carries its own expiry, and a
whole namespace (e.g. every ``search:*`` page) can be dropped at once when
the corpus changes.
"""

import json
import logging
from typing import Any

from redis.asyncio import ConnectionPool, Redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    ``CacheService`` over ``redis.asyncio``.

    A cache outage must look like an empty cache: reads report a miss and
    writes report ``False``. Until ``initialize()`` succeeds the backend is
    inert.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        ttl_seconds: int = 300,
        key_prefix: str = "events:cache:",
        max_connections: int = 10,
    ):
        """
        Args:
            url: Redis connection URL
            ttl_seconds: Expiry used when a write does not pass its own
            key_prefix: Namespace prepended to every key
            max_connections: Pool size
        """
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.max_connections = max_connections

        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None
        self._initialized = False

    @property
    def available(self) -> bool:
        return self._initialized and self._redis is not None

    async def initialize(self) -> None:
        """Open the pool and PING; on failure release everything and re-raise."""
        if self._initialized:
            return

        self._pool = ConnectionPool.from_url(
            self.url,
            max_connections=self.max_connections,
            decode_responses=True,
        )
        self._redis = Redis(connection_pool=self._pool)

        try:
            await self._redis.ping()
        except Exception as e:
            logger.error(f"Redis unreachable at {self.url}: {e}")
            await self._release()
            raise

        self._initialized = True
        logger.info(f"Redis cache ready: {self.url} (prefix={self.key_prefix!r}, default TTL={self.ttl_seconds}s)")

    async def _release(self) -> None:
        if self._redis:
            await self._redis.aclose()
        if self._pool:
            await self._pool.aclose()
        self._redis = None
        self._pool = None

    async def close(self) -> None:
        await self._release()
        self._initialized = False

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        """Decoded JSON value for ``key``; None on miss, outage or corrupt payload."""
        if not self.available:
            return None

        try:
            raw = await self._redis.get(self._make_key(key))
            return None if raw is None else json.loads(raw)
        except Exception as e:
            logger.warning(f"Redis read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Store ``value`` as JSON with an expiry; True once Redis acknowledged it."""
        if not self.available:
            return False

        expiry = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            await self._redis.setex(self._make_key(key), expiry, json.dumps(value))
        except Exception as e:
            logger.warning(f"Redis write failed for {key}: {e}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False

        try:
            await self._redis.delete(self._make_key(key))
        except Exception as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
            return False
        return True

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Drop every key in the namespace matching a glob pattern.

        Args:
            pattern: Glob relative to the key prefix, e.g. ``"search:*"``

        Returns:
            Number of keys removed (0 on outage)
        """
        if not self.available:
            return 0

        try:
            keys = [key async for key in self._redis.scan_iter(match=self._make_key(pattern))]
            if not keys:
                return 0
            removed = await self._redis.delete(*keys)
        except Exception as e:
            logger.warning(f"Redis invalidation failed for {pattern}: {e}")
            return 0

        logger.debug(f"Dropped {removed} cached entries matching {pattern}")
        return removed
