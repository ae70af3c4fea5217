"""Short-lived cache of ranked search pages."""

import logging

from pydantic import ValidationError

from ..models.responses import SearchPage
from ..utils.normalization import collapse_whitespace
from .base import CacheService, generate_cache_key

logger = logging.getLogger(__name__)

RESULT_KEY_OPERATION = "search"


class ResultCache:
    """
    Caches a full ranked page plus its next cursor per (query, page size, cursor).

    TTL is short because engagement counts that feed scoring change often.
    Writes are idempotent, so concurrent writers racing on a key are harmless.
    """

    def __init__(self, cache: CacheService, ttl_seconds: int = 60):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def make_key(query: str, page_size: int, cursor: str | None) -> str:
        return generate_cache_key(
            RESULT_KEY_OPERATION,
            {"q": collapse_whitespace(query.lower()), "size": page_size, "cursor": cursor},
        )

    async def get(self, query: str, page_size: int, cursor: str | None) -> SearchPage | None:
        key = self.make_key(query, page_size, cursor)
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            return SearchPage.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached page {key}: {e}")
            await self.cache.delete(key)
            return None

    async def set(self, query: str, page_size: int, cursor: str | None, page: SearchPage) -> bool:
        key = self.make_key(query, page_size, cursor)
        return await self.cache.set(key, page.model_dump(mode="json"), ttl_seconds=self.ttl_seconds)

    async def invalidate_all(self) -> int:
        """Drop every cached page, e.g. after the corpus changes."""
        return await self.cache.invalidate_pattern(f"{RESULT_KEY_OPERATION}:*")
