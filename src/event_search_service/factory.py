"""
Factory for wiring the search and analytics services from settings.

Creates caches, the analytics store and the embedding provider, then both
services on top of them. Redis is used for caching when configured and
reachable; otherwise the in-process cache is used.
"""

import logging
from dataclasses import dataclass

from .cache.base import CacheService
from .cache.embedding_cache import EmbeddingCache
from .cache.memory_cache import InMemoryCache
from .cache.redis_cache import RedisCache
from .cache.result_cache import ResultCache
from .config import CacheSettings, Settings, settings
from .embeddings.base import EmbeddingProvider
from .embeddings.sentence_transformer import SentenceTransformerProvider
from .services.event_search_service import EventSearchService
from .services.query_analytics_service import QueryAnalyticsService
from .storage.base import AnalyticsStore, EventCorpus
from .storage.query_analytics_db import QueryAnalyticsDB

logger = logging.getLogger(__name__)


@dataclass
class SearchServices:
    """Everything ``create_search_services`` builds, with a single shutdown hook."""

    search: EventSearchService
    analytics: QueryAnalyticsService
    store: AnalyticsStore
    redis: RedisCache | None = None

    async def close(self) -> None:
        await self.search.drain()
        await self.store.close()
        if self.redis is not None:
            await self.redis.close()


async def _create_caches(config: CacheSettings) -> tuple[CacheService, CacheService, RedisCache | None]:
    """Return (result cache backend, embedding cache backend, redis client if any)."""
    if config.backend == "redis":
        redis = RedisCache(
            url=config.redis_url,
            ttl_seconds=config.result_ttl_seconds,
            key_prefix=config.key_prefix,
            max_connections=config.max_connections,
        )
        try:
            await redis.initialize()
            return redis, redis, redis
        except Exception as e:
            logger.warning(f"Redis cache unavailable, falling back to in-memory cache: {e}")

    results = InMemoryCache(ttl_seconds=config.result_ttl_seconds, max_entries=config.memory_max_entries)
    embeddings = InMemoryCache(ttl_seconds=config.embedding_ttl_seconds, max_entries=config.embedding_max_entries)
    return results, embeddings, None


async def create_search_services(
    corpus: EventCorpus,
    embedding_provider: EmbeddingProvider | None = None,
    config: Settings | None = None,
    store: AnalyticsStore | None = None,
) -> SearchServices:
    """
    Create and initialize the search and analytics services.

    Args:
        corpus: Event corpus to search
        embedding_provider: Provider to use; defaults to a SentenceTransformerProvider
        config: Settings; defaults to the module-level settings
        store: Analytics store; defaults to a QueryAnalyticsDB at the configured path

    Returns:
        SearchServices bundle; call ``close()`` on shutdown.
    """
    config = config or settings

    if embedding_provider is None:
        embedding_provider = SentenceTransformerProvider(
            model_name=config.embedding.model_name,
            device=config.embedding.device,
            retry_attempts=config.embedding.retry_attempts,
        )

    result_backend, embedding_backend, redis = await _create_caches(config.cache)
    result_cache = ResultCache(result_backend, ttl_seconds=config.cache.result_ttl_seconds)
    embedding_cache = EmbeddingCache(embedding_backend, ttl_seconds=config.cache.embedding_ttl_seconds)

    if store is None:
        store = QueryAnalyticsDB(config.analytics.db_path)
    await store.initialize()

    analytics = QueryAnalyticsService(
        store=store,
        embedding_provider=embedding_provider,
        embedding_cache=embedding_cache,
        config=config.analytics,
    )
    search = EventSearchService(
        corpus=corpus,
        embedding_provider=embedding_provider,
        analytics_service=analytics,
        result_cache=result_cache,
        embedding_cache=embedding_cache,
        config=config.search,
    )

    logger.info(f"Search services initialized (cache backend: {'redis' if redis else 'memory'})")
    return SearchServices(
        search=search,
        analytics=analytics,
        store=store,
        redis=redis,
    )
