"""Caches for search result pages and query embeddings."""

from .base import CacheService, generate_cache_key
from .embedding_cache import EmbeddingCache
from .memory_cache import InMemoryCache
from .redis_cache import RedisCache
from .result_cache import ResultCache

__all__ = [
    "CacheService",
    "EmbeddingCache",
    "InMemoryCache",
    "RedisCache",
    "ResultCache",
    "generate_cache_key",
]
