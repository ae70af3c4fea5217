"""Text-to-vector memoization in front of the embedding provider."""

from collections.abc import Sequence

from .base import CacheService, generate_cache_key

EMBEDDING_KEY_OPERATION = "embedding"


class EmbeddingCache:
    """
    Memoizes embeddings by their exact input text.

    Embeddings of stable text never change in practice, so the TTL is long;
    size is bounded by the backing cache (LRU for ``InMemoryCache``).
    """

    def __init__(self, cache: CacheService, ttl_seconds: int = 86400):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def make_key(text: str) -> str:
        return generate_cache_key(EMBEDDING_KEY_OPERATION, {"text": text})

    async def get(self, text: str) -> list[float] | None:
        raw = await self.cache.get(self.make_key(text))
        if not isinstance(raw, dict):
            return None
        vector = raw.get("embedding")
        if not isinstance(vector, list) or not vector:
            return None
        return [float(x) for x in vector]

    async def set(self, text: str, embedding: Sequence[float]) -> bool:
        return await self.cache.set(
            self.make_key(text),
            {"embedding": [float(x) for x in embedding]},
            ttl_seconds=self.ttl_seconds,
        )
