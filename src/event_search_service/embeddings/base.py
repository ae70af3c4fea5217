"""Embedding provider contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clamped to [0, 1].

    Mismatched or empty vectors, and zero vectors, score 0.
    """
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0

    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    sim = float(np.dot(va, vb)) / norm
    return min(1.0, max(0.0, sim))


class EmbeddingProvider(ABC):
    """Turns text into fixed-length vectors and compares them.

    ``embed`` raises ``ProviderError`` when the backend is unavailable.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several texts; backends with native batching override this."""
        return [await self.embed(t) for t in texts]

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)
