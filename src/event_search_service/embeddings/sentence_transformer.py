"""Local embedding provider backed by sentence-transformers."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import ProviderError
from .base import EmbeddingProvider

# Import sentence transformers with fallback
try:
    from sentence_transformers import SentenceTransformer

    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False

logger = logging.getLogger(__name__)

if not SENTENCE_TRANSFORMERS_AVAILABLE:
    logger.warning("sentence_transformers not available. Install for embedding support.")

# Failures worth retrying (device contention, transient I/O while loading).
_TRANSIENT_ERRORS = (RuntimeError, OSError)


class SentenceTransformerProvider(EmbeddingProvider):
    """
    Embeds text with a locally loaded SentenceTransformer model.

    The model is loaded lazily on first use; inference runs in the default
    executor so the event loop is never blocked. Transient failures are
    retried with exponential backoff, and the final failure is raised as
    ``ProviderError``.
    """

    def __init__(self, model_name: str, device: str | None = None, retry_attempts: int = 3):
        self.model_name = model_name
        self.device = device
        self.retry_attempts = retry_attempts
        self._model = None
        self._model_lock = threading.Lock()

    def _load_model(self):
        # Double-checked so concurrent first calls load the model once
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    logger.info(f"Loading embedding model: {self.model_name}")
                    self._model = SentenceTransformer(self.model_name, device=self.device)
                    logger.info(f"Loaded model: {self.model_name}")
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        embeddings = model.encode(texts, convert_to_numpy=True)
        return [e.tolist() for e in embeddings]

    async def _encode_with_retry(self, texts: list[str]) -> list[list[float]]:
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise ProviderError("sentence_transformers not installed. Install with: pip install sentence-transformers")

        loop = asyncio.get_running_loop()
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_TRANSIENT_ERRORS),
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
                reraise=True,
            ):
                with attempt:
                    vectors = await loop.run_in_executor(None, self._encode, texts)
        except Exception as e:
            raise ProviderError(f"Failed to generate embedding: {e.__class__.__name__}: {e}") from e

        if len(vectors) != len(texts) or any(not v for v in vectors):
            raise ProviderError("Embedding model returned an empty vector")
        return vectors

    async def embed(self, text: str) -> list[float]:
        vectors = await self._encode_with_retry([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        return await self._encode_with_retry(list(texts))
