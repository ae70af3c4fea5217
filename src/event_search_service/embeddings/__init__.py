"""Embedding providers."""

from .base import EmbeddingProvider, cosine_similarity

__all__ = ["EmbeddingProvider", "cosine_similarity"]
