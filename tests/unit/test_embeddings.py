"""Tests for embedding similarity and the sentence-transformers provider."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from event_search_service.embeddings.base import cosine_similarity
from event_search_service.embeddings.sentence_transformer import SentenceTransformerProvider
from event_search_service.errors import ProviderError

MODULE = "event_search_service.embeddings.sentence_transformer"


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4], [0.3, 0.4]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors_clamp_to_zero(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0

    def test_degenerate_inputs_score_zero(self):
        assert cosine_similarity([], []) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0


@pytest.fixture
def mock_model():
    """Patch SentenceTransformer; yields (model class mock, model instance mock)."""
    model = MagicMock()
    model.encode = MagicMock(side_effect=lambda texts, convert_to_numpy: np.ones((len(texts), 4), dtype=np.float32))
    with patch(f"{MODULE}.SENTENCE_TRANSFORMERS_AVAILABLE", True), patch(
        f"{MODULE}.SentenceTransformer", create=True, return_value=model
    ) as model_cls:
        yield model_cls, model


class TestSentenceTransformerProvider:
    @pytest.mark.asyncio
    async def test_embed_returns_list(self, mock_model):
        provider = SentenceTransformerProvider("test-model")

        vector = await provider.embed("TITLE: jazz")

        assert vector == [1.0, 1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_model_loaded_once(self, mock_model):
        model_cls, _ = mock_model
        provider = SentenceTransformerProvider("test-model", device="cpu")

        await provider.embed("a")
        await provider.embed_batch(["b", "c"])

        model_cls.assert_called_once_with("test-model", device="cpu")

    @pytest.mark.asyncio
    async def test_batch_preserves_order_and_length(self, mock_model):
        provider = SentenceTransformerProvider("test-model")

        vectors = await provider.embed_batch(["a", "b", "c"])

        assert len(vectors) == 3
        assert await provider.embed_batch([]) == []

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, mock_model):
        _, model = mock_model
        model.encode.side_effect = [RuntimeError("CUDA busy"), np.ones((1, 4), dtype=np.float32)]
        provider = SentenceTransformerProvider("test-model", retry_attempts=3)

        assert await provider.embed("jazz") == [1.0, 1.0, 1.0, 1.0]
        assert model.encode.call_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_provider_error(self, mock_model):
        _, model = mock_model
        model.encode.side_effect = RuntimeError("out of memory")
        provider = SentenceTransformerProvider("test-model", retry_attempts=2)

        with pytest.raises(ProviderError):
            await provider.embed("jazz")
        assert model.encode.call_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_failure_is_not_retried(self, mock_model):
        _, model = mock_model
        model.encode.side_effect = ValueError("bad input")
        provider = SentenceTransformerProvider("test-model", retry_attempts=3)

        with pytest.raises(ProviderError):
            await provider.embed("jazz")
        assert model.encode.call_count == 1

    @pytest.mark.asyncio
    async def test_unavailable_library_raises_provider_error(self):
        with patch(f"{MODULE}.SENTENCE_TRANSFORMERS_AVAILABLE", False):
            with pytest.raises(ProviderError):
                await SentenceTransformerProvider("test-model").embed("jazz")
