import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Force CPU-only mode for tests (avoids CUDA compatibility issues)
os.environ["CUDA_VISIBLE_DEVICES"] = ""

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from event_search_service.embeddings.base import EmbeddingProvider  # noqa: E402
from event_search_service.errors import ProviderError  # noqa: E402
from event_search_service.models.candidate import Category, GeoPoint, SearchCandidate  # noqa: E402

# Fixed reference instant so recency scores are deterministic
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeEmbeddingProvider(EmbeddingProvider):
    """In-memory provider: explicit text -> vector table, a default vector, and call recording."""

    def __init__(self, vectors=None, default=(1.0, 0.0, 0.0), fail: bool = False):
        self.vectors = {k: list(v) for k, v in (vectors or {}).items()}
        self.default = list(default)
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ProviderError("embedding backend unavailable")
        return list(self.vectors.get(text, self.default))


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def make_candidate():
    """Factory for SearchCandidate with sensible defaults (future event, unit embedding)."""

    def _make(
        event_id: str,
        title: str = "",
        description: str = "",
        categories: tuple[str, ...] = (),
        embedding=(1.0, 0.0, 0.0),
        event_date: datetime | None = None,
        status: str = "VERIFIED",
        location: tuple[float, float] | None = None,
        **fields,
    ) -> SearchCandidate:
        return SearchCandidate(
            id=event_id,
            title=title,
            description=description,
            categories=tuple(Category(id=f"cat-{name.lower()}", name=name) for name in categories),
            embedding=embedding,
            event_date=event_date or NOW + timedelta(days=3),
            status=status,
            location=GeoPoint(latitude=location[0], longitude=location[1]) if location else None,
            **fields,
        )

    return _make
