"""Tests for query analytics tracking, reports and clustering."""

import tempfile
from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from conftest import NOW, FakeEmbeddingProvider
from event_search_service.cache.embedding_cache import EmbeddingCache
from event_search_service.cache.memory_cache import InMemoryCache
from event_search_service.config import AnalyticsSettings
from event_search_service.errors import AnalyticsError
from event_search_service.models.query_analytics import SearchTrackingData
from event_search_service.services.query_analytics_service import QueryAnalyticsService
from event_search_service.storage.query_analytics_db import QueryAnalyticsDB

QUERY_VECTORS = {
    "jazz night": [1.0, 0.0, 0.0],
    "jazz nights": [0.95, 0.3122, 0.0],
    "live jazz": [0.9, 0.4359, 0.0],
    "taco truck": [0.0, 0.0, 1.0],
    "brunch": [0.0, 1.0, 0.0],
}


@pytest.fixture
async def store():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = QueryAnalyticsDB(str(Path(tmpdir) / "qa.db"))
        await db.initialize()
        yield db
        await db.close()


@pytest.fixture
def provider():
    return FakeEmbeddingProvider(vectors=QUERY_VECTORS, default=[0.5, -0.5, 0.5])


@pytest.fixture
def service(store, provider):
    return QueryAnalyticsService(
        store=store,
        embedding_provider=provider,
        embedding_cache=EmbeddingCache(InMemoryCache()),
        config=AnalyticsSettings(),
        clock=lambda: NOW,
    )


async def _track(service, query, result_count=1, times=1, when=NOW, event_ids=None, category_ids=None):
    for _ in range(times):
        await service.track_search(
            SearchTrackingData(
                query=query,
                result_count=result_count,
                event_ids=event_ids if event_ids is not None else [f"evt-{i}" for i in range(result_count)],
                category_ids=category_ids or [],
                timestamp=when,
            )
        )


class TestTrackSearch:
    @pytest.mark.asyncio
    async def test_zero_result_searches_give_zero_hit_rate(self, service, store):
        await _track(service, "taco truck", result_count=0, times=4)

        record = await store.get("taco truck")
        assert record.total_searches == 4
        assert record.zero_result_searches == 4
        assert record.hit_rate == 0.0
        assert record.average_results_per_search == 0.0

    @pytest.mark.asyncio
    async def test_positive_result_searches_give_full_hit_rate(self, service, store):
        await _track(service, "jazz night", result_count=3, times=5)

        record = await store.get("jazz night")
        assert record.zero_result_searches == 0
        assert record.hit_rate == 100.0
        assert record.total_hits == 15
        assert record.average_results_per_search == 3.0

    @pytest.mark.asyncio
    async def test_mixed_results(self, service, store):
        await _track(service, "brunch", result_count=2, times=3)
        await _track(service, "brunch", result_count=0, times=1)

        record = await store.get("brunch")
        assert record.hit_rate == 75.0
        assert record.average_results_per_search == 1.5

    @pytest.mark.asyncio
    async def test_variants_share_one_record(self, service, store):
        await _track(service, "  Taco   Truck!")
        await _track(service, "taco truck")

        record = await store.get("taco truck")
        assert record.total_searches == 2
        assert record.query == "Taco   Truck!"

    @pytest.mark.asyncio
    async def test_punctuation_only_query_is_ignored(self, service, store):
        await _track(service, "?!")
        assert await store.list_records() == []

    @pytest.mark.asyncio
    async def test_top_lists_are_bounded(self, service, store):
        for i in range(4):
            await _track(
                service,
                "jazz",
                result_count=5,
                event_ids=[f"e{i}-{j}" for j in range(5)],
                category_ids=[f"c{i}-{j}" for j in range(3)],
            )

        record = await store.get("jazz")
        assert len(record.top_results) == 10
        assert len(record.top_categories) == 5

    @pytest.mark.asyncio
    async def test_most_frequent_results_are_kept(self, service, store):
        await _track(service, "jazz", result_count=2, event_ids=["popular", "once"])
        await _track(service, "jazz", result_count=1, event_ids=["popular"])

        assert (await store.get("jazz")).top_results[0] == "popular"

    @pytest.mark.asyncio
    async def test_store_failure_never_raises(self):
        broken = AsyncMock()
        broken.get = AsyncMock(side_effect=AnalyticsError("database is locked"))
        service = QueryAnalyticsService(store=broken)

        await service.track_search(SearchTrackingData(query="jazz", result_count=1))

        broken.upsert.assert_not_called()


class TestReports:
    @pytest.mark.asyncio
    async def test_taco_truck_zero_result_example(self, service):
        await _track(service, "taco truck", result_count=0, times=10)
        await _track(service, "jazz night", result_count=2, times=3)

        zero = await service.get_zero_result_queries()

        assert [(q.query, q.search_count) for q in zero] == [("taco truck", 10)]

    @pytest.mark.asyncio
    async def test_popular_queries_need_five_searches(self, service):
        await _track(service, "brunch", times=7)
        await _track(service, "jazz night", times=5)
        await _track(service, "live jazz", times=4)

        popular = await service.get_popular_queries()

        assert [q.query for q in popular] == ["brunch", "jazz night"]
        assert popular[0].total_searches == 7

    @pytest.mark.asyncio
    async def test_low_hit_rate_queries(self, service):
        await _track(service, "taco truck", result_count=0, times=3)
        await _track(service, "brunch", result_count=0, times=2)  # too few searches
        await _track(service, "jazz night", result_count=1, times=3)

        low = await service.get_low_hit_rate_queries()

        assert [q.query for q in low] == ["taco truck"]
        assert low[0].last_searched == NOW

    @pytest.mark.asyncio
    async def test_query_stats(self, service):
        await _track(service, "Jazz Night", result_count=2, times=2, category_ids=["music"])

        stats = await service.get_query_stats("jazz   night!")

        assert stats.total_searches == 2
        assert stats.total_hits == 4
        assert stats.first_searched == NOW
        assert stats.top_categories == ["music"]
        assert await service.get_query_stats("never searched") is None

    @pytest.mark.asyncio
    async def test_update_query_flags(self, service, store):
        await _track(service, "brunch", times=10)
        await _track(service, "taco truck", result_count=0, times=3)
        await _track(service, "jazz night", times=12, when=NOW - timedelta(days=40))

        result = await service.update_query_flags()

        assert result.popular_queries_updated == 1
        assert result.attention_queries_updated == 1
        assert (await store.get("brunch")).is_popular
        assert (await store.get("taco truck")).needs_attention
        assert not (await store.get("jazz night")).is_popular

        again = await service.update_query_flags()
        assert again == result

    @pytest.mark.asyncio
    async def test_query_insights(self, service, provider):
        await _track(service, "jazz night", result_count=2, times=6)
        await _track(service, "jazz nights", result_count=0, times=3)
        await _track(service, "taco truck", result_count=0, times=10)
        await _track(service, "yo", result_count=0, times=9)  # too short for reports
        await _track(service, "brunch", result_count=1, times=4, when=NOW - timedelta(days=60))

        insights = await service.get_query_insights(days=30, limit=10, min_searches=3)

        assert insights.summary.total_queries == 3
        assert insights.summary.total_searches == 19
        assert insights.summary.zero_hit_queries == 2
        assert insights.summary.low_hit_queries == 2
        assert insights.summary.average_hit_rate == pytest.approx(100.0 / 3)

        assert [q.query for q in insights.popular_queries] == ["taco truck", "jazz night", "jazz nights"]
        assert [q.query for q in insights.low_hit_rate_queries] == ["taco truck", "jazz nights"]
        assert [q.query for q in insights.zero_result_queries] == ["taco truck", "jazz nights"]
        assert all(q.growth_rate == 0.0 for q in insights.trending_queries)

        # Clustering looks at all volume, not just the report window
        assert len(insights.query_clusters) == 1
        assert insights.query_clusters[0].representative_query == "jazz night"


class TestSimilarityAndClustering:
    @pytest.mark.asyncio
    async def test_find_similar_queries(self, service):
        await _track(service, "jazz night")
        await _track(service, "jazz nights")
        await _track(service, "live jazz")
        await _track(service, "taco truck")

        similar = await service.find_similar_queries("Jazz Night", similarity_threshold=0.85)

        assert [q.query for q in similar] == ["jazz nights", "live jazz"]
        assert similar[0].similarity == pytest.approx(0.95, abs=1e-3)

    @pytest.mark.asyncio
    async def test_find_similar_queries_provider_failure(self, service, provider):
        await _track(service, "jazz nights")
        provider.fail = True

        assert await service.find_similar_queries("jazz night") == []

    @pytest.mark.asyncio
    async def test_clusters_group_similar_queries(self, service):
        await _track(service, "jazz night", result_count=2, times=8)
        await _track(service, "jazz nights", result_count=0, times=4)
        await _track(service, "live jazz", result_count=1, times=3)
        await _track(service, "taco truck", result_count=0, times=5)
        await _track(service, "brunch", result_count=1, times=2)  # below volume floor

        clusters = await service.get_query_clusters(similarity_threshold=0.85)

        assert len(clusters) == 1
        cluster = clusters[0]
        assert cluster.representative_query == "jazz night"
        assert [q.query for q in cluster.similar_queries] == ["jazz night", "jazz nights", "live jazz"]
        assert cluster.total_searches == 15
        assert cluster.total_hits == 19
        assert cluster.average_hit_rate == pytest.approx(200.0 / 3)
        assert cluster.needs_attention is True

    @pytest.mark.asyncio
    async def test_cluster_embeddings_are_cached(self, service, provider):
        await _track(service, "jazz night", times=3)
        await _track(service, "jazz nights", times=3)

        await service.get_query_clusters()
        first_calls = len(provider.calls)
        await service.get_query_clusters()

        assert first_calls == 2
        assert len(provider.calls) == first_calls

    @pytest.mark.asyncio
    async def test_provider_failure_returns_no_clusters(self, service, provider):
        await _track(service, "jazz night", times=3)
        await _track(service, "jazz nights", times=3)
        provider.fail = True

        assert await service.get_query_clusters() == []

    @pytest.mark.asyncio
    async def test_missing_provider_returns_no_clusters(self, store):
        service = QueryAnalyticsService(store=store, clock=lambda: NOW)
        await _track(service, "jazz night", times=3)
        await _track(service, "jazz nights", times=3)

        assert await service.get_query_clusters() == []
        assert await service.find_similar_queries("jazz night") == []

    @pytest.mark.asyncio
    async def test_short_embedding_batch_degrades_to_empty(self, store):
        class ShortBatchProvider(FakeEmbeddingProvider):
            async def embed_batch(self, texts):
                return [await self.embed(t) for t in texts[:-1]]

        service = QueryAnalyticsService(store=store, embedding_provider=ShortBatchProvider(vectors=QUERY_VECTORS), clock=lambda: NOW)
        await _track(service, "jazz night", times=3)
        await _track(service, "jazz nights", times=3)

        assert await service.get_query_clusters() == []
        assert await service.find_similar_queries("jazz night") == []
        insights = await service.get_query_insights()
        assert insights.query_clusters == []
        assert insights.summary.total_queries == 2

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_returns_no_clusters(self, store):
        class BrokenProvider(FakeEmbeddingProvider):
            async def embed_batch(self, texts):
                raise TypeError("unexpected payload")

        service = QueryAnalyticsService(store=store, embedding_provider=BrokenProvider(), clock=lambda: NOW)
        await _track(service, "jazz night", times=3)
        await _track(service, "jazz nights", times=3)

        assert await service.get_query_clusters() == []
