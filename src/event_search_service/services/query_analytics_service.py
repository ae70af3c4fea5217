"""
Query Analytics Service - search tracking, curator reports and query clustering.

Every free-text search is folded into one aggregate record per normalized
query. Tracking is best-effort: it never raises, so analytics problems can
never break search. The read side builds curator reports (popular,
low-hit-rate, zero-result and trending queries) and groups near-duplicate
queries by embedding similarity.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

from ..cache.embedding_cache import EmbeddingCache
from ..config import AnalyticsSettings
from ..embeddings.base import EmbeddingProvider
from ..errors import AnalyticsError, ClusteringError, ProviderError
from ..models.query_analytics import QueryAnalyticsRecord, SearchTrackingData
from ..models.responses import (
    FlagUpdateResult,
    InsightsSummary,
    LowHitRateQuery,
    PopularQuery,
    QueryCluster,
    QueryInsights,
    QueryStats,
    SimilarQuery,
    TrendingQuery,
    ZeroResultQuery,
)
from ..storage.base import AnalyticsStore
from ..utils.normalization import normalize_query
from ..utils.query_clustering import ClusterCandidate, cluster_queries

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryAnalyticsService:
    """
    Tracks search outcomes per normalized query and reports on them.

    Write side (``track_search``) is fire-and-forget from the search service's
    point of view; read side methods propagate ``AnalyticsError`` except
    clustering and similarity lookups, which degrade to empty results.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        embedding_provider: EmbeddingProvider | None = None,
        embedding_cache: EmbeddingCache | None = None,
        config: AnalyticsSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.embedding_provider = embedding_provider
        self.embedding_cache = embedding_cache
        self.config = config or AnalyticsSettings()
        self._clock = clock

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    async def track_search(self, data: SearchTrackingData) -> None:
        """
        Fold one search outcome into its query's analytics record.

        Never raises: failures are logged and dropped. Concurrent tracking of
        the same query may lose an increment.
        """
        try:
            normalized = normalize_query(data.query)
            if not normalized:
                return

            record = await self.store.get(normalized)
            if record is None:
                record = QueryAnalyticsRecord(
                    normalized_query=normalized,
                    query=data.query.strip(),
                    first_searched_at=data.timestamp,
                    last_searched_at=data.timestamp,
                )

            record.record_search(
                data,
                top_results_limit=self.config.top_results_limit,
                top_categories_limit=self.config.top_categories_limit,
            )
            await self.store.upsert(record)
            logger.debug(
                f"Tracked search '{normalized}': {record.total_searches} searches, hit rate {record.hit_rate:.1f}%"
            )
        except Exception as e:
            # Analytics tracking must never break search
            logger.error(f"Error tracking search analytics for '{data.query}': {e}", exc_info=True)

    async def update_query_flags(self, now: datetime | None = None) -> FlagUpdateResult:
        """
        Set ``is_popular`` and ``needs_attention`` on recently searched queries.

        Flags are only ever set, never cleared, so repeated runs are harmless.
        """
        now = now or self._clock()
        since = now - timedelta(days=self.config.flag_window_days)

        popular = await self.store.mark_popular(self.config.popular_min_searches, since)
        attention = await self.store.mark_needs_attention(
            self.config.attention_hit_rate,
            self.config.attention_min_searches,
            since,
        )
        logger.info(f"Query flags updated: {popular} popular, {attention} need attention")
        return FlagUpdateResult(popular_queries_updated=popular, attention_queries_updated=attention)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_popular_queries(self, limit: int = 10) -> list[PopularQuery]:
        records = await self.store.list_records(min_searches=self.config.popular_list_min_searches)
        return [_popular(r) for r in records[:limit]]

    async def get_low_hit_rate_queries(self, limit: int = 10) -> list[LowHitRateQuery]:
        records = await self.store.list_records(min_searches=self.config.attention_min_searches)
        low = [r for r in records if r.hit_rate < self.config.low_hit_rate]
        return [_low_hit(r) for r in low[:limit]]

    async def get_zero_result_queries(self, limit: int = 10) -> list[ZeroResultQuery]:
        records = await self.store.list_records(min_searches=1)
        return _zero_results(records, limit)

    async def get_query_stats(self, query: str) -> QueryStats | None:
        """Counters for a single query, or None if it was never tracked."""
        normalized = normalize_query(query)
        if not normalized:
            return None
        record = await self.store.get(normalized)
        if record is None:
            return None
        return QueryStats(
            total_searches=record.total_searches,
            total_hits=record.total_hits,
            hit_rate=record.hit_rate,
            average_results=record.average_results_per_search,
            first_searched=record.first_searched_at,
            last_searched=record.last_searched_at,
            top_results=list(record.top_results),
            top_categories=list(record.top_categories),
        )

    async def get_query_insights(
        self,
        days: int = 30,
        limit: int = 10,
        min_searches: int = 3,
        similarity_threshold: float | None = None,
        now: datetime | None = None,
    ) -> QueryInsights:
        """
        Curator report over queries searched in the last ``days`` days.

        Args:
            days: Reporting window
            limit: Maximum entries per list
            min_searches: Volume floor for the popular, low-hit-rate and trending lists
            similarity_threshold: Clustering threshold (defaults to configuration)
            now: Reference instant (defaults to the service clock)

        Returns:
            QueryInsights with summary, lists and clusters
        """
        now = now or self._clock()
        since = now - timedelta(days=days)
        recent = await self.store.list_records(
            min_searches=1,
            since=since,
            min_query_length=self.config.min_query_length,
        )

        summary = InsightsSummary(
            total_queries=len(recent),
            total_searches=sum(r.total_searches for r in recent),
            average_hit_rate=sum(r.hit_rate for r in recent) / len(recent) if recent else 0.0,
            zero_hit_queries=sum(1 for r in recent if r.hit_rate == 0),
            low_hit_queries=sum(1 for r in recent if r.hit_rate < self.config.low_hit_rate),
        )

        frequent = [r for r in recent if r.total_searches >= min_searches]
        low_hit = [r for r in frequent if r.hit_rate < self.config.low_hit_rate]
        trending = sorted(frequent, key=lambda r: r.last_searched_at, reverse=True)

        return QueryInsights(
            summary=summary,
            popular_queries=[_popular(r) for r in frequent[:limit]],
            low_hit_rate_queries=[_low_hit(r) for r in low_hit[:limit]],
            trending_queries=[TrendingQuery(query=r.query, recent_searches=r.total_searches) for r in trending[:limit]],
            zero_result_queries=_zero_results(recent, limit),
            query_clusters=await self.get_query_clusters(similarity_threshold),
        )

    # ------------------------------------------------------------------
    # Similarity and clustering
    # ------------------------------------------------------------------

    async def _embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts through the cache, batching the misses into one provider call."""
        if self.embedding_provider is None:
            raise ProviderError("no embedding provider configured")

        vectors: dict[str, list[float]] = {}
        misses: list[str] = []

        for text in dict.fromkeys(texts):
            cached = await self.embedding_cache.get(text) if self.embedding_cache else None
            if cached is not None:
                vectors[text] = cached
            else:
                misses.append(text)

        if misses:
            fresh = await self.embedding_provider.embed_batch(misses)
            if len(fresh) != len(misses):
                raise ProviderError(f"Provider returned {len(fresh)} embeddings for {len(misses)} queries")
            for text, vector in zip(misses, fresh):
                vectors[text] = vector
                if self.embedding_cache:
                    await self.embedding_cache.set(text, vector)
            logger.debug(f"Embedded {len(misses)} queries ({len(vectors) - len(misses)} cached)")

        return [vectors[t] for t in texts]

    async def _cluster_candidates(self, records: list[QueryAnalyticsRecord]) -> list[ClusterCandidate]:
        try:
            embeddings = await self._embed_texts([r.normalized_query for r in records])
        except Exception as e:
            raise ClusteringError(f"Could not embed {len(records)} queries for clustering: {e}") from e

        return [
            ClusterCandidate(
                query=r.normalized_query,
                total_searches=r.total_searches,
                hit_rate=r.hit_rate,
                total_hits=r.total_hits,
                embedding=vector,
            )
            for r, vector in zip(records, embeddings)
        ]

    async def get_query_clusters(self, similarity_threshold: float | None = None) -> list[QueryCluster]:
        """
        Group near-duplicate queries with enough search volume.

        Returns an empty list when embeddings or the store are unavailable.
        """
        threshold = self.config.cluster_similarity_threshold if similarity_threshold is None else similarity_threshold
        try:
            records = await self.store.list_records(min_searches=self.config.cluster_min_searches)
            if not records:
                return []
            candidates = await self._cluster_candidates(records)
            clusters = cluster_queries(
                candidates,
                threshold,
                self.embedding_provider.similarity,
                attention_hit_rate=self.config.attention_hit_rate,
            )
        except (ClusteringError, AnalyticsError) as e:
            logger.error(f"Error generating query clusters: {e}", exc_info=True)
            return []

        logger.info(f"Clustered {len(records)} queries into {len(clusters)} clusters (threshold={threshold})")
        return clusters

    async def find_similar_queries(
        self,
        query: str,
        limit: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[SimilarQuery]:
        """
        Tracked queries semantically close to ``query``, most similar first.

        The query itself is excluded. Returns an empty list on failure.
        """
        limit = self.config.similar_queries_limit if limit is None else limit
        threshold = self.config.cluster_similarity_threshold if similarity_threshold is None else similarity_threshold
        normalized = normalize_query(query)
        if not normalized:
            return []

        try:
            records = [r for r in await self.store.list_records(min_searches=1) if r.normalized_query != normalized]
            if not records:
                return []
            vectors = await self._embed_texts([normalized] + [r.normalized_query for r in records])
        except (ProviderError, AnalyticsError) as e:
            logger.error(f"Error finding queries similar to '{query}': {e}", exc_info=True)
            return []

        target, others = vectors[0], vectors[1:]
        similar = []
        for record, vector in zip(records, others):
            sim = self.embedding_provider.similarity(target, vector)
            if sim >= threshold:
                similar.append(
                    SimilarQuery(
                        query=record.normalized_query,
                        similarity=round(sim, 4),
                        total_searches=record.total_searches,
                        hit_rate=record.hit_rate,
                        total_hits=record.total_hits,
                    )
                )

        similar.sort(key=lambda q: (-q.similarity, q.query))
        return similar[:limit]


def _popular(record: QueryAnalyticsRecord) -> PopularQuery:
    return PopularQuery(
        query=record.query,
        total_searches=record.total_searches,
        hit_rate=record.hit_rate,
        average_results=record.average_results_per_search,
    )


def _low_hit(record: QueryAnalyticsRecord) -> LowHitRateQuery:
    return LowHitRateQuery(
        query=record.query,
        total_searches=record.total_searches,
        hit_rate=record.hit_rate,
        last_searched=record.last_searched_at,
    )


def _zero_results(records: list[QueryAnalyticsRecord], limit: int) -> list[ZeroResultQuery]:
    zero = sorted(
        (r for r in records if r.zero_result_searches > 0),
        key=lambda r: (-r.zero_result_searches, r.normalized_query),
    )
    return [
        ZeroResultQuery(query=r.query, search_count=r.zero_result_searches, last_searched=r.last_searched_at)
        for r in zero[:limit]
    ]
