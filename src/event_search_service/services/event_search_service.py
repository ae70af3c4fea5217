"""
Event Search Service - hybrid free-text ranking over the event corpus.

Combines a lexical pre-filter, embedding similarity, text-tier matching,
category matching and recency into a single score per candidate, then
paginates with opaque cursors. Result pages and query embeddings are cached;
every answered search is handed to the analytics tracker in the background.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from ..cache.embedding_cache import EmbeddingCache
from ..cache.result_cache import ResultCache
from ..config import SearchSettings
from ..embeddings.base import EmbeddingProvider
from ..errors import InputError, ProviderError
from ..models.candidate import SearchCandidate
from ..models.filters import HybridFilter, SemanticFilter, StructuredFilter
from ..models.query_analytics import SearchTrackingData
from ..models.responses import CategoryListing, FilterSearchResult, RankedResult, SearchPage
from ..storage.base import EventCorpus, LexicalPrefilter
from ..utils.cursor import (
    CursorDecodeError,
    DecodedCursor,
    decode_cursor,
    encode_date_cursor,
    encode_score_cursor,
    is_after_date_position,
    is_after_score_position,
)
from ..utils.normalization import collapse_whitespace
from ..utils.scoring import ScoringWeights, build_query_embedding_text, composite_score, ranking_key
from .query_analytics_service import QueryAnalyticsService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventSearchService:
    """
    Free-text, saved-filter and category search over an event corpus.

    Collaborators are injected; caches and the analytics tracker are optional.
    Provider failures degrade scoring instead of failing the request.
    """

    def __init__(
        self,
        corpus: EventCorpus,
        embedding_provider: EmbeddingProvider,
        analytics_service: QueryAnalyticsService | None = None,
        result_cache: ResultCache | None = None,
        embedding_cache: EmbeddingCache | None = None,
        config: SearchSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.corpus = corpus
        self.embedding_provider = embedding_provider
        self.analytics_service = analytics_service
        self.result_cache = result_cache
        self.embedding_cache = embedding_cache
        self.config = config or SearchSettings()
        self.weights = ScoringWeights(
            semantic=self.config.semantic_weight,
            lexical=self.config.lexical_weight,
            category=self.config.category_weight,
            recency=self.config.recency_weight,
        )
        self._clock = clock
        self._background_tasks: set[asyncio.Task] = set()

    def _clamp_page_size(self, page_size: int | None) -> int:
        if page_size is None:
            return self.config.default_page_size
        return max(1, min(page_size, self.config.max_page_size))

    def _resume_position(self, cursor: str, ordering: str, context: str) -> DecodedCursor | None:
        """
        Decode a resume cursor for the given ordering.

        Returns None for a malformed cursor (served as a first page). Raises
        InputError for a cursor that belongs to another ordering.
        """
        decoded = decode_cursor(cursor)
        if isinstance(decoded, CursorDecodeError):
            if decoded.is_unsupported_ordering:
                raise InputError(f"Unsupported cursor: {decoded.detail}")
            logger.warning(f"Ignoring malformed cursor for {context}: {decoded.detail}")
            return None
        if decoded.ordering != ordering:
            raise InputError(f"Unsupported cursor: {decoded.ordering} cursors cannot resume a {ordering}-ordered listing")
        return decoded

    # ------------------------------------------------------------------
    # Analytics hand-off
    # ------------------------------------------------------------------

    def _track(self, query: str, results: Sequence[RankedResult]) -> None:
        """
        Schedule analytics tracking as a background task (fire-and-forget).

        Non-blocking, non-fatal: the tracker swallows its own failures.
        """
        if self.analytics_service is None:
            return

        data = SearchTrackingData(
            query=query,
            result_count=len(results),
            event_ids=[r.candidate.id for r in results],
            category_ids=[cid for r in results for cid in r.candidate.category_ids],
            timestamp=self._clock(),
        )
        try:
            task = asyncio.get_running_loop().create_task(self.analytics_service.track_search(data))
        except RuntimeError:
            # No running event loop, skip
            logger.debug(f"No event loop; analytics not tracked for '{query}'")
            return
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for all pending analytics tasks."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def _query_embedding(self, query: str) -> list[float] | None:
        """Embedding of the multi-slot query text, or None if the provider failed."""
        text = build_query_embedding_text(query)

        if self.embedding_cache:
            cached = await self.embedding_cache.get(text)
            if cached is not None:
                logger.debug(f"Embedding cache hit for '{query}'")
                return cached

        try:
            embedding = await self.embedding_provider.embed(text)
        except ProviderError as e:
            logger.warning(f"Embedding unavailable for '{query}', ranking without semantic signal: {e}")
            return None

        if self.embedding_cache:
            await self.embedding_cache.set(text, embedding)
        return embedding

    def score(
        self,
        query: str,
        candidate: SearchCandidate,
        query_embedding: Sequence[float] | None,
        now: datetime | None = None,
    ) -> float:
        """
        Composite relevance of one candidate, in [0, 1].

        With ``query_embedding=None`` the semantic signal is dropped and the
        other weights are rescaled.
        """
        now = now or self._clock()
        if query_embedding is None or candidate.embedding is None:
            return composite_score(query, candidate, None, now, self.weights.without_semantic())
        similarity = self.embedding_provider.similarity(query_embedding, candidate.embedding)
        return composite_score(query, candidate, similarity, now, self.weights)

    def _rank(
        self,
        query: str,
        candidates: Sequence[SearchCandidate],
        query_embedding: Sequence[float] | None,
    ) -> list[RankedResult]:
        now = self._clock()
        ranked = [
            RankedResult(candidate=c, score=self.score(query, c, query_embedding, now))
            for c in candidates
            if c.embedding is not None
        ]
        ranked.sort(key=lambda r: ranking_key(r.score, r.candidate.id))
        return ranked

    # ------------------------------------------------------------------
    # Free-text search
    # ------------------------------------------------------------------

    async def search(self, query: str, page_size: int | None = None, cursor: str | None = None) -> SearchPage:
        """
        Ranked free-text search, one page at a time.

        Args:
            query: Raw user query
            page_size: Results per page (clamped to the configured maximum)
            cursor: ``next_cursor`` of the previous page

        Returns:
            SearchPage; ``error`` is set only for a cursor of another ordering
        """
        query = collapse_whitespace(query or "")
        if len(query) < self.config.min_query_length:
            return SearchPage()

        size = self._clamp_page_size(page_size)

        position: DecodedCursor | None = None
        if cursor:
            try:
                position = self._resume_position(cursor, "score", f"'{query}'")
            except InputError as e:
                return SearchPage(error=str(e))
            if position is None:
                cursor = None

        if self.result_cache:
            cached = await self.result_cache.get(query, size, cursor)
            if cached is not None:
                logger.debug(f"Result cache hit for '{query}'")
                # Track analytics even for cached results
                self._track(query, cached.results)
                return cached

        try:
            candidates = await self.corpus.find_candidates(LexicalPrefilter(query))
        except Exception as e:
            logger.error(f"Candidate lookup failed for '{query}': {e}", exc_info=True)
            return SearchPage()

        query_embedding = await self._query_embedding(query) if candidates else None
        degraded = bool(candidates) and query_embedding is None

        ranked = self._rank(query, candidates, query_embedding)
        if position is not None:
            ranked = [r for r in ranked if is_after_score_position(r.score, r.candidate.id, position)]

        results = ranked[:size]
        next_cursor = None
        if len(ranked) > size:
            last = results[-1]
            next_cursor = encode_score_cursor(last.score, last.candidate.id)

        page = SearchPage(results=results, next_cursor=next_cursor, degraded=degraded)
        logger.info(f"Search '{query}': {len(candidates)} candidates, {len(results)} returned")

        # Degraded pages are never cached
        if self.result_cache and not degraded:
            await self.result_cache.set(query, size, cursor, page)
        self._track(query, results)
        return page

    # ------------------------------------------------------------------
    # Saved-filter search
    # ------------------------------------------------------------------

    async def search_by_filter(
        self,
        event_filter: SemanticFilter | StructuredFilter | HybridFilter,
        page_size: int = 10,
        offset: int = 0,
    ) -> FilterSearchResult:
        """
        Offset-paginated search for a saved filter.

        Filters carrying an embedding rank by pure cosine similarity; purely
        structured filters list matching events newest first.
        """
        size = self._clamp_page_size(page_size)
        offset = max(0, offset)

        try:
            matches = await self.corpus.find_by_filter(event_filter)
        except Exception as e:
            logger.error(f"Filter lookup failed for {event_filter.kind} filter: {e}", exc_info=True)
            return FilterSearchResult()

        if isinstance(event_filter, (SemanticFilter, HybridFilter)):
            ranked = [
                RankedResult(
                    candidate=c,
                    score=self.embedding_provider.similarity(event_filter.embedding, c.embedding),
                )
                for c in matches
                if c.embedding is not None
            ]
            ranked.sort(key=lambda r: ranking_key(r.score, r.candidate.id))
        else:
            ordered = sorted(matches, key=lambda c: (c.event_date, c.id), reverse=True)
            ranked = [RankedResult(candidate=c, score=0.0) for c in ordered]

        results = ranked[offset : offset + size]
        return FilterSearchResult(
            results=results,
            total=len(ranked),
            has_more=offset + len(results) < len(ranked),
        )

    # ------------------------------------------------------------------
    # Category listing
    # ------------------------------------------------------------------

    async def get_events_by_category(
        self,
        category_id: str,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> CategoryListing:
        """Events of one category, newest first (date desc, id desc)."""
        size = self._clamp_page_size(page_size)

        position: DecodedCursor | None = None
        if cursor:
            try:
                position = self._resume_position(cursor, "date", f"category {category_id}")
            except InputError as e:
                return CategoryListing(error=str(e))

        try:
            events = await self.corpus.find_by_category(category_id)
        except Exception as e:
            logger.error(f"Category lookup failed for {category_id}: {e}", exc_info=True)
            return CategoryListing()

        events = sorted(events, key=lambda c: (c.event_date, c.id), reverse=True)
        if position is not None:
            events = [c for c in events if is_after_date_position(c.event_date, c.id, position)]

        page = events[:size]
        next_cursor = encode_date_cursor(page[-1].event_date, page[-1].id) if len(events) > size else None
        return CategoryListing(events=page, next_cursor=next_cursor)
