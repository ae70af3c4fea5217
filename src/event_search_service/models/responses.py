"""Service-layer response models.

Typed Pydantic models for everything the search and analytics services
return. Ranked results hold the candidate itself; these are produced fresh
per call and never persisted.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .candidate import SearchCandidate
from .validators import IdList, NonNegativeInt, Percentage, UnitFloat

# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class RankedResult(BaseModel):
    """A candidate with its composite relevance score."""

    candidate: SearchCandidate
    score: UnitFloat


class SearchPage(BaseModel):
    """One page of free-text search results.

    ``error`` is set only when the request cannot be answered as asked
    (e.g. a cursor for an ordering this endpoint does not support).
    """

    results: list[RankedResult] = Field(default_factory=list)
    next_cursor: str | None = None
    error: str | None = None
    degraded: bool = False  # True when scored without the semantic signal


class FilterSearchResult(BaseModel):
    """Offset-paginated results of a saved-filter search."""

    results: list[RankedResult] = Field(default_factory=list)
    total: NonNegativeInt = 0
    has_more: bool = False


class CategoryListing(BaseModel):
    """Date-ordered events of one category, cursor-paginated."""

    events: list[SearchCandidate] = Field(default_factory=list)
    next_cursor: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Query analytics
# ---------------------------------------------------------------------------


class SimilarQuery(BaseModel):
    query: str
    similarity: UnitFloat
    total_searches: NonNegativeInt
    hit_rate: Percentage
    total_hits: NonNegativeInt = 0


class QueryCluster(BaseModel):
    """Near-duplicate queries grouped around their highest-volume member."""

    representative_query: str
    similar_queries: list[SimilarQuery] = Field(default_factory=list)
    total_searches: NonNegativeInt = 0
    average_hit_rate: Percentage = 0.0
    total_hits: NonNegativeInt = 0
    needs_attention: bool = False


class PopularQuery(BaseModel):
    query: str
    total_searches: int
    hit_rate: float
    average_results: float


class LowHitRateQuery(BaseModel):
    query: str
    total_searches: int
    hit_rate: float
    last_searched: datetime


class TrendingQuery(BaseModel):
    query: str
    recent_searches: int
    growth_rate: float = 0.0


class ZeroResultQuery(BaseModel):
    query: str
    search_count: int
    last_searched: datetime


class QueryStats(BaseModel):
    total_searches: NonNegativeInt
    total_hits: NonNegativeInt
    hit_rate: Percentage
    average_results: float
    first_searched: datetime | None = None
    last_searched: datetime | None = None
    top_results: IdList = Field(default_factory=list)
    top_categories: IdList = Field(default_factory=list)


class InsightsSummary(BaseModel):
    total_queries: int = 0
    total_searches: NonNegativeInt = 0
    average_hit_rate: Percentage = 0.0
    zero_hit_queries: int = 0
    low_hit_queries: int = 0


class QueryInsights(BaseModel):
    """Aggregate report for curators."""

    summary: InsightsSummary = Field(default_factory=InsightsSummary)
    popular_queries: list[PopularQuery] = Field(default_factory=list)
    low_hit_rate_queries: list[LowHitRateQuery] = Field(default_factory=list)
    trending_queries: list[TrendingQuery] = Field(default_factory=list)
    zero_result_queries: list[ZeroResultQuery] = Field(default_factory=list)
    query_clusters: list[QueryCluster] = Field(default_factory=list)


class FlagUpdateResult(BaseModel):
    popular_queries_updated: int = 0
    attention_queries_updated: int = 0
