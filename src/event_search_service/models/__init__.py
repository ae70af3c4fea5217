"""Data models for the event search service."""

from .candidate import Category, GeoPoint, SearchCandidate
from .filters import DateRange, EventFilter, GeoRadius, HybridFilter, SemanticFilter, StructuredFilter, parse_filter
from .query_analytics import QueryAnalyticsRecord, SearchTrackingData
from .responses import (
    CategoryListing,
    FilterSearchResult,
    QueryCluster,
    QueryInsights,
    RankedResult,
    SearchPage,
    SimilarQuery,
)

__all__ = [
    "Category",
    "CategoryListing",
    "DateRange",
    "EventFilter",
    "FilterSearchResult",
    "GeoPoint",
    "GeoRadius",
    "HybridFilter",
    "QueryAnalyticsRecord",
    "QueryCluster",
    "QueryInsights",
    "RankedResult",
    "SearchCandidate",
    "SearchPage",
    "SearchTrackingData",
    "SemanticFilter",
    "SimilarQuery",
    "StructuredFilter",
    "parse_filter",
]
