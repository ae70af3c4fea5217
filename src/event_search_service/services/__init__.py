from .event_search_service import EventSearchService
from .query_analytics_service import QueryAnalyticsService

__all__ = ["EventSearchService", "QueryAnalyticsService"]
