from .base import AnalyticsStore, EventCorpus, LexicalPrefilter
from .memory_corpus import InMemoryEventCorpus
from .query_analytics_db import QueryAnalyticsDB

__all__ = [
    "AnalyticsStore",
    "EventCorpus",
    "InMemoryEventCorpus",
    "LexicalPrefilter",
    "QueryAnalyticsDB",
]
