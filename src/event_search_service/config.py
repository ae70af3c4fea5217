"""
Configuration for the event search service.

Each concern has its own ``BaseSettings`` group with a dedicated environment
prefix, and all groups hang off the root ``Settings`` object:

    EVENT_SEARCH_SEARCH_MIN_QUERY_LENGTH=3
    EVENT_SEARCH_CACHE_BACKEND=redis
    EVENT_SEARCH_ANALYTICS_DB_PATH=/var/lib/events/query_analytics.db
"""

import math
import os
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".local", "share", "event-search")


class SearchSettings(BaseSettings):
    """Ranking weights and request limits for free-text search."""

    model_config = SettingsConfigDict(env_prefix="EVENT_SEARCH_SEARCH_", extra="ignore")

    min_query_length: int = Field(default=2, ge=1, description="Queries shorter than this (after trim) return nothing")
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    semantic_weight: float = Field(default=0.40, ge=0.0, le=1.0)
    lexical_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    category_weight: float = Field(default=0.15, ge=0.0, le=1.0)
    recency_weight: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "SearchSettings":
        total = self.semantic_weight + self.lexical_weight + self.category_weight + self.recency_weight
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"search weights must sum to 1.0, got {total:.4f}")
        return self


class CacheSettings(BaseSettings):
    """Result and embedding cache configuration."""

    model_config = SettingsConfigDict(env_prefix="EVENT_SEARCH_CACHE_", extra="ignore")

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "events:cache:"
    max_connections: int = Field(default=10, ge=1)

    # Result pages go stale quickly: save/RSVP/scan counts feed scoring.
    result_ttl_seconds: int = Field(default=60, ge=1)
    embedding_ttl_seconds: int = Field(default=86400, ge=1)
    embedding_max_entries: int = Field(default=3000, ge=1)
    memory_max_entries: int = Field(default=10_000, ge=1)


class EmbeddingSettings(BaseSettings):
    """Embedding model configuration."""

    model_config = SettingsConfigDict(env_prefix="EVENT_SEARCH_EMBEDDING_", extra="ignore")

    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    device: str | None = None
    retry_attempts: int = Field(default=3, ge=1)


class AnalyticsSettings(BaseSettings):
    """Query analytics store, flag thresholds and clustering parameters."""

    model_config = SettingsConfigDict(env_prefix="EVENT_SEARCH_ANALYTICS_", extra="ignore")

    db_path: str = os.path.join(_DEFAULT_DATA_DIR, "query_analytics.db")

    popular_min_searches: int = Field(default=10, ge=1)
    attention_hit_rate: float = Field(default=30.0, ge=0.0, le=100.0)
    attention_min_searches: int = Field(default=3, ge=1)
    flag_window_days: int = Field(default=30, ge=1)

    low_hit_rate: float = Field(default=50.0, ge=0.0, le=100.0)
    popular_list_min_searches: int = Field(default=5, ge=1)
    min_query_length: int = Field(default=3, ge=1, description="Insight reports skip shorter queries (likely typos)")

    cluster_min_searches: int = Field(default=3, ge=1)
    cluster_similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    similar_queries_limit: int = Field(default=20, ge=1)

    top_results_limit: int = Field(default=10, ge=1)
    top_categories_limit: int = Field(default=5, ge=1)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(env_prefix="EVENT_SEARCH_", extra="ignore")

    search: SearchSettings = Field(default_factory=SearchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)


settings = Settings()
