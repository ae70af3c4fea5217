"""
Collaborator contracts required by the search core.

The corpus accessor and the analytics store are external systems; these
abstract bases define exactly what the core needs from them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ..models.candidate import SearchCandidate
from ..models.filters import HybridFilter, SemanticFilter, StructuredFilter
from ..models.query_analytics import QueryAnalyticsRecord


@dataclass(frozen=True)
class LexicalPrefilter:
    """Cheap OR-of-substrings pre-filter bounding the candidate set.

    A candidate passes if it has an embedding and the needle occurs
    (case-insensitively) in its title, description, address, location notes,
    emoji description, or any category name.
    """

    needle: str
    require_embedding: bool = True

    def __post_init__(self):
        object.__setattr__(self, "needle", self.needle.strip().lower())

    def matches(self, candidate: SearchCandidate) -> bool:
        if self.require_embedding and candidate.embedding is None:
            return False
        if not self.needle:
            return False
        fields = (
            candidate.title,
            candidate.description,
            candidate.address,
            candidate.location_notes,
            candidate.emoji_description,
            *candidate.category_names,
        )
        return any(self.needle in (value or "").lower() for value in fields)


class EventCorpus(ABC):
    """Read-only access to searchable events."""

    @abstractmethod
    async def find_candidates(self, prefilter: LexicalPrefilter) -> list[SearchCandidate]:
        """Events passing the lexical pre-filter (and the embedding-not-null constraint)."""

    @abstractmethod
    async def find_by_filter(self, event_filter: SemanticFilter | StructuredFilter | HybridFilter) -> list[SearchCandidate]:
        """Events passing every hard predicate of a saved filter, unordered."""

    @abstractmethod
    async def find_by_category(self, category_id: str) -> list[SearchCandidate]:
        """Events tagged with the given category, unordered."""


class AnalyticsStore(ABC):
    """Persistence for query analytics records keyed by normalized query."""

    async def initialize(self) -> None:
        """Prepare the store (schema creation etc.)."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def get(self, normalized_query: str) -> QueryAnalyticsRecord | None: ...

    @abstractmethod
    async def upsert(self, record: QueryAnalyticsRecord) -> None:
        """Insert or overwrite the record for ``record.normalized_query``."""

    @abstractmethod
    async def list_records(
        self,
        min_searches: int = 1,
        since: datetime | None = None,
        min_query_length: int = 0,
    ) -> list[QueryAnalyticsRecord]:
        """Records matching the bounds, ordered by total searches descending."""

    @abstractmethod
    async def mark_popular(self, min_searches: int, since: datetime) -> int:
        """Set ``is_popular`` on qualifying records; return how many qualified."""

    @abstractmethod
    async def mark_needs_attention(self, max_hit_rate: float, min_searches: int, since: datetime) -> int:
        """Set ``needs_attention`` on qualifying records; return how many qualified."""
