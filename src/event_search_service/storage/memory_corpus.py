"""In-memory event corpus.

Reference ``EventCorpus`` implementation for tests, fixtures and
single-process deployments that keep their event projection in memory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..models.candidate import SearchCandidate
from ..models.filters import HybridFilter, SemanticFilter, StructuredFilter
from ..utils.filtering import matches_filter
from .base import EventCorpus, LexicalPrefilter

logger = logging.getLogger(__name__)


class InMemoryEventCorpus(EventCorpus):
    """Event corpus held in a dict keyed by event id."""

    def __init__(self, candidates: Iterable[SearchCandidate] = ()):
        self._events: dict[str, SearchCandidate] = {}
        for candidate in candidates:
            self.add(candidate)

    def __len__(self) -> int:
        return len(self._events)

    def add(self, candidate: SearchCandidate) -> None:
        """Insert or replace an event."""
        self._events[candidate.id] = candidate

    def remove(self, event_id: str) -> bool:
        return self._events.pop(event_id, None) is not None

    async def find_candidates(self, prefilter: LexicalPrefilter) -> list[SearchCandidate]:
        matched = [c for c in self._events.values() if prefilter.matches(c)]
        logger.debug(f"Pre-filter '{prefilter.needle}' matched {len(matched)}/{len(self._events)} events")
        return matched

    async def find_by_filter(self, event_filter: SemanticFilter | StructuredFilter | HybridFilter) -> list[SearchCandidate]:
        return [c for c in self._events.values() if matches_filter(c, event_filter)]

    async def find_by_category(self, category_id: str) -> list[SearchCandidate]:
        return [c for c in self._events.values() if category_id in c.category_ids]
