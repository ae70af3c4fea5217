"""
Composite relevance scoring for free-text event search.

Four independent signals, each in [0, 1], are blended with fixed weights:

    semantic (0.40)  cosine similarity of query and event embeddings
    lexical  (0.35)  best matching text tier (title, emoji, description, ...)
    category (0.15)  exact or partial category-name match
    recency  (0.10)  step function over the event date

When the query embedding is unavailable the semantic signal is dropped and
the remaining weights are rescaled to sum to 1.0, so scores stay in [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..models.candidate import SearchCandidate

# Every searchable slot of the event embedding text; the query is repeated
# into each so one vector approximates relevance across all facets.
QUERY_EMBEDDING_SLOTS = (
    "TITLE",
    "EMOJI_DESCRIPTION",
    "CATEGORIES",
    "DESCRIPTION",
    "LOCATION",
    "ADDRESS",
    "LOCATION_NOTES",
)

# (field, exact score, partial score); only the single best tier applies.
LEXICAL_TIERS: tuple[tuple[str, float, float], ...] = (
    ("title", 1.0, 0.7),
    ("emoji_description", 0.8, 0.6),
    ("description", 0.5, 0.3),
    ("address", 0.5, 0.3),
    ("location_notes", 0.5, 0.3),
)

CATEGORY_EXACT_SCORE = 0.8
CATEGORY_PARTIAL_SCORE = 0.4

# (max age, score); events in the future score 1.0, anything older than the
# last step scores RECENCY_FLOOR.
RECENCY_STEPS: tuple[tuple[timedelta, float], ...] = (
    (timedelta(days=7), 0.8),
    (timedelta(days=30), 0.6),
    (timedelta(days=90), 0.4),
)
RECENCY_FUTURE = 1.0
RECENCY_FLOOR = 0.2


@dataclass(frozen=True)
class ScoringWeights:
    """Signal weights; must sum to 1.0."""

    semantic: float = 0.40
    lexical: float = 0.35
    category: float = 0.15
    recency: float = 0.10

    def __post_init__(self):
        values = (self.semantic, self.lexical, self.category, self.recency)
        if any(v < 0 for v in values):
            raise ValueError("scoring weights must be non-negative")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-6):
            raise ValueError(f"scoring weights must sum to 1.0, got {sum(values):.4f}")

    def without_semantic(self) -> ScoringWeights:
        """Weights for degraded scoring: semantic dropped, the rest rescaled."""
        remaining = self.lexical + self.category + self.recency
        if remaining <= 0:
            raise ValueError("cannot drop the semantic signal when it carries all the weight")
        return ScoringWeights(
            semantic=0.0,
            lexical=self.lexical / remaining,
            category=self.category / remaining,
            recency=self.recency / remaining,
        )


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-signal scores for one candidate."""

    semantic: float
    lexical: float
    category: float
    recency: float

    def combine(self, weights: ScoringWeights) -> float:
        total = (
            self.semantic * weights.semantic
            + self.lexical * weights.lexical
            + self.category * weights.category
            + self.recency * weights.recency
        )
        return min(1.0, max(0.0, total))


def build_query_embedding_text(query: str) -> str:
    """Multi-slot text used to embed a search query."""
    return "\n".join(f"{slot}: {query}" for slot in QUERY_EMBEDDING_SLOTS)


def semantic_score(similarity: float | None) -> float:
    """Clamp a cosine similarity into [0, 1]; missing similarity scores 0."""
    if similarity is None or math.isnan(similarity):
        return 0.0
    return min(1.0, max(0.0, similarity))


def lexical_score(query: str, candidate: SearchCandidate) -> float:
    """Highest matching lexical tier for the query against the candidate's text fields.

    Exact means the whole field equals the query (case-insensitive); partial
    means the field contains it.
    """
    needle = query.strip().lower()
    if not needle:
        return 0.0

    best = 0.0
    for field_name, exact, partial in LEXICAL_TIERS:
        value = (getattr(candidate, field_name) or "").strip().lower()
        if not value:
            continue
        if value == needle:
            best = max(best, exact)
        elif needle in value:
            best = max(best, partial)
    return best


def category_score(query: str, candidate: SearchCandidate) -> float:
    """0.8 for an exact category-name match, 0.4 for a partial one, else 0."""
    needle = query.strip().lower()
    if not needle:
        return 0.0

    names = [name.strip().lower() for name in candidate.category_names]
    if any(name == needle for name in names):
        return CATEGORY_EXACT_SCORE
    if any(needle in name for name in names):
        return CATEGORY_PARTIAL_SCORE
    return 0.0


def recency_score(event_date: datetime, now: datetime) -> float:
    """Step-function recency: future events score highest."""
    if event_date > now:
        return RECENCY_FUTURE
    age = now - event_date
    for max_age, score in RECENCY_STEPS:
        if age < max_age:
            return score
    return RECENCY_FLOOR


def score_breakdown(
    query: str,
    candidate: SearchCandidate,
    similarity: float | None,
    now: datetime,
) -> ScoreBreakdown:
    return ScoreBreakdown(
        semantic=semantic_score(similarity),
        lexical=lexical_score(query, candidate),
        category=category_score(query, candidate),
        recency=recency_score(candidate.event_date, now),
    )


def composite_score(
    query: str,
    candidate: SearchCandidate,
    similarity: float | None,
    now: datetime,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """Weighted blend of all four signals, in [0, 1].

    Pass ``weights.without_semantic()`` (and ``similarity=None``) when the
    query embedding could not be generated.
    """
    return score_breakdown(query, candidate, similarity, now).combine(weights)


def ranking_key(score: float, candidate_id: str) -> tuple[float, str]:
    """Sort key for score ordering: score descending, id ascending."""
    return (-score, candidate_id)
