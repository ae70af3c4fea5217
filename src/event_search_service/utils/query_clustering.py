"""Greedy near-duplicate query clustering.

Queries are visited in descending search volume. Each query not yet
processed seeds a cluster and pulls in every unprocessed query whose
embedding similarity is at or above the threshold. Newly added members are
compared against the remaining unprocessed queries in turn, so two similar
queries always end up in the same cluster. The seed, being the
highest-volume member, is the cluster's representative.

Queries with no similar neighbour are marked processed but not emitted.

Everything here is a pure function over explicit inputs: the caller owns the
ordered candidate list and the ``processed`` set.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..models.responses import QueryCluster, SimilarQuery

# Clusters containing a member below this hit rate (percent) need attention.
ATTENTION_HIT_RATE = 30.0

SimilarityFn = Callable[[Sequence[float], Sequence[float]], float]


@dataclass(frozen=True)
class ClusterCandidate:
    """A query eligible for clustering, with its embedding."""

    query: str
    total_searches: int
    hit_rate: float
    total_hits: int
    embedding: Sequence[float]


def order_by_volume(candidates: Sequence[ClusterCandidate]) -> list[ClusterCandidate]:
    """Highest search volume first; ties broken alphabetically for determinism."""
    return sorted(candidates, key=lambda c: (-c.total_searches, c.query))


def summarize_cluster(
    representative: ClusterCandidate,
    members: Sequence[tuple[ClusterCandidate, float]],
    attention_hit_rate: float = ATTENTION_HIT_RATE,
) -> QueryCluster:
    """Aggregate a cluster; ``members`` includes the representative."""
    similar = [
        SimilarQuery(
            query=c.query,
            similarity=round(sim, 4),
            total_searches=c.total_searches,
            hit_rate=c.hit_rate,
            total_hits=c.total_hits,
        )
        for c, sim in members
    ]
    return QueryCluster(
        representative_query=representative.query,
        similar_queries=similar,
        total_searches=sum(c.total_searches for c, _ in members),
        average_hit_rate=sum(c.hit_rate for c, _ in members) / len(members),
        total_hits=sum(c.total_hits for c, _ in members),
        needs_attention=any(c.hit_rate < attention_hit_rate for c, _ in members),
    )


def grow_cluster(
    seed: ClusterCandidate,
    ordered: Sequence[ClusterCandidate],
    processed: set[str],
    threshold: float,
    similarity: SimilarityFn,
) -> list[tuple[ClusterCandidate, float]]:
    """Collect the seed and every unprocessed query reachable through similar pairs.

    Marks every collected query (seed included) as processed. Each member is
    reported with its similarity to the seed.
    """
    processed.add(seed.query)
    members: list[tuple[ClusterCandidate, float]] = [(seed, 1.0)]
    frontier = deque([seed])

    while frontier:
        current = frontier.popleft()
        for other in ordered:
            if other.query in processed:
                continue
            sim = similarity(current.embedding, other.embedding)
            if sim < threshold:
                continue
            processed.add(other.query)
            seed_sim = sim if current is seed else similarity(seed.embedding, other.embedding)
            members.append((other, seed_sim))
            frontier.append(other)

    # Representative first, then by similarity to it.
    members[1:] = sorted(members[1:], key=lambda m: (-m[1], m[0].query))
    return members


def cluster_queries(
    candidates: Sequence[ClusterCandidate],
    threshold: float,
    similarity: SimilarityFn,
    processed: set[str] | None = None,
    attention_hit_rate: float = ATTENTION_HIT_RATE,
) -> list[QueryCluster]:
    """Greedy single pass over ``candidates`` in volume order.

    Returns clusters of two or more queries, largest total volume first.
    """
    if processed is None:
        processed = set()

    ordered = order_by_volume(candidates)
    clusters: list[QueryCluster] = []

    for seed in ordered:
        if seed.query in processed:
            continue
        members = grow_cluster(seed, ordered, processed, threshold, similarity)
        if len(members) >= 2:
            clusters.append(summarize_cluster(seed, members, attention_hit_rate))

    clusters.sort(key=lambda c: (-c.total_searches, c.representative_query))
    return clusters
