"""Unit tests for greedy query clustering.

Pure-function tests over explicit candidate lists and ``processed`` sets;
similarity comes from numpy cosine over small hand-built vectors.
"""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from event_search_service.embeddings.base import cosine_similarity
from event_search_service.utils.query_clustering import (
    ClusterCandidate,
    cluster_queries,
    grow_cluster,
    order_by_volume,
    summarize_cluster,
)

# =============================================================================
# Helpers
# =============================================================================


def _unit(angle_degrees: float) -> list[float]:
    """2-D unit vector at the given angle; cosine between two is cos(angle difference)."""
    rad = np.radians(angle_degrees)
    return [float(np.cos(rad)), float(np.sin(rad))]


def _candidate(query: str, searches: int, angle: float, hit_rate: float = 100.0) -> ClusterCandidate:
    return ClusterCandidate(
        query=query,
        total_searches=searches,
        hit_rate=hit_rate,
        total_hits=int(searches * hit_rate / 100),
        embedding=_unit(angle),
    )


# cos(30°) ≈ 0.866, cos(40°) ≈ 0.766
THRESHOLD = 0.8


class TestOrdering:
    def test_highest_volume_first_with_alphabetical_ties(self):
        ordered = order_by_volume([_candidate("b", 3, 0), _candidate("a", 3, 0), _candidate("c", 9, 0)])
        assert [c.query for c in ordered] == ["c", "a", "b"]


class TestGrowCluster:
    def test_marks_members_processed(self):
        seed = _candidate("jazz night", 10, 0)
        near = _candidate("jazz nights", 5, 10)
        far = _candidate("taco truck", 5, 90)
        processed: set[str] = set()

        members = grow_cluster(seed, [seed, near, far], processed, THRESHOLD, cosine_similarity)

        assert [m[0].query for m in members] == ["jazz night", "jazz nights"]
        assert processed == {"jazz night", "jazz nights"}

    def test_growth_is_transitive(self):
        """A query similar only to a member (not the seed) still joins the cluster."""
        seed = _candidate("a", 10, 0)
        bridge = _candidate("b", 5, 30)
        tail = _candidate("c", 4, 60)  # 60° from seed, 30° from bridge

        members = grow_cluster(seed, [seed, bridge, tail], set(), THRESHOLD, cosine_similarity)

        assert {m[0].query for m in members} == {"a", "b", "c"}
        tail_similarity = dict((m[0].query, m[1]) for m in members)["c"]
        assert tail_similarity == pytest.approx(0.5, abs=1e-3)  # reported relative to the seed

    def test_skips_already_processed(self):
        seed = _candidate("a", 10, 0)
        taken = _candidate("b", 5, 5)

        members = grow_cluster(seed, [seed, taken], {"b"}, THRESHOLD, cosine_similarity)
        assert [m[0].query for m in members] == ["a"]


class TestClusterQueries:
    def test_singletons_are_not_emitted(self):
        candidates = [_candidate("a", 5, 0), _candidate("b", 5, 90), _candidate("c", 5, 180)]
        processed: set[str] = set()

        assert cluster_queries(candidates, THRESHOLD, cosine_similarity, processed) == []
        assert processed == {"a", "b", "c"}

    def test_representative_is_highest_volume(self):
        candidates = [_candidate("jazz nights", 4, 10), _candidate("jazz night", 12, 0)]

        clusters = cluster_queries(candidates, THRESHOLD, cosine_similarity)

        assert len(clusters) == 1
        assert clusters[0].representative_query == "jazz night"
        assert clusters[0].similar_queries[0].similarity == 1.0

    def test_clusters_sorted_by_total_searches(self):
        candidates = [
            _candidate("a1", 10, 0),
            _candidate("a2", 3, 5),
            _candidate("b1", 8, 180),
            _candidate("b2", 8, 185),
        ]

        clusters = cluster_queries(candidates, THRESHOLD, cosine_similarity)

        assert [c.representative_query for c in clusters] == ["b1", "a1"]
        assert [c.total_searches for c in clusters] == [16, 13]

    def test_similar_queries_never_split(self):
        """Any two queries above the threshold end up in the same cluster."""
        rng = np.random.default_rng(7)
        candidates = [
            _candidate(f"q{i}", int(rng.integers(3, 50)), float(rng.uniform(0, 360))) for i in range(40)
        ]

        clusters = cluster_queries(candidates, THRESHOLD, cosine_similarity)
        cluster_of = {q.query: idx for idx, c in enumerate(clusters) for q in c.similar_queries}

        for a, b in itertools.combinations(candidates, 2):
            if cosine_similarity(a.embedding, b.embedding) >= THRESHOLD:
                assert a.query in cluster_of and b.query in cluster_of
                assert cluster_of[a.query] == cluster_of[b.query]

    def test_each_query_in_at_most_one_cluster(self):
        rng = np.random.default_rng(11)
        candidates = [_candidate(f"q{i}", 5, float(rng.uniform(0, 90))) for i in range(25)]

        clusters = cluster_queries(candidates, THRESHOLD, cosine_similarity)
        members = [q.query for c in clusters for q in c.similar_queries]

        assert len(members) == len(set(members))


class TestSummarizeCluster:
    def test_aggregates(self):
        rep = _candidate("jazz night", 10, 0, hit_rate=80.0)
        low = _candidate("jazz nite", 5, 10, hit_rate=20.0)

        cluster = summarize_cluster(rep, [(rep, 1.0), (low, 0.98481)])

        assert cluster.total_searches == 15
        assert cluster.total_hits == 8 + 1
        assert cluster.average_hit_rate == pytest.approx(50.0)
        assert cluster.needs_attention is True
        assert cluster.similar_queries[1].similarity == 0.9848

    def test_no_attention_when_all_hit_rates_healthy(self):
        rep = _candidate("a", 10, 0, hit_rate=90.0)
        other = _candidate("b", 5, 5, hit_rate=30.0)

        assert summarize_cluster(rep, [(rep, 1.0), (other, 0.99)]).needs_attention is False
