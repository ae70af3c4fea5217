# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Query analytics models: per-query aggregate counters and tracking input."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def merge_top_ids(current: list[str], new_ids: list[str], limit: int) -> list[str]:
    """Merge ``new_ids`` into a frequency-ranked id list and keep the top ``limit``.

    The stored list carries no counts, so each retained id contributes one
    occurrence; ties keep first-seen order.
    """
    counts = Counter(current)
    counts.update(new_ids)
    return [item for item, _ in counts.most_common(limit)]


@dataclass
class SearchTrackingData:
    """Outcome of one search, as reported to the analytics tracker."""

    query: str
    result_count: int
    event_ids: list[str] = field(default_factory=list)
    category_ids: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class QueryAnalyticsRecord:
    """Aggregate counters for one normalized query."""

    normalized_query: str
    query: str  # raw example of the query as typed

    total_searches: int = 0
    total_hits: int = 0
    zero_result_searches: int = 0
    average_results_per_search: float = 0.0
    hit_rate: float = 0.0  # percent of searches with at least one result

    first_searched_at: datetime = field(default_factory=_utcnow)
    last_searched_at: datetime = field(default_factory=_utcnow)

    top_results: list[str] = field(default_factory=list)
    top_categories: list[str] = field(default_factory=list)

    is_popular: bool = False
    needs_attention: bool = False

    id: int | None = None

    def record_search(
        self,
        data: SearchTrackingData,
        top_results_limit: int = 10,
        top_categories_limit: int = 5,
    ) -> None:
        """Fold one search outcome into the counters."""
        self.total_searches += 1
        self.total_hits += data.result_count
        if data.result_count == 0:
            self.zero_result_searches += 1
        self.last_searched_at = _to_datetime(data.timestamp)

        self.average_results_per_search = self.total_hits / self.total_searches
        self.hit_rate = (self.total_searches - self.zero_result_searches) / self.total_searches * 100

        if data.event_ids:
            self.top_results = merge_top_ids(self.top_results, data.event_ids, top_results_limit)
        if data.category_ids:
            self.top_categories = merge_top_ids(self.top_categories, data.category_ids, top_categories_limit)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "normalized_query": self.normalized_query,
            "query": self.query,
            "total_searches": self.total_searches,
            "total_hits": self.total_hits,
            "zero_result_searches": self.zero_result_searches,
            "average_results_per_search": self.average_results_per_search,
            "hit_rate": self.hit_rate,
            "first_searched_at": self.first_searched_at.isoformat(),
            "last_searched_at": self.last_searched_at.isoformat(),
            "top_results": self.top_results,
            "top_categories": self.top_categories,
            "is_popular": self.is_popular,
            "needs_attention": self.needs_attention,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryAnalyticsRecord":
        """Create instance from dictionary."""
        return cls(
            id=data.get("id"),
            normalized_query=data["normalized_query"],
            query=data.get("query", data["normalized_query"]),
            total_searches=data.get("total_searches", 0),
            total_hits=data.get("total_hits", 0),
            zero_result_searches=data.get("zero_result_searches", 0),
            average_results_per_search=data.get("average_results_per_search", 0.0),
            hit_rate=data.get("hit_rate", 0.0),
            first_searched_at=_to_datetime(data["first_searched_at"]) if data.get("first_searched_at") else _utcnow(),
            last_searched_at=_to_datetime(data["last_searched_at"]) if data.get("last_searched_at") else _utcnow(),
            top_results=list(data.get("top_results") or []),
            top_categories=list(data.get("top_categories") or []),
            is_popular=bool(data.get("is_popular", False)),
            needs_attention=bool(data.get("needs_attention", False)),
        )
