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

"""
Query analytics database manager.

Manages SQLite database holding one aggregate row per normalized query.
Thread-safe async operations using aiosqlite.
"""

import json
import logging
import os
from datetime import datetime, timezone

import aiosqlite

from ..errors import AnalyticsError
from ..models.query_analytics import QueryAnalyticsRecord
from .base import AnalyticsStore

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, normalized_query, query, total_searches, total_hits, zero_result_searches, "
    "average_results_per_search, hit_rate, first_searched_at, last_searched_at, "
    "top_results, top_categories, is_popular, needs_attention"
)


def _epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _row_to_record(row) -> QueryAnalyticsRecord:
    return QueryAnalyticsRecord(
        id=row[0],
        normalized_query=row[1],
        query=row[2],
        total_searches=row[3],
        total_hits=row[4],
        zero_result_searches=row[5],
        average_results_per_search=row[6],
        hit_rate=row[7],
        first_searched_at=datetime.fromtimestamp(row[8], timezone.utc),
        last_searched_at=datetime.fromtimestamp(row[9], timezone.utc),
        top_results=json.loads(row[10]) if row[10] else [],
        top_categories=json.loads(row[11]) if row[11] else [],
        is_popular=bool(row[12]),
        needs_attention=bool(row[13]),
    )


class QueryAnalyticsDB(AnalyticsStore):
    """Async SQLite store for per-query search analytics."""

    def __init__(self, db_path: str):
        """
        Initialize query analytics database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._initialized = False

    async def initialize(self):
        """Initialize database schema if not exists."""
        if self._initialized:
            return

        # Ensure directory exists
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS query_analytics (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        normalized_query TEXT NOT NULL UNIQUE,
                        query TEXT NOT NULL,
                        total_searches INTEGER DEFAULT 0,
                        total_hits INTEGER DEFAULT 0,
                        zero_result_searches INTEGER DEFAULT 0,
                        average_results_per_search REAL DEFAULT 0.0,
                        hit_rate REAL DEFAULT 0.0,
                        first_searched_at REAL NOT NULL,
                        last_searched_at REAL NOT NULL,
                        top_results TEXT,
                        top_categories TEXT,
                        is_popular INTEGER DEFAULT 0,
                        needs_attention INTEGER DEFAULT 0
                    )
                """
                )

                # Create indices for common queries
                await db.execute("CREATE INDEX IF NOT EXISTS idx_qa_total_searches ON query_analytics(total_searches)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_qa_last_searched ON query_analytics(last_searched_at)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_qa_hit_rate ON query_analytics(hit_rate)")

                await db.commit()
        except aiosqlite.Error as e:
            raise AnalyticsError(f"Failed to initialize analytics database: {e}") from e

        self._initialized = True
        logger.info(f"Query analytics database initialized at {self.db_path}")

    async def get(self, normalized_query: str) -> QueryAnalyticsRecord | None:
        """
        Load the record for a normalized query.

        Args:
            normalized_query: Normalized query key

        Returns:
            The stored record, or None if the query was never tracked
        """
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM query_analytics WHERE normalized_query = ?",
                    (normalized_query,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise AnalyticsError(f"Failed to load analytics for '{normalized_query}': {e}") from e

        return _row_to_record(row) if row else None

    async def upsert(self, record: QueryAnalyticsRecord) -> None:
        """
        Insert or overwrite the record for its normalized query.

        Args:
            record: Record with updated counters
        """
        if not self._initialized:
            await self.initialize()

        params = (
            record.normalized_query,
            record.query,
            record.total_searches,
            record.total_hits,
            record.zero_result_searches,
            record.average_results_per_search,
            record.hit_rate,
            _epoch(record.first_searched_at),
            _epoch(record.last_searched_at),
            json.dumps(record.top_results),
            json.dumps(record.top_categories),
            int(record.is_popular),
            int(record.needs_attention),
        )
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO query_analytics
                    (normalized_query, query, total_searches, total_hits, zero_result_searches,
                     average_results_per_search, hit_rate, first_searched_at, last_searched_at,
                     top_results, top_categories, is_popular, needs_attention)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(normalized_query) DO UPDATE SET
                        query = excluded.query,
                        total_searches = excluded.total_searches,
                        total_hits = excluded.total_hits,
                        zero_result_searches = excluded.zero_result_searches,
                        average_results_per_search = excluded.average_results_per_search,
                        hit_rate = excluded.hit_rate,
                        last_searched_at = excluded.last_searched_at,
                        top_results = excluded.top_results,
                        top_categories = excluded.top_categories,
                        is_popular = excluded.is_popular,
                        needs_attention = excluded.needs_attention
                """,
                    params,
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise AnalyticsError(f"Failed to save analytics for '{record.normalized_query}': {e}") from e

    async def list_records(
        self,
        min_searches: int = 1,
        since: datetime | None = None,
        min_query_length: int = 0,
    ) -> list[QueryAnalyticsRecord]:
        """
        List records by search volume.

        Args:
            min_searches: Minimum total searches
            since: Only records searched at or after this instant
            min_query_length: Minimum length of the raw query

        Returns:
            Records ordered by total searches descending
        """
        if not self._initialized:
            await self.initialize()

        sql = f"SELECT {_COLUMNS} FROM query_analytics WHERE total_searches >= ? AND LENGTH(query) >= ?"
        params: list = [min_searches, min_query_length]
        if since is not None:
            sql += " AND last_searched_at >= ?"
            params.append(_epoch(since))
        sql += " ORDER BY total_searches DESC, normalized_query ASC"

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise AnalyticsError(f"Failed to list analytics records: {e}") from e

        return [_row_to_record(row) for row in rows]

    async def mark_popular(self, min_searches: int, since: datetime) -> int:
        """Flag queries searched at least ``min_searches`` times since ``since``."""
        return await self._set_flag(
            "is_popular",
            "total_searches >= ? AND last_searched_at >= ?",
            (min_searches, _epoch(since)),
        )

    async def mark_needs_attention(self, max_hit_rate: float, min_searches: int, since: datetime) -> int:
        """Flag recently searched queries whose hit rate is below ``max_hit_rate``."""
        return await self._set_flag(
            "needs_attention",
            "hit_rate < ? AND total_searches >= ? AND last_searched_at >= ?",
            (max_hit_rate, min_searches, _epoch(since)),
        )

    async def _set_flag(self, column: str, where: str, params: tuple) -> int:
        if not self._initialized:
            await self.initialize()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(f"UPDATE query_analytics SET {column} = 1 WHERE {where}", params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise AnalyticsError(f"Failed to update {column} flags: {e}") from e

    async def close(self):
        """Close database connections."""
        # aiosqlite doesn't maintain persistent connections, so nothing to close
        self._initialized = False
