#!/usr/bin/env python3
"""Print near-duplicate query clusters and the curator insights summary.

Loads the embedding model configured for the service, embeds every query with
enough search volume and groups them by similarity. Clusters marked
"ATTENTION" contain at least one query with a low hit rate.

Usage:
    python scripts/report_query_clusters.py [--threshold 0.8] [--days 30] [--json]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from event_search_service.config import Settings  # noqa: E402
from event_search_service.embeddings.sentence_transformer import SentenceTransformerProvider  # noqa: E402
from event_search_service.services.query_analytics_service import QueryAnalyticsService  # noqa: E402
from event_search_service.storage.query_analytics_db import QueryAnalyticsDB  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def report(config: Settings, threshold: float, days: int, limit: int, as_json: bool) -> None:
    store = QueryAnalyticsDB(config.analytics.db_path)
    provider = SentenceTransformerProvider(
        model_name=config.embedding.model_name,
        device=config.embedding.device,
        retry_attempts=config.embedding.retry_attempts,
    )
    service = QueryAnalyticsService(store=store, embedding_provider=provider, config=config.analytics)

    try:
        await store.initialize()
        insights = await service.get_query_insights(days=days, limit=limit, similarity_threshold=threshold)
    finally:
        await store.close()

    if as_json:
        print(json.dumps(insights.model_dump(mode="json"), indent=2))
        return

    s = insights.summary
    print(f"Queries: {s.total_queries}  Searches: {s.total_searches}  Avg hit rate: {s.average_hit_rate:.1f}%")
    print(f"Zero-hit queries: {s.zero_hit_queries}  Low-hit queries: {s.low_hit_queries}")
    print()

    if not insights.query_clusters:
        print("No clusters found.")
        return

    for cluster in insights.query_clusters:
        flag = "  ATTENTION" if cluster.needs_attention else ""
        print(
            f"[{cluster.total_searches} searches, {cluster.average_hit_rate:.1f}% avg hit rate]{flag} "
            f"{cluster.representative_query}"
        )
        for member in cluster.similar_queries[1:]:
            print(f"    {member.similarity:.3f}  {member.query} ({member.total_searches} searches, {member.hit_rate:.0f}%)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Report query clusters and insights")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Cosine similarity threshold for clustering (default: 0.8)",
    )
    parser.add_argument("--days", type=int, default=30, help="Insights window in days (default: 30)")
    parser.add_argument("--limit", type=int, default=10, help="Entries per insights list (default: 10)")
    parser.add_argument("--db-path", type=str, default=None, help="Analytics database path")
    parser.add_argument("--json", action="store_true", help="Print the full insights report as JSON")
    args = parser.parse_args()

    config = Settings()
    if args.db_path:
        config.analytics.db_path = args.db_path

    asyncio.run(report(config, args.threshold, args.days, args.limit, args.json))


if __name__ == "__main__":
    main()
