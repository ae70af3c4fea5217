#!/usr/bin/env python3
"""Refresh the popular / needs-attention flags on query analytics records.

Meant to run periodically (e.g. daily from cron). Flags are only ever set,
so re-running is harmless.

Usage:
    EVENT_SEARCH_ANALYTICS_DB_PATH=/var/lib/events/query_analytics.db \\
        python scripts/update_query_flags.py [--db-path PATH] [--window-days N]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from event_search_service.config import AnalyticsSettings  # noqa: E402
from event_search_service.errors import AnalyticsError  # noqa: E402
from event_search_service.services.query_analytics_service import QueryAnalyticsService  # noqa: E402
from event_search_service.storage.query_analytics_db import QueryAnalyticsDB  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def run(config: AnalyticsSettings) -> int:
    store = QueryAnalyticsDB(config.db_path)
    try:
        await store.initialize()
        service = QueryAnalyticsService(store=store, config=config)
        result = await service.update_query_flags()
    except AnalyticsError as e:
        logger.error(f"Flag update failed: {e}")
        return 1
    finally:
        await store.close()

    logger.info(
        f"Done: {result.popular_queries_updated} popular, "
        f"{result.attention_queries_updated} need attention"
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Update query analytics flags")
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Analytics database path (overrides EVENT_SEARCH_ANALYTICS_DB_PATH)",
    )
    parser.add_argument(
        "--window-days",
        type=int,
        default=None,
        help="Only flag queries searched within this many days (default: 30)",
    )
    args = parser.parse_args()

    config = AnalyticsSettings()
    if args.db_path:
        config.db_path = args.db_path
    if args.window_days:
        config.flag_window_days = args.window_days

    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
