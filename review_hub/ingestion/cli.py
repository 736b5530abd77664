"""
Ingestion CLI entry point.

Usage:
    # Run one scheduled sweep immediately and exit
    python -m review_hub.ingestion.cli --once

    # Start the scheduler (sweep every 15 minutes by default)
    python -m review_hub.ingestion.cli

    # Custom sweep interval
    python -m review_hub.ingestion.cli --interval 3600

    # Ingest one app now, ignoring its frequency
    python -m review_hub.ingestion.cli --app 1700000000000

    # Full scrape of one app (up to 3000 App Store / 6000 Google Play reviews)
    python -m review_hub.ingestion.cli --app 1700000000000 --full

    # Show current store stats
    python -m review_hub.ingestion.cli --stats
"""

import argparse
import asyncio
import sys

from review_hub.config.settings import SCHEDULER_INTERVAL_SECONDS
from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError
from review_hub.ingestion.pipeline import IngestionPipeline
from review_hub.ingestion.reporter import IngestionReporter
from review_hub.ingestion.scheduler import IngestionScheduler


async def run(args: argparse.Namespace) -> int:
    async with DatabaseManager() as db:
        reporter = IngestionReporter()

        if args.stats:
            await reporter.report_db_growth(db)
            return 0

        if args.app:
            pipeline = IngestionPipeline(db)
            try:
                result = await pipeline.ingest(args.app, full_scrape=args.full)
            except AppNotFoundError as e:
                print(f"Error: {e}")
                return 1
            reporter.report_ingest(result)
            return 0

        scheduler = IngestionScheduler(
            db,
            interval_seconds=args.interval,
            one_shot=args.once,
        )
        if args.once:
            result = await scheduler.run_due_tasks()
            reporter.report_sweep(result)
            return 1 if result.tasks_failed else 0

        await scheduler.start()
        return 0


def main():
    parser = argparse.ArgumentParser(
        description="Scheduled App Store / Google Play review ingestion"
    )
    parser.add_argument(
        "--once", action="store_true",
        help="Run a single scheduled sweep and exit",
    )
    parser.add_argument(
        "--interval", type=int, default=SCHEDULER_INTERVAL_SECONDS,
        help=f"Seconds between sweeps (default: {SCHEDULER_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "--app", type=str, default=None,
        help="Ingest this app id now and exit",
    )
    parser.add_argument(
        "--full", action="store_true",
        help="With --app: run a full scrape instead of the latest 100 per region",
    )
    parser.add_argument(
        "--stats", action="store_true",
        help="Show current store stats and exit",
    )

    args = parser.parse_args()
    if args.full and not args.app:
        parser.error("--full requires --app")

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
