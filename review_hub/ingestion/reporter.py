"""
Ingestion reporter: console and log summaries of ingests, sweeps and the
current state of the review store.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from review_hub.database.db_manager import DatabaseManager
from review_hub.ingestion.pipeline import IngestResult
from review_hub.ingestion.scheduler import ScheduleRunResult
from review_hub.utils.logger import setup_logger

WIDTH = 66


def fmt_duration(seconds: float) -> str:
    """'Xm Ys' from a minute up, else seconds with one decimal."""
    if seconds >= 60:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    return f"{seconds:.1f}s"


class IngestionReporter:
    """Renders run results as fixed-width text blocks."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or setup_logger(
            "ingestion.reporter", log_file="ingestion.log"
        )

    def report_ingest(self, result: IngestResult) -> str:
        """Per-region fetch counts for one app, with store subtotals."""
        title = f"INGEST {result.app_id}"
        if result.full_scrape:
            title += "  (full scrape)"

        lines = self._header(title)
        lines.append(f"  Duration : {fmt_duration(result.duration_seconds)}")
        lines.append("")

        by_store: Dict[str, List] = defaultdict(list)
        for fetch in result.fetches:
            by_store[fetch.store].append(fetch)

        for store, fetches in by_store.items():
            subtotal = sum(f.reviews_fetched for f in fetches)
            lines.append(f"  {store}  ({subtotal:,} fetched)")
            for fetch in fetches:
                marker = "" if fetch.reviews_fetched else "  (none)"
                lines.append(f"    {fetch.region:<10} {fetch.reviews_fetched:>8}{marker}")

        skipped_pct = (
            result.reviews_skipped / result.reviews_fetched * 100
            if result.reviews_fetched else 0.0
        )
        lines += [
            "",
            f"  Fetched            : {result.reviews_fetched:,}",
            f"  Appended           : {result.reviews_added:,}",
            f"  Already stored     : {result.reviews_skipped:,} ({skipped_pct:.1f}%)",
        ]
        return self._emit(lines)

    def report_sweep(self, result: ScheduleRunResult) -> str:
        """Counters of one scheduler sweep, one line per failed task."""
        lines = self._header(
            f"SCHEDULED SWEEP  |  {result.started_at:%Y-%m-%d %H:%M:%S}"
        )
        lines += [
            f"  Duration       : {fmt_duration(result.duration_seconds)}",
            f"  Apps checked   : {result.apps_checked}",
            f"  Runs triggered : {result.runs_triggered}",
            f"  New reviews    : {result.reviews_added:,}",
            f"  Failed tasks   : {result.tasks_failed}",
        ]
        lines += [f"    ERR {failure}" for failure in result.failures]
        return self._emit(lines)

    async def report_db_growth(self, db: DatabaseManager) -> str:
        """Totals across all stored apps."""
        stats = await db.get_stats()
        lines = self._header("STORE SNAPSHOT")
        lines += [
            f"  Apps           : {stats.total_apps}",
            f"  Reviews        : {stats.total_reviews:,}",
            f"  Avg rating     : {stats.average_rating:.2f}",
            f"  This week      : {stats.reviews_trend} ({stats.rating_trend})",
        ]
        return self._emit(lines)

    @staticmethod
    def _header(title: str) -> List[str]:
        return ["", "=" * WIDTH, f"  {title}", "=" * WIDTH]

    def _emit(self, lines: List[str]) -> str:
        output = "\n".join(lines + ["=" * WIDTH, ""])
        print(output)
        self.logger.info(output)
        return output
