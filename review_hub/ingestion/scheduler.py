"""
Ingestion scheduler: decides which apps are due and runs the pipeline.

run_due_tasks() performs one sweep over all apps. start() repeats that
sweep at a configurable interval with graceful signal handling.

Both stores share the app's single lastUpdated timestamp as their "last
run" marker, so a run triggered for one store also resets the other
store's clock.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from review_hub.config.settings import (
    APP_STORE,
    FREQUENCY_HOURS,
    PLAY_STORE,
    SCHEDULER_INTERVAL_SECONDS,
)
from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import SchedulerTaskError
from review_hub.ingestion.pipeline import IngestionPipeline
from review_hub.models.review import parse_iso
from review_hub.utils.logger import setup_logger


def is_due(
    frequency: Optional[str],
    last_run: Optional[str],
    now: Optional[datetime] = None
) -> bool:
    """
    Whether a store configured with this frequency should run again.

    Always due without a recorded last run (or with an unreadable one);
    never due for an unknown frequency.
    """
    if not last_run:
        return True

    threshold = FREQUENCY_HOURS.get(frequency or "")
    if threshold is None:
        return False

    try:
        last = parse_iso(last_run)
    except ValueError:
        return True
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return now - last >= timedelta(hours=threshold)


@dataclass
class ScheduleRunResult:
    """Counters for one sweep over all apps."""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    apps_checked: int = 0
    runs_triggered: int = 0
    reviews_added: int = 0
    failures: List[SchedulerTaskError] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def tasks_failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "appsChecked": self.apps_checked,
            "runsTriggered": self.runs_triggered,
            "reviewsAdded": self.reviews_added,
            "tasksFailed": self.tasks_failed,
        }


class IngestionScheduler:
    """
    Frequency-based scheduler for the ingestion pipeline.

    Evaluates each app's stores independently against their configured
    frequency. Supports one-shot mode and handles SIGINT/SIGTERM for
    graceful shutdown of the daemon loop.
    """

    def __init__(
        self,
        db: DatabaseManager,
        pipeline: Optional[IngestionPipeline] = None,
        interval_seconds: int = SCHEDULER_INTERVAL_SECONDS,
        one_shot: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.logger = logger or setup_logger(
            "ingestion.scheduler", log_file="ingestion.log"
        )
        self.pipeline = pipeline or IngestionPipeline(db, logger=self.logger)
        self.interval_seconds = interval_seconds
        self.one_shot = one_shot
        self._stop_event = asyncio.Event()
        self._run_count = 0

    async def run_due_tasks(self, now: Optional[datetime] = None) -> ScheduleRunResult:
        """
        Run a routine ingest for every app store that is due.

        A failure while handling one app store is logged and recorded; the
        sweep moves on to the next store and app.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        result = ScheduleRunResult()

        apps = await self.db.get_all_apps()
        for app in apps:
            result.apps_checked += 1
            for store in (APP_STORE, PLAY_STORE):
                frequency = app.frequency(store)
                if not (app.external_id(store) and frequency):
                    continue

                try:
                    # Re-read so a run for the other store moves the clock
                    current = await self.db.get_app_by_id(app.id) or app
                    if not is_due(frequency, current.last_updated, now):
                        continue

                    self.logger.info(
                        f"Running scheduled {store} review scraping for {app.name}"
                    )
                    ingest = await self.pipeline.ingest(app.id)
                    result.runs_triggered += 1
                    result.reviews_added += ingest.reviews_added

                except Exception as e:
                    failure = SchedulerTaskError(app.id, e, store=store)
                    result.failures.append(failure)
                    self.logger.error(str(failure), exc_info=True)

        result.duration_seconds = loop.time() - started
        self.logger.info(
            f"Scheduled sweep done: {result.apps_checked} apps checked, "
            f"{result.runs_triggered} runs, {result.reviews_added} new reviews, "
            f"{result.tasks_failed} failed"
        )
        return result

    async def start(self) -> None:
        """Start the scheduler loop. Returns when stopped or one-shot completes."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_signal)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform / outside the main thread
                pass

        self.logger.info(
            f"Scheduler starting | interval={self.interval_seconds}s | "
            f"one_shot={self.one_shot}"
        )

        while not self._stop_event.is_set():
            self._run_count += 1
            self.logger.info(f"--- Scheduled sweep #{self._run_count} ---")

            try:
                await self.run_due_tasks()
            except Exception as e:
                self.logger.error(
                    f"Sweep #{self._run_count} failed with exception: {e}",
                    exc_info=True,
                )

            if self.one_shot:
                self.logger.info("One-shot mode: exiting after first sweep.")
                break

            self.logger.info(
                f"Next sweep in {self.interval_seconds}s. Press Ctrl+C to stop."
            )
            await self._interruptible_sleep(self.interval_seconds)

        self.logger.info("Scheduler stopped.")

    def stop(self) -> None:
        """Signal the scheduler to stop after the current sweep completes."""
        self._stop_event.set()

    async def _interruptible_sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _handle_signal(self) -> None:
        self.logger.info(
            "Interrupt received. Will stop after current operation completes."
        )
        self._stop_event.set()
