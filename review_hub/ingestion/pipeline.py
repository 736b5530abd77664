"""
Ingestion pipeline: scrapes store reviews for an app directly into the store.

Bridges the review sources and DatabaseManager: fetch every configured
(store, region) concurrently, deduplicate against what is already stored,
append the new reviews and recompute the app's aggregates.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from review_hub.config.settings import APP_STORE, PLAY_STORE
from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError
from review_hub.ingestion.aggregator import Aggregator
from review_hub.ingestion.dedup import ReviewDeduplicator
from review_hub.models.app import App
from review_hub.models.review import Review
from review_hub.scraper.app_store_scraper import AppStoreReviewScraper
from review_hub.scraper.base import BaseReviewSource
from review_hub.scraper.google_play_scraper import GooglePlayReviewScraper
from review_hub.utils.logger import setup_logger


@dataclass
class FetchResult:
    """Outcome of fetching one (store, region) pair."""
    store: str
    region: str
    reviews_fetched: int = 0


@dataclass
class IngestResult:
    """Result of ingesting reviews for a single app."""
    app_id: str
    full_scrape: bool = False
    reviews_fetched: int = 0
    reviews_added: int = 0
    reviews_skipped: int = 0
    fetches: List[FetchResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "appId": self.app_id,
            "reviewsAdded": self.reviews_added,
            "reviewsFetched": self.reviews_fetched,
            "reviewsSkipped": self.reviews_skipped,
            "fullScrape": self.full_scrape,
        }


def default_sources(logger: Optional[logging.Logger] = None) -> Dict[str, BaseReviewSource]:
    """One source per store, each with its own rate limiter."""
    return {
        APP_STORE: AppStoreReviewScraper(logger=logger),
        PLAY_STORE: GooglePlayReviewScraper(logger=logger),
    }


class IngestionPipeline:
    """
    Core ingestion pipeline: scrape → deduplicate → append → recompute.

    The dedup/append/recompute step holds a per-app lock, so two runs for
    the same app never interleave while runs for different apps proceed
    independently.
    """

    def __init__(
        self,
        db: DatabaseManager,
        sources: Optional[Dict[str, BaseReviewSource]] = None,
        aggregator: Optional[Aggregator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.logger = logger or setup_logger(
            "ingestion", log_file="ingestion.log"
        )
        self.sources = sources if sources is not None else default_sources(self.logger)
        self.aggregator = aggregator or Aggregator(db, self.logger)
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, app_id: str) -> asyncio.Lock:
        lock = self._locks.get(app_id)
        if lock is None:
            lock = self._locks[app_id] = asyncio.Lock()
        return lock

    def release_lock(self, app_id: str) -> None:
        """Forget the lock of a deleted app; holders keep their reference."""
        self._locks.pop(app_id, None)

    async def ingest(self, app_id: str, full_scrape: bool = False) -> IngestResult:
        """
        Fetch, deduplicate and store new reviews for one app.

        Raises:
            AppNotFoundError: if no app has this id

        Returns:
            IngestResult; reviews_added is 0 when nothing new was found
        """
        started = time.time()
        app = await self.db.get_app_by_id(app_id)
        if app is None:
            raise AppNotFoundError(app_id)

        result = IngestResult(app_id=app_id, full_scrape=full_scrape)
        candidates, result.fetches = await self.fetch_candidates(app, full_scrape)
        result.reviews_fetched = len(candidates)

        async with self.lock_for(app_id):
            # The app may have been deleted while fetches were in flight
            if await self.db.get_app_by_id(app_id) is None:
                raise AppNotFoundError(app_id)

            dedup = ReviewDeduplicator(
                [review async for review in self.db.iter_reviews(app_id)]
            )
            new_reviews = dedup.filter_new(candidates)
            result.reviews_skipped = len(candidates) - len(new_reviews)

            if new_reviews:
                result.reviews_added = await self.db.append_reviews(app_id, new_reviews)

            await self.aggregator.recompute(app_id)

        result.duration_seconds = time.time() - started
        self.logger.info(
            f"  {app.name} ({app_id}) "
            f"fetched={result.reviews_fetched:<5} "
            f"new={result.reviews_added:<5} "
            f"skipped={result.reviews_skipped:<5} "
            f"{result.duration_seconds:.1f}s"
        )
        return result

    async def fetch_candidates(
        self,
        app: App,
        full_scrape: bool = False
    ) -> Tuple[List[Review], List[FetchResult]]:
        """
        Fetch every enabled (store, region) pair of an app concurrently.

        A failing pair contributes no reviews and does not affect the
        others.
        """
        jobs = []
        for store in app.enabled_stores():
            source = self.sources.get(store)
            if source is None:
                self.logger.warning(f"No source configured for {store}, skipping")
                continue
            for region in app.regions(store):
                jobs.append((store, region, source.fetch_reviews(
                    app.external_id(store),
                    region,
                    full_scrape=full_scrape,
                    app_id=app.id,
                    app_name=app.name,
                )))

        outcomes = await asyncio.gather(
            *(job for _, _, job in jobs), return_exceptions=True
        )

        candidates: List[Review] = []
        fetches: List[FetchResult] = []
        for (store, region, _), outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(f"  {store}/{region}: fetch failed - {outcome}")
                fetches.append(FetchResult(store, region))
                continue
            candidates.extend(outcome)
            fetches.append(FetchResult(store, region, len(outcome)))

        return candidates, fetches

    async def scrape_config(self, app: App, full_scrape: bool = True) -> List[Review]:
        """
        Scrape an app configuration that is not stored. Nothing is persisted.

        Returns:
            Every fetched review, in store/region order
        """
        reviews, _ = await self.fetch_candidates(app, full_scrape)
        self.logger.info(f"Ad-hoc scrape of {app.name or 'unsaved app'}: {len(reviews)} reviews")
        return reviews

    async def clear_reviews(self, app_id: str) -> App:
        """
        Remove all stored reviews of an app and reset its aggregates.

        Raises:
            AppNotFoundError: if no app has this id
        """
        if await self.db.get_app_by_id(app_id) is None:
            raise AppNotFoundError(app_id)

        async with self.lock_for(app_id):
            # Deleted while waiting for the lock
            if await self.db.get_app_by_id(app_id) is None:
                raise AppNotFoundError(app_id)
            await self.db.clear_reviews(app_id)
            return await self.aggregator.recompute(app_id)
