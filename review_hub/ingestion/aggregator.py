"""
Aggregate recomputation for an app.

Every derived value (rating, review count, monthly rating history per
store, region distribution) is rebuilt from the full review list on each
run and written as a replacement, never patched incrementally.
"""

import logging
from collections import defaultdict
from datetime import timezone
from typing import Dict, Iterable, List, Optional, Tuple

from review_hub.config.settings import APP_STORE, PLAY_STORE
from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError
from review_hub.models.app import App
from review_hub.models.review import (
    RatingHistoryEntry,
    RegionData,
    Review,
    now_iso,
    parse_iso,
)
from review_hub.utils.logger import get_logger


def average_rating(reviews: Iterable[Review]) -> float:
    total = 0
    count = 0
    for review in reviews:
        total += review.rating
        count += 1
    return total / count if count else 0.0


def month_bucket(date: str) -> Optional[Tuple[int, int]]:
    """(year, month) of an ISO date in UTC, or None when unparseable."""
    try:
        parsed = parse_iso(date)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.year, parsed.month


def build_rating_history(reviews: Iterable[Review]) -> List[RatingHistoryEntry]:
    """
    Mean rating per calendar month and store, oldest month first.

    A store without reviews in a month gets 0 for that month. Reviews with
    an unparseable date are left out of the history.
    """
    sums: Dict[Tuple[int, int], Dict[str, List[int]]] = defaultdict(
        lambda: {APP_STORE: [], PLAY_STORE: []}
    )
    for review in reviews:
        bucket = month_bucket(review.date)
        if bucket is None:
            continue
        store = APP_STORE if review.store == APP_STORE else PLAY_STORE
        sums[bucket][store].append(review.rating)

    history = []
    for (year, month) in sorted(sums):
        ratings = sums[(year, month)]
        history.append(RatingHistoryEntry(
            date=f"{year:04d}-{month:02d}-01T00:00:00.000Z",
            app_store=_mean(ratings[APP_STORE]),
            play_store=_mean(ratings[PLAY_STORE]),
        ))
    return history


def build_region_distribution(reviews: Iterable[Review]) -> List[RegionData]:
    """Review count per region, largest first; ties keep first-seen order."""
    counts: Dict[str, int] = {}
    for review in reviews:
        counts[review.region] = counts.get(review.region, 0) + 1

    regions = [RegionData(name=name, value=value) for name, value in counts.items()]
    regions.sort(key=lambda region: region.value, reverse=True)
    return regions


def _mean(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


class Aggregator:
    """Rebuilds and stores an app's derived data from its reviews."""

    def __init__(self, db: DatabaseManager, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or get_logger("aggregator")

    async def recompute(self, app_id: str) -> App:
        """
        Recompute rating, review count, rating history and region
        distribution for an app and store them.

        Raises:
            AppNotFoundError: if the app does not exist

        Returns:
            The updated App record
        """
        app = await self.db.get_app_by_id(app_id)
        if app is None:
            raise AppNotFoundError(app_id)

        # Single paged pass over the list
        reviews = [review async for review in self.db.iter_reviews(app_id)]

        updated = app.with_config(
            rating=average_rating(reviews),
            review_count=len(reviews),
            last_updated=now_iso(),
        )
        history = build_rating_history(reviews)
        regions = build_region_distribution(reviews)

        await self.db.save_aggregates(updated, history, regions)

        self.logger.info(
            f"Recomputed app {app_id}: rating={updated.rating:.2f} "
            f"reviews={updated.review_count} months={len(history)} "
            f"regions={len(regions)}"
        )
        return updated
