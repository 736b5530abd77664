"""
Database Manager for app reviews.

Maps apps, reviews and their derived aggregates onto the key layout of the
review store and provides the queries the dashboard and CLIs need.

Key layout:
    apps                          hash of App records by id
    reviews:<appId>               append-only list of Review records
    rating_history:<appId>        scalar list of RatingHistoryEntry
    region_distribution:<appId>   scalar list of RegionData
"""

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from review_hub.config.settings import (
    APPS_KEY,
    APPEND_CHUNK_BYTES,
    LIST_PAGE_SIZE,
    RATING_HISTORY_KEY_PREFIX,
    REGION_DISTRIBUTION_KEY_PREFIX,
    REVIEWS_KEY_PREFIX,
)
from review_hub.models.app import App
from review_hub.models.review import (
    RatingHistoryEntry,
    RegionData,
    Review,
    Stats,
    parse_iso,
)
from review_hub.storage.backends import KVBackend, create_backend
from review_hub.storage.store import Store
from review_hub.utils.logger import get_logger


def reviews_key(app_id: str) -> str:
    return f"{REVIEWS_KEY_PREFIX}:{app_id}"


def rating_history_key(app_id: str) -> str:
    return f"{RATING_HISTORY_KEY_PREFIX}:{app_id}"


def region_distribution_key(app_id: str) -> str:
    return f"{REGION_DISTRIBUTION_KEY_PREFIX}:{app_id}"


def chunk_by_size(records: List[Dict[str, Any]], max_bytes: int) -> List[List[Dict[str, Any]]]:
    """
    Split records into consecutive chunks whose encoded size stays within
    max_bytes. A single record larger than max_bytes gets a chunk of its own.
    """
    chunks: List[List[Dict[str, Any]]] = []
    current: List[Dict[str, Any]] = []
    current_size = 0

    for record in records:
        size = len(Store.encode(record).encode("utf-8"))
        if current and current_size + size > max_bytes:
            chunks.append(current)
            current, current_size = [], 0
        current.append(record)
        current_size += size

    if current:
        chunks.append(current)
    return chunks


def _sort_key(review: Review) -> datetime:
    try:
        parsed = parse_iso(review.date)
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DatabaseManager:
    """
    Manages app, review and aggregate records on top of a Store.

    Handles app CRUD with cascading deletes, chunked review appends, paged
    review reads and the read-side queries.
    """

    def __init__(
        self,
        backend: Optional[KVBackend] = None,
        append_chunk_bytes: int = APPEND_CHUNK_BYTES,
        page_size: int = LIST_PAGE_SIZE
    ):
        """
        Initialize database manager.

        Args:
            backend: Storage backend (default: chosen from environment)
            append_chunk_bytes: Max serialized size of one review push
            page_size: Reviews read per page
        """
        self.logger = get_logger("database")
        self.store = Store(backend or create_backend(logger=self.logger), self.logger)
        self.append_chunk_bytes = append_chunk_bytes
        self.page_size = page_size

    async def close(self):
        await self.store.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    async def get_all_apps(self) -> List[App]:
        apps = []
        for data in await self.store.get_all(APPS_KEY):
            try:
                apps.append(App.from_dict(data))
            except (TypeError, ValueError, AttributeError) as e:
                self.logger.warning(f"Skipping unreadable app record: {e}")
        return apps

    async def get_app_by_id(self, app_id: str) -> Optional[App]:
        data = await self.store.get_by_id(APPS_KEY, app_id)
        if data is None:
            return None
        try:
            return App.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            self.logger.warning(f"Unreadable app record {app_id}: {e}")
            return None

    async def create_app(self, app: App) -> None:
        await self.store.put(APPS_KEY, app.id, app.to_dict())

    async def update_app(self, app: App) -> None:
        await self.store.put(APPS_KEY, app.id, app.to_dict())

    async def delete_app(self, app_id: str) -> None:
        """Delete an app together with its reviews and derived data."""
        await self.store.delete(
            APPS_KEY,
            app_id,
            dependent_keys=[
                reviews_key(app_id),
                rating_history_key(app_id),
                region_distribution_key(app_id),
            ],
        )
        self.logger.info(f"Deleted app {app_id} and its reviews")

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    async def iter_reviews(self, app_id: str, start: int = 0) -> AsyncIterator[Review]:
        """Lazily yield an app's reviews in append order, page by page."""
        key = reviews_key(app_id)
        async for data in self.store.iter_list(key, self.page_size, start):
            try:
                yield Review.from_dict(data)
            except (KeyError, TypeError, AttributeError) as e:
                self.logger.warning(f"Skipping unreadable review in {key}: {e}")

    async def get_reviews(self, app_id: str) -> List[Review]:
        return [review async for review in self.iter_reviews(app_id)]

    async def count_reviews(self, app_id: str) -> int:
        return await self.store.list_length(reviews_key(app_id))

    async def append_reviews(self, app_id: str, reviews: List[Review]) -> int:
        """
        Append reviews to an app's list, one push per size-bounded chunk.

        Returns:
            Number of reviews appended
        """
        records = [review.to_dict() for review in reviews]
        chunks = chunk_by_size(records, self.append_chunk_bytes)
        appended = 0
        for chunk in chunks:
            appended += await self.store.append_to_list(reviews_key(app_id), chunk)

        if appended:
            self.logger.info(
                f"Appended {appended} reviews to app {app_id} "
                f"in {len(chunks)} chunk(s)"
            )
        return appended

    async def clear_reviews(self, app_id: str) -> None:
        await self.store.delete_key(reviews_key(app_id))

    async def get_recent_reviews(self, limit: int = 10) -> List[Review]:
        """Newest reviews across all apps."""
        return await self.get_all_reviews(limit=limit)

    async def get_all_reviews(self, limit: Optional[int] = 100) -> List[Review]:
        """Reviews of every app, newest first, optionally limited."""
        all_reviews: List[Review] = []
        for app in await self.get_all_apps():
            all_reviews.extend(await self.get_reviews(app.id))

        all_reviews.sort(key=_sort_key, reverse=True)
        return all_reviews if limit is None else all_reviews[:limit]

    # -------------------------------------------------------------------------
    # Derived data
    # -------------------------------------------------------------------------

    async def save_aggregates(
        self,
        app: App,
        rating_history: List[RatingHistoryEntry],
        region_distribution: List[RegionData]
    ) -> None:
        """
        Write an app's derived collections, then its record.

        The app record goes last so that a reader observing the new review
        count also observes the matching history and distribution.
        """
        await self.store.set_scalar(
            rating_history_key(app.id),
            [entry.to_dict() for entry in rating_history],
        )
        await self.store.set_scalar(
            region_distribution_key(app.id),
            [region.to_dict() for region in region_distribution],
        )
        await self.update_app(app)

    async def get_rating_history(self, app_id: str) -> List[RatingHistoryEntry]:
        data = await self.store.get_scalar(rating_history_key(app_id), default=[])
        try:
            return [RatingHistoryEntry.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Unreadable rating history for {app_id}: {e}")
            return []

    async def get_region_distribution(self, app_id: str) -> List[RegionData]:
        data = await self.store.get_scalar(region_distribution_key(app_id), default=[])
        try:
            return [RegionData.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Unreadable region distribution for {app_id}: {e}")
            return []

    # -------------------------------------------------------------------------
    # Database info
    # -------------------------------------------------------------------------

    async def get_stats(self) -> Stats:
        """
        Global rollup for the dashboard header.

        Trends compare the last seven days of reviews with the overall
        figures; they are indicative only.
        """
        apps = await self.get_all_apps()
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)

        total_reviews = 0
        total_rating = 0
        recent_count = 0
        recent_rating = 0

        for app in apps:
            async for review in self.iter_reviews(app.id):
                total_reviews += 1
                total_rating += review.rating
                if _sort_key(review) >= week_ago:
                    recent_count += 1
                    recent_rating += review.rating

        average = total_rating / total_reviews if total_reviews else 0.0
        recent_average = recent_rating / recent_count if recent_count else average
        rating_delta = recent_average - average

        return Stats(
            total_apps=len(apps),
            total_reviews=total_reviews,
            average_rating=average,
            apps_trend=f"{len(apps)} tracked",
            reviews_trend=f"+{recent_count} this week",
            rating_trend=f"{rating_delta:+.1f} this week",
            apps_trend_up=True,
            reviews_trend_up=recent_count > 0,
            rating_trend_up=rating_delta >= 0,
        )
