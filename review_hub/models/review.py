"""
Data models for app reviews and the aggregates derived from them.

Defines the Review dataclass shared by both review sources, plus the
rating history, region distribution and global stats records served to
the dashboard. Records serialize with the camelCase keys the dashboard
and stored data use.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from review_hub.config.settings import APP_STORE, PLAY_STORE, REVIEW_ID_PREFIXES


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Any) -> str:
    """Render a source-supplied date as ISO-8601, falling back to now."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str) and value.strip():
        return value.strip()
    return now_iso()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting a trailing 'Z'."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _label(entry: Dict[str, Any], *path: str) -> Optional[str]:
    """Walk the nested {"label": ...} objects of an App Store feed entry."""
    node: Any = entry
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if isinstance(node, dict):
        node = node.get("label")
    return node if isinstance(node, str) else None


def _to_rating(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class Review:
    """
    A single user review from either store.

    Attributes:
        id: Source prefix joined to the source-native id ("as-123", "ps-abc")
        app_id: Id of the owning App
        app_name: Display name of the owning App
        user_name: Reviewer's display name
        rating: Star rating (1-5, 0 when the source omitted it)
        text: Review body
        date: ISO timestamp of the review (scrape time when unknown)
        store: "app-store" or "play-store"
        region: Region code the review was fetched for
        version: App version reviewed, "Unknown" when unavailable
    """

    id: str
    app_id: str
    user_name: str
    rating: int
    text: str
    date: str
    store: str
    region: str
    app_name: str = ""
    version: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "appId": self.app_id,
            "appName": self.app_name,
            "userName": self.user_name,
            "rating": self.rating,
            "text": self.text,
            "date": self.date,
            "store": self.store,
            "region": self.region,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Review':
        """
        Create a Review from its stored dictionary form.

        Raises:
            KeyError: if the record has no id
        """
        return cls(
            id=str(data["id"]),
            app_id=str(data.get("appId", "")),
            app_name=data.get("appName") or "",
            user_name=data.get("userName") or "Anonymous",
            rating=_to_rating(data.get("rating")),
            text=data.get("text") or "",
            date=to_iso(data.get("date")),
            store=data.get("store") or "",
            region=data.get("region") or "",
            version=data.get("version") or "Unknown",
        )

    @classmethod
    def from_app_store(
        cls,
        entry: Dict[str, Any],
        app_id: str,
        region: str,
        app_name: str = ""
    ) -> 'Review':
        """
        Create a Review from one entry of Apple's customer reviews feed.

        Args:
            entry: Feed entry with nested {"label": ...} fields
            app_id: Id of the owning App
            region: Region the entry was fetched for
            app_name: Display name of the owning App
        """
        native_id = _label(entry, "id") or ""
        return cls(
            id=f"{REVIEW_ID_PREFIXES[APP_STORE]}-{native_id}",
            app_id=app_id,
            app_name=app_name,
            user_name=_label(entry, "author", "name") or "Anonymous",
            rating=_to_rating(_label(entry, "im:rating")),
            text=_label(entry, "content") or "",
            date=to_iso(_label(entry, "updated")),
            store=APP_STORE,
            region=region,
            version=_label(entry, "im:version") or "Unknown",
        )

    @classmethod
    def from_google_play(
        cls,
        raw_review: Dict[str, Any],
        app_id: str,
        region: str,
        app_name: str = ""
    ) -> 'Review':
        """
        Create a Review from raw google-play-scraper data.

        Args:
            raw_review: Raw review data from google-play-scraper
            app_id: Id of the owning App
            region: Region the review was fetched for
            app_name: Display name of the owning App
        """
        return cls(
            id=f"{REVIEW_ID_PREFIXES[PLAY_STORE]}-{raw_review.get('reviewId') or ''}",
            app_id=app_id,
            app_name=app_name,
            user_name=raw_review.get('userName') or 'Anonymous',
            rating=_to_rating(raw_review.get('score')),
            text=raw_review.get('content') or '',
            date=to_iso(raw_review.get('at')),
            store=PLAY_STORE,
            region=region,
            version=(
                raw_review.get('reviewCreatedVersion')
                or raw_review.get('appVersion')
                or 'Unknown'
            ),
        )

    def to_csv_row(self) -> List[Any]:
        """Values in CSV_HEADERS column order."""
        return [
            self.id,
            self.user_name,
            self.rating,
            self.date,
            self.store,
            self.region,
            self.version,
            self.text,
        ]


@dataclass
class RatingHistoryEntry:
    """Mean rating per store for one calendar month."""

    date: str
    app_store: float = 0.0
    play_store: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "appStore": self.app_store,
            "playStore": self.play_store,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RatingHistoryEntry':
        return cls(
            date=data["date"],
            app_store=float(data.get("appStore", 0)),
            play_store=float(data.get("playStore", 0)),
        )


@dataclass
class RegionData:
    """Number of reviews fetched for one region."""

    name: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RegionData':
        return cls(name=data["name"], value=int(data["value"]))


@dataclass
class Stats:
    """
    Global dashboard rollup.

    The trend strings compare reviews from the last 7 days against the
    overall figures.
    """

    total_apps: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0
    apps_trend: str = "+0 this week"
    reviews_trend: str = "+0 this week"
    rating_trend: str = "+0.0 this week"
    apps_trend_up: bool = True
    reviews_trend_up: bool = True
    rating_trend_up: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalApps": self.total_apps,
            "totalReviews": self.total_reviews,
            "averageRating": self.average_rating,
            "appsTrend": self.apps_trend,
            "reviewsTrend": self.reviews_trend,
            "ratingTrend": self.rating_trend,
            "appsTrendUp": self.apps_trend_up,
            "reviewsTrendUp": self.reviews_trend_up,
            "ratingTrendUp": self.rating_trend_up,
        }
