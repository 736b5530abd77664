"""
Shared fixtures and test doubles.
"""

import os

os.environ.setdefault("LOG_TO_FILE", "0")

import pytest

from review_hub.config.settings import APP_STORE
from review_hub.database.db_manager import DatabaseManager
from review_hub.models.app import App
from review_hub.models.review import Review
from review_hub.scraper.base import BaseReviewSource
from review_hub.scraper.rate_limiter import RateLimiter
from review_hub.storage.backends import MemoryBackend


def make_review(
    review_id: str,
    rating: int = 5,
    user_name: str = "",
    text: str = "",
    date: str = "2024-01-15T12:00:00Z",
    store: str = APP_STORE,
    region: str = "US",
    version: str = "1.0",
    app_id: str = "app-1",
) -> Review:
    return Review(
        id=review_id,
        app_id=app_id,
        user_name=user_name or f"user-{review_id}",
        rating=rating,
        text=text or f"review text {review_id}",
        date=date,
        store=store,
        region=region,
        version=version,
    )


class FakeSource(BaseReviewSource):
    """
    In-memory review source.

    records maps a lower-case country code to raw records served in
    PAGE_SIZE slices; countries in fail_countries raise on every page.
    With endless=True every page is full and there is always a next one.
    """

    def __init__(
        self,
        store: str = APP_STORE,
        page_size: int = 50,
        records=None,
        fail_countries=(),
        endless: bool = False,
        **kwargs
    ):
        self.STORE = store
        self.PAGE_SIZE = page_size
        kwargs.setdefault("rate_limiter", RateLimiter(default_delay=0))
        kwargs.setdefault("max_retries", 0)
        super().__init__(**kwargs)
        self.records = records or {}
        self.fail_countries = set(fail_countries)
        self.endless = endless
        self.requests = []

    async def _fetch_page(self, external_app_id, lang, country, cursor, count):
        self.requests.append((external_app_id, lang, country, cursor, count))
        if country in self.fail_countries:
            raise RuntimeError(f"{country} is unreachable")

        offset = cursor or 0
        if self.endless:
            page = [{"id": f"{country}-{offset + i}"} for i in range(count)]
            return page, offset + count

        available = self.records.get(country, [])
        page = available[offset:offset + count]
        next_offset = offset + count
        return page, next_offset if next_offset < len(available) else None

    def _to_review(self, raw, app_id, region, app_name):
        review_id = raw["id"]
        return Review(
            id=f"{self.STORE}-{review_id}",
            app_id=app_id,
            app_name=app_name,
            user_name=raw.get("user", f"user-{review_id}"),
            rating=raw.get("rating", 4),
            text=raw.get("text", f"text {review_id}"),
            date=raw.get("date", "2024-01-15T12:00:00Z"),
            store=self.STORE,
            region=region,
            version=raw.get("version", "1.0"),
        )


def raw_records(prefix: str, n: int, **fields):
    return [dict({"id": f"{prefix}{i}"}, **fields) for i in range(n)]


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def db(backend):
    return DatabaseManager(backend=backend)


@pytest.fixture
def sample_app():
    return App(
        id="app-1",
        name="Sample App",
        app_store_id="123456",
        play_store_id="com.example.sample",
        app_store_regions=["US"],
        play_store_regions=["US"],
        app_store_frequency="daily",
        play_store_frequency="daily",
    )


@pytest.fixture
def app_store_only():
    return App(
        id="app-2",
        name="Store Only",
        app_store_id="654321",
        app_store_regions=["US", "GB"],
        app_store_frequency="daily",
    )

