"""
Tests for the Google Play source with the scraping library stubbed out.
"""

from datetime import datetime
from types import SimpleNamespace

import pytest
from google_play_scraper.exceptions import NotFoundError

from review_hub.scraper import google_play_scraper as gp_module
from review_hub.scraper.google_play_scraper import GooglePlayReviewScraper
from review_hub.scraper.rate_limiter import RateLimiter


def raw_review(n, **overrides):
    data = {
        "reviewId": f"gp{n}",
        "userName": f"user{n}",
        "score": 4,
        "content": f"content {n}",
        "at": datetime(2024, 2, 10, 8, 30),
        "reviewCreatedVersion": "3.0.1",
        "appVersion": "3.0.1",
    }
    data.update(overrides)
    return data


class FakeReviewsApi:
    """Serves `total` reviews in pages, handing out token objects like the library."""

    def __init__(self, total):
        self.total = total
        self.calls = []

    def __call__(self, app_id, lang, country, sort, count, continuation_token):
        self.calls.append(dict(
            app_id=app_id, lang=lang, country=country, count=count,
            token=continuation_token,
        ))
        offset = continuation_token.token if continuation_token else 0
        end = min(offset + count, self.total)
        page = [raw_review(i) for i in range(offset, end)]
        return page, SimpleNamespace(token=end if end < self.total else None)


@pytest.fixture
def scraper():
    return GooglePlayReviewScraper(rate_limiter=RateLimiter(default_delay=0), max_retries=0)


async def test_maps_library_records(monkeypatch, scraper):
    api = FakeReviewsApi(total=2)
    monkeypatch.setattr(gp_module, "reviews", api)

    reviews = await scraper.fetch_reviews(
        "com.example", "pt-BR", app_id="app-1", app_name="Example"
    )

    assert api.calls[0]["lang"] == "pt"
    assert api.calls[0]["country"] == "br"
    assert [r.id for r in reviews] == ["ps-gp0", "ps-gp1"]
    first = reviews[0]
    assert first.user_name == "user0"
    assert first.rating == 4
    assert first.store == "play-store"
    assert first.region == "pt-BR"
    assert first.version == "3.0.1"
    assert first.date == "2024-02-10T08:30:00"


async def test_version_falls_back_to_unknown(monkeypatch, scraper):
    def api(*args, **kwargs):
        return [raw_review(1, reviewCreatedVersion=None, appVersion=None, userName=None)], None

    monkeypatch.setattr(gp_module, "reviews", api)

    [review] = await scraper.fetch_reviews("com.example", "US")

    assert review.version == "Unknown"
    assert review.user_name == "Anonymous"


async def test_follows_continuation_tokens_to_full_cap(monkeypatch, scraper):
    api = FakeReviewsApi(total=10_000)
    monkeypatch.setattr(gp_module, "reviews", api)

    reviews = await scraper.fetch_reviews("com.example", "US", full_scrape=True)

    assert len(reviews) == 6000
    assert len(api.calls) == 30
    assert api.calls[0]["token"] is None
    assert api.calls[1]["token"].token == 200


async def test_stops_when_token_runs_out(monkeypatch, scraper):
    api = FakeReviewsApi(total=400)
    monkeypatch.setattr(gp_module, "reviews", api)

    reviews = await scraper.fetch_reviews("com.example", "US", full_scrape=True)

    assert len(reviews) == 400
    assert len(api.calls) == 2


async def test_unknown_app_returns_empty(monkeypatch, scraper):
    def api(*args, **kwargs):
        raise NotFoundError("App not found(404).")

    monkeypatch.setattr(gp_module, "reviews", api)

    assert await scraper.fetch_reviews("com.missing", "US") == []
