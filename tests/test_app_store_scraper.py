"""
Tests for the App Store feed source over a mocked HTTP transport.
"""

import re

import httpx

from review_hub.scraper.app_store_scraper import AppStoreReviewScraper
from review_hub.scraper.rate_limiter import RateLimiter


def feed_entry(review_id, rating="4", author="Alice", text="Great", version="2.1"):
    return {
        "id": {"label": review_id},
        "author": {"name": {"label": author}},
        "im:rating": {"label": rating},
        "im:version": {"label": version},
        "content": {"label": text},
        "updated": {"label": "2024-01-05T10:00:00-07:00"},
    }


APP_METADATA_ENTRY = {"im:name": {"label": "Some App"}, "id": {"label": "meta"}}


def make_scraper(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    scraper = AppStoreReviewScraper(
        rate_limiter=RateLimiter(default_delay=0),
        client=client,
        max_retries=0,
        **kwargs
    )
    return scraper, client


def page_number(request: httpx.Request) -> int:
    return int(re.search(r"page=(\d+)", str(request.url)).group(1))


async def test_maps_feed_entries():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, json={"feed": {"entry": [
            APP_METADATA_ENTRY,
            feed_entry("111", rating="5", author="Bob", text='Say "hi"'),
            feed_entry("112"),
        ]}})

    scraper, client = make_scraper(handler)
    async with client:
        reviews = await scraper.fetch_reviews(
            "987", "en-GB", app_id="app-1", app_name="My App"
        )

    assert requested == [
        "https://itunes.apple.com/gb/rss/customerreviews/page=1/id=987/sortby=mostrecent/json"
    ]
    assert [r.id for r in reviews] == ["as-111", "as-112"]
    first = reviews[0]
    assert first.user_name == "Bob"
    assert first.rating == 5
    assert first.text == 'Say "hi"'
    assert first.version == "2.1"
    assert first.store == "app-store"
    assert first.region == "en-GB"
    assert first.app_name == "My App"
    assert first.date == "2024-01-05T10:00:00-07:00"


async def test_missing_fields_get_defaults():
    def handler(request):
        return httpx.Response(200, json={"feed": {"entry": {
            "id": {"label": "5"},
            "author": {},
        }}})

    scraper, client = make_scraper(handler)
    async with client:
        reviews = await scraper.fetch_reviews("987", "US")

    assert len(reviews) == 1
    review = reviews[0]
    assert review.user_name == "Anonymous"
    assert review.rating == 0
    assert review.text == ""
    assert review.version == "Unknown"
    assert review.date


async def test_follows_pages_until_max_pages():
    def handler(request):
        page = page_number(request)
        return httpx.Response(200, json={"feed": {"entry": [
            feed_entry(f"{page}-{i}") for i in range(50)
        ]}})

    scraper, client = make_scraper(handler, max_pages=3)
    async with client:
        reviews = await scraper.fetch_reviews("987", "US", full_scrape=True)

    assert len(reviews) == 150
    assert reviews[-1].id == "as-3-49"


async def test_routine_scrape_reads_two_pages():
    pages = []

    def handler(request):
        pages.append(page_number(request))
        return httpx.Response(200, json={"feed": {"entry": [
            feed_entry(f"{pages[-1]}-{i}") for i in range(50)
        ]}})

    scraper, client = make_scraper(handler)
    async with client:
        reviews = await scraper.fetch_reviews("987", "US")

    assert len(reviews) == 100
    assert pages == [1, 2]


async def test_empty_feed_returns_nothing():
    def handler(request):
        return httpx.Response(200, json={"feed": {}})

    scraper, client = make_scraper(handler)
    async with client:
        assert await scraper.fetch_reviews("987", "US") == []


async def test_not_found_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    scraper, client = make_scraper(handler)
    scraper.max_retries = 3
    async with client:
        assert await scraper.fetch_reviews("987", "US") == []

    assert len(calls) == 1


async def test_server_error_returns_empty():
    def handler(request):
        return httpx.Response(503)

    scraper, client = make_scraper(handler)
    async with client:
        assert await scraper.fetch_reviews("987", "US") == []
