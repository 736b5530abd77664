"""
Apple App Store review source.

Reads Apple's public customer reviews feed (JSON flavour of the RSS feed),
which serves the most recent reviews 50 per page for a bounded number of
pages per country.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from review_hub.config.settings import (
    APP_STORE,
    APP_STORE_MAX_PAGES,
    APP_STORE_PAGE_SIZE,
    APP_STORE_REVIEWS_URL,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from review_hub.exceptions import SourceFetchError
from review_hub.models.review import Review
from review_hub.scraper.base import BaseReviewSource, Page
from review_hub.scraper.rate_limiter import RateLimiter


class AppStoreReviewScraper(BaseReviewSource):
    """
    Scraper for App Store reviews.

    The feed only accepts a country, so the language half of a compound
    region code is ignored.
    """

    STORE = APP_STORE
    PAGE_SIZE = APP_STORE_PAGE_SIZE

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_pages: int = APP_STORE_MAX_PAGES,
        **kwargs: Any
    ):
        """
        Args:
            rate_limiter: Limiter shared by all feed requests
            logger: Logger instance (creates default if None)
            client: HTTP client to reuse; a short-lived one is opened per
                request when omitted
            max_pages: Last page number the feed serves
            **kwargs: Passed to BaseReviewSource (caps, retries)
        """
        super().__init__(rate_limiter=rate_limiter, logger=logger, **kwargs)
        self.client = client
        self.max_pages = max_pages

    async def _get_json(self, url: str) -> Dict[str, Any]:
        if self.client is not None:
            response = await self.client.get(url)
        else:
            async with httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as client:
                response = await client.get(url)

        # Client errors other than throttling will not improve on retry
        if 400 <= response.status_code < 500 and response.status_code != 429:
            raise SourceFetchError(
                self.STORE, f"HTTP {response.status_code} for {url}"
            )
        response.raise_for_status()
        return response.json()

    async def _fetch_page(
        self,
        external_app_id: str,
        lang: str,
        country: str,
        cursor: Optional[Any],
        count: int
    ) -> Page:
        page = cursor or 1
        url = APP_STORE_REVIEWS_URL.format(
            country=country, page=page, app_id=external_app_id
        )
        data = await self._get_json(url)

        entries = data.get("feed", {}).get("entry", [])
        # A feed with a single entry carries an object instead of a list
        if isinstance(entries, dict):
            entries = [entries]
        entries = [e for e in entries if isinstance(e, dict)]

        next_page = page + 1 if page < self.max_pages else None
        return entries, next_page

    def _to_review(
        self,
        raw: Dict[str, Any],
        app_id: str,
        region: str,
        app_name: str
    ) -> Optional[Review]:
        # Older feed pages lead with an app metadata entry
        if "im:rating" not in raw and "author" not in raw:
            return None
        return Review.from_app_store(raw, app_id, region, app_name)
