"""
Google Play review source.

Fetches reviews with the google-play-scraper library, following its
continuation tokens page by page. The library is synchronous, so each
request runs in a worker thread to keep the event loop free.
"""

import asyncio
from typing import Any, Dict, Optional

from google_play_scraper import reviews, Sort
from google_play_scraper.exceptions import NotFoundError

from review_hub.config.settings import PLAY_STORE, PLAY_STORE_PAGE_SIZE
from review_hub.exceptions import SourceFetchError
from review_hub.models.review import Review
from review_hub.scraper.base import BaseReviewSource, Page


def _token_exhausted(token: Any) -> bool:
    # The library hands back a token object whose inner token is None at the end
    return token is None or getattr(token, "token", token) is None


class GooglePlayReviewScraper(BaseReviewSource):
    """
    Scraper for Google Play Store reviews.

    Pages of up to 200 reviews, newest first.
    """

    STORE = PLAY_STORE
    PAGE_SIZE = PLAY_STORE_PAGE_SIZE

    async def _fetch_page(
        self,
        external_app_id: str,
        lang: str,
        country: str,
        cursor: Optional[Any],
        count: int
    ) -> Page:
        try:
            result, token = await asyncio.to_thread(
                reviews,
                external_app_id,
                lang=lang,
                country=country,
                sort=Sort.NEWEST,
                count=count,
                continuation_token=cursor,
            )
        except NotFoundError as e:
            raise SourceFetchError(self.STORE, f"app not found: {external_app_id}") from e

        return result, None if _token_exhausted(token) else token

    def _to_review(
        self,
        raw: Dict[str, Any],
        app_id: str,
        region: str,
        app_name: str
    ) -> Optional[Review]:
        return Review.from_google_play(raw, app_id, region, app_name)
