"""
Shared pagination and error handling for review sources.

Each source implements one page request and one record mapping; this
module drives the page loop, the volume caps, retries and failure
isolation common to both.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from review_hub.config.settings import (
    COUNTRY_ALIASES,
    DEFAULT_LANGUAGE,
    FULL_SCRAPE_CAPS,
    MAX_RETRIES,
    NORMAL_SCRAPE_CAP,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from review_hub.exceptions import SourceFetchError
from review_hub.models.review import Review
from review_hub.scraper.rate_limiter import ExponentialBackoff, RateLimiter
from review_hub.utils.logger import get_logger, ProgressTracker

# (raw records, cursor for the next page or None when exhausted)
Page = Tuple[List[Dict[str, Any]], Optional[Any]]


def parse_region(region: str, default_language: str = DEFAULT_LANGUAGE) -> Tuple[str, str]:
    """
    Split a region code into (language, country), both lower-case.

    "US" -> ("en", "us"), "en-US" -> ("en", "us"), "pt_BR" -> ("pt", "br").
    Known aliases are applied to the country ("UK" -> "gb").
    """
    code = region.strip().replace("_", "-")
    if "-" in code:
        lang, _, country = code.partition("-")
        lang = lang.lower() or default_language
    else:
        lang, country = default_language, code
    country = country.lower()
    return lang, COUNTRY_ALIASES.get(country, country)


class BaseReviewSource(ABC):
    """
    Base class for one external review source.

    Subclasses set STORE and PAGE_SIZE and implement _fetch_page and
    _to_review.
    """

    STORE: str = ""
    PAGE_SIZE: int = 100

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        normal_cap: int = NORMAL_SCRAPE_CAP,
        full_cap: Optional[int] = None
    ):
        """
        Args:
            rate_limiter: Limiter shared by all requests to this source
            logger: Logger instance (creates default if None)
            max_retries: Retries per page before the fetch is abandoned
            retry_base_delay: First backoff delay (seconds)
            normal_cap: Reviews kept per region for a routine scrape
            full_cap: Reviews kept per region for a full scrape
        """
        self.rate_limiter = rate_limiter or RateLimiter()
        self.logger = logger or get_logger("scraper")
        self.progress = ProgressTracker(self.logger)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.normal_cap = normal_cap
        self.full_cap = full_cap if full_cap is not None else FULL_SCRAPE_CAPS[self.STORE]

    def cap_for(self, full_scrape: bool) -> int:
        return self.full_cap if full_scrape else self.normal_cap

    @abstractmethod
    async def _fetch_page(
        self,
        external_app_id: str,
        lang: str,
        country: str,
        cursor: Optional[Any],
        count: int
    ) -> Page:
        """
        Request one page of raw records.

        Raise SourceFetchError for failures that retrying cannot fix; any
        other exception is retried with backoff.
        """

    @abstractmethod
    def _to_review(
        self,
        raw: Dict[str, Any],
        app_id: str,
        region: str,
        app_name: str
    ) -> Optional[Review]:
        """Map one raw record, or None when it is not a review."""

    async def fetch_reviews(
        self,
        external_app_id: str,
        region: str,
        full_scrape: bool = False,
        app_id: str = "",
        app_name: str = ""
    ) -> List[Review]:
        """
        Fetch reviews for one app in one region.

        Pages until the source runs dry, a page comes back short, or the
        volume cap is hit. Never raises: on failure the error is logged and
        an empty list is returned for this (app, region).

        Args:
            external_app_id: The app's id on this source
            region: Plain ("US") or language-COUNTRY ("en-US") code
            full_scrape: Use the high-volume cap instead of the routine one
            app_id: Id of the owning App, copied onto each review
            app_name: Name of the owning App, copied onto each review

        Returns:
            At most cap_for(full_scrape) reviews
        """
        cap = self.cap_for(full_scrape)
        label = f"{self.STORE}:{external_app_id}/{region}"
        self.logger.info(f"[{label}] Fetching up to {cap} reviews")

        collected: List[Review] = []
        cursor: Optional[Any] = None

        try:
            lang, country = parse_region(region)

            while len(collected) < cap:
                requested = min(self.PAGE_SIZE, cap - len(collected))
                raw_page, cursor = await self._fetch_page_with_retry(
                    external_app_id, lang, country, cursor, requested, label
                )

                if not raw_page:
                    self.logger.info(f"[{label}] No more reviews available")
                    break

                for raw in raw_page:
                    review = self._to_review(raw, app_id, region, app_name)
                    if review is None:
                        continue
                    collected.append(review)
                    if len(collected) >= cap:
                        break

                self.progress.log_progress(label, len(collected), cap)

                if len(raw_page) < requested:
                    self.logger.info(f"[{label}] Short page, reached end of reviews")
                    break
                if cursor is None:
                    self.logger.info(f"[{label}] Reached end of reviews")
                    break

        except Exception as e:
            self.progress.log_error(label, e)
            self.logger.warning(f"[{label}] Fetch abandoned, returning no reviews")
            return []

        self.progress.log_completion(label, len(collected))
        return collected

    async def _fetch_page_with_retry(
        self,
        external_app_id: str,
        lang: str,
        country: str,
        cursor: Optional[Any],
        count: int,
        label: str
    ) -> Page:
        """
        Fetch a single page with retry logic.

        Raises:
            SourceFetchError: when the page cannot be fetched
        """
        backoff = ExponentialBackoff(
            base_delay=self.retry_base_delay,
            max_delay=RETRY_MAX_DELAY,
            max_retries=self.max_retries
        )

        while True:
            try:
                await self.rate_limiter.wait()
                return await self._fetch_page(external_app_id, lang, country, cursor, count)

            except SourceFetchError:
                raise

            except Exception as e:
                self.logger.warning(f"[{label}] Error fetching page: {e}")

                if not await backoff.wait():
                    raise SourceFetchError(
                        self.STORE, f"max retries exceeded for {label}: {e}"
                    ) from e
