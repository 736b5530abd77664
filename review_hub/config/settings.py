"""
Configuration settings for App Review Hub.

This module contains all configurable parameters for the review pipeline
including per-source paging and volume caps, rate limiting, retry logic,
storage backend selection and scheduler settings.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional


def _get_env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get a non-empty string from the environment, else the default."""
    value = os.getenv(key)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable with fallback."""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable with fallback."""
    try:
        return float(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


# =============================================================================
# SOURCES
# =============================================================================
APP_STORE: str = "app-store"
PLAY_STORE: str = "play-store"

# Prefix joined to the source-native review id
REVIEW_ID_PREFIXES: Dict[str, str] = {
    APP_STORE: "as",
    PLAY_STORE: "ps",
}

# =============================================================================
# SCRAPING SETTINGS
# =============================================================================
# Reviews returned per page by Apple's customer reviews feed
APP_STORE_PAGE_SIZE: int = 50

# Highest page number the customer reviews feed will serve
APP_STORE_MAX_PAGES: int = 10

# Customer reviews feed URL template
APP_STORE_REVIEWS_URL: str = (
    "https://itunes.apple.com/{country}/rss/customerreviews/"
    "page={page}/id={app_id}/sortby=mostrecent/json"
)

# Number of reviews to fetch per Google Play request (max supported by API)
PLAY_STORE_PAGE_SIZE: int = 200

# Language used when a region arrives as a plain country code
DEFAULT_LANGUAGE: str = "en"

# Region codes the stores know under another country code
COUNTRY_ALIASES: Dict[str, str] = {
    "uk": "gb",
}

# HTTP timeout for feed requests (seconds)
REQUEST_TIMEOUT: float = 10.0

USER_AGENT: str = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

# =============================================================================
# VOLUME CAPS
# =============================================================================
# Reviews kept per (app, region) for a routine scrape
NORMAL_SCRAPE_CAP: int = 100

# Reviews kept per (app, region) for a full scrape
FULL_SCRAPE_CAPS: Dict[str, int] = {
    APP_STORE: 3000,
    PLAY_STORE: 6000,
}

# =============================================================================
# RATE LIMITING
# =============================================================================
# Fixed delay between requests to the same source (seconds)
DEFAULT_DELAY: float = _get_env_float("REQUEST_DELAY", 1.0)

# Range used when jitter is requested
MIN_DELAY: float = 1.0
MAX_DELAY: float = 3.0

# =============================================================================
# RETRY SETTINGS
# =============================================================================
# Maximum number of retry attempts for a failed page request
MAX_RETRIES: int = 3

# Base delay for exponential backoff (seconds)
RETRY_BASE_DELAY: float = 2.0

# Maximum delay for exponential backoff (seconds)
RETRY_MAX_DELAY: float = 30.0

# =============================================================================
# STORAGE SETTINGS
# =============================================================================
# Both must be set for the Redis backend to be used
REDIS_URL: Optional[str] = _get_env_str("REDIS_URL")
REDIS_TOKEN: Optional[str] = _get_env_str("REDIS_TOKEN")

APPS_KEY: str = "apps"
REVIEWS_KEY_PREFIX: str = "reviews"
RATING_HISTORY_KEY_PREFIX: str = "rating_history"
REGION_DISTRIBUTION_KEY_PREFIX: str = "region_distribution"

# Upper bound on the serialized size of one list push (bytes)
APPEND_CHUNK_BYTES: int = 800 * 1024

# Items fetched per page when reading a review list
LIST_PAGE_SIZE: int = 1000

# =============================================================================
# SCHEDULER SETTINGS
# =============================================================================
# Hours that must elapse before a source is due again
FREQUENCY_HOURS: Dict[str, int] = {
    "hourly": 1,
    "daily": 24,
    "weekly": 24 * 7,
    "monthly": 24 * 30,
}

SUPPORTED_FREQUENCIES: List[str] = list(FREQUENCY_HOURS)

# Seconds between due-task sweeps in daemon mode
SCHEDULER_INTERVAL_SECONDS: int = _get_env_int("SCHEDULER_INTERVAL_SECONDS", 900)

# =============================================================================
# OUTPUT SETTINGS
# =============================================================================
DATA_DIR: Path = Path("data")

CSV_HEADERS: List[str] = [
    "ID", "User", "Rating", "Date", "Store", "Region", "Version", "Review",
]

# =============================================================================
# LOGGING SETTINGS
# =============================================================================
# Log directory (relative to project root)
LOG_DIR: Path = Path("logs")

# Log file name
LOG_FILE: str = "review_hub.log"

# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Write log files in addition to the console
LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "1") not in ("0", "false", "no")

# Log format
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Most recent failed fetch labels a progress tracker remembers
PROGRESS_MAX_FAILURES: int = 100
