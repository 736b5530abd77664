"""
Logging configuration for App Review Hub.

Every component logs through a named stdlib logger set up here: console
output always, plus a file under LOG_DIR unless LOG_TO_FILE is off.
"""

import logging
import sys
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional

from review_hub.config.settings import (
    LOG_DIR,
    LOG_FILE,
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_TO_FILE,
    PROGRESS_MAX_FAILURES,
)


def _level(log_level: Optional[str]) -> int:
    return getattr(logging, (log_level or LOG_LEVEL).upper(), logging.INFO)


def _file_handler(log_file: str) -> logging.Handler:
    log_dir = Path(LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_dir / log_file, encoding="utf-8")


def setup_logger(
    name: str = "review_hub",
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = LOG_TO_FILE
) -> logging.Logger:
    """
    Configure a named logger, replacing any handlers it already has.

    Args:
        name: Logger name (default: "review_hub")
        log_level: Level name, e.g. "DEBUG" (default: LOG_LEVEL)
        log_file: File name inside LOG_DIR (default: LOG_FILE)
        log_to_console: Write to stdout
        log_to_file: Write to the log file

    Returns:
        The configured logger
    """
    level = _level(log_level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    handlers: List[logging.Handler] = []
    if log_to_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_to_file:
        handlers.append(_file_handler(log_file or LOG_FILE))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str = "review_hub") -> logging.Logger:
    """Named logger, set up with the defaults on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class ProgressTracker:
    """
    Per-fetch progress and totals for one review source.

    A fetch is identified by a label such as "play-store:com.x/US". Totals
    are kept per store so a run over both stores can be summarized at the
    end.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("progress")
        self.reviews_by_store: Dict[str, int] = {}
        self.failed: Deque[str] = deque(maxlen=PROGRESS_MAX_FAILURES)
        self.fetches_completed = 0

    @staticmethod
    def _store_of(label: str) -> str:
        return label.split(":", 1)[0]

    def log_progress(self, label: str, reviews_fetched: int, total_target: int):
        """Debug-level progress of one fetch against its cap."""
        percentage = (reviews_fetched / total_target * 100) if total_target > 0 else 0
        self.logger.debug(
            f"[{label}] {reviews_fetched}/{total_target} ({percentage:.1f}%)"
        )

    def log_error(self, label: str, error: Exception):
        self.failed.append(label)
        self.logger.error(f"[{label}] Error: {error}")

    def log_completion(self, label: str, reviews_collected: int):
        store = self._store_of(label)
        self.reviews_by_store[store] = self.reviews_by_store.get(store, 0) + reviews_collected
        self.fetches_completed += 1
        self.logger.info(f"[{label}] Completed: {reviews_collected} reviews collected")

    @property
    def total_reviews(self) -> int:
        return sum(self.reviews_by_store.values())

    def log_summary(self):
        """Log totals for every fetch seen so far, then start counting afresh."""
        self.logger.info("=" * 50)
        self.logger.info("SCRAPING SUMMARY")
        self.logger.info(f"Fetches completed: {self.fetches_completed}")
        for store, count in sorted(self.reviews_by_store.items()):
            self.logger.info(f"  {store}: {count} reviews")
        self.logger.info(f"Total reviews collected: {self.total_reviews}")
        if self.failed:
            self.logger.info(f"Failed fetches ({len(self.failed)}): {', '.join(self.failed)}")
        self.logger.info("=" * 50)
        self.reset()

    def reset(self):
        self.reviews_by_store.clear()
        self.failed.clear()
        self.fetches_completed = 0
