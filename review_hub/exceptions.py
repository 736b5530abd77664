"""
Exception types raised across the review pipeline.
"""

from typing import Optional


class ReviewHubError(Exception):
    """Base class for all App Review Hub errors."""


class AppNotFoundError(ReviewHubError):
    """Referenced app id has no stored record."""

    def __init__(self, app_id: str):
        super().__init__(f"App not found: {app_id}")
        self.app_id = app_id


class InvalidAppConfig(ReviewHubError):
    """App configuration violates the per-source field invariants."""


class SourceFetchError(ReviewHubError):
    """A review source request failed or returned an unreadable payload."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class StoreCorruptionError(ReviewHubError):
    """A stored value could not be decoded."""

    def __init__(self, key: str, message: str):
        super().__init__(f"Corrupt value at {key}: {message}")
        self.key = key


class SchedulerTaskError(ReviewHubError):
    """Processing one app during a scheduled sweep failed."""

    def __init__(
        self,
        app_id: str,
        cause: Optional[BaseException] = None,
        store: Optional[str] = None
    ):
        target = f"{app_id}/{store}" if store else app_id
        super().__init__(f"Scheduled task failed for app {target}: {cause}")
        self.app_id = app_id
        self.store = store
        self.cause = cause
