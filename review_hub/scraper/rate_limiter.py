"""
Request pacing for the review sources.

RateLimiter spaces consecutive requests to one source by a fixed delay
(optionally jittered); ExponentialBackoff paces retries of a failed page.
Both sleep with asyncio.sleep, so other fetches keep running meanwhile.
"""

import asyncio
import random
import time
from typing import Optional

from review_hub.config.settings import (
    DEFAULT_DELAY,
    MAX_DELAY,
    MIN_DELAY,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)


class RateLimiter:
    """
    Minimum spacing between requests to one source.

    Shared by every fetch against the source, so concurrent region fetches
    queue behind each other instead of bursting.
    """

    def __init__(
        self,
        min_delay: float = MIN_DELAY,
        max_delay: float = MAX_DELAY,
        default_delay: float = DEFAULT_DELAY,
        use_jitter: bool = False
    ):
        """
        Args:
            min_delay: Lower bound of the jittered delay (seconds)
            max_delay: Upper bound of the jittered delay (seconds)
            default_delay: Fixed delay used when jitter is off
            use_jitter: Draw each delay uniformly from [min_delay, max_delay]
        """
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.default_delay = default_delay
        self.use_jitter = use_jitter
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

    def next_delay(self) -> float:
        if self.use_jitter:
            return random.uniform(self.min_delay, self.max_delay)
        return self.default_delay

    async def wait(self) -> None:
        """Sleep until the next request slot is free, then claim it."""
        async with self._lock:
            if self._last_request_time is not None:
                remaining = self.next_delay() - (time.monotonic() - self._last_request_time)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_request_time = time.monotonic()


class ExponentialBackoff:
    """
    Retry pacing for one page request: base, 2x base, 4x base... capped at
    max_delay, each with up to 10% jitter.
    """

    def __init__(
        self,
        base_delay: float = RETRY_BASE_DELAY,
        max_delay: float = RETRY_MAX_DELAY,
        max_retries: int = 3
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.attempts = 0

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, delay * 0.1)

    async def wait(self) -> bool:
        """
        Sleep before the next retry.

        Returns:
            False without sleeping once max_retries retries were used
        """
        if self.attempts >= self.max_retries:
            return False
        await asyncio.sleep(self.delay_for(self.attempts))
        self.attempts += 1
        return True
