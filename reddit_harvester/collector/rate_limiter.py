"""Rate limiting functionality for Reddit requests."""

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

from reddit_harvester.config import SourceConfig

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a ``Retry-After`` header given in seconds.

    Args:
        value: Raw header value

    Returns:
        Seconds to wait, or None when the header is absent or not numeric
    """
    if value is None:
        return None
    try:
        seconds = float(value)
    except (ValueError, TypeError):
        logger.warning(f"Failed to parse Retry-After header: {value!r}")
        return None
    return max(seconds, 0.0)


class RateLimiter:
    """
    Rate limiter for one source adapter.

    Spaces requests to stay under ``requests_per_minute`` and monitors
    X-Ratelimit headers so the adapter pauses before Reddit answers with 429.
    """

    def __init__(self, config: SourceConfig):
        """
        Initialize the rate limiter with configuration.

        Args:
            config: Settings of the adapter this limiter belongs to
        """
        self.config = config
        self.remaining_calls: Optional[int] = None
        self.reset_timestamp: Optional[float] = None
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

        # Absolute rate limit calculation
        self.min_interval = 60.0 / max(self.config.requests_per_minute, 1)

    async def pre_request(self) -> None:
        """
        Check rate limits before making a request and sleep if necessary.

        Workers of one batch share the limiter, so the check is serialized.
        """
        async with self._lock:
            elapsed = time.time() - self.last_request_time
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)

            if (self.remaining_calls is not None and
                    self.reset_timestamp is not None and
                    self.remaining_calls < self.config.min_remaining_calls):

                wait_time = self.reset_timestamp - time.time() + self.config.sleep_buffer_sec
                if wait_time > 0:
                    logger.info(f"Rate limit approaching: {self.remaining_calls} calls remaining. "
                                f"Sleeping for {wait_time:.2f}s until reset.")
                    await asyncio.sleep(wait_time)
                self.remaining_calls = None
                self.reset_timestamp = None

            self.last_request_time = time.time()

    def update_from_headers(self, headers: Mapping[str, Any]) -> None:
        """
        Update rate limit tracking based on response headers.

        Args:
            headers: Response headers from a Reddit request
        """
        self.last_request_time = time.time()

        remaining = headers.get("x-ratelimit-remaining")
        if remaining is not None:
            try:
                self.remaining_calls = int(float(remaining))
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-remaining header")

        reset = headers.get("x-ratelimit-reset")
        if reset is not None:
            try:
                self.reset_timestamp = time.time() + float(reset)
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-reset header")

        if self.remaining_calls is not None and self.reset_timestamp is not None:
            reset_in = self.reset_timestamp - time.time()
            logger.debug(f"Rate limit status: {self.remaining_calls} calls remaining, "
                         f"reset in {reset_in:.2f}s")
