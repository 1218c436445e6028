"""Error types, error classification and retry logic for source adapters."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiohttp

from reddit_harvester.models.fetch import FetchResult, FetchStatus
from reddit_harvester.models.records import RetrievalMethod

logger = logging.getLogger(__name__)


class HarvestError(Exception):
    """Base class for errors raised inside source adapters."""


class RateLimitedError(HarvestError):
    """Upstream answered 429 Too Many Requests."""

    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class PermanentUpstreamError(HarvestError):
    """Upstream answered with a status that retrying will not fix."""

    def __init__(self, status: int, message: Optional[str] = None):
        super().__init__(message or f"HTTP {status}")
        self.status = status


class MalformedResponseError(HarvestError):
    """Upstream answered 200 but the body could not be interpreted."""


class AuthenticationError(HarvestError):
    """OAuth token could not be obtained or was rejected after a refresh."""


def status_for_http(status: int) -> FetchStatus:
    """
    Map an HTTP status code to a fetch status.

    Args:
        status: HTTP status code of a non-successful response

    Returns:
        The matching FetchStatus
    """
    if status == 429:
        return FetchStatus.RATE_LIMITED
    if status in (301, 302, 303, 307, 308, 404, 410):
        # Reddit redirects unknown communities to its search page.
        return FetchStatus.NOT_FOUND
    if status in (401, 403, 451):
        return FetchStatus.FORBIDDEN
    return FetchStatus.UNKNOWN


def result_from_exception(exc: BaseException, method: RetrievalMethod) -> FetchResult:
    """
    Convert an exception raised by an adapter into a failure FetchResult.

    Args:
        exc: The exception caught at the adapter boundary
        method: Adapter that raised it

    Returns:
        A non-OK FetchResult describing the failure
    """
    if isinstance(exc, RateLimitedError):
        return FetchResult.failure(method, FetchStatus.RATE_LIMITED, str(exc), retry_after=exc.retry_after)
    if isinstance(exc, PermanentUpstreamError):
        return FetchResult.failure(method, status_for_http(exc.status), str(exc))
    if isinstance(exc, AuthenticationError):
        return FetchResult.failure(method, FetchStatus.FORBIDDEN, str(exc))
    if isinstance(exc, MalformedResponseError):
        return FetchResult.failure(method, FetchStatus.MALFORMED, str(exc))
    if isinstance(exc, asyncio.TimeoutError):
        return FetchResult.failure(method, FetchStatus.TIMEOUT, "timed out")
    if isinstance(exc, aiohttp.ClientResponseError):
        return FetchResult.failure(method, status_for_http(exc.status), f"HTTP {exc.status}")
    if isinstance(exc, aiohttp.ClientError):
        return FetchResult.failure(method, FetchStatus.UNKNOWN, f"{type(exc).__name__}: {exc}")

    logger.error(f"Unexpected error in {method.value} adapter: {exc!r}", exc_info=exc)
    return FetchResult.failure(method, FetchStatus.UNKNOWN, f"{type(exc).__name__}: {exc}")


class ConsecutiveErrorTracker:
    """Tracker for consecutive adapter failures with threshold checking."""

    def __init__(self, threshold: int, name: str = "", prometheus_exporter=None):
        """
        Initialize the error tracker.

        Args:
            threshold: Number of consecutive failures after which the adapter is skipped
            name: Adapter name used in logs and metrics
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.threshold = threshold
        self.name = name
        self.consecutive_errors = 0
        self.prometheus_exporter = prometheus_exporter

    def record_error(self) -> None:
        """Record a failed community and increment the counter."""
        self.consecutive_errors += 1
        logger.warning(f"Consecutive {self.name} failures: {self.consecutive_errors}/{self.threshold}")

        if self.prometheus_exporter:
            self.prometheus_exporter.set_consecutive_failures(self.name, self.consecutive_errors)

    def record_success(self) -> None:
        """Record a successful community, resetting the consecutive error count."""
        if self.consecutive_errors > 0:
            logger.info(f"Resetting consecutive {self.name} failure counter (was {self.consecutive_errors})")
            self.consecutive_errors = 0

            if self.prometheus_exporter:
                self.prometheus_exporter.set_consecutive_failures(self.name, 0)

    def should_abort(self) -> bool:
        """
        Check if the adapter should be skipped for the rest of the job.

        Returns:
            True if the failure threshold has been reached
        """
        return self.consecutive_errors >= self.threshold


async def retry_once_on_rate_limit(
    call: Callable[[], Awaitable[FetchResult]],
    delay: float,
) -> FetchResult:
    """
    Run an adapter call, retrying it exactly once if it was rate limited.

    The second result is returned whatever its status; a repeated
    RATE_LIMITED is left for the caller to fall through on.

    Args:
        call: Zero-argument coroutine factory performing the adapter call
        delay: Seconds to wait before the retry

    Returns:
        The result of the first call, or of the retry
    """
    result = await call()
    if not result.is_rate_limited:
        return result

    hint = f" (server asked for {result.retry_after:.0f}s)" if result.retry_after is not None else ""
    logger.warning(f"{result.method.value} rate limited{hint}. Retrying once in {delay:.2f}s")
    await asyncio.sleep(delay)
    return await call()
