"""Tests for the error handler module."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from reddit_harvester.collector.error_handler import (
    AuthenticationError,
    ConsecutiveErrorTracker,
    MalformedResponseError,
    PermanentUpstreamError,
    RateLimitedError,
    result_from_exception,
    retry_once_on_rate_limit,
    status_for_http,
)
from reddit_harvester.models.fetch import FetchResult, FetchStatus
from reddit_harvester.models.records import RetrievalMethod

METHOD = RetrievalMethod.FALLBACK_ANONYMOUS


class TestConsecutiveErrorTracker(unittest.TestCase):
    """Test cases for the ConsecutiveErrorTracker class."""

    def setUp(self):
        """Set up test environment."""
        self.threshold = 3
        self.tracker = ConsecutiveErrorTracker(self.threshold, name="fallback-anonymous")

    def test_record_error(self):
        self.tracker.record_error()
        self.assertEqual(self.tracker.consecutive_errors, 1)
        self.tracker.record_error()
        self.assertEqual(self.tracker.consecutive_errors, 2)

    def test_record_success_resets(self):
        self.tracker.record_error()
        self.tracker.record_error()
        self.tracker.record_success()
        self.assertEqual(self.tracker.consecutive_errors, 0)

    def test_should_abort(self):
        for _ in range(self.threshold - 1):
            self.tracker.record_error()
        self.assertFalse(self.tracker.should_abort())
        self.tracker.record_error()
        self.assertTrue(self.tracker.should_abort())

    def test_prometheus_integration(self):
        """The consecutive failures gauge follows the counter."""
        mock_exporter = MagicMock()
        tracker = ConsecutiveErrorTracker(self.threshold, name="primary", prometheus_exporter=mock_exporter)

        tracker.record_error()
        mock_exporter.set_consecutive_failures.assert_called_once_with("primary", 1)

        mock_exporter.reset_mock()
        tracker.record_success()
        mock_exporter.set_consecutive_failures.assert_called_once_with("primary", 0)


class TestStatusMapping(unittest.TestCase):
    """Test cases for HTTP status and exception classification."""

    def test_status_for_http(self):
        self.assertIs(status_for_http(429), FetchStatus.RATE_LIMITED)
        self.assertIs(status_for_http(404), FetchStatus.NOT_FOUND)
        self.assertIs(status_for_http(302), FetchStatus.NOT_FOUND)
        self.assertIs(status_for_http(403), FetchStatus.FORBIDDEN)
        self.assertIs(status_for_http(451), FetchStatus.FORBIDDEN)
        self.assertIs(status_for_http(503), FetchStatus.UNKNOWN)

    def test_result_from_exception(self):
        cases = [
            (RateLimitedError(retry_after=7.0), FetchStatus.RATE_LIMITED),
            (PermanentUpstreamError(404), FetchStatus.NOT_FOUND),
            (PermanentUpstreamError(500), FetchStatus.UNKNOWN),
            (AuthenticationError("bad credentials"), FetchStatus.FORBIDDEN),
            (MalformedResponseError("not json"), FetchStatus.MALFORMED),
            (asyncio.TimeoutError(), FetchStatus.TIMEOUT),
            (aiohttp.ClientConnectionError("reset"), FetchStatus.UNKNOWN),
            (KeyError("id"), FetchStatus.UNKNOWN),
        ]
        for exc, status in cases:
            with self.subTest(exc=exc):
                result = result_from_exception(exc, METHOD)
                self.assertIs(result.status, status)
                self.assertIs(result.method, METHOD)
                self.assertEqual(result.posts, [])

    def test_retry_after_preserved(self):
        result = result_from_exception(RateLimitedError(retry_after=7.0), METHOD)
        self.assertEqual(result.retry_after, 7.0)

    def test_client_response_error(self):
        exc = aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=403)
        self.assertIs(result_from_exception(exc, METHOD).status, FetchStatus.FORBIDDEN)

    def test_failure_cannot_be_ok(self):
        with self.assertRaises(ValueError):
            FetchResult.failure(METHOD, FetchStatus.OK, "nope")


class TestRetryOnceOnRateLimit:
    """Test cases for retry_once_on_rate_limit."""

    @pytest.mark.asyncio
    async def test_ok_is_not_retried(self):
        call = AsyncMock(return_value=FetchResult.ok(METHOD, []))

        result = await retry_once_on_rate_limit(call, delay=0)

        assert result.is_ok
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_retried_once(self):
        limited = FetchResult.failure(METHOD, FetchStatus.RATE_LIMITED, "rate limited", retry_after=30)
        call = AsyncMock(side_effect=[limited, FetchResult.ok(METHOD, [])])

        with patch("reddit_harvester.collector.error_handler.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            result = await retry_once_on_rate_limit(call, delay=4.0)

        assert result.is_ok
        assert call.await_count == 2
        # The configured delay is used, not the server's Retry-After.
        mock_sleep.assert_awaited_once_with(4.0)

    @pytest.mark.asyncio
    async def test_second_rate_limit_returned(self):
        limited = FetchResult.failure(METHOD, FetchStatus.RATE_LIMITED, "rate limited")
        call = AsyncMock(return_value=limited)

        result = await retry_once_on_rate_limit(call, delay=0)

        assert result.is_rate_limited
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_other_failures_not_retried(self):
        call = AsyncMock(return_value=FetchResult.failure(METHOD, FetchStatus.NOT_FOUND, "HTTP 404"))

        result = await retry_once_on_rate_limit(call, delay=0)

        assert result.status is FetchStatus.NOT_FOUND
        assert call.await_count == 1


if __name__ == "__main__":
    unittest.main()
