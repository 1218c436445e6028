"""Common machinery of the source adapters.

Every retrieval strategy subclasses ``SourceAdapter`` and implements
``_fetch``. The public ``fetch_community`` bounds the call with a timeout and
turns every exception into a tagged ``FetchResult`` so nothing escapes to the
orchestrator.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiohttp

from reddit_harvester.collector.error_handler import (
    MalformedResponseError,
    PermanentUpstreamError,
    RateLimitedError,
    result_from_exception,
)
from reddit_harvester.collector.rate_limiter import RateLimiter, parse_retry_after
from reddit_harvester.config import Config
from reddit_harvester.models.fetch import FetchResult
from reddit_harvester.models.job import FetchFilters
from reddit_harvester.models.records import Comment, Post, RetrievalMethod

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """One way of fetching a community's posts and comments."""

    #: Key of this adapter under ``sources`` in the configuration
    name: str = ""
    method: RetrievalMethod = RetrievalMethod.FAILED

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: Config,
        rate_limiter: Optional[RateLimiter] = None,
        prometheus_exporter=None,
    ):
        """
        Initialize the adapter.

        Args:
            session: Shared HTTP session, owned by the caller
            config: Application configuration
            rate_limiter: Limiter for this adapter (built from its source config if omitted)
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.session = session
        self.config = config
        self.source_config = config.source(self.name)
        self.rate_limiter = rate_limiter or RateLimiter(self.source_config)
        self.prometheus_exporter = prometheus_exporter

    @property
    def base_url(self) -> str:
        return (self.source_config.base_url or "").rstrip("/")

    @property
    def headers(self) -> Dict[str, str]:
        return {"User-Agent": self.config.user_agent}

    async def fetch_community(self, community: str, filters: FetchFilters) -> FetchResult:
        """
        Fetch one community, bounded by the configured adapter timeout.

        Args:
            community: Community name without the ``r/`` prefix
            filters: Time range, sort mode and limit of the job

        Returns:
            A FetchResult; failures are reported through its status
        """
        timeout = self.config.harvest.adapter_timeout_sec
        timer = self.prometheus_exporter.time_request(self.method.value) if self.prometheus_exporter else None

        try:
            with timer if timer else nullcontext():
                result = await asyncio.wait_for(self._fetch(community, filters), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result = result_from_exception(e, self.method)

        if self.prometheus_exporter:
            self.prometheus_exporter.record_adapter_result(self.method.value, result.status.value)

        if result.is_ok:
            logger.debug(f"{self.method.value} r/{community}: {len(result.posts)} posts, "
                         f"{len(result.comments)} comments")
        else:
            logger.info(f"{self.method.value} failed for r/{community}: {result.describe()}")
        return result

    @abstractmethod
    async def _fetch(self, community: str, filters: FetchFilters) -> FetchResult:
        """Fetch one community. May raise; ``fetch_community`` converts exceptions."""

    async def _fetch_comments(self, community: str, post: Post, scraped_at: datetime) -> List[Comment]:
        """Fetch one post's comments. Adapters without comment support return none."""
        return []

    def wants_comments(self, post: Post) -> bool:
        harvest = self.config.harvest
        return post.score > harvest.comment_fetch_min_score or post.comment_count > harvest.comment_fetch_min_comments

    async def _collect_comments(
        self,
        community: str,
        posts: Sequence[Post],
        started: float,
        scraped_at: datetime,
    ) -> List[Comment]:
        """
        Fetch comments of ``posts`` one by one until the comment budget runs out.

        The comment phase has its own deadline, ``started`` plus the comment
        budget, and it never extends past the adapter timeout. A request still
        queued on the rate limiter or in flight at the deadline is abandoned and
        the comments gathered so far are returned, so the posts survive.

        Args:
            community: Community name
            posts: Posts whose comments are wanted, in fetch order
            started: Loop time at which the adapter call started
            scraped_at: Collection timestamp stamped on the comments

        Returns:
            Flattened comments of the posts fetched before the deadline
        """
        harvest = self.config.harvest
        loop = asyncio.get_running_loop()
        deadline = started + min(harvest.comment_time_budget_sec, harvest.adapter_timeout_sec)
        comments: List[Comment] = []

        async def collect() -> None:
            for post in posts:
                if loop.time() >= deadline:
                    return
                await asyncio.sleep(harvest.comment_request_delay_sec)
                comments.extend(await self._fetch_comments(community, post, scraped_at))

        remaining = deadline - loop.time()
        if remaining <= 0:
            if posts:
                logger.info(f"Comment budget used up for r/{community} before any comment request")
            return comments

        try:
            await asyncio.wait_for(collect(), timeout=remaining)
        except asyncio.TimeoutError:
            logger.info(f"Comment budget of {harvest.comment_time_budget_sec:.1f}s ran out for r/{community}; "
                        f"keeping {len(comments)} comments")
        return comments

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _raise_for_status(self, status: int, headers: Mapping[str, Any]) -> None:
        if status == 429:
            raise RateLimitedError(retry_after=parse_retry_after(headers.get("Retry-After")))
        if status != 200:
            raise PermanentUpstreamError(status)

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET a JSON document, honouring the rate limiter.

        Redirects are not followed: Reddit redirects unknown communities to its
        search page, which is reported as not found instead.

        Raises:
            RateLimitedError: on HTTP 429
            PermanentUpstreamError: on any other non-200 status
            MalformedResponseError: when the body is not JSON
        """
        await self.rate_limiter.pre_request()
        async with self.session.get(
            url, params=params, headers=headers or self.headers, allow_redirects=False
        ) as response:
            self.rate_limiter.update_from_headers(response.headers)
            self._raise_for_status(response.status, response.headers)
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise MalformedResponseError(f"Invalid JSON from {url}: {e}") from e

    async def _get_text(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """GET a text document, honouring the rate limiter."""
        await self.rate_limiter.pre_request()
        async with self.session.get(
            url, params=params, headers=headers or self.headers, allow_redirects=False
        ) as response:
            self.rate_limiter.update_from_headers(response.headers)
            self._raise_for_status(response.status, response.headers)
            return await response.text()
