"""Authenticated Reddit API adapter (the primary retrieval method)."""

import logging
from typing import Any, Dict, Optional

import aiohttp

from reddit_harvester.collector.error_handler import PermanentUpstreamError
from reddit_harvester.collector.rate_limiter import RateLimiter
from reddit_harvester.config import Config
from reddit_harvester.models.records import RetrievalMethod
from reddit_harvester.sources.auth import RedditTokenManager
from reddit_harvester.sources.listing import RedditListingAdapter

logger = logging.getLogger(__name__)


class OAuthListingAdapter(RedditListingAdapter):
    """
    Listings from ``oauth.reddit.com`` using an application-only token.

    A 401 answer triggers one token refresh and one re-issue of the request;
    a second 401 fails the strategy as forbidden.
    """

    name = "oauth"
    method = RetrievalMethod.PRIMARY

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: Config,
        token_manager: Optional[RedditTokenManager] = None,
        rate_limiter: Optional[RateLimiter] = None,
        prometheus_exporter=None,
    ):
        super().__init__(session, config, rate_limiter=rate_limiter, prometheus_exporter=prometheus_exporter)
        self.token_manager = token_manager or RedditTokenManager(
            session,
            client_id=config.client_id,
            client_secret=config.client_secret,
            user_agent=config.user_agent,
        )

    def _auth_headers(self, token: str) -> Dict[str, str]:
        headers = dict(self.headers)
        headers["Authorization"] = f"bearer {token}"
        return headers

    async def _request_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        token = await self.token_manager.get_token()
        try:
            return await self._get_json(url, params=params, headers=self._auth_headers(token))
        except PermanentUpstreamError as e:
            if e.status != 401:
                raise
            logger.info("OAuth token rejected, refreshing once")

        token = await self.token_manager.refresh(token)
        return await self._get_json(url, params=params, headers=self._auth_headers(token))
