"""OAuth client-credentials token handling for the authenticated Reddit API."""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from reddit_harvester.collector.error_handler import AuthenticationError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"

# Tokens are treated as expired this many seconds before Reddit says so.
EXPIRY_MARGIN_SEC = 60.0


class RedditTokenManager:
    """
    Obtains and caches an application-only bearer token.

    Refreshes are serialized by a lock. A refresh requested with a stale token
    that another worker already replaced is a no-op, so concurrent 401s cause
    a single token request.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        user_agent: str,
        token_url: str = TOKEN_URL,
    ):
        self.session = session
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.token_url = token_url
        self.access_token: Optional[str] = None
        self.expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_valid(self) -> bool:
        return self.access_token is not None and time.time() < self.expires_at

    async def get_token(self) -> str:
        """
        Return a usable token, requesting one if none is cached or it expired.

        Raises:
            AuthenticationError: if the token request fails
        """
        async with self._lock:
            if not self.is_valid:
                await self._request_token()
            return self.access_token

    async def refresh(self, stale_token: Optional[str]) -> str:
        """
        Replace a token the API rejected.

        Args:
            stale_token: The token that was answered with 401

        Returns:
            The new token

        Raises:
            AuthenticationError: if the token request fails
        """
        async with self._lock:
            if self.access_token is None or self.access_token == stale_token:
                await self._request_token()
            return self.access_token

    async def _request_token(self) -> None:
        logger.info("Requesting Reddit OAuth token")
        try:
            async with self.session.post(
                self.token_url,
                auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"User-Agent": self.user_agent},
            ) as response:
                if response.status != 200:
                    raise AuthenticationError(f"Token request failed: HTTP {response.status}")
                payload = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise AuthenticationError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise AuthenticationError("Token response is not JSON") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("Token response has no access_token")

        try:
            expires_in = float(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            expires_in = 3600.0

        self.access_token = token
        self.expires_at = time.time() + max(expires_in - EXPIRY_MARGIN_SEC, 0.0)
        logger.debug(f"OAuth token valid for {expires_in:.0f}s")
