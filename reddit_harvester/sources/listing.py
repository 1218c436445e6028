"""Adapters reading Reddit's JSON listings.

The anonymous ``.json`` endpoints and the OAuth API return the same listing
payloads, so both adapters share the parsing and comment handling here.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from reddit_harvester.collector.error_handler import HarvestError, MalformedResponseError
from reddit_harvester.collector.flattener import flatten_comment_tree
from reddit_harvester.models.fetch import FetchResult
from reddit_harvester.models.job import FetchFilters, SortMode
from reddit_harvester.models.mapping import listing_post_to_record
from reddit_harvester.models.records import Comment, Post, RetrievalMethod
from reddit_harvester.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


def listing_children(payload: Any) -> List[Dict[str, Any]]:
    """
    Return the children of a listing payload.

    Raises:
        MalformedResponseError: if the payload is not a listing
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError("Listing payload is not an object")
    children = (payload.get("data") or {}).get("children")
    if not isinstance(children, list):
        raise MalformedResponseError("Listing payload has no data.children")
    return children


class RedditListingAdapter(SourceAdapter):
    """Shared behaviour of the JSON listing adapters."""

    #: Suffix appended to listing and comment paths
    path_suffix = ""

    def listing_url(self, community: str, sort_mode: SortMode) -> str:
        return f"{self.base_url}/r/{community}/{sort_mode.value}{self.path_suffix}"

    def comments_url(self, community: str, post_id: str) -> str:
        return f"{self.base_url}/r/{community}/comments/{post_id}{self.path_suffix}"

    def listing_params(self, filters: FetchFilters) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": filters.limit, "raw_json": 1}
        if filters.sort_mode is SortMode.TOP:
            params["t"] = filters.time_range.listing_window
        return params

    async def _request_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._get_json(url, params=params)

    async def _fetch(self, community: str, filters: FetchFilters) -> FetchResult:
        started = asyncio.get_running_loop().time()
        scraped_at = self._now()

        payload = await self._request_json(self.listing_url(community, filters.sort_mode), self.listing_params(filters))

        posts: List[Post] = []
        for child in listing_children(payload):
            if not isinstance(child, dict) or child.get("kind") != "t3" or not isinstance(child.get("data"), dict):
                continue
            data = child["data"]
            if data.get("removed_by_category") or "id" not in data:
                continue
            posts.append(listing_post_to_record(data, community, self.method, scraped_at))
            if len(posts) >= filters.limit:
                break

        wanted = [post for post in posts if self.wants_comments(post)]
        comments = await self._collect_comments(community, wanted, started, scraped_at)

        return FetchResult.ok(self.method, posts, comments)

    async def _fetch_comments(self, community: str, post: Post, scraped_at) -> List[Comment]:
        """Fetch and flatten one post's comments. Failures are logged and yield no comments."""
        harvest = self.config.harvest
        params = {"limit": harvest.comment_limit, "depth": harvest.max_comment_depth, "raw_json": 1}
        try:
            payload = await self._request_json(self.comments_url(community, post.id), params)
            if not isinstance(payload, list) or len(payload) < 2:
                raise MalformedResponseError("Comment payload is not a [post, comments] pair")
            children = listing_children(payload[1])
        except (HarvestError, aiohttp.ClientError) as e:
            logger.warning(f"Skipping comments of post {post.id} in r/{community}: {e}")
            return []

        return flatten_comment_tree(
            children,
            post_id=post.id,
            community=community,
            scraped_at=scraped_at,
            method=self.method,
            max_depth=harvest.max_comment_depth,
            max_comments=harvest.max_comments_per_post,
        )


class AnonymousListingAdapter(RedditListingAdapter):
    """Unauthenticated ``www.reddit.com/r/{community}/{sort}.json`` listings."""

    name = "anonymous"
    method = RetrievalMethod.FALLBACK_ANONYMOUS
    path_suffix = ".json"
