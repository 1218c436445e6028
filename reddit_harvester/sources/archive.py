"""Archive mirror adapter.

Queries a Pushshift-compatible search API (pullpush.io by default). The
archive lags behind Reddit and its scores are snapshots, but it keeps
answering when Reddit itself refuses the harvester.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List

import aiohttp

from reddit_harvester.collector.error_handler import HarvestError, MalformedResponseError
from reddit_harvester.collector.flattener import flatten_comment_tree
from reddit_harvester.models.fetch import FetchResult
from reddit_harvester.models.job import FetchFilters, SortMode
from reddit_harvester.models.mapping import archive_submission_to_record, parse_timestamp
from reddit_harvester.models.records import Comment, Post, RetrievalMethod
from reddit_harvester.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _data_list(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise MalformedResponseError("Archive payload has no data list")
    return [item for item in payload["data"] if isinstance(item, dict)]


def build_reply_tree(comments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Rebuild the reply forest of a post from flat archive comments.

    Comments are linked through ``parent_id``. A comment whose parent is the
    post, or is missing from the archive, becomes a root.

    Args:
        comments: Flat comment dicts with ``id`` and ``parent_id``

    Returns:
        Root nodes, each with a ``replies`` list, ordered by creation time
    """
    def sort_key(comment: Dict[str, Any]):
        created = parse_timestamp(comment.get("created_utc"))
        return (created is None, created.timestamp() if created else 0.0, str(comment["id"]))

    ordered = sorted((c for c in comments if c.get("id") is not None), key=sort_key)
    nodes = {str(c["id"]): dict(c, replies=[]) for c in ordered}

    roots = []
    for comment in ordered:
        node = nodes[str(comment["id"])]
        parent = str(comment.get("parent_id") or "")
        parent_id = parent[3:] if parent.startswith("t1_") else None
        if parent_id and parent_id in nodes and parent_id != node["id"]:
            nodes[parent_id]["replies"].append(node)
        else:
            roots.append(node)
    return roots


class ArchiveAdapter(SourceAdapter):
    """Submission and comment search on a Pushshift-compatible mirror."""

    name = "archive"
    method = RetrievalMethod.FALLBACK_ARCHIVE

    def search_params(self, community: str, filters: FetchFilters, now: datetime) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "subreddit": community,
            "after": int(filters.time_range.cutoff(now).timestamp()),
            "before": int(now.timestamp()),
            "size": min(filters.limit, MAX_PAGE_SIZE),
            "sort": "desc",
        }
        params["sort_type"] = "score" if filters.sort_mode is SortMode.TOP else "created_utc"
        return params

    async def _fetch(self, community: str, filters: FetchFilters) -> FetchResult:
        started = asyncio.get_running_loop().time()
        scraped_at = self._now()
        payload = await self._get_json(
            f"{self.base_url}/reddit/search/submission/",
            params=self.search_params(community, filters, scraped_at),
        )

        posts: List[Post] = []
        for submission in _data_list(payload):
            if "id" not in submission or submission.get("removed_by_category"):
                continue
            posts.append(archive_submission_to_record(submission, community, scraped_at))
        posts = posts[:filters.limit]

        harvest = self.config.harvest
        candidates = [post for post in posts if self.wants_comments(post)]
        candidates.sort(key=lambda post: post.comment_count, reverse=True)

        comments = await self._collect_comments(
            community, candidates[:harvest.archive_comment_posts], started, scraped_at
        )

        return FetchResult.ok(self.method, posts, comments)

    async def _fetch_comments(self, community: str, post: Post, scraped_at: datetime) -> List[Comment]:
        harvest = self.config.harvest
        try:
            payload = await self._get_json(
                f"{self.base_url}/reddit/search/comment/",
                params={"link_id": post.id, "size": MAX_PAGE_SIZE},
            )
            raw_comments = _data_list(payload)
        except (HarvestError, aiohttp.ClientError) as e:
            logger.warning(f"Skipping archived comments of post {post.id} in r/{community}: {e}")
            return []

        return flatten_comment_tree(
            build_reply_tree(raw_comments),
            post_id=post.id,
            community=community,
            scraped_at=scraped_at,
            method=self.method,
            max_depth=harvest.max_comment_depth,
            max_comments=harvest.max_comments_per_post,
        )
