"""Atom/RSS feed adapter.

Reddit serves an Atom feed for every listing. It carries no scores and no
comments, but it is the least rate-limited way in when the JSON endpoints
refuse.
"""

import html
import logging
import re
from datetime import datetime
from typing import List

from reddit_harvester.collector.error_handler import MalformedResponseError
from reddit_harvester.models.fetch import FetchResult
from reddit_harvester.models.job import FetchFilters, SortMode
from reddit_harvester.models.mapping import parse_timestamp
from reddit_harvester.models.records import Post, RetrievalMethod
from reddit_harvester.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

ENTRY_PATTERN = re.compile(r"<entry>(.*?)</entry>", re.DOTALL)
ID_PATTERN = re.compile(r"<id>([^<]+)</id>")
TITLE_PATTERN = re.compile(r"<title>([^<]*)</title>")
LINK_PATTERN = re.compile(r'<link href="([^"]+)"')
AUTHOR_PATTERN = re.compile(r"<author>\s*<name>/?u/([^<]+)</name>")
PUBLISHED_PATTERN = re.compile(r"<published>([^<]+)</published>")
CONTENT_PATTERN = re.compile(r'<content type="html">(.*?)</content>', re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")


def html_to_text(fragment: str) -> str:
    """Strip an entity-escaped HTML fragment down to plain text."""
    markup = html.unescape(fragment)
    text = TAG_PATTERN.sub(" ", markup)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def parse_feed(xml_text: str, community: str, scraped_at: datetime) -> List[Post]:
    """
    Extract posts from a Reddit Atom feed.

    Entries without an id or a title are skipped. Feed entries carry no
    engagement data, so score and comment count are 0.

    Args:
        xml_text: Feed document
        community: Community the feed was requested for
        scraped_at: Time the harvest ran

    Returns:
        Posts in feed order
    """
    posts = []
    for entry in ENTRY_PATTERN.findall(xml_text):
        id_match = ID_PATTERN.search(entry)
        title_match = TITLE_PATTERN.search(entry)
        if not id_match or not title_match:
            continue

        raw_id = id_match.group(1).strip().rsplit("/", 1)[-1]
        post_id = raw_id[3:] if raw_id.startswith("t3_") else raw_id
        title = html.unescape(title_match.group(1)).strip()
        if not post_id or not title:
            continue

        author_match = AUTHOR_PATTERN.search(entry)
        link_match = LINK_PATTERN.search(entry)
        published_match = PUBLISHED_PATTERN.search(entry)
        content_match = CONTENT_PATTERN.search(entry)

        posts.append(Post(
            id=post_id,
            community=community,
            author=author_match.group(1).strip() if author_match else "[unknown]",
            title=title,
            body=html_to_text(content_match.group(1)) if content_match else "",
            created_at=parse_timestamp(published_match.group(1)) if published_match else None,
            score=0,
            comment_count=0,
            flair=None,
            retrieval_method=RetrievalMethod.FALLBACK_FEED,
            scraped_at=scraped_at,
            url=link_match.group(1) if link_match else "",
        ))
    return posts


class FeedAdapter(SourceAdapter):
    """``www.reddit.com/r/{community}/{sort}/.rss`` feeds."""

    name = "feed"
    method = RetrievalMethod.FALLBACK_FEED

    def feed_url(self, community: str, sort_mode: SortMode) -> str:
        return f"{self.base_url}/r/{community}/{sort_mode.value}/.rss"

    @property
    def headers(self):
        headers = dict(super().headers)
        headers["Accept"] = "application/atom+xml, application/rss+xml, application/xml, text/xml, */*"
        return headers

    async def _fetch(self, community: str, filters: FetchFilters) -> FetchResult:
        params = {"limit": filters.limit}
        if filters.sort_mode is SortMode.TOP:
            params["t"] = filters.time_range.listing_window

        xml_text = await self._get_text(self.feed_url(community, filters.sort_mode), params=params)
        if "<feed" not in xml_text and "<rss" not in xml_text:
            raise MalformedResponseError("Response is not a feed document")

        posts = parse_feed(xml_text, community, self._now())
        if len(posts) > filters.limit:
            logger.debug(f"Feed for r/{community} returned {len(posts)} entries, keeping {filters.limit}")
            posts = posts[:filters.limit]
        return FetchResult.ok(self.method, posts)
