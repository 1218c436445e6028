"""Mapping functions to convert upstream Reddit payloads to our data models."""

import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser

from reddit_harvester.models.records import Post, RetrievalMethod

logger = logging.getLogger(__name__)

DELETION_SENTINELS = frozenset({"[deleted]", "[removed]"})


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an upstream timestamp into an aware UTC datetime.

    Accepts Unix epochs (int, float or numeric string) and ISO-8601 strings.

    Args:
        value: Raw timestamp value from the upstream payload

    Returns:
        The parsed datetime, or None when the value is missing or invalid
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            pass
        except (OverflowError, OSError):
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    return None


def is_deleted_author(author: Optional[str]) -> bool:
    return not author or author in DELETION_SENTINELS


def as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def listing_post_to_record(
    data: Dict[str, Any],
    community: str,
    method: RetrievalMethod,
    scraped_at: datetime,
) -> Post:
    """
    Convert the ``data`` object of a ``t3`` listing child to a Post.

    Used for both the OAuth and the anonymous JSON listings, which share the
    same payload shape.

    Args:
        data: The ``data`` dict of a listing child
        community: Community the listing was requested for
        method: Adapter that produced the listing
        scraped_at: Time the harvest ran

    Returns:
        A Post record
    """
    permalink = data.get("permalink") or ""
    return Post(
        id=str(data["id"]),
        community=community,
        author=data.get("author") or "[deleted]",
        title=html.unescape(data.get("title") or ""),
        body=html.unescape(data.get("selftext") or ""),
        created_at=parse_timestamp(data.get("created_utc")),
        score=as_int(data.get("score")),
        comment_count=as_int(data.get("num_comments")),
        flair=data.get("link_flair_text") or None,
        retrieval_method=method,
        scraped_at=scraped_at,
        url=f"https://www.reddit.com{permalink}" if permalink else (data.get("url") or ""),
    )


def archive_submission_to_record(
    submission: Dict[str, Any],
    community: str,
    scraped_at: datetime,
) -> Post:
    """
    Convert an archive-mirror submission to a Post.

    Args:
        submission: Submission dict from the Pushshift-compatible mirror
        community: Community the search was issued for
        scraped_at: Time the harvest ran

    Returns:
        A Post record
    """
    permalink = submission.get("permalink") or ""
    return Post(
        id=str(submission["id"]),
        community=community,
        author=submission.get("author") or "[deleted]",
        title=submission.get("title") or "",
        body=submission.get("selftext") or "",
        created_at=parse_timestamp(submission.get("created_utc")),
        score=as_int(submission.get("score")),
        comment_count=as_int(submission.get("num_comments")),
        flair=submission.get("link_flair_text") or None,
        retrieval_method=RetrievalMethod.FALLBACK_ARCHIVE,
        scraped_at=scraped_at,
        url=f"https://www.reddit.com{permalink}" if permalink else (submission.get("url") or ""),
    )
