"""Noise filtering of harvested posts and comments.

Everything in this module is pure: the same record always yields the same
decision, independent of the order in which records are filtered.
"""

import re
from typing import Iterable, List, Optional, TypeVar, Union

from reddit_harvester.models.mapping import DELETION_SENTINELS, is_deleted_author
from reddit_harvester.models.records import Comment, Post

DEFAULT_MIN_LENGTH = 10
LINK_PLACEHOLDER = "[LINK]"

BOILERPLATE_PATTERNS = [
    re.compile(r"^i am a bot", re.IGNORECASE),
    re.compile(r"^i'm a bot", re.IGNORECASE),
    re.compile(r"this action was performed automatically", re.IGNORECASE),
    re.compile(r"please \[?contact the moderators of this subreddit", re.IGNORECASE),
    re.compile(r"your (post|submission|comment) has been removed", re.IGNORECASE),
    re.compile(r"^automod", re.IGNORECASE),
]

URL_PATTERN = re.compile(r"https?://\S+")
REDDIT_LINK_PATTERN = re.compile(r"/?\b[ru]/\w+")
MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\([^)]+\)")
WHITESPACE_PATTERN = re.compile(r"\s+")

Record = Union[Post, Comment]
R = TypeVar("R", Post, Comment)


def clean_text(text: Optional[str]) -> str:
    """
    Normalize text for filtering and classification.

    Markdown links keep their label, bare URLs become ``[LINK]`` and
    community/user references are removed.

    Args:
        text: Raw post or comment text

    Returns:
        Cleaned single-line text
    """
    if not text or not text.strip():
        return ""
    cleaned = MARKDOWN_LINK_PATTERN.sub(r"\1", text)
    cleaned = URL_PATTERN.sub(LINK_PLACEHOLDER, cleaned)
    cleaned = REDDIT_LINK_PATTERN.sub("", cleaned)
    return WHITESPACE_PATTERN.sub(" ", cleaned).strip()


def is_bot(text: str, author: Optional[str] = None) -> bool:
    """True when the author looks like an automation account or the text is a bot notice."""
    if author:
        lowered = author.lower()
        if "bot" in lowered or "automod" in lowered:
            return True
    return any(pattern.search(text) for pattern in BOILERPLATE_PATTERNS)


def _record_text(record: Record) -> str:
    if isinstance(record, Post):
        if record.body and record.body.strip() not in DELETION_SENTINELS:
            return f"{record.title}. {record.body}"
        return record.title
    return record.body


def _is_title_only(record: Record) -> bool:
    return isinstance(record, Post) and (not record.body or record.body.strip() in DELETION_SENTINELS)


def keep(record: Record, min_length: int = DEFAULT_MIN_LENGTH) -> bool:
    """
    Decide whether a record belongs in the corpus.

    Args:
        record: Post or comment to judge
        min_length: Minimum length of the cleaned text, links excluded

    Returns:
        True to keep the record
    """
    if is_deleted_author(record.author):
        return False

    raw = _record_text(record)
    if not raw or raw.strip() in DELETION_SENTINELS:
        return False
    if is_bot(raw.strip(), record.author):
        return False

    cleaned = clean_text(raw)
    without_links = cleaned.replace(LINK_PLACEHOLDER, "").strip()
    if not without_links:
        return False

    if _is_title_only(record):
        return True
    return len(without_links) >= min_length


def filter_records(records: Iterable[R], min_length: int = DEFAULT_MIN_LENGTH) -> List[R]:
    """Apply ``keep`` to a sequence, preserving order."""
    return [record for record in records if keep(record, min_length=min_length)]
