"""Data models for harvested Reddit posts and comments."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class RetrievalMethod(str, Enum):
    """Which adapter in the fallback chain produced a record."""

    PRIMARY = "primary"
    FALLBACK_ANONYMOUS = "fallback-anonymous"
    FALLBACK_FEED = "fallback-feed"
    FALLBACK_ARCHIVE = "fallback-archive"
    FAILED = "failed"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Post:
    """
    A single Reddit submission as it enters the corpus.

    ``created_at`` is ``None`` when the upstream timestamp could not be parsed.
    Such posts stay in the corpus but are ignored by time-based filtering.
    """

    data_type: ClassVar[str] = "post"

    id: str
    community: str
    author: str
    title: str
    body: str
    created_at: Optional[datetime]
    score: int
    comment_count: int
    flair: Optional[str]
    retrieval_method: RetrievalMethod
    scraped_at: datetime
    url: str = ""

    @property
    def key(self) -> tuple:
        return (self.id, self.community)

    @property
    def text(self) -> str:
        """Title and body joined, as handed to the classification service."""
        if self.body:
            return f"{self.title}\n\n{self.body}"
        return self.title

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "community": self.community,
            "author": self.author,
            "title": self.title,
            "body": self.body,
            "createdAt": _isoformat(self.created_at),
            "score": self.score,
            "commentCount": self.comment_count,
            "flair": self.flair,
            "retrievalMethod": self.retrieval_method.value,
            "scrapedAt": _isoformat(self.scraped_at),
            "url": self.url,
            "dataType": self.data_type,
        }


@dataclass(frozen=True)
class Comment:
    """
    A reply to a post or to another comment.

    ``post_id`` and ``parent_id`` are weak references; the parent does not have
    to be present in the corpus for the comment to be valid.
    """

    data_type: ClassVar[str] = "comment"

    id: str
    post_id: str
    parent_id: str
    community: str
    author: str
    body: str
    created_at: Optional[datetime]
    score: int
    reply_count: int
    retrieval_method: RetrievalMethod
    scraped_at: datetime
    depth: int = 0

    @property
    def key(self) -> tuple:
        return (self.id, self.community)

    @property
    def text(self) -> str:
        return self.body

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "postId": self.post_id,
            "parentId": self.parent_id,
            "community": self.community,
            "author": self.author,
            "body": self.body,
            "createdAt": _isoformat(self.created_at),
            "score": self.score,
            "replyCount": self.reply_count,
            "depth": self.depth,
            "retrievalMethod": self.retrieval_method.value,
            "scrapedAt": _isoformat(self.scraped_at),
            "dataType": self.data_type,
        }
