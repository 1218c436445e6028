"""Tagged result type returned by every source adapter."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from reddit_harvester.models.records import Comment, Post, RetrievalMethod


class FetchStatus(str, Enum):
    """Outcome classes of a single adapter call."""

    OK = "ok"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FetchResult:
    """
    What one adapter produced for one community.

    Only ``OK`` results carry records. ``retry_after`` is the upstream hint
    (seconds) attached to ``RATE_LIMITED`` results when one was sent.
    """

    status: FetchStatus
    method: RetrievalMethod
    posts: List[Post] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    error_message: Optional[str] = None
    retry_after: Optional[float] = None

    @property
    def is_ok(self) -> bool:
        return self.status is FetchStatus.OK

    @property
    def is_rate_limited(self) -> bool:
        return self.status is FetchStatus.RATE_LIMITED

    @classmethod
    def ok(cls, method: RetrievalMethod, posts: List[Post], comments: Optional[List[Comment]] = None) -> "FetchResult":
        return cls(status=FetchStatus.OK, method=method, posts=list(posts), comments=list(comments or []))

    @classmethod
    def failure(
        cls,
        method: RetrievalMethod,
        status: FetchStatus,
        error_message: str,
        retry_after: Optional[float] = None,
    ) -> "FetchResult":
        if status is FetchStatus.OK:
            raise ValueError("A failure result cannot have status OK")
        return cls(status=status, method=method, error_message=error_message, retry_after=retry_after)

    def describe(self) -> str:
        """Short diagnostic used in per-community error messages."""
        detail = f": {self.error_message}" if self.error_message else ""
        return f"{self.method.value} {self.status.value}{detail}"
