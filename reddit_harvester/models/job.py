"""Harvest job, per-community outcome and summary models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from reddit_harvester.models.records import RetrievalMethod


class TimeRange(str, Enum):
    """Time window a harvest job covers."""

    DAY = "day"
    THREE_DAYS = "3days"
    WEEK = "week"
    MONTH = "month"

    @property
    def listing_window(self) -> str:
        """Value for Reddit's ``t`` listing parameter. Reddit has no 3-day window."""
        return {
            TimeRange.DAY: "day",
            TimeRange.THREE_DAYS: "week",
            TimeRange.WEEK: "week",
            TimeRange.MONTH: "month",
        }[self]

    @property
    def span(self) -> timedelta:
        return {
            TimeRange.DAY: timedelta(days=1),
            TimeRange.THREE_DAYS: timedelta(days=3),
            TimeRange.WEEK: timedelta(days=7),
            TimeRange.MONTH: timedelta(days=30),
        }[self]

    @property
    def needs_cutoff_filter(self) -> bool:
        """True when the listing window is wider than the requested range."""
        return self is TimeRange.THREE_DAYS

    def cutoff(self, now: datetime) -> datetime:
        return now - self.span


class SortMode(str, Enum):
    """Listing sort order."""

    TOP = "top"
    HOT = "hot"
    RISING = "rising"


class JobState(str, Enum):
    """Lifecycle of a harvest job. A job with failed communities still completes."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"


@dataclass(frozen=True)
class FetchFilters:
    """What a source adapter needs to know about the job."""

    time_range: TimeRange
    sort_mode: SortMode
    limit: int


@dataclass(frozen=True)
class HarvestJob:
    """
    A unit of harvest work.

    Communities form an ordered set: duplicates (case-insensitive) are removed
    keeping the first occurrence. The job is never mutated once created.
    """

    communities: Tuple[str, ...]
    time_range: TimeRange = TimeRange.DAY
    sort_mode: SortMode = SortMode.TOP
    posts_per_community: int = 25
    fast_mode: bool = True
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        seen = set()
        ordered = []
        for name in self.communities:
            cleaned = name.strip()
            if cleaned.lower().startswith("r/"):
                cleaned = cleaned[2:]
            if not cleaned or cleaned.lower() in seen:
                continue
            seen.add(cleaned.lower())
            ordered.append(cleaned)
        if not ordered:
            raise ValueError("A harvest job needs at least one community")
        if self.posts_per_community <= 0:
            raise ValueError("posts_per_community must be a positive integer")
        object.__setattr__(self, "communities", tuple(ordered))
        object.__setattr__(self, "time_range", TimeRange(self.time_range))
        object.__setattr__(self, "sort_mode", SortMode(self.sort_mode))

    @property
    def filters(self) -> FetchFilters:
        return FetchFilters(
            time_range=self.time_range,
            sort_mode=self.sort_mode,
            limit=self.posts_per_community,
        )


@dataclass(frozen=True)
class CommunityOutcome:
    """
    Result of harvesting one community.

    ``score_sum`` and ``scored_posts`` only count posts with a non-zero score so
    that adapters without engagement data (the feed) do not drag the average
    toward zero.
    """

    community: str
    method_used: RetrievalMethod
    post_count: int = 0
    comment_count: int = 0
    error_message: Optional[str] = None
    score_sum: int = 0
    scored_posts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.method_used is not RetrievalMethod.FAILED

    @classmethod
    def failed(cls, community: str, error_message: str) -> "CommunityOutcome":
        return cls(community=community, method_used=RetrievalMethod.FAILED, error_message=error_message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "community": self.community,
            "postCount": self.post_count,
            "commentCount": self.comment_count,
            "methodUsed": self.method_used.value,
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class HarvestSummary:
    """Aggregate of every ``CommunityOutcome`` of a job."""

    total_posts: int = 0
    total_comments: int = 0
    communities_requested: int = 0
    communities_succeeded: int = 0
    communities_failed: int = 0
    score_sum: int = 0
    scored_posts: int = 0
    method_tally: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0
    cancelled: bool = False

    @property
    def average_engagement(self) -> float:
        if not self.scored_posts:
            return 0.0
        return self.score_sum / self.scored_posts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPosts": self.total_posts,
            "totalComments": self.total_comments,
            "communitiesRequested": self.communities_requested,
            "communitiesSucceeded": self.communities_succeeded,
            "communitiesFailed": self.communities_failed,
            "averageEngagement": round(self.average_engagement, 2),
            "methodTally": dict(sorted(self.method_tally.items())),
            "errors": dict(sorted(self.errors.items())),
            "elapsedMs": self.elapsed_ms,
            "cancelled": self.cancelled,
        }
