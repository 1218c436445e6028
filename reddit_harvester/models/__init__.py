"""Data models for the Reddit harvester."""

from reddit_harvester.models.fetch import FetchResult, FetchStatus
from reddit_harvester.models.job import (
    CommunityOutcome,
    FetchFilters,
    HarvestJob,
    HarvestSummary,
    JobState,
    SortMode,
    TimeRange,
)
from reddit_harvester.models.records import Comment, Post, RetrievalMethod

__all__ = [
    "Comment",
    "CommunityOutcome",
    "FetchFilters",
    "FetchResult",
    "FetchStatus",
    "HarvestJob",
    "HarvestSummary",
    "JobState",
    "Post",
    "RetrievalMethod",
    "SortMode",
    "TimeRange",
]
