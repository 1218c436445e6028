"""Tests for the job models and request DTOs."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from reddit_harvester.models.dtos import HarvestRequest, HarvestResponse
from reddit_harvester.models.job import CommunityOutcome, HarvestJob, SortMode, TimeRange
from reddit_harvester.models.records import RetrievalMethod


class TestHarvestJob:
    """Test cases for HarvestJob."""

    def test_communities_deduplicated_in_order(self):
        job = HarvestJob(communities=("science", "r/PhD", "Science", " phd ", "labrats"))

        assert job.communities == ("science", "PhD", "labrats")

    def test_enums_coerced(self):
        job = HarvestJob(communities=("science",), time_range="3days", sort_mode="rising")

        assert job.time_range is TimeRange.THREE_DAYS
        assert job.sort_mode is SortMode.RISING
        assert job.filters.limit == 25

    def test_invalid_jobs(self):
        with pytest.raises(ValueError):
            HarvestJob(communities=())
        with pytest.raises(ValueError):
            HarvestJob(communities=("  ", "r/"))
        with pytest.raises(ValueError):
            HarvestJob(communities=("science",), posts_per_community=0)
        with pytest.raises(ValueError):
            HarvestJob(communities=("science",), time_range="year")

    def test_job_ids_unique(self):
        assert HarvestJob(communities=("a",)).job_id != HarvestJob(communities=("a",)).job_id


class TestTimeRange:
    """Test cases for TimeRange."""

    def test_listing_windows(self):
        assert TimeRange.DAY.listing_window == "day"
        assert TimeRange.THREE_DAYS.listing_window == "week"
        assert TimeRange.MONTH.listing_window == "month"

    def test_cutoff(self):
        now = datetime(2024, 5, 10, tzinfo=timezone.utc)

        assert TimeRange.THREE_DAYS.cutoff(now) == now - timedelta(days=3)
        assert TimeRange.THREE_DAYS.needs_cutoff_filter
        assert not TimeRange.WEEK.needs_cutoff_filter


class TestCommunityOutcome:
    def test_failed(self):
        outcome = CommunityOutcome.failed("science", "feed timeout")

        assert not outcome.succeeded
        assert outcome.to_dict() == {
            "community": "science",
            "postCount": 0,
            "commentCount": 0,
            "methodUsed": "failed",
            "errorMessage": "feed timeout",
        }

    def test_succeeded(self):
        assert CommunityOutcome("science", RetrievalMethod.FALLBACK_ARCHIVE).succeeded


class TestHarvestRequest:
    """Test cases for the request DTO."""

    def test_camel_case_input(self):
        request = HarvestRequest.model_validate({
            "communities": ["science", " ", "PhD"],
            "timeRange": "week",
            "sortMode": "hot",
            "postsPerCommunity": 10,
            "fastMode": False,
            "userId": "u-1",
        })

        assert request.communities == ["science", "PhD"]
        assert request.time_range is TimeRange.WEEK
        assert request.sort_mode is SortMode.HOT
        assert request.posts_per_community == 10
        assert request.fast_mode is False
        assert request.user_id == "u-1"

    def test_snake_case_input_and_defaults(self):
        request = HarvestRequest.model_validate({"time_range": "month"})

        assert request.communities is None
        assert request.time_range is TimeRange.MONTH
        assert request.sort_mode is SortMode.TOP
        assert request.posts_per_community == 25

    def test_empty_communities_become_none(self):
        assert HarvestRequest(communities=[]).communities is None

    @pytest.mark.parametrize("payload", [
        {"timeRange": "decade"},
        {"sortMode": "new"},
        {"postsPerCommunity": 0},
        {"postsPerCommunity": 101},
        {"communities": "science"},
    ])
    def test_invalid_requests(self, payload):
        with pytest.raises(ValidationError):
            HarvestRequest.model_validate(payload)

    def test_response_dump_uses_camel_case(self):
        dumped = HarvestResponse(success=True, job_id="j1").model_dump(by_alias=True)

        assert dumped["jobId"] == "j1"
        assert dumped["data"] == []
