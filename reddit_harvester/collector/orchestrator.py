"""Batch orchestration of a harvest job across communities and adapters."""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

from reddit_harvester.collector.aggregator import summarize
from reddit_harvester.collector.error_handler import ConsecutiveErrorTracker, retry_once_on_rate_limit
from reddit_harvester.collector.noise_filter import filter_records
from reddit_harvester.collector.progress import (
    ProgressEvent,
    ProgressEventType,
    ProgressReporter,
    estimate_eta,
)
from reddit_harvester.config import HarvestSettings
from reddit_harvester.models.fetch import FetchResult, FetchStatus
from reddit_harvester.models.job import CommunityOutcome, HarvestJob, HarvestSummary, JobState
from reddit_harvester.models.records import Comment, Post, RetrievalMethod
from reddit_harvester.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "skipped: job cancelled"
ABORTED_MESSAGE = "skipped: harvest aborted by an internal error"

WorkerResult = Tuple[CommunityOutcome, List[Post], List[Comment]]


@dataclass
class HarvestResult:
    """Corpus, per-community outcomes and summary of one finished job."""

    job: HarvestJob
    state: JobState
    summary: HarvestSummary
    outcomes: List[CommunityOutcome] = field(default_factory=list)
    posts: List[Post] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    @property
    def records(self) -> List[object]:
        return [*self.posts, *self.comments]


def _unique(records: list) -> list:
    """Drop records whose (id, community) key was already seen, keeping the first."""
    seen = set()
    unique = []
    for record in records:
        if record.key not in seen:
            seen.add(record.key)
            unique.append(record)
    return unique


def _batches(communities: Sequence[str], size: int) -> List[List[str]]:
    return [list(communities[i:i + size]) for i in range(0, len(communities), size)]


class HarvestOrchestrator:
    """
    Runs a harvest job.

    Communities are processed in fixed-size batches. The communities of one
    batch are harvested concurrently and batches run one after the other,
    separated by a pause. Within a community the adapters are tried in
    priority order until one returns OK.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        settings: HarvestSettings,
        progress_reporter: Optional[ProgressReporter] = None,
        prometheus_exporter=None,
    ):
        """
        Initialize the orchestrator.

        Args:
            adapters: Source adapters, highest priority first
            settings: Batching, retry and filtering settings
            progress_reporter: Optional observer notified around every batch
            prometheus_exporter: Optional Prometheus exporter for metrics

        Raises:
            ValueError: if the batch size is not positive
        """
        if settings.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {settings.batch_size}")
        self.adapters = list(adapters)
        self.settings = settings
        self.progress_reporter = progress_reporter
        self.prometheus_exporter = prometheus_exporter

    async def run(self, job: HarvestJob, cancel_event: Optional[asyncio.Event] = None) -> HarvestResult:
        """
        Harvest every community of a job.

        Never raises for upstream failures: a community that no adapter could
        fetch is recorded as failed and the job still completes. Setting
        ``cancel_event`` stops the job before the next batch; communities that
        were not attempted are recorded as failed.

        Args:
            job: The job to run
            cancel_event: Optional event the caller sets to cancel the job

        Returns:
            The HarvestResult with corpus, outcomes and summary
        """
        cancel_event = cancel_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        started = loop.time()

        batches = _batches(job.communities, self.settings.batch_size)
        trackers = {
            adapter.method: ConsecutiveErrorTracker(
                self.settings.adapter_failure_threshold,
                name=adapter.method.value,
                prometheus_exporter=self.prometheus_exporter,
            )
            for adapter in self.adapters
        }

        outcomes: Dict[str, CommunityOutcome] = {}
        posts: List[Post] = []
        comments: List[Comment] = []
        seen: Set[Tuple[str, str, str]] = set()
        cancelled = False
        skip_message = ABORTED_MESSAGE

        state = JobState.RUNNING
        logger.info(f"Job {job.job_id} {state.value}: {len(job.communities)} communities in {len(batches)} batches")

        try:
            for index, batch in enumerate(batches, start=1):
                if cancel_event.is_set():
                    cancelled = True
                    break

                self._report(ProgressEvent(
                    type=ProgressEventType.BATCH_START,
                    batch_index=index,
                    total_batches=len(batches),
                    processed_count=len(outcomes),
                    total_count=len(job.communities),
                    communities=batch,
                    elapsed_sec=loop.time() - started,
                    eta_sec=estimate_eta(loop.time() - started, index - 1, len(batches)),
                ))

                results = await asyncio.gather(
                    *(self._harvest_community(community, job, trackers) for community in batch),
                    return_exceptions=True,
                )

                for community, result in zip(batch, results):
                    if isinstance(result, BaseException):
                        logger.error(f"Unhandled error while harvesting r/{community}", exc_info=result)
                        outcome = CommunityOutcome.failed(
                            community, f"internal error: {type(result).__name__}: {result}"
                        )
                        community_posts, community_comments = [], []
                    else:
                        outcome, community_posts, community_comments = result

                    for record in (*community_posts, *community_comments):
                        key = (record.data_type, *record.key)
                        if key in seen:
                            continue
                        seen.add(key)
                        (posts if isinstance(record, Post) else comments).append(record)
                    outcomes[community] = outcome
                    self._record_outcome_metrics(outcome)

                elapsed = loop.time() - started
                self._report(ProgressEvent(
                    type=ProgressEventType.BATCH_COMPLETE,
                    batch_index=index,
                    total_batches=len(batches),
                    processed_count=len(outcomes),
                    total_count=len(job.communities),
                    communities=batch,
                    elapsed_sec=elapsed,
                    eta_sec=estimate_eta(elapsed, index, len(batches)),
                ))

                if index < len(batches) and await self._pause(cancel_event):
                    cancelled = True
                    break
        except Exception:
            logger.exception(f"Job {job.job_id} aborted; returning partial results")

        if cancelled:
            skip_message = CANCELLED_MESSAGE
            logger.warning(f"Job {job.job_id} cancelled after {len(outcomes)}/{len(job.communities)} communities")

        ordered = [
            outcomes.get(community) or CommunityOutcome.failed(community, skip_message)
            for community in job.communities
        ]

        elapsed_ms = int((loop.time() - started) * 1000)
        summary = summarize(ordered, elapsed_ms=elapsed_ms, cancelled=cancelled)
        state = JobState.COMPLETED if summary.communities_failed == 0 else JobState.COMPLETED_WITH_FAILURES

        if self.prometheus_exporter:
            self.prometheus_exporter.record_job_finished(state.value)

        logger.info(
            f"Job {job.job_id} {state.value}: {summary.total_posts} posts, {summary.total_comments} comments, "
            f"{summary.communities_succeeded}/{summary.communities_requested} communities in {elapsed_ms}ms"
        )
        return HarvestResult(job=job, state=state, summary=summary, outcomes=ordered, posts=posts, comments=comments)

    async def _harvest_community(
        self,
        community: str,
        job: HarvestJob,
        trackers: Dict[RetrievalMethod, ConsecutiveErrorTracker],
    ) -> WorkerResult:
        """Walk the adapter chain for one community and clean what the first successful adapter returns."""
        errors: List[str] = []
        filters = job.filters

        for adapter in self.adapters:
            tracker = trackers[adapter.method]
            if tracker.should_abort():
                errors.append(f"{adapter.method.value} skipped after {tracker.consecutive_errors} consecutive failures")
                continue

            result = await retry_once_on_rate_limit(
                functools.partial(adapter.fetch_community, community, filters),
                self.settings.rate_limit_retry_delay_sec,
            )

            if result.is_ok:
                tracker.record_success()
                return self._build_outcome(community, job, result)

            # A missing community says nothing about the health of the adapter.
            if result.status is not FetchStatus.NOT_FOUND:
                tracker.record_error()
            errors.append(result.describe())

        if not self.adapters:
            errors.append("no source adapters configured")
        logger.warning(f"All adapters failed for r/{community}: {'; '.join(errors)}")
        return CommunityOutcome.failed(community, "; ".join(errors)), [], []

    def _build_outcome(self, community: str, job: HarvestJob, result: FetchResult) -> WorkerResult:
        min_length = self.settings.min_body_length
        posts = self._within_range(job, filter_records(result.posts, min_length=min_length))
        comments = self._within_range(job, filter_records(result.comments, min_length=min_length))

        posts = _unique(posts)
        comments = _unique(comments)

        scored = [post.score for post in posts if post.score != 0]
        logger.info(f"r/{community} via {result.method.value}: {len(posts)} posts, {len(comments)} comments kept "
                    f"({len(result.posts)} posts, {len(result.comments)} comments fetched)")

        outcome = CommunityOutcome(
            community=community,
            method_used=result.method,
            post_count=len(posts),
            comment_count=len(comments),
            score_sum=sum(scored),
            scored_posts=len(scored),
        )
        return outcome, posts, comments

    @staticmethod
    def _within_range(job: HarvestJob, records: list) -> list:
        """Drop records older than the requested range when the listing window is wider than it."""
        if not job.time_range.needs_cutoff_filter:
            return records
        cutoff = job.time_range.cutoff(datetime.now(timezone.utc))
        return [record for record in records if record.created_at is None or record.created_at >= cutoff]

    async def _pause(self, cancel_event: asyncio.Event) -> bool:
        """Wait between batches. Returns True if cancellation interrupted the wait."""
        delay = self.settings.inter_batch_delay_sec
        if delay <= 0:
            return cancel_event.is_set()
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _report(self, event: ProgressEvent) -> None:
        if self.progress_reporter is None:
            return
        try:
            self.progress_reporter.report(event)
        except Exception:
            logger.warning(f"Progress reporter failed on {event.type.value} event", exc_info=True)

    def _record_outcome_metrics(self, outcome: CommunityOutcome) -> None:
        if not self.prometheus_exporter:
            return
        self.prometheus_exporter.record_community_outcome(outcome.method_used.value)
        self.prometheus_exporter.record_collected(outcome.community, Post.data_type, outcome.post_count)
        self.prometheus_exporter.record_collected(outcome.community, Comment.data_type, outcome.comment_count)
