"""Folding of per-community outcomes into a harvest summary.

``fold`` and ``combine`` only add integers and merge counters, so outcomes can
be aggregated in any order or grouping with the same result.
"""

from collections import Counter
from dataclasses import replace
from typing import Iterable

from reddit_harvester.models.job import CommunityOutcome, HarvestSummary


def fold(summary: HarvestSummary, outcome: CommunityOutcome) -> HarvestSummary:
    """
    Add one community outcome to a summary.

    Args:
        summary: Summary accumulated so far
        outcome: Outcome of one community

    Returns:
        A new summary including the outcome
    """
    tally = Counter(summary.method_tally)
    tally[outcome.method_used.value] += 1

    errors = dict(summary.errors)
    if outcome.error_message:
        errors[outcome.community] = outcome.error_message

    return replace(
        summary,
        total_posts=summary.total_posts + outcome.post_count,
        total_comments=summary.total_comments + outcome.comment_count,
        communities_requested=summary.communities_requested + 1,
        communities_succeeded=summary.communities_succeeded + (1 if outcome.succeeded else 0),
        communities_failed=summary.communities_failed + (0 if outcome.succeeded else 1),
        score_sum=summary.score_sum + outcome.score_sum,
        scored_posts=summary.scored_posts + outcome.scored_posts,
        method_tally=dict(tally),
        errors=errors,
    )


def combine(a: HarvestSummary, b: HarvestSummary) -> HarvestSummary:
    """
    Merge two partial summaries.

    Elapsed time is the longer of the two and cancellation is sticky.
    """
    tally = Counter(a.method_tally)
    tally.update(b.method_tally)
    errors = dict(a.errors)
    errors.update(b.errors)
    return HarvestSummary(
        total_posts=a.total_posts + b.total_posts,
        total_comments=a.total_comments + b.total_comments,
        communities_requested=a.communities_requested + b.communities_requested,
        communities_succeeded=a.communities_succeeded + b.communities_succeeded,
        communities_failed=a.communities_failed + b.communities_failed,
        score_sum=a.score_sum + b.score_sum,
        scored_posts=a.scored_posts + b.scored_posts,
        method_tally=dict(tally),
        errors=errors,
        elapsed_ms=max(a.elapsed_ms, b.elapsed_ms),
        cancelled=a.cancelled or b.cancelled,
    )


def summarize(outcomes: Iterable[CommunityOutcome], elapsed_ms: int = 0, cancelled: bool = False) -> HarvestSummary:
    """Fold every outcome of a job into its final summary."""
    summary = HarvestSummary()
    for outcome in outcomes:
        summary = fold(summary, outcome)
    return replace(summary, elapsed_ms=elapsed_ms, cancelled=cancelled)
