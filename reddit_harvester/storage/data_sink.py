"""Defines the DataSink protocol for storage backends."""

from typing import Protocol, Sequence, Union

from reddit_harvester.models.job import HarvestJob, HarvestSummary
from reddit_harvester.models.records import Comment, Post

HarvestRecord = Union[Post, Comment]


class DataSink(Protocol):
    """
    A protocol that defines the interface for all harvest sinks.

    Sinks are append-only: every finished job is written once, together with
    its summary, and nothing is read back by the pipeline.
    """

    def write(
        self,
        user_id: str,
        job: HarvestJob,
        records: Sequence[HarvestRecord],
        summary: HarvestSummary,
    ) -> int:
        """
        Persist the corpus of one job.

        Args:
            user_id: Owner of the harvest
            job: The job that produced the records
            records: Posts and comments of the corpus
            summary: Summary of the job

        Returns:
            The number of records written.
        """
        ...
