"""Composite storage implementation for writing to multiple storage backends."""

import logging
from typing import List, Sequence

from reddit_harvester.models.job import HarvestJob, HarvestSummary
from reddit_harvester.storage.data_sink import DataSink, HarvestRecord

logger = logging.getLogger(__name__)


class CompositeSink:
    """
    Composite sink that writes to multiple storage backends.

    The first sink is the primary one: its count is what ``write`` reports.
    A failing secondary sink is logged and does not affect the others.
    """

    def __init__(self, configured_sinks: List[DataSink]):
        """
        Initialize the composite sink with pre-configured sink instances.

        Args:
            configured_sinks: A list of already initialized DataSink objects.
        """
        logger.info(f"Initializing CompositeSink with {len(configured_sinks)} sinks: "
                    f"{[sink.__class__.__name__ for sink in configured_sinks]}")
        self.sinks: List[DataSink] = configured_sinks

        if not self.sinks:
            logger.warning("CompositeSink initialized with no data sinks.")

    def write(
        self,
        user_id: str,
        job: HarvestJob,
        records: Sequence[HarvestRecord],
        summary: HarvestSummary,
    ) -> int:
        """
        Write a job to all configured storage backends.

        Returns:
            Number of records written by the primary sink
        """
        if not records:
            logger.debug("No records to write to storage")

        primary_count = 0
        for i, sink in enumerate(self.sinks):
            sink_name = sink.__class__.__name__
            try:
                count = sink.write(user_id, job, records, summary)
                logger.info(f"Wrote {count} records to {sink_name}")
                if i == 0:
                    primary_count = count
            except Exception as e:
                logger.error(f"Error in {sink_name}.write: {str(e)}", exc_info=True)

        return primary_count
