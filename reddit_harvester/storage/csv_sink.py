"""CSV storage implementation for harvested records."""

import csv
import logging
import os
from typing import Any, Dict, List, Sequence

import pandas as pd

from reddit_harvester.models.job import HarvestJob, HarvestSummary
from reddit_harvester.storage.data_sink import DataSink, HarvestRecord

logger = logging.getLogger(__name__)


class CsvSink(DataSink):
    """CSV file implementation of the DataSink interface."""

    COLUMNS = [
        "job_id", "user_id", "data_type", "id", "community", "post_id", "parent_id",
        "author", "title", "body", "created_at", "score", "comment_count",
        "reply_count", "depth", "flair", "url", "retrieval_method", "scraped_at",
    ]

    # Identity of a row across jobs.
    KEY_COLUMNS = ["data_type", "id", "community"]

    def __init__(self, csv_path: str):
        """
        Initialize the CSV sink with a file path.

        Args:
            csv_path: Path to the CSV file
        """
        self.csv_path = csv_path
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the directory for the CSV file exists."""
        directory = os.path.dirname(self.csv_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _file_exists(self) -> bool:
        """Check if the CSV file already exists."""
        return os.path.exists(self.csv_path) and os.path.getsize(self.csv_path) > 0

    @staticmethod
    def to_row(user_id: str, job: HarvestJob, record: HarvestRecord) -> Dict[str, Any]:
        data = record.to_dict()
        return {
            "job_id": job.job_id,
            "user_id": user_id,
            "data_type": record.data_type,
            "id": record.id,
            "community": record.community,
            "post_id": data.get("postId"),
            "parent_id": data.get("parentId"),
            "author": record.author,
            "title": data.get("title"),
            "body": record.body,
            "created_at": data["createdAt"],
            "score": record.score,
            "comment_count": data.get("commentCount"),
            "reply_count": data.get("replyCount"),
            "depth": data.get("depth"),
            "flair": data.get("flair"),
            "url": data.get("url"),
            "retrieval_method": data["retrievalMethod"],
            "scraped_at": data["scrapedAt"],
        }

    def write(
        self,
        user_id: str,
        job: HarvestJob,
        records: Sequence[HarvestRecord],
        summary: HarvestSummary,
    ) -> int:
        """
        Append a job's records to the CSV file.

        Records already present from an earlier job (same type, id and
        community) are not written again.

        Args:
            user_id: Owner of the harvest
            job: The job that produced the records
            records: Posts and comments of the corpus
            summary: Summary of the job (not stored in the CSV)

        Returns:
            Number of new rows written
        """
        if not records:
            return 0

        rows: List[Dict[str, Any]] = [self.to_row(user_id, job, record) for record in records]

        try:
            df = pd.DataFrame(rows).reindex(columns=self.COLUMNS)
            df = df.drop_duplicates(subset=self.KEY_COLUMNS, keep="first")

            if self._file_exists():
                existing = pd.read_csv(self.csv_path, usecols=self.KEY_COLUMNS, dtype=str, encoding="utf-8")
                known = set(map(tuple, existing[self.KEY_COLUMNS].itertuples(index=False, name=None)))
                mask = [key not in known for key in df[self.KEY_COLUMNS].astype(str).itertuples(index=False, name=None)]
                df = df[mask]
                header = False
            else:
                header = True

            if df.empty:
                logger.info(f"No new records for {self.csv_path} from job {job.job_id}")
                return 0

            df.to_csv(
                self.csv_path,
                mode="a",
                index=False,
                header=header,
                quoting=csv.QUOTE_MINIMAL,
                encoding="utf-8",
            )

            count = len(df)
            logger.info(f"Appended {count} records from job {job.job_id} to {self.csv_path}")
            return count

        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to append records to CSV: {str(e)}")
            return 0
