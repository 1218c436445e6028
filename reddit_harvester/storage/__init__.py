"""Persistence sinks for finished harvests."""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from reddit_harvester.config import StorageConfig
from reddit_harvester.storage.composite_sink import CompositeSink
from reddit_harvester.storage.csv_sink import CsvSink
from reddit_harvester.storage.data_sink import DataSink
from reddit_harvester.storage.sqlalchemy_sink import SQLAlchemySink

logger = logging.getLogger(__name__)


def build_sink(storage: StorageConfig) -> CompositeSink:
    """
    Create the configured sinks. The CSV sink, when configured, is primary.

    A database that cannot be reached is logged and left out so harvesting
    still works with the CSV file alone.
    """
    sinks: List[DataSink] = []
    if storage.csv_path:
        sinks.append(CsvSink(storage.csv_path))

    if storage.database_url:
        try:
            sinks.append(SQLAlchemySink(storage.database_url))
        except SQLAlchemyError as e:
            logger.error(f"Database sink unavailable, continuing without it: {str(e)}")

    return CompositeSink(sinks)


__all__ = ["CompositeSink", "CsvSink", "DataSink", "SQLAlchemySink", "build_sink"]
