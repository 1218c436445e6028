"""
SQLAlchemy storage backend for harvested records.

Works with any SQLAlchemy URL; the tests use in-memory SQLite and production
deployments point ``HARVEST_DATABASE_URL`` at PostgreSQL.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from sqlalchemy import create_engine, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reddit_harvester.models.job import HarvestJob, HarvestSummary
from reddit_harvester.models.orm import Base, HarvestRecordORM, HarvestRunORM
from reddit_harvester.storage.data_sink import HarvestRecord

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite needs a single shared connection, otherwise every
    session would see its own empty database.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class SQLAlchemySink:
    """Database sink storing one run row per job and one row per record."""

    def __init__(self, database_url: str, engine: Optional[Engine] = None, create_schema: bool = True):
        """
        Initialize the SQLAlchemy sink.

        Args:
            database_url: SQLAlchemy database URL
            engine: Pre-built engine (overrides ``database_url``)
            create_schema: Create missing tables on startup
        """
        self.engine = engine or create_db_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_schema:
            Base.metadata.create_all(self.engine)

        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info(f"SQLAlchemySink connected to {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope committing on success and rolling back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def write(
        self,
        user_id: str,
        job: HarvestJob,
        records: Sequence[HarvestRecord],
        summary: HarvestSummary,
    ) -> int:
        """
        Store a job and its records.

        Args:
            user_id: Owner of the harvest
            job: The job that produced the records
            records: Posts and comments of the corpus
            summary: Summary of the job

        Returns:
            Number of records stored

        Raises:
            SQLAlchemyError: if the transaction fails; nothing is stored then
        """
        run = HarvestRunORM(
            job_id=job.job_id,
            user_id=user_id,
            communities=list(job.communities),
            time_range=job.time_range.value,
            sort_mode=job.sort_mode.value,
            summary=summary.to_dict(),
        )

        seen = set()
        for record in records:
            key = (record.data_type, record.id, record.community)
            if key in seen:
                continue
            seen.add(key)
            run.records.append(HarvestRecordORM(
                data_type=record.data_type,
                source_id=record.id,
                community=record.community,
                retrieval_method=record.retrieval_method.value,
                occurred_at=record.created_at,
                payload=record.to_dict(),
            ))

        try:
            with self.session() as db:
                db.add(run)
        except SQLAlchemyError as e:
            logger.error(f"Failed to store job {job.job_id}: {str(e)}")
            raise

        logger.info(f"Stored job {job.job_id} with {len(seen)} records")
        return len(seen)

    def count_records(self, job_id: Optional[str] = None) -> int:
        """Number of stored records, optionally limited to one job."""
        statement = select(func.count(HarvestRecordORM.id))
        if job_id is not None:
            statement = statement.select_from(HarvestRecordORM).join(HarvestRunORM).where(HarvestRunORM.job_id == job_id)
        with self.session() as db:
            return db.execute(statement).scalar_one()

    def close(self) -> None:
        self.engine.dispose()
