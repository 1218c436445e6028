"""SQLAlchemy ORM models for persisted harvests."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class HarvestRunORM(Base):
    """
    One finished harvest job.

    Schema:
      id             INTEGER PRIMARY KEY,
      job_id         TEXT UNIQUE NOT NULL,
      user_id        TEXT NOT NULL,
      communities    JSON NOT NULL,
      time_range     TEXT NOT NULL,
      sort_mode      TEXT NOT NULL,
      summary        JSON NOT NULL,
      created_at     TIMESTAMPTZ NOT NULL DEFAULT now()
    """
    __tablename__ = "harvest_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    communities: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    time_range: Mapped[str] = mapped_column(String(16), nullable=False)
    sort_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    summary: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    records: Mapped[List["HarvestRecordORM"]] = relationship(back_populates="run", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<HarvestRunORM(id={self.id}, job_id='{self.job_id}', user_id='{self.user_id}')>"


class HarvestRecordORM(Base):
    """
    A post or comment of a harvest, with the serialized record as payload.

    Unique per run on (data_type, source_id, community).
    """
    __tablename__ = "harvest_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("harvest_runs.id", ondelete="CASCADE"), nullable=False)
    data_type: Mapped[str] = mapped_column(String(16), nullable=False)
    source_id: Mapped[str] = mapped_column(Text, nullable=False)
    community: Mapped[str] = mapped_column(Text, nullable=False)
    retrieval_method: Mapped[str] = mapped_column(String(32), nullable=False)
    occurred_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    run: Mapped[HarvestRunORM] = relationship(back_populates="records")

    __table_args__ = (
        UniqueConstraint("run_id", "data_type", "source_id", "community", name="uq_harvest_records_run_record"),
        Index("ix_harvest_records_community_occurred_at", "community", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<HarvestRecordORM(id={self.id}, data_type='{self.data_type}', source_id='{self.source_id}')>"
