# sreality_crawler/models.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared queue/store schema."""


class SnapshotBase(DeclarativeBase):
    """Optional snapshot database schema (separate engine)."""


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Queue / store
# -----------------------------
class QueueItem(Base):
    """Pending IDs. FIFO by seq; a pop deletes the row."""

    __tablename__ = "queue_items"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    enqueued_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class DiscoveredId(Base):
    __tablename__ = "discovered_ids"
    __table_args__ = (UniqueConstraint("queue", "listing_id", name="uq_discovered_queue_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    discovered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ProcessedId(Base):
    __tablename__ = "processed_ids"
    __table_args__ = (UniqueConstraint("queue", "listing_id", name="uq_processed_queue_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class MissingId(Base):
    """Quarantine for IDs whose detail came back not-found."""

    __tablename__ = "missing_ids"
    __table_args__ = (UniqueConstraint("queue", "listing_id", name="uq_missing_queue_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    missing_since: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class FailedId(Base):
    __tablename__ = "failed_ids"
    __table_args__ = (UniqueConstraint("queue", "listing_id", name="uq_failed_queue_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    attempts: Mapped[int] = mapped_column(Integer, default=1)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    failed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ListingFingerprint(Base):
    """One row per ID, overwritten on change, never deleted."""

    __tablename__ = "listing_fingerprints"
    __table_args__ = (UniqueConstraint("queue", "listing_id", name="uq_fingerprint_queue_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    queue: Mapped[str] = mapped_column(String(40), index=True)
    listing_id: Mapped[str] = mapped_column(String(64))
    digest: Mapped[str] = mapped_column(String(64))
    canonical_json: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class JobRun(Base):
    """
    Tracks coordinator/worker executions.
    service_layer/jobruns.py writes these.
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # optional metadata: {"transaction_type": "rent", "category": "all"}
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)


# -----------------------------
# Snapshot database
# -----------------------------
class ListingSnapshot(SnapshotBase):
    __tablename__ = "listing_snapshots"
    __table_args__ = (
        UniqueConstraint("portal", "portal_id", "checksum", name="uq_snapshot_portal_id_checksum"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    portal: Mapped[str] = mapped_column(String(40), index=True)
    portal_id: Mapped[str] = mapped_column(String(64), index=True)
    checksum: Mapped[str] = mapped_column(String(64))
    data_json: Mapped[str] = mapped_column(Text)
    captured_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
