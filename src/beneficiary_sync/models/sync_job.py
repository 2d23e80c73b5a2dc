"""SyncJob model: the durable checkpoint of one index sync attempt."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from beneficiary_sync.models.base import Base, TimestampMixin, UUIDMixin


class SyncJobType(enum.StrEnum):
    """Kind of sync a job performs."""

    FULL_SYNC = "FULL_SYNC"
    INCREMENTAL_SYNC = "INCREMENTAL_SYNC"
    SINGLE_RECORD = "SINGLE_RECORD"


class SyncJobStatus(enum.StrEnum):
    """Sync job lifecycle status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    STALLED = "STALLED"


ACTIVE_STATUSES = frozenset({SyncJobStatus.PENDING, SyncJobStatus.RUNNING})
RESUMABLE_STATUSES = frozenset({SyncJobStatus.FAILED, SyncJobStatus.STALLED})

# At most one active full sync per job store, whichever process wrote it.
ACTIVE_FULL_SYNC_PREDICATE = "job_type = 'FULL_SYNC' AND status IN ('PENDING', 'RUNNING')"
ACTIVE_FULL_SYNC_INDEX = "uq_sync_jobs_active_full_sync"


class SyncJob(Base, UUIDMixin, TimestampMixin):
    """Tracks one sync attempt and the resume point of its batch loop.

    Attributes:
        job_type: FULL_SYNC, INCREMENTAL_SYNC or SINGLE_RECORD.
        status: Lifecycle status (see ``SyncJobStatus``).
        total_records: Eligible source rows, counted once per job.
        processed_records: Rows handled so far (successes plus failures).
        success_count: Documents acknowledged by the index.
        failure_count: Rows missing, dropped, or rejected by the index.
        current_offset: Source offset to resume from.
        started_at: First transition to RUNNING; kept across resumes.
        completed_at: Set on COMPLETED, FAILED, STALLED or CANCELLED.
        triggered_by: Free-text actor that started or resumed the job.
        error_message: Reason for FAILED or STALLED.
        processing_speed: Records per second since ``started_at``.
        estimated_time_remaining: Seconds left at the current speed.
    """

    __tablename__ = "sync_jobs"

    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SyncJobStatus.PENDING, server_default=SyncJobStatus.PENDING
    )

    # Progress counters
    total_records: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    processed_records: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    success_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    failure_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    # Checkpoint for resume
    current_offset: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    # Metadata
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    triggered_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived at each checkpoint
    processing_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_time_remaining: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("ix_sync_jobs_type_status", "job_type", "status"),
        Index(
            ACTIVE_FULL_SYNC_INDEX,
            "job_type",
            unique=True,
            postgresql_where=text(ACTIVE_FULL_SYNC_PREDICATE),
            sqlite_where=text(ACTIVE_FULL_SYNC_PREDICATE),
        ),
    )

    @property
    def progress_percentage(self) -> float:
        """Share of eligible rows processed, 0 when the total is unknown."""
        if not self.total_records:
            return 0.0
        return (self.processed_records or 0) * 100.0 / self.total_records

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_resumable(self) -> bool:
        return self.status in RESUMABLE_STATUSES
