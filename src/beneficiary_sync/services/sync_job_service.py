"""Sync job service: job lifecycle, single-flight full sync, and checkpoints.

This service is the only writer of ``sync_jobs`` rows. Every transition the
batch loop makes is a conditional update on the current status, so a
CANCELLED written by another caller is never overwritten by a later
checkpoint or completion.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from beneficiary_sync.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from beneficiary_sync.models.sync_job import (
    ACTIVE_STATUSES,
    RESUMABLE_STATUSES,
    SyncJob,
    SyncJobStatus,
    SyncJobType,
)

_MAX_TRIGGERED_BY = 100
_MAX_ERROR_MESSAGE = 2000

OWNER_GONE_MESSAGE = "Interrupted: owner process gone"


@dataclass
class SyncProgress:
    """In-memory counters of a running job, written at each checkpoint."""

    offset: int = 0
    processed: int = 0
    success: int = 0
    failure: int = 0

    @classmethod
    def from_job(cls, job: SyncJob) -> "SyncProgress":
        return cls(
            offset=job.current_offset or 0,
            processed=job.processed_records or 0,
            success=job.success_count or 0,
            failure=job.failure_count or 0,
        )


def parse_job_id(job_id: uuid.UUID | str) -> uuid.UUID:
    """Coerce a job ID, raising ``ValidationError`` for malformed input."""
    if isinstance(job_id, uuid.UUID):
        return job_id
    try:
        return uuid.UUID(str(job_id))
    except ValueError as e:
        msg = f"Malformed job id: {job_id!r}"
        raise ValidationError(msg) from e


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def compute_progress_metrics(
    processed: int,
    total: int | None,
    started_at: datetime | None,
    now: datetime | None = None,
) -> tuple[float | None, int | None]:
    """Compute processing speed and remaining time.

    Args:
        processed: Records processed since the job first started.
        total: Eligible records, or None when not yet counted.
        started_at: First transition to RUNNING.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Tuple of (records per second, estimated seconds remaining). Either
        is None when it cannot be computed.
    """
    if started_at is None:
        return None, None
    now = now or datetime.now(UTC)
    elapsed = (now - _as_utc(started_at)).total_seconds()
    if elapsed <= 0:
        return None, None
    speed = processed / elapsed
    if speed <= 0 or total is None:
        return speed, None
    remaining = max(total - processed, 0)
    return speed, int(remaining / speed)


def _format_eta(seconds: int | None) -> str:
    if seconds is None:
        return "unknown"
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}h {minutes}m {secs}s"


class SyncJobService:
    """Job lifecycle manager backed by the ``sync_jobs`` table.

    Args:
        session_factory: Factory for short-lived job store sessions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._full_sync_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_job(self, job_id: uuid.UUID | str) -> SyncJob:
        """Get a sync job by ID.

        Raises:
            ValidationError: If ``job_id`` is malformed.
            NotFoundError: If no job has this ID.
        """
        job_uuid = parse_job_id(job_id)
        async with self._session_factory() as session:
            job = await session.get(SyncJob, job_uuid)
        if job is None:
            raise NotFoundError(job_uuid)
        return job

    async def list_active(self) -> list[SyncJob]:
        """List PENDING and RUNNING jobs, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(SyncJob).where(SyncJob.status.in_(ACTIVE_STATUSES)).order_by(SyncJob.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_recent(self, limit: int = 10) -> list[SyncJob]:
        """List the most recently created jobs."""
        if limit <= 0:
            msg = f"limit must be positive, got {limit}"
            raise ValidationError(msg)
        async with self._session_factory() as session:
            result = await session.execute(select(SyncJob).order_by(SyncJob.created_at.desc()).limit(limit))
            return list(result.scalars().all())

    async def get_latest_job_by_type(self, job_type: SyncJobType) -> SyncJob | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SyncJob).where(SyncJob.job_type == job_type).order_by(SyncJob.created_at.desc()).limit(1)
            )
            return result.scalar_one_or_none()

    async def is_full_sync_running(self) -> bool:
        async with self._session_factory() as session:
            return await self._active_full_sync(session) is not None

    async def get_status_value(self, job_id: uuid.UUID) -> str | None:
        """Read only the status column; used for cooperative cancellation."""
        async with self._session_factory() as session:
            result = await session.execute(select(SyncJob.status).where(SyncJob.id == job_id))
            return result.scalar_one_or_none()

    async def _active_full_sync(self, session: AsyncSession) -> SyncJob | None:
        result = await session.execute(
            select(SyncJob)
            .where(SyncJob.job_type == SyncJobType.FULL_SYNC, SyncJob.status.in_(ACTIVE_STATUSES))
            .order_by(SyncJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _conflict(self, session: AsyncSession) -> ConflictError:
        # Another process won the unique index on the active full sync
        active = await self._active_full_sync(session)
        active_id = active.id if active is not None else None
        logger.warning(f"Full sync already active in another process: job {active_id}")
        return ConflictError(active_id)

    # ------------------------------------------------------------------
    # Creation and operator transitions
    # ------------------------------------------------------------------

    async def create_full_sync_job(self, triggered_by: str | None = None) -> SyncJob:
        """Create a PENDING full sync job.

        Args:
            triggered_by: Free-text actor that requested the sync.

        Returns:
            The created SyncJob.

        Raises:
            ValidationError: If ``triggered_by`` is too long.
            ConflictError: If a full sync is already pending or running.
        """
        triggered_by = self._check_triggered_by(triggered_by)
        async with self._full_sync_lock, self._session_factory() as session:
            active = await self._active_full_sync(session)
            if active is not None:
                logger.warning(f"Full sync already active: job {active.id} ({active.status})")
                raise ConflictError(active.id)

            job = SyncJob(
                job_type=SyncJobType.FULL_SYNC,
                status=SyncJobStatus.PENDING,
                triggered_by=triggered_by,
            )
            session.add(job)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise await self._conflict(session) from None
            await session.refresh(job)

        logger.info(f"Created full sync job {job.id} (triggered_by={triggered_by})")
        return job

    async def prepare_resume(self, job_id: uuid.UUID | str, triggered_by: str | None = None) -> SyncJob:
        """Move a FAILED or STALLED job back to PENDING, keeping its checkpoint.

        Raises:
            ValidationError: If the ID or ``triggered_by`` is malformed.
            NotFoundError: If the job does not exist.
            InvalidStateError: If the job is not FAILED or STALLED.
            ConflictError: If another full sync is active.
        """
        job_uuid = parse_job_id(job_id)
        triggered_by = self._check_triggered_by(triggered_by)
        async with self._full_sync_lock, self._session_factory() as session:
            job = await session.get(SyncJob, job_uuid)
            if job is None:
                raise NotFoundError(job_uuid)
            if not job.is_resumable:
                raise InvalidStateError(job_uuid, job.status, "resume")
            if job.job_type == SyncJobType.FULL_SYNC:
                active = await self._active_full_sync(session)
                if active is not None:
                    raise ConflictError(active.id)

            values: dict = {
                "status": SyncJobStatus.PENDING,
                "completed_at": None,
                "error_message": None,
            }
            if triggered_by is not None:
                values["triggered_by"] = triggered_by
            try:
                result = await session.execute(
                    update(SyncJob)
                    .where(SyncJob.id == job_uuid, SyncJob.status.in_(RESUMABLE_STATUSES))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise await self._conflict(session) from None
            if result.rowcount == 0:
                raise InvalidStateError(job_uuid, job.status, "resume")
            await session.refresh(job)

        logger.info(f"Resuming sync job {job.id} from offset {job.current_offset}")
        return job

    async def cancel(self, job_id: uuid.UUID | str) -> bool:
        """Cancel a PENDING or RUNNING job.

        Returns:
            True if the job was cancelled, False if it was absent or not active.
        """
        job_uuid = parse_job_id(job_id)
        async with self._session_factory() as session:
            result = await session.execute(
                update(SyncJob)
                .where(SyncJob.id == job_uuid, SyncJob.status.in_(ACTIVE_STATUSES))
                .values(status=SyncJobStatus.CANCELLED, completed_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        cancelled = result.rowcount > 0
        if cancelled:
            logger.info(f"Cancelled sync job {job_uuid}")
        else:
            logger.info(f"Sync job {job_uuid} not cancelled: absent or not active")
        return cancelled

    # ------------------------------------------------------------------
    # Orchestrator transitions
    # ------------------------------------------------------------------

    async def mark_running(self, job_id: uuid.UUID) -> SyncJob | None:
        """PENDING -> RUNNING, setting ``started_at`` on the first run only.

        Returns:
            The running job, or None if it was no longer PENDING.
        """
        async with self._session_factory() as session:
            job = await session.get(SyncJob, job_id)
            if job is None or job.status != SyncJobStatus.PENDING:
                return None
            started_at = job.started_at or datetime.now(UTC)
            result = await session.execute(
                update(SyncJob)
                .where(SyncJob.id == job_id, SyncJob.status == SyncJobStatus.PENDING)
                .values(status=SyncJobStatus.RUNNING, started_at=started_at)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            await session.refresh(job)

        logger.info(f"Sync job {job_id} running from offset {job.current_offset}")
        return job

    async def record_total(self, job_id: uuid.UUID, total: int) -> bool:
        """Persist the eligible-row count of a running job."""
        return await self._update_running(job_id, total_records=total)

    async def checkpoint(self, job: SyncJob, progress: SyncProgress) -> bool:
        """Persist offset, counters, speed and ETA of a running job.

        Never changes ``status``.

        Returns:
            False if the job is no longer RUNNING (nothing was written).
        """
        speed, eta = compute_progress_metrics(progress.processed, job.total_records, job.started_at)
        written = await self._update_running(
            job.id,
            current_offset=progress.offset,
            processed_records=progress.processed,
            success_count=progress.success,
            failure_count=progress.failure,
            processing_speed=speed,
            estimated_time_remaining=eta,
        )
        if written:
            total = job.total_records or 0
            pct = progress.processed * 100.0 / total if total else 0.0
            rate = f"{speed:.1f}" if speed is not None else "?"
            logger.info(
                f"Sync job {job.id} progress: {progress.processed}/{total} ({pct:.2f}%), "
                f"success={progress.success} failure={progress.failure}, "
                f"{rate} rec/s, ETA {_format_eta(eta)}"
            )
        return written

    async def complete(self, job: SyncJob, progress: SyncProgress) -> bool:
        """RUNNING -> COMPLETED with final counters and speed."""
        speed, _ = compute_progress_metrics(progress.processed, job.total_records, job.started_at)
        written = await self._update_running(
            job.id,
            status=SyncJobStatus.COMPLETED,
            completed_at=datetime.now(UTC),
            current_offset=progress.offset,
            processed_records=progress.processed,
            success_count=progress.success,
            failure_count=progress.failure,
            processing_speed=speed,
            estimated_time_remaining=0,
        )
        if written:
            logger.info(
                f"Sync job {job.id} completed: processed={progress.processed} "
                f"success={progress.success} failure={progress.failure}"
            )
        return written

    async def stall(self, job_id: uuid.UUID, message: str) -> bool:
        """RUNNING -> STALLED; counters stay as of the last checkpoint."""
        written = await self._update_running(
            job_id,
            status=SyncJobStatus.STALLED,
            completed_at=datetime.now(UTC),
            error_message=message[:_MAX_ERROR_MESSAGE],
        )
        if written:
            logger.error(f"Sync job {job_id} stalled: {message}")
        return written

    async def fail(self, job_id: uuid.UUID, message: str) -> bool:
        """PENDING/RUNNING -> FAILED; counters stay as of the last checkpoint."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(SyncJob)
                .where(SyncJob.id == job_id, SyncJob.status.in_(ACTIVE_STATUSES))
                .values(
                    status=SyncJobStatus.FAILED,
                    completed_at=datetime.now(UTC),
                    error_message=message[:_MAX_ERROR_MESSAGE],
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        written = result.rowcount > 0
        if written:
            logger.error(f"Sync job {job_id} failed: {message}")
        return written

    async def fail_stale(self, older_than: timedelta) -> list[uuid.UUID]:
        """RUNNING -> FAILED for jobs with no progress write within ``older_than``.

        A RUNNING job rewrites its row at every checkpoint, so one that has
        been silent for much longer than the checkpoint interval lost its
        owning process. Failing it makes it resumable from its last checkpoint.

        Returns:
            IDs of the jobs that were failed.
        """
        cutoff = datetime.now(UTC) - older_than
        async with self._session_factory() as session:
            result = await session.execute(
                update(SyncJob)
                .where(SyncJob.status == SyncJobStatus.RUNNING, SyncJob.updated_at < cutoff)
                .values(
                    status=SyncJobStatus.FAILED,
                    completed_at=datetime.now(UTC),
                    error_message=OWNER_GONE_MESSAGE,
                )
                .returning(SyncJob.id)
                .execution_options(synchronize_session=False)
            )
            failed = list(result.scalars().all())
            await session.commit()
        for job_id in failed:
            logger.warning(f"Sync job {job_id} failed: no progress since {cutoff.isoformat()}, owner presumed gone")
        return failed

    async def _update_running(self, job_id: uuid.UUID, **values: object) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(SyncJob)
                .where(SyncJob.id == job_id, SyncJob.status == SyncJobStatus.RUNNING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount > 0

    @staticmethod
    def _check_triggered_by(triggered_by: str | None) -> str | None:
        if triggered_by is None:
            return None
        triggered_by = triggered_by.strip() or None
        if triggered_by is not None and len(triggered_by) > _MAX_TRIGGERED_BY:
            msg = f"triggered_by must be at most {_MAX_TRIGGERED_BY} characters"
            raise ValidationError(msg)
        return triggered_by
