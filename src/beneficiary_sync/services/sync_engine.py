"""Sync engine: the job-control surface over the lifecycle manager and worker pool."""

import asyncio
import uuid
from datetime import timedelta

from loguru import logger

from beneficiary_sync.core.config import Settings, SyncOptions
from beneficiary_sync.core.errors import ConflictError, InvalidStateError, PoolSaturatedError
from beneficiary_sync.core.worker_pool import SyncWorkerPool
from beneficiary_sync.lib.extractor import RowExtractor
from beneficiary_sync.lib.sink import BulkSink
from beneficiary_sync.models.sync_job import SyncJob, SyncJobType
from beneficiary_sync.schemas.sync_job import RecordCheckResponse, SyncHealthResponse, SyncStatusResponse
from beneficiary_sync.services.realtime_sync_service import RealtimeSyncService, parse_primary_key
from beneficiary_sync.services.sync_job_service import OWNER_GONE_MESSAGE, SyncJobService, parse_job_id
from beneficiary_sync.services.sync_orchestrator import SyncOrchestrator


class SyncEngine:
    """Starts, resumes, cancels and reports on sync jobs.

    Full syncs run on the worker pool; every call here returns as soon as
    the job row is written. Callers poll ``get_status`` for the outcome.

    Args:
        jobs: Lifecycle manager.
        extractor: Source row access.
        sink: Index writer.
        options: Orchestrator tunables.
        pool: Worker pool running full syncs.
        elasticsearch_enabled: Enables single-record index updates.
        stale_job_seconds: RUNNING jobs silent for this long are failed by
            ``recover_stale_jobs``; 0 disables the sweep.
    """

    def __init__(
        self,
        jobs: SyncJobService,
        extractor: RowExtractor,
        sink: BulkSink,
        *,
        options: SyncOptions | None = None,
        pool: SyncWorkerPool | None = None,
        elasticsearch_enabled: bool = True,
        stale_job_seconds: int = 0,
    ) -> None:
        self.jobs = jobs
        self.extractor = extractor
        self.sink = sink
        self.pool = pool or SyncWorkerPool()
        self.orchestrator = SyncOrchestrator(jobs, extractor, sink, options)
        self.realtime = RealtimeSyncService(extractor, sink, enabled=elasticsearch_enabled)
        self.stale_job_seconds = stale_job_seconds

    async def validate_source(self) -> None:
        """Check the source column layout once before any sync reads rows.

        Raises:
            ValidationError: If a source view does not match the row decoder.
        """
        await self.extractor.validate_layout()

    async def start_full_sync(self, triggered_by: str | None = None) -> SyncJob:
        """Create a full sync job and queue it on the worker pool.

        Raises:
            ValidationError: If ``triggered_by`` is malformed.
            ConflictError: If a full sync is already pending or running.
            PoolSaturatedError: If the pool cannot accept work; the job is
                marked FAILED first.
        """
        job = await self.jobs.create_full_sync_job(triggered_by)
        await self._submit(job)
        return job

    async def resume(self, job_id: uuid.UUID | str, triggered_by: str | None = None) -> SyncJob:
        """Resume a FAILED or STALLED job from its last checkpoint."""
        job = await self.jobs.prepare_resume(job_id, triggered_by)
        await self._submit(job)
        return job

    async def _submit(self, job: SyncJob) -> None:
        try:
            task_id = self.pool.submit(self.orchestrator.run(job.id))
        except PoolSaturatedError as e:
            await self.jobs.fail(job.id, str(e))
            raise
        logger.info(f"Queued sync job {job.id} as task {task_id}")

    async def cancel(self, job_id: uuid.UUID | str) -> bool:
        return await self.jobs.cancel(job_id)

    async def fail_job(self, job_id: uuid.UUID | str, reason: str | None = None) -> SyncJob:
        """Mark a PENDING or RUNNING job FAILED so it can be resumed.

        For a job whose worker died without writing a terminal status. The
        checkpoint is kept, so ``resume`` continues from the last saved offset.

        Raises:
            ValidationError: If ``job_id`` is malformed.
            NotFoundError: If the job does not exist.
            InvalidStateError: If the job is not PENDING or RUNNING.
        """
        job_uuid = parse_job_id(job_id)
        if not await self.jobs.fail(job_uuid, reason or OWNER_GONE_MESSAGE):
            job = await self.jobs.get_job(job_uuid)
            raise InvalidStateError(job_uuid, job.status, "fail")
        return await self.jobs.get_job(job_uuid)

    async def recover_stale_jobs(self) -> list[uuid.UUID]:
        """Fail RUNNING jobs whose progress has not been written for ``stale_job_seconds``."""
        if self.stale_job_seconds <= 0:
            return []
        return await self.jobs.fail_stale(timedelta(seconds=self.stale_job_seconds))

    async def get_status(self, job_id: uuid.UUID | str) -> SyncJob:
        return await self.jobs.get_job(job_id)

    async def list_active(self) -> list[SyncJob]:
        return await self.jobs.list_active()

    async def list_recent(self, limit: int = 10) -> list[SyncJob]:
        return await self.jobs.list_recent(limit)

    async def sync_one(self, primary_key: int | str) -> bool:
        return await self.realtime.sync_one(primary_key)

    async def delete_one(self, document_id: str) -> bool:
        return await self.realtime.delete_one(document_id)

    async def exists(self, primary_key: int | str) -> RecordCheckResponse:
        """Report whether the source store has a row for one beneficiary.

        Raises:
            ValidationError: If ``primary_key`` is malformed.
        """
        key = parse_primary_key(primary_key)
        return RecordCheckResponse(ben_reg_id=key, exists_in_database=await self.extractor.exists(key))

    async def health(self) -> SyncHealthResponse:
        """Index reachability plus a summary of active and recent full syncs."""
        try:
            available = await self.sink.ping()
        except Exception as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            available = False
        running = await self.jobs.is_full_sync_running()
        active = await self.jobs.list_active()
        latest = await self.jobs.get_latest_job_by_type(SyncJobType.FULL_SYNC)
        return SyncHealthResponse(
            elasticsearch_available=available,
            full_sync_running=running,
            active_jobs=len(active),
            latest_full_sync_id=latest.id if latest is not None else None,
            latest_full_sync_status=latest.status if latest is not None else None,
            workers=self.pool.worker_count,
            queued_tasks=self.pool.queued,
        )

    async def sync_status(self) -> SyncStatusResponse:
        """Compare eligible source rows with documents in the index."""
        database_count, index_count = await asyncio.gather(self.extractor.count_eligible(), self.sink.count())
        missing = max(database_count - index_count, 0)
        return SyncStatusResponse(
            database_count=database_count,
            index_count=index_count,
            missing_count=missing,
            in_sync=missing == 0,
        )

    async def wait(self) -> None:
        """Block until every queued sync has finished."""
        await self.pool.join()

    async def close(self, *, wait: bool = True, timeout: float | None = 60.0) -> None:
        """Shut down the worker pool, then release the sink."""
        await self.pool.shutdown(wait=wait, timeout=timeout)
        await self.sink.close()

    async def scheduled_full_sync_loop(self, interval_seconds: int, triggered_by: str = "scheduler") -> None:
        """Background asyncio loop that starts a full sync every interval.

        A start that conflicts with an active sync is logged and skipped.

        Args:
            interval_seconds: Seconds between start attempts.
            triggered_by: Actor recorded on scheduled jobs.
        """
        logger.info("Scheduled full sync loop started (interval={}s)", interval_seconds)

        while True:
            try:
                await asyncio.sleep(interval_seconds)
                job = await self.start_full_sync(triggered_by)
                logger.info("Scheduled full sync started: job {}", job.id)
            except asyncio.CancelledError:
                logger.info("Scheduled full sync loop cancelled")
                break
            except ConflictError as e:
                logger.info("Scheduled full sync skipped: {}", e)
            except Exception:
                logger.exception("Scheduled full sync loop error")


def create_sync_engine(settings: Settings, *, pool: SyncWorkerPool | None = None) -> SyncEngine:
    """Build an engine from settings using the initialized database engines.

    ``init_engine`` must have been called first.
    """
    from beneficiary_sync.core.database import get_session_factory, get_source_session_factory
    from beneficiary_sync.lib.extractor import SqlRowExtractor
    from beneficiary_sync.lib.sink import ElasticsearchBulkSink, create_client

    extractor = SqlRowExtractor(
        get_source_session_factory(),
        source_view=settings.source_view,
        enrichment_view=settings.enrichment_view,
    )
    client = create_client(
        settings.elasticsearch_url,
        username=settings.elasticsearch_username,
        password=settings.elasticsearch_password,
        request_timeout=settings.elasticsearch_timeout,
    )
    sink = ElasticsearchBulkSink(client, settings.elasticsearch_index)
    pool = pool or SyncWorkerPool(
        core_workers=settings.sync_worker_core,
        max_workers=settings.sync_worker_max,
        queue_capacity=settings.sync_queue_capacity,
    )
    return SyncEngine(
        SyncJobService(get_session_factory()),
        extractor,
        sink,
        options=settings.to_sync_options(),
        pool=pool,
        elasticsearch_enabled=settings.elasticsearch_enabled,
        stale_job_seconds=settings.sync_stale_job_seconds,
    )
