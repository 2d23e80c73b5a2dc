"""Sync orchestrator: the resumable batch loop of a full sync.

Reads pages of keys from the extractor, fetches rows and enrichment
concurrently, maps them to documents, and writes them to the sink in bulk.
Progress is checkpointed through ``SyncJobService`` every few batches and
after any batch error, so a failed or stalled job resumes at its last
persisted offset.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from loguru import logger

from beneficiary_sync.core.config import SyncOptions
from beneficiary_sync.core.errors import FatalJobError, MappingDropped
from beneficiary_sync.core.logging import job_context
from beneficiary_sync.lib.extractor import RowExtractor, fetch_enrichment_safely
from beneficiary_sync.lib.mapper import EnrichmentRecord, IndexDocument, map_row, row_key
from beneficiary_sync.lib.sink import BulkSink, bulk_write_safely
from beneficiary_sync.models.sync_job import SyncJob, SyncJobStatus
from beneficiary_sync.services.sync_job_service import SyncJobService, SyncProgress


def backoff_seconds(consecutive_errors: int, base_ms: int, cap_ms: int) -> float:
    """Exponential backoff delay ``min(cap, base * 2^errors)`` in seconds."""
    return min(cap_ms, base_ms * (2**consecutive_errors)) / 1000.0


def map_page(
    keys: Sequence[int],
    rows: Sequence[Sequence[Any]],
    enrichment: dict[int, EnrichmentRecord],
) -> tuple[list[IndexDocument], int]:
    """Map one page of rows to documents in key order.

    Keys with no row and rows the mapper drops or raises on are counted as
    failures; the rest of the page is still mapped.

    Returns:
        Tuple of (documents, dropped count).
    """
    by_key: dict[int, Sequence[Any]] = {}
    for row in rows:
        try:
            key = row_key(row)
        except Exception as e:
            logger.warning(f"Unreadable row key, row skipped: {type(e).__name__}: {e}")
            continue
        if key is not None:
            by_key[key] = row

    documents: list[IndexDocument] = []
    dropped = 0
    for key in keys:
        row = by_key.get(key)
        if row is None:
            dropped += 1
            logger.debug(str(MappingDropped(key, "row not found")))
            continue
        try:
            document = map_row(row, enrichment.get(key))
        except Exception as e:
            dropped += 1
            logger.warning(str(MappingDropped(key, f"{type(e).__name__}: {e}")))
            continue
        if document is None:
            dropped += 1
            logger.warning(str(MappingDropped(key, "no usable identifier")))
            continue
        documents.append(document)
    return documents, dropped


class SyncOrchestrator:
    """Runs full sync jobs against an extractor and a bulk sink.

    Args:
        jobs: Lifecycle manager owning all job writes.
        extractor: Source of keys, rows and enrichment.
        sink: Bulk writer of index documents.
        options: Batch, checkpoint, backoff and pacing tunables.
        sleep: Awaitable sleep, replaceable in tests.
        clock: Monotonic clock used for the time-based checkpoint.
    """

    def __init__(
        self,
        jobs: SyncJobService,
        extractor: RowExtractor,
        sink: BulkSink,
        options: SyncOptions | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.jobs = jobs
        self.extractor = extractor
        self.sink = sink
        self.options = options or SyncOptions()
        self._sleep = sleep
        self._clock = clock

    async def run(self, job_id: uuid.UUID) -> None:
        """Execute a PENDING job to a terminal or resumable status.

        Errors never propagate to the caller; they end up on the job as
        FAILED or STALLED with ``error_message``.
        """
        with job_context(job_id):
            try:
                job = await self.jobs.mark_running(job_id)
                if job is None:
                    logger.warning(f"Sync job {job_id} is no longer pending, not starting")
                    return
                await self._run_loop(job)
            except FatalJobError as e:
                await self.jobs.stall(job_id, str(e))
            except asyncio.CancelledError:
                logger.warning(f"Sync job {job_id} interrupted by shutdown")
                await self._fail_quietly(job_id, "Interrupted by worker shutdown")
                raise
            except Exception as e:
                logger.exception(f"Sync job {job_id} failed")
                await self._fail_quietly(job_id, f"{type(e).__name__}: {e}")

    async def _fail_quietly(self, job_id: uuid.UUID, message: str) -> None:
        try:
            await self.jobs.fail(job_id, message)
        except Exception:
            logger.exception(f"Could not record failure of sync job {job_id}")

    async def _run_loop(self, job: SyncJob) -> None:
        opts = self.options
        progress = SyncProgress.from_job(job)

        total = job.total_records
        if total is None:
            total = await self.extractor.count_eligible()
            await self.jobs.record_total(job.id, total)
            job.total_records = total
        logger.info(f"Sync job {job.id}: {total} eligible records, starting at offset {progress.offset}")

        if total == 0:
            await self.jobs.complete(job, progress)
            return

        buffer: list[IndexDocument] = []
        consecutive_errors = 0
        batch_count = 0
        batches_since_checkpoint = 0
        last_checkpoint = self._clock()

        while progress.offset < total:
            if await self._stopped(job.id):
                logger.info(f"Sync job {job.id} cancelled at offset {progress.offset}, discarding {len(buffer)} buffered")
                return

            try:
                keys = await self.extractor.page_of_keys(progress.offset, opts.batch_size)
                if not keys:
                    logger.info(f"Sync job {job.id}: no more keys at offset {progress.offset}")
                    break
                rows, enrichment = await asyncio.gather(
                    self.extractor.fetch_rows(keys),
                    fetch_enrichment_safely(self.extractor, keys),
                )
                documents, dropped = map_page(keys, rows, enrichment)
            except Exception as e:
                consecutive_errors += 1
                logger.error(
                    f"Sync job {job.id}: batch at offset {progress.offset} failed "
                    f"({consecutive_errors}/{opts.stall_threshold}): {e}"
                )
                await self._checkpoint(job, buffer, progress)
                batches_since_checkpoint = 0
                last_checkpoint = self._clock()
                if consecutive_errors >= opts.stall_threshold:
                    msg = (
                        f"Stalled after {consecutive_errors} consecutive batch errors "
                        f"at offset {progress.offset}: {e}"
                    )
                    raise FatalJobError(msg) from e
                delay = backoff_seconds(consecutive_errors, opts.backoff_base_ms, opts.backoff_cap_ms)
                logger.warning(f"Sync job {job.id}: backing off {delay:.1f}s, skipping page at {progress.offset}")
                await self._sleep(delay)
                progress.offset += opts.batch_size
                continue

            consecutive_errors = 0
            progress.processed += dropped
            progress.failure += dropped
            buffer.extend(documents)
            while len(buffer) >= opts.bulk_size:
                chunk = buffer[: opts.bulk_size]
                del buffer[: opts.bulk_size]
                await self._flush(chunk, progress)

            progress.offset += opts.batch_size
            batch_count += 1
            batches_since_checkpoint += 1

            now = self._clock()
            if (
                batches_since_checkpoint >= opts.checkpoint_every_batches
                or now - last_checkpoint >= opts.checkpoint_interval_seconds
            ):
                await self._checkpoint(job, buffer, progress)
                batches_since_checkpoint = 0
                last_checkpoint = now

            if batch_count % opts.pause_every_batches == 0 and opts.pause_ms > 0:
                await self._sleep(opts.pause_ms / 1000.0)

        if await self._stopped(job.id):
            logger.info(f"Sync job {job.id} cancelled before completion, discarding {len(buffer)} buffered")
            return
        await self._flush(buffer, progress)
        buffer.clear()
        if not await self.jobs.complete(job, progress):
            logger.warning(f"Sync job {job.id} finished but was no longer running")

    async def _stopped(self, job_id: uuid.UUID) -> bool:
        return await self.jobs.get_status_value(job_id) != SyncJobStatus.RUNNING

    async def _flush(self, documents: list[IndexDocument], progress: SyncProgress) -> None:
        if not documents:
            return
        result = await bulk_write_safely(self.sink, documents)
        progress.processed += result.attempted
        progress.success += result.succeeded
        progress.failure += result.failed
        logger.debug(f"Flushed {result.attempted} documents: {result.succeeded} ok, {result.failed} failed")

    async def _checkpoint(self, job: SyncJob, buffer: list[IndexDocument], progress: SyncProgress) -> None:
        # Everything below the persisted offset must be written first
        await self._flush(list(buffer), progress)
        buffer.clear()
        await self.jobs.checkpoint(job, progress)
