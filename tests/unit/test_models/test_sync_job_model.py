"""Tests for SyncJob model properties."""

from beneficiary_sync.models.sync_job import (
    ACTIVE_FULL_SYNC_INDEX,
    ACTIVE_FULL_SYNC_PREDICATE,
    SyncJob,
    SyncJobStatus,
    SyncJobType,
)


def _job(status: SyncJobStatus, total: int | None, processed: int) -> SyncJob:
    return SyncJob(job_type=SyncJobType.FULL_SYNC, status=status, total_records=total, processed_records=processed)


class TestSyncJobModel:
    """Tests for derived job properties."""

    def test_tablename(self) -> None:
        assert SyncJob.__tablename__ == "sync_jobs"

    def test_progress_percentage(self) -> None:
        assert _job(SyncJobStatus.RUNNING, 400, 100).progress_percentage == 25.0

    def test_progress_unknown_total(self) -> None:
        assert _job(SyncJobStatus.PENDING, None, 0).progress_percentage == 0.0
        assert _job(SyncJobStatus.COMPLETED, 0, 0).progress_percentage == 0.0

    def test_active_and_resumable(self) -> None:
        assert _job(SyncJobStatus.PENDING, None, 0).is_active
        assert _job(SyncJobStatus.RUNNING, 10, 5).is_active
        assert not _job(SyncJobStatus.STALLED, 10, 5).is_active
        assert _job(SyncJobStatus.STALLED, 10, 5).is_resumable
        assert _job(SyncJobStatus.FAILED, 10, 5).is_resumable
        assert not _job(SyncJobStatus.COMPLETED, 10, 10).is_resumable
        assert not _job(SyncJobStatus.CANCELLED, 10, 5).is_resumable

    def test_active_full_sync_index_is_partial_and_unique(self) -> None:
        (index,) = [ix for ix in SyncJob.__table__.indexes if ix.name == ACTIVE_FULL_SYNC_INDEX]
        assert index.unique is True
        assert [column.name for column in index.columns] == ["job_type"]
        for dialect in ("postgresql", "sqlite"):
            assert str(index.dialect_options[dialect]["where"]) == ACTIVE_FULL_SYNC_PREDICATE
