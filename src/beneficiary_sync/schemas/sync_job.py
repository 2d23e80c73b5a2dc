"""Sync job Pydantic v2 response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class SyncJobResponse(BaseModel):
    """Sync job status, counters and progress estimate."""

    id: UUID
    job_type: str
    status: str
    total_records: int | None = None
    processed_records: int = 0
    success_count: int = 0
    failure_count: int = 0
    current_offset: int = 0
    progress_percentage: float = 0.0
    processing_speed: float | None = Field(default=None, description="Records per second since start")
    estimated_time_remaining: int | None = Field(default=None, description="Seconds remaining at current speed")
    triggered_by: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SyncStatusResponse(BaseModel):
    """Comparison of the source store against the search index."""

    database_count: int = Field(description="Eligible rows in the source store")
    index_count: int = Field(description="Documents in the search index")
    missing_count: int = Field(description="Eligible rows not present in the index")
    in_sync: bool


class SyncHealthResponse(BaseModel):
    """Reachability of the index and a summary of sync activity."""

    elasticsearch_available: bool
    full_sync_running: bool
    active_jobs: int = Field(description="PENDING and RUNNING jobs in the job store")
    latest_full_sync_id: UUID | None = None
    latest_full_sync_status: str | None = None
    workers: int = Field(description="Worker tasks started by the pool")
    queued_tasks: int = Field(description="Sync tasks waiting for a worker")


class RecordCheckResponse(BaseModel):
    """Whether one beneficiary is present in the source store."""

    ben_reg_id: int
    exists_in_database: bool
