"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re
from dataclasses import dataclass

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


@dataclass(frozen=True)
class SyncOptions:
    """Tunables consumed by the sync orchestrator.

    Attributes:
        batch_size: Source rows read per page (``BATCH_SIZE``).
        bulk_size: Documents per bulk write (``ES_BULK_SIZE``).
        checkpoint_every_batches: Persist progress after this many batches.
        checkpoint_interval_seconds: Persist progress after this many seconds.
        stall_threshold: Consecutive batch errors before the job stalls.
        backoff_base_ms: Base delay for exponential backoff.
        backoff_cap_ms: Upper bound for the backoff delay.
        pause_every_batches: Pace the loop after this many batches.
        pause_ms: Length of the pacing pause.
    """

    batch_size: int = 100
    bulk_size: int = 50
    checkpoint_every_batches: int = 5
    checkpoint_interval_seconds: float = 30.0
    stall_threshold: int = 5
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 60000
    pause_every_batches: int = 10
    pause_ms: int = 500

    def __post_init__(self) -> None:
        if self.batch_size <= 0 or self.bulk_size <= 0:
            msg = f"batch_size and bulk_size must be positive, got {self.batch_size}/{self.bulk_size}"
            raise ValueError(msg)
        if self.checkpoint_every_batches <= 0 or self.pause_every_batches <= 0:
            msg = (
                "checkpoint_every_batches and pause_every_batches must be positive, "
                f"got {self.checkpoint_every_batches}/{self.pause_every_batches}"
            )
            raise ValueError(msg)
        if self.stall_threshold <= 0:
            msg = f"stall_threshold must be positive, got {self.stall_threshold}"
            raise ValueError(msg)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Job store
    database_url: str = Field(
        description="Async connection string for the sync job store",
    )

    # Source store
    source_database_url: str | None = Field(
        default=None,
        description="Async connection string for the beneficiary source store (defaults to database_url)",
    )
    source_view: str = Field(
        default="v_beneficiary_search",
        description="Relation exposing one denormalized row per beneficiary",
    )
    enrichment_view: str = Field(
        default="v_beneficiary_health_id",
        description="Relation exposing health-ID records keyed by ben_reg_id",
    )

    @field_validator("source_view", "enrichment_view")
    @classmethod
    def validate_relation_name(cls, v: str) -> str:
        if not _IDENTIFIER_RE.match(v):
            msg = f"Invalid relation name {v!r}: must be a plain or schema-qualified SQL identifier"
            raise ValueError(msg)
        return v

    # Elasticsearch
    elasticsearch_url: str = Field(
        default="http://localhost:9200",
        description="Elasticsearch base URL",
    )
    elasticsearch_username: str | None = Field(
        default=None,
        description="Elasticsearch basic-auth username",
    )
    elasticsearch_password: str | None = Field(
        default=None,
        description="Elasticsearch basic-auth password",
    )
    elasticsearch_index: str = Field(
        default="beneficiary_index",
        description="Target index for beneficiary documents",
    )
    elasticsearch_enabled: bool = Field(
        default=True,
        description="Enable single-record index updates",
    )
    elasticsearch_timeout: float = Field(
        default=30.0,
        description="Elasticsearch request timeout in seconds",
        gt=0,
    )

    # Sync engine
    sync_batch_size: int = Field(default=100, description="Source rows read per page", gt=0)
    sync_bulk_size: int = Field(default=50, description="Documents per bulk write", gt=0)
    sync_checkpoint_every_batches: int = Field(
        default=5,
        description="Persist job progress every N batches",
        gt=0,
    )
    sync_checkpoint_interval_seconds: float = Field(
        default=30.0,
        description="Persist job progress at least this often (seconds)",
        gt=0,
    )
    sync_stall_threshold: int = Field(
        default=5,
        description="Consecutive batch errors before a job is marked stalled",
        gt=0,
    )
    sync_backoff_base_ms: int = Field(default=1000, description="Base backoff delay in milliseconds", ge=0)
    sync_backoff_cap_ms: int = Field(default=60000, description="Maximum backoff delay in milliseconds", ge=0)
    sync_pause_every_batches: int = Field(default=10, description="Pause the loop every N batches", gt=0)
    sync_pause_ms: int = Field(default=500, description="Pause length in milliseconds", ge=0)
    sync_stale_job_seconds: int = Field(
        default=1800,
        description="Fail RUNNING jobs with no progress write for this many seconds at startup (0 disables)",
        ge=0,
    )

    # Worker pool
    sync_worker_core: int = Field(default=2, description="Workers started with the pool", gt=0)
    sync_worker_max: int = Field(default=4, description="Maximum concurrent workers", gt=0)
    sync_queue_capacity: int = Field(default=100, description="Maximum queued sync tasks", gt=0)

    # Scheduler
    sync_schedule_enabled: bool = Field(
        default=False,
        description="Enable the periodic full-sync loop",
    )
    sync_schedule_interval_seconds: int = Field(
        default=86400,
        description="Seconds between scheduled full syncs",
        ge=60,
    )

    @model_validator(mode="after")
    def validate_sizes(self) -> "Settings":
        if self.sync_bulk_size > self.sync_batch_size:
            msg = "sync_bulk_size must not exceed sync_batch_size"
            raise ValueError(msg)
        if self.sync_worker_max < self.sync_worker_core:
            msg = "sync_worker_max must be >= sync_worker_core"
            raise ValueError(msg)
        if 0 < self.sync_stale_job_seconds < 10 * self.sync_checkpoint_interval_seconds:
            msg = "sync_stale_job_seconds must be 0 or at least 10x sync_checkpoint_interval_seconds"
            raise ValueError(msg)
        return self

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    @property
    def resolved_source_database_url(self) -> str:
        """Source store URL, falling back to the job store URL."""
        return self.source_database_url or self.database_url

    def to_sync_options(self) -> SyncOptions:
        """Build the orchestrator tunables from these settings."""
        return SyncOptions(
            batch_size=self.sync_batch_size,
            bulk_size=self.sync_bulk_size,
            checkpoint_every_batches=self.sync_checkpoint_every_batches,
            checkpoint_interval_seconds=self.sync_checkpoint_interval_seconds,
            stall_threshold=self.sync_stall_threshold,
            backoff_base_ms=self.sync_backoff_base_ms,
            backoff_cap_ms=self.sync_backoff_cap_ms,
            pause_every_batches=self.sync_pause_every_batches,
            pause_ms=self.sync_pause_ms,
        )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
