"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from beneficiary_sync.models.base import Base
from beneficiary_sync.models.sync_job import SyncJob, SyncJobStatus, SyncJobType

__all__ = [
    "Base",
    "SyncJob",
    "SyncJobStatus",
    "SyncJobType",
]
