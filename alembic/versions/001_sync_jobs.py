"""Create sync_jobs table.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

_ACTIVE_FULL_SYNC = "job_type = 'FULL_SYNC' AND status IN ('PENDING', 'RUNNING')"

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create sync_jobs table."""
    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("total_records", sa.BigInteger(), nullable=True),
        sa.Column("processed_records", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("success_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("failure_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("current_offset", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("triggered_by", sa.String(100), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processing_speed", sa.Float(), nullable=True),
        sa.Column("estimated_time_remaining", sa.BigInteger(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_jobs_type_status", "sync_jobs", ["job_type", "status"])
    op.create_index("ix_sync_jobs_created_at", "sync_jobs", ["created_at"])
    op.create_index(
        "uq_sync_jobs_active_full_sync",
        "sync_jobs",
        ["job_type"],
        unique=True,
        postgresql_where=sa.text(_ACTIVE_FULL_SYNC),
        sqlite_where=sa.text(_ACTIVE_FULL_SYNC),
    )


def downgrade() -> None:
    """Drop sync_jobs table."""
    op.drop_index("uq_sync_jobs_active_full_sync", table_name="sync_jobs")
    op.drop_index("ix_sync_jobs_created_at", table_name="sync_jobs")
    op.drop_index("ix_sync_jobs_type_status", table_name="sync_jobs")
    op.drop_table("sync_jobs")
