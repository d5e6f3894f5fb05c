"""Create crawl_schedules and crawl_results tables.

Revision ID: 003
Revises: 002
Create Date: 2026-10-02
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create schedule and run tables with their lookup indexes."""
    op.create_table(
        "crawl_schedules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("crawl_type", sa.String(length=50), nullable=False),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("scheduled_time", sa.String(length=5), nullable=False),
        sa.Column("days_of_week", JSONB, nullable=False, server_default="[]"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("config", JSONB, nullable=False, server_default="{}"),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        sa.Column("last_run_status", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawl_schedules_project_id", "crawl_schedules", ["project_id"])
    op.create_index("ix_crawl_schedules_enabled", "crawl_schedules", ["enabled"])
    op.create_index("ix_crawl_schedules_crawl_type", "crawl_schedules", ["crawl_type"])

    op.create_table(
        "crawl_results",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=True),
        sa.Column("crawl_type", sa.String(length=50), nullable=False),
        sa.Column("trigger_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("current_stage", sa.String(length=100), nullable=True),
        sa.Column("items_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_duration_sec", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("details", JSONB, nullable=False, server_default="{}"),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawl_results_project_id", "crawl_results", ["project_id"])
    op.create_index("ix_crawl_results_schedule_id", "crawl_results", ["schedule_id"])
    op.create_index("ix_crawl_results_status", "crawl_results", ["status"])
    op.create_index("ix_crawl_results_started_at", "crawl_results", ["started_at"])


def downgrade() -> None:
    """Drop crawl tables."""
    op.drop_index("ix_crawl_results_started_at", table_name="crawl_results")
    op.drop_index("ix_crawl_results_status", table_name="crawl_results")
    op.drop_index("ix_crawl_results_schedule_id", table_name="crawl_results")
    op.drop_index("ix_crawl_results_project_id", table_name="crawl_results")
    op.drop_table("crawl_results")
    op.drop_index("ix_crawl_schedules_crawl_type", table_name="crawl_schedules")
    op.drop_index("ix_crawl_schedules_enabled", table_name="crawl_schedules")
    op.drop_index("ix_crawl_schedules_project_id", table_name="crawl_schedules")
    op.drop_table("crawl_schedules")
