"""Create project and tracked data tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-01
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create projects, tracked_keywords, tracked_pages and competitors tables."""
    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "tracked_keywords",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("keyword", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("ranking_url", sa.Text(), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tracked_keywords_project_id", "tracked_keywords", ["project_id"])

    op.create_table(
        "tracked_pages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("is_indexable", sa.Boolean(), nullable=True),
        sa.Column("response_ms", sa.Integer(), nullable=True),
        sa.Column("backlinks_count", sa.Integer(), nullable=True),
        sa.Column("referring_domains", sa.Integer(), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tracked_pages_project_id", "tracked_pages", ["project_id"])

    op.create_table(
        "competitors",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("shared_keywords", sa.Integer(), nullable=True),
        sa.Column("avg_position", sa.Float(), nullable=True),
        sa.Column("backlinks_count", sa.Integer(), nullable=True),
        sa.Column("referring_domains", sa.Integer(), nullable=True),
        sa.Column("domain_rank", sa.Integer(), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_competitors_project_id", "competitors", ["project_id"])
    op.create_index(
        "uq_competitors_project_domain", "competitors", ["project_id", "domain"], unique=True
    )


def downgrade() -> None:
    """Drop project tables."""
    op.drop_index("uq_competitors_project_domain", table_name="competitors")
    op.drop_index("ix_competitors_project_id", table_name="competitors")
    op.drop_table("competitors")
    op.drop_index("ix_tracked_pages_project_id", table_name="tracked_pages")
    op.drop_table("tracked_pages")
    op.drop_index("ix_tracked_keywords_project_id", table_name="tracked_keywords")
    op.drop_table("tracked_keywords")
    op.drop_table("projects")
