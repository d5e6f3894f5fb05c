"""
SQLAlchemy models for the project data that crawls read and refresh.

A project is the tenant: one domain plus the keywords, pages and
competitors tracked for it. Crawl handlers read these rows to build
their work lists and write provider results back onto them.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.storage.postgres import Base
from src.core.utils.time import utcnow_naive


def _new_id() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """A tracked website."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive
    )

    def __repr__(self) -> str:
        return f"<Project(name='{self.name}', domain='{self.domain}')>"


class TrackedKeyword(Base):
    """Keyword whose ranking position is checked for the project domain."""

    __tablename__ = "tracked_keywords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    keyword: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ranking_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_tracked_keywords_project_id", "project_id"),)

    def __repr__(self) -> str:
        return f"<TrackedKeyword(keyword='{self.keyword}', position={self.position})>"


class TrackedPage(Base):
    """Page of the project whose health and backlinks are monitored."""

    __tablename__ = "tracked_pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_indexable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    response_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    backlinks_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    referring_domains: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_tracked_pages_project_id", "project_id"),)

    def __repr__(self) -> str:
        return f"<TrackedPage(url='{self.url}', status={self.status_code})>"


class Competitor(Base):
    """Competing domain for a project, found by scans or keyword discovery."""

    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    shared_keywords: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_position: Mapped[float | None] = mapped_column(Float, nullable=True)
    backlinks_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    referring_domains: Mapped[int | None] = mapped_column(Integer, nullable=True)
    domain_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_competitors_project_id", "project_id"),
        Index("uq_competitors_project_domain", "project_id", "domain", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Competitor(domain='{self.domain}')>"
