"""
SQLAlchemy models for the crawl scheduler.

This module exports all database models used by the application.
"""

from src.core.models.crawl import (
    CrawlResult,
    CrawlSchedule,
    CrawlType,
    LastRunStatus,
    RunStatus,
    TriggerType,
)
from src.core.models.project import Competitor, Project, TrackedKeyword, TrackedPage
from src.core.models.settings import Setting

__all__ = [
    "CrawlType",
    "RunStatus",
    "TriggerType",
    "LastRunStatus",
    "CrawlSchedule",
    "CrawlResult",
    "Project",
    "TrackedKeyword",
    "TrackedPage",
    "Competitor",
    "Setting",
]
