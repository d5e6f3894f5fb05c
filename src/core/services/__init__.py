"""
Service layer for the crawl scheduler.

This module exports the persistence services the engine depends on.
"""

from src.core.services.crawl_results import CrawlResultService
from src.core.services.crawl_schedules import CrawlScheduleService
from src.core.services.projects import ProjectDataService
from src.core.services.settings import SettingsService

__all__ = [
    "CrawlResultService",
    "CrawlScheduleService",
    "ProjectDataService",
    "SettingsService",
]
