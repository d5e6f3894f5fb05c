"""
Crawl handlers.

One handler per crawl type. A handler estimates how many items a run
will touch, then works through them with the paced batch fetcher,
reporting progress after every item and saving what the provider
returned. Per-item failures are counted; a run where every item failed
raises CrawlError.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from bs4 import BeautifulSoup

from src.core.models import CrawlType, Project
from src.core.primitives.batch import BatchResult, fetch_all
from src.core.primitives.fetcher import ContentType, Fetcher, FetchResult
from src.core.primitives.ranking_provider import RankingProvider
from src.core.services.projects import ProjectDataService
from src.scheduler.exceptions import CrawlError, UnknownCrawlTypeError
from src.scheduler.progress import ProgressReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ROBOTS_META = re.compile(r"^(robots|googlebot)$", re.IGNORECASE)


@dataclass
class HandlerResult:
    """What a handler hands back to the orchestrator."""

    message: str
    items_processed: int = 0
    items_updated: int = 0
    errors_count: int = 0
    cancelled: bool = False
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CrawlContext:
    """Everything a handler needs for one run."""

    project: Project
    config: dict[str, Any]
    progress: ProgressReporter
    delay_ms: int
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    async def run_batch(
        self,
        stage: str,
        items: Sequence[T],
        call: Callable[[T], Awaitable[R]],
    ) -> BatchResult[T, R]:
        """Enter `stage` with the real item count and work through `items`."""
        await self.progress.set_stage(stage, total=len(items))
        return await fetch_all(
            items,
            call,
            self.delay_ms,
            on_progress=self.progress.report,
            should_stop=self.progress.should_stop,
            sleep=self.sleep,
        )

    async def nothing_to_do(self, stage: str, message: str) -> HandlerResult:
        """End a run with no work items, replacing the estimate with a real total of 0."""
        await self.progress.set_stage(stage, total=0)
        return HandlerResult(message=message)


def config_limit(config: dict[str, Any] | None, key: str, default: int | None) -> int | None:
    """Positive integer cap from a schedule config, falling back to `default`."""
    value = (config or {}).get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def capped(count: int, limit: int | None) -> int:
    return count if limit is None else min(count, limit)


def is_indexable(result: FetchResult) -> bool:
    """
    Whether a fetched page can be indexed.

    A page is indexable when it answered 2xx and neither the X-Robots-Tag
    header nor a robots meta tag says noindex.
    """
    if not result.ok:
        return False

    headers = {key.lower(): value for key, value in result.headers.items()}
    if "noindex" in headers.get("x-robots-tag", "").lower():
        return False

    if result.content_type != ContentType.HTML or not result.text:
        return True

    soup = BeautifulSoup(result.text, "html.parser")
    for meta in soup.find_all("meta", attrs={"name": ROBOTS_META}):
        if "noindex" in (meta.get("content") or "").lower():
            return False
    return True


class CrawlHandler(ABC):
    """Base class for crawl handlers."""

    crawl_type: CrawlType
    estimated_duration_sec: int

    def __init__(
        self,
        projects: ProjectDataService,
        provider: RankingProvider,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.projects = projects
        self.provider = provider
        self.fetcher = fetcher or Fetcher()

    @abstractmethod
    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        """Expected number of work items, used before the run starts."""
        ...

    @abstractmethod
    async def run(self, ctx: CrawlContext) -> HandlerResult:
        ...

    def summarize(
        self,
        batch: BatchResult,
        message: str,
        items_updated: int,
        details: dict[str, Any] | None = None,
    ) -> HandlerResult:
        """
        Turn a finished batch into a handler result.

        Raises:
            CrawlError: If items ran and every one of them failed.
        """
        if batch.all_failed:
            first = batch.errors[0].message if batch.errors else "unknown error"
            raise CrawlError(f"All {batch.processed} items failed: {first}")

        details = dict(details or {})
        if batch.errors:
            logger.warning(
                f"{self.crawl_type}: {len(batch.errors)} of {batch.processed} items failed"
            )
            details["errors"] = [
                {"item": str(error.item), "message": error.message} for error in batch.errors[:20]
            ]

        return HandlerResult(
            message=message,
            items_processed=batch.processed,
            items_updated=items_updated,
            errors_count=len(batch.errors),
            cancelled=batch.cancelled,
            details=details,
        )


class KeywordRanksHandler(CrawlHandler):
    """Looks up the current organic position of every tracked keyword."""

    crawl_type = CrawlType.KEYWORD_RANKS
    estimated_duration_sec = 120

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        count = await self.projects.count_keywords(project_id)
        return capped(count, config_limit(config, "batch_size", None))

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        project = ctx.project
        keywords = await self.projects.list_keywords(
            project.id, limit=config_limit(ctx.config, "batch_size", None)
        )
        if not keywords:
            return await ctx.nothing_to_do("fetching_rankings", "No tracked keywords")

        async def check(keyword):
            result = await self.provider.rank_lookup(keyword.keyword, project.domain)
            await self.projects.save_ranking(keyword.id, result.position, result.url)
            return result

        batch = await ctx.run_batch("fetching_rankings", keywords, check)
        ranked = sum(1 for _, result in batch.results if result.position is not None)
        return self.summarize(
            batch,
            f"Checked {batch.succeeded} keywords: {ranked} ranking, {len(batch.errors)} errors",
            items_updated=batch.succeeded,
            details={"ranked": ranked},
        )


class CompetitorsHandler(CrawlHandler):
    """
    Refreshes the project's competitor set.

    One competitor-list call finds the domains competing for the same
    keywords; each is upserted, then its backlink summary is fetched.
    """

    crawl_type = CrawlType.COMPETITORS
    estimated_duration_sec = 180

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        return config_limit(config, "top_n", 10)

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        project = ctx.project
        top_n = config_limit(ctx.config, "top_n", 10)

        await ctx.progress.set_stage("fetching_competitors")
        entries = await self.provider.competitor_list(project.domain, limit=top_n)
        if not entries:
            return await ctx.nothing_to_do(
                "analyzing_competitors", "Provider returned no competitors"
            )

        new_domains = 0
        for entry in entries:
            if await self.projects.upsert_competitor(
                project.id, entry.domain, entry.shared_keywords, entry.avg_position
            ):
                new_domains += 1

        async def analyze(entry):
            summary = await self.provider.backlink_summary(entry.domain)
            await self.projects.save_competitor_backlinks(
                project.id,
                entry.domain,
                summary.backlinks,
                summary.referring_domains,
                summary.rank,
            )
            return summary

        batch = await ctx.run_batch("analyzing_competitors", entries, analyze)
        return self.summarize(
            batch,
            f"Analyzed {batch.succeeded} of {len(entries)} competitors ({new_domains} new)",
            items_updated=batch.succeeded,
            details={"competitors_found": len(entries), "new_competitors": new_domains},
        )


class PagesHealthHandler(CrawlHandler):
    """Fetches tracked pages and records status code, indexability and latency."""

    crawl_type = CrawlType.PAGES_HEALTH
    estimated_duration_sec = 90

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        count = await self.projects.count_pages(project_id)
        return capped(count, config_limit(config, "page_limit", 50))

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        pages = await self.projects.list_pages(
            ctx.project.id, limit=config_limit(ctx.config, "page_limit", 50)
        )
        if not pages:
            return await ctx.nothing_to_do("checking_pages", "No tracked pages")

        async def check(page):
            result = await self.fetcher.fetch(page.url)
            indexable = is_indexable(result)
            await self.projects.save_page_health(
                page.id, result.status_code, indexable, result.elapsed_ms
            )
            return result.status_code, indexable

        batch = await ctx.run_batch("checking_pages", pages, check)
        healthy = sum(1 for _, (status, _) in batch.results if 200 <= status < 300)
        noindex = sum(1 for _, (_, indexable) in batch.results if not indexable)
        return self.summarize(
            batch,
            f"Checked {batch.succeeded} pages: {healthy} healthy, {noindex} not indexable, "
            f"{len(batch.errors)} unreachable",
            items_updated=batch.succeeded,
            details={"healthy": healthy, "not_indexable": noindex},
        )


class DeepDiscoveryHandler(CrawlHandler):
    """
    Deep SERP pass over the keyword set.

    Looks further down the results than the regular rank check and records
    every domain ranking alongside the project as a competitor.
    """

    crawl_type = CrawlType.DEEP_DISCOVERY
    estimated_duration_sec = 300

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        count = await self.projects.count_keywords(project_id)
        return capped(count, config_limit(config, "max_keywords", 200))

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        project = ctx.project
        depth = config_limit(ctx.config, "depth", 100)
        keywords = await self.projects.list_keywords(
            project.id, limit=config_limit(ctx.config, "max_keywords", 200)
        )
        if not keywords:
            return await ctx.nothing_to_do("discovering", "No tracked keywords")

        new_domains: set[str] = set()

        async def discover(keyword):
            result = await self.provider.rank_lookup(keyword.keyword, project.domain, depth=depth)
            await self.projects.save_ranking(keyword.id, result.position, result.url)
            for competitor in result.competitors:
                if await self.projects.upsert_competitor(project.id, competitor.domain):
                    new_domains.add(competitor.domain)
            return result

        batch = await ctx.run_batch("discovering", keywords, discover)
        return self.summarize(
            batch,
            f"Scanned {batch.succeeded} keywords at depth {depth}, "
            f"found {len(new_domains)} new competitors",
            items_updated=batch.succeeded,
            details={"new_competitors": sorted(new_domains)},
        )


class BacklinksHandler(CrawlHandler):
    """Backlink totals for each tracked page."""

    crawl_type = CrawlType.BACKLINKS
    estimated_duration_sec = 240

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        count = await self.projects.count_pages(project_id)
        return capped(count, config_limit(config, "page_limit", 50))

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        pages = await self.projects.list_pages(
            ctx.project.id, limit=config_limit(ctx.config, "page_limit", 50)
        )
        if not pages:
            return await ctx.nothing_to_do("fetching_backlinks", "No tracked pages")

        async def summarize_page(page):
            summary = await self.provider.backlink_summary(page.url)
            await self.projects.save_page_backlinks(
                page.id, summary.backlinks, summary.referring_domains
            )
            return summary

        batch = await ctx.run_batch("fetching_backlinks", pages, summarize_page)
        total_links = sum(summary.backlinks for _, summary in batch.results)
        return self.summarize(
            batch,
            f"Fetched backlinks for {batch.succeeded} pages ({total_links} links)",
            items_updated=batch.succeeded,
            details={"backlinks": total_links},
        )


class CompetitorBacklinksHandler(CrawlHandler):
    """Backlink totals and domain rank for known competitors."""

    crawl_type = CrawlType.COMPETITOR_BACKLINKS
    estimated_duration_sec = 300

    async def estimate_total(self, project_id: str, config: dict[str, Any]) -> int:
        count = await self.projects.count_competitors(project_id)
        return capped(count, config_limit(config, "top_n", 10))

    async def run(self, ctx: CrawlContext) -> HandlerResult:
        project = ctx.project
        competitors = await self.projects.list_competitors(
            project.id, limit=config_limit(ctx.config, "top_n", 10)
        )
        if not competitors:
            return await ctx.nothing_to_do("fetching_backlinks", "No competitors to analyze")

        async def summarize_competitor(competitor):
            summary = await self.provider.backlink_summary(competitor.domain)
            await self.projects.save_competitor_backlinks(
                project.id,
                competitor.domain,
                summary.backlinks,
                summary.referring_domains,
                summary.rank,
            )
            return summary

        batch = await ctx.run_batch("fetching_backlinks", competitors, summarize_competitor)
        return self.summarize(
            batch,
            f"Fetched backlinks for {batch.succeeded} competitors",
            items_updated=batch.succeeded,
        )


HANDLER_CLASSES: dict[CrawlType, type[CrawlHandler]] = {
    CrawlType.KEYWORD_RANKS: KeywordRanksHandler,
    CrawlType.COMPETITORS: CompetitorsHandler,
    CrawlType.PAGES_HEALTH: PagesHealthHandler,
    CrawlType.DEEP_DISCOVERY: DeepDiscoveryHandler,
    CrawlType.BACKLINKS: BacklinksHandler,
    CrawlType.COMPETITOR_BACKLINKS: CompetitorBacklinksHandler,
}


def build_handlers(
    projects: ProjectDataService,
    provider: RankingProvider,
    fetcher: Fetcher | None = None,
    handler_classes: dict[CrawlType, type[CrawlHandler]] | None = None,
) -> dict[CrawlType, CrawlHandler]:
    """
    Instantiate one handler per crawl type.

    Raises:
        UnknownCrawlTypeError: If any crawl type has no handler.
    """
    classes = HANDLER_CLASSES if handler_classes is None else handler_classes
    missing = [t.value for t in CrawlType if t not in classes]
    if missing:
        raise UnknownCrawlTypeError(f"No handler registered for: {', '.join(missing)}")
    return {crawl_type: cls(projects, provider, fetcher) for crawl_type, cls in classes.items()}


def estimated_durations() -> dict[str, int]:
    """Default estimated run duration per crawl type, in seconds."""
    return {t.value: cls.estimated_duration_sec for t, cls in HANDLER_CLASSES.items()}
