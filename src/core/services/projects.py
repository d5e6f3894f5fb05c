"""
Service for the project data crawls read from and write back to.

Handlers use it to count and list work items (keywords, pages,
competitors) and to store what the ranking provider returned.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.core.models import Competitor, Project, TrackedKeyword, TrackedPage
from src.core.storage.postgres import Database, get_db
from src.core.utils.time import utcnow_naive

logger = logging.getLogger(__name__)


class ProjectDataService:
    """Reads work lists and saves crawl results for a project."""

    def __init__(self, db: Database | None = None) -> None:
        """Initialize with a database instance, or None to use get_db() lazily."""
        self._db = db

    async def _get_db(self) -> Database:
        if self._db is None:
            self._db = await get_db()
        return self._db

    async def get_project(self, project_id: str) -> Project | None:
        db = await self._get_db()
        async with db.session() as session:
            return await session.get(Project, project_id)

    # -- counts (used for progress estimates) ---------------------------------

    async def count_keywords(self, project_id: str) -> int:
        return await self._count(TrackedKeyword, project_id)

    async def count_pages(self, project_id: str) -> int:
        return await self._count(TrackedPage, project_id)

    async def count_competitors(self, project_id: str) -> int:
        return await self._count(Competitor, project_id)

    async def _count(self, model: type, project_id: str) -> int:
        db = await self._get_db()
        async with db.session() as session:
            stmt = select(func.count()).select_from(model).where(model.project_id == project_id)
            result = await session.execute(stmt)
            return result.scalar_one()

    # -- work lists -----------------------------------------------------------

    async def list_keywords(self, project_id: str, limit: int | None = None) -> list[TrackedKeyword]:
        """Tracked keywords, least recently checked first."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(TrackedKeyword)
                .where(TrackedKeyword.project_id == project_id)
                .order_by(TrackedKeyword.last_checked_at.asc().nullsfirst(), TrackedKeyword.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_pages(self, project_id: str, limit: int | None = None) -> list[TrackedPage]:
        """Tracked pages, least recently checked first."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(TrackedPage)
                .where(TrackedPage.project_id == project_id)
                .order_by(TrackedPage.last_checked_at.asc().nullsfirst(), TrackedPage.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_competitors(self, project_id: str, limit: int | None = None) -> list[Competitor]:
        """Competitors, highest keyword overlap first."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(Competitor)
                .where(Competitor.project_id == project_id)
                .order_by(Competitor.shared_keywords.desc().nullslast(), Competitor.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # -- result writes --------------------------------------------------------

    async def save_ranking(self, keyword_id: int, position: int | None, url: str | None) -> None:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(TrackedKeyword)
                .where(TrackedKeyword.id == keyword_id)
                .values(position=position, ranking_url=url, last_checked_at=utcnow_naive())
            )
            await session.execute(stmt)
            await session.commit()

    async def save_page_health(
        self,
        page_id: int,
        status_code: int,
        is_indexable: bool,
        response_ms: int,
    ) -> None:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(TrackedPage)
                .where(TrackedPage.id == page_id)
                .values(
                    status_code=status_code,
                    is_indexable=is_indexable,
                    response_ms=response_ms,
                    last_checked_at=utcnow_naive(),
                )
            )
            await session.execute(stmt)
            await session.commit()

    async def save_page_backlinks(
        self, page_id: int, backlinks_count: int, referring_domains: int
    ) -> None:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(TrackedPage)
                .where(TrackedPage.id == page_id)
                .values(
                    backlinks_count=backlinks_count,
                    referring_domains=referring_domains,
                    last_checked_at=utcnow_naive(),
                )
            )
            await session.execute(stmt)
            await session.commit()

    async def upsert_competitor(
        self,
        project_id: str,
        domain: str,
        shared_keywords: int | None = None,
        avg_position: float | None = None,
    ) -> bool:
        """
        Insert a competitor or refresh its overlap numbers.

        Returns:
            True if the domain was new for this project.
        """
        domain = domain.lower()
        db = await self._get_db()
        async with db.session() as session:
            existing = await session.execute(
                select(Competitor.id).where(
                    Competitor.project_id == project_id, Competitor.domain == domain
                )
            )
            is_new = existing.scalar_one_or_none() is None

            refreshed = {
                key: value
                for key, value in (
                    ("shared_keywords", shared_keywords),
                    ("avg_position", avg_position),
                )
                if value is not None
            }
            stmt = pg_insert(Competitor).values(
                project_id=project_id,
                domain=domain,
                shared_keywords=shared_keywords,
                avg_position=avg_position,
            )
            if refreshed:
                stmt = stmt.on_conflict_do_update(
                    index_elements=["project_id", "domain"], set_=refreshed
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=["project_id", "domain"])
            await session.execute(stmt)
            await session.commit()

        return is_new

    async def save_competitor_backlinks(
        self,
        project_id: str,
        domain: str,
        backlinks_count: int,
        referring_domains: int,
        domain_rank: int | None,
    ) -> None:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(Competitor)
                .where(Competitor.project_id == project_id, Competitor.domain == domain.lower())
                .values(
                    backlinks_count=backlinks_count,
                    referring_domains=referring_domains,
                    domain_rank=domain_rank,
                    last_checked_at=utcnow_naive(),
                )
            )
            await session.execute(stmt)
            await session.commit()
