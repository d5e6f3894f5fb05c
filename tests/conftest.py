"""
Shared test fixtures.

Database fixtures need a PostgreSQL test database and skip when it is
not reachable. Start one with:
    docker run -d -p 5432:5432 -e POSTGRES_USER=crawler \
        -e POSTGRES_PASSWORD=crawler -e POSTGRES_DB=crawler_test postgres:16
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.core import models  # noqa: F401  (registers tables on Base.metadata)
from src.core.storage.postgres import Database, DatabaseConfig
from src.scheduler.guard import ConcurrencyGuard
from src.scheduler.handlers import build_handlers
from src.scheduler.orchestrator import CrawlOrchestrator
from tests.fakes import (
    FakeProjects,
    FakeProvider,
    FakeResults,
    FakeSchedules,
    FakeSettings,
    RecordingSleep,
    page_result,
)

# Use test database to avoid polluting production data
TEST_DB = "crawler_test"


@pytest.fixture
def database_config() -> DatabaseConfig:
    """Database configuration for tests."""
    return DatabaseConfig(
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=os.getenv("POSTGRES_TEST_DB", TEST_DB),
        user=os.getenv("POSTGRES_USER", "crawler"),
        password=os.getenv("POSTGRES_PASSWORD", "crawler"),
        pool_size=2,
        pool_max_overflow=2,
        echo=False,
    )


@pytest_asyncio.fixture
async def database(database_config: DatabaseConfig) -> Database:
    """
    Provide a connected database instance with tables created.

    Creates tables at setup and drops them at teardown.
    Function-scoped to avoid connection sharing issues.
    """
    db = Database(database_config)
    await db.connect()
    if not await db.health_check():
        await db.disconnect()
        pytest.skip("PostgreSQL test database not available")

    await db.drop_tables()
    await db.create_tables()

    yield db

    await db.drop_tables()
    await db.disconnect()


@pytest.fixture
def fake_results() -> FakeResults:
    return FakeResults()


@pytest.fixture
def fake_schedules() -> FakeSchedules:
    return FakeSchedules()


@pytest.fixture
def fake_projects() -> FakeProjects:
    return FakeProjects(
        keywords=["running shoes", "trail shoes", "shoe sizes", "best sneakers", "shoe care"],
        pages=["https://example.com/", "https://example.com/about"],
        competitors=["rival.com", "other.org"],
    )


@pytest.fixture
def fake_settings() -> FakeSettings:
    return FakeSettings()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def guard() -> ConcurrencyGuard:
    return ConcurrencyGuard()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def orchestrator(
    fake_results, fake_schedules, fake_projects, fake_settings, fake_provider, guard, sleep
) -> CrawlOrchestrator:
    """Orchestrator wired to the in-memory services; every page answers 200."""
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=page_result())
    handlers = build_handlers(fake_projects, fake_provider, fetcher)
    return CrawlOrchestrator(
        handlers,
        results=fake_results,
        schedules=fake_schedules,
        projects=fake_projects,
        settings=fake_settings,
        guard=guard,
        sleep=sleep,
    )
