"""
PostgreSQL database implementation.

Uses SQLAlchemy with async support (asyncpg driver). Schedules, run
records, settings and tracked project data all live here.
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.core.config.loader import get_config
from src.core.storage.exceptions import ConfigurationError, ConnectionError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


@dataclass
class DatabaseConfig:
    """Connection settings for the scheduler database."""

    host: str = "localhost"
    port: int = 5432
    database: str = "crawler"
    user: str = "crawler"
    password: str = "crawler"
    pool_size: int = 5
    pool_max_overflow: int = 10
    echo: bool = False

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> "DatabaseConfig":
        """Build from the `postgres` section of storage.yaml; missing keys keep defaults."""
        defaults = cls()
        return cls(
            host=values.get("host", defaults.host),
            port=int(values.get("port", defaults.port)),
            database=values.get("database", defaults.database),
            user=values.get("user", defaults.user),
            password=values.get("password", defaults.password),
            pool_size=int(values.get("pool_size", defaults.pool_size)),
            pool_max_overflow=int(values.get("pool_max_overflow", defaults.pool_max_overflow)),
            echo=bool(values.get("echo", defaults.echo)),
        )


class Database:
    """
    PostgreSQL database implementation using SQLAlchemy async.

    Usage:
        db = Database(config)
        await db.connect()

        async with db.session() as session:
            result = await session.execute(text("SELECT 1"))

        await db.disconnect()
    """

    def __init__(self, config: DatabaseConfig, url: str | None = None):
        """
        Initialize database with configuration.

        Args:
            config: Connection settings.
            url: Optional full SQLAlchemy URL; overrides the host/port fields.
        """
        self.config = config
        self._url = url
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _build_url(self) -> str:
        """Build database connection URL."""
        if self._url:
            return self._url
        return (
            f"postgresql+asyncpg://{self.config.user}:{self.config.password}"
            f"@{self.config.host}:{self.config.port}/{self.config.database}"
        )

    async def connect(self) -> None:
        """Create the engine and session factory (connections open lazily)."""
        if self._engine is not None:
            return

        try:
            self._engine = create_async_engine(
                self._build_url(),
                pool_size=self.config.pool_size,
                max_overflow=self.config.pool_max_overflow,
                pool_pre_ping=True,
                echo=self.config.echo,
            )
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.info(
                f"Connected to PostgreSQL at {self.config.host}:{self.config.port}"
            )
        except Exception as e:
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    async def disconnect(self) -> None:
        """Close all database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Disconnected from PostgreSQL")

    async def health_check(self) -> bool:
        """Check if database is reachable by executing a simple query."""
        if self._engine is None:
            return False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional session scope.

        Commits on clean exit, rolls back and re-raises on error.
        """
        if self._session_factory is None:
            raise ConnectionError("Database not connected. Call connect() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables defined in models."""
        if self._engine is None:
            raise ConnectionError("Database not connected. Call connect() first.")

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created")

    async def drop_tables(self) -> None:
        """Drop all tables. Use with caution."""
        if self._engine is None:
            raise ConnectionError("Database not connected. Call connect() first.")

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info("Database tables dropped")


def _load_config() -> DatabaseConfig:
    """Load database configuration from config files."""
    postgres_config = get_config().get("postgres", {})

    if not postgres_config and not os.environ.get("DATABASE_URL"):
        raise ConfigurationError("PostgreSQL configuration not found")

    return DatabaseConfig.from_mapping(postgres_config)


# Global database instance
_db_instance: Database | None = None


async def get_db() -> Database:
    """
    Get the global database instance.

    Creates and connects the instance on first call. DATABASE_URL, when
    set, wins over storage.yaml.

    Returns:
        Connected Database instance.
    """
    global _db_instance

    if _db_instance is None:
        _db_instance = Database(_load_config(), url=os.environ.get("DATABASE_URL"))
        await _db_instance.connect()

    return _db_instance


async def close_db() -> None:
    """Close the global database instance."""
    global _db_instance

    if _db_instance is not None:
        await _db_instance.disconnect()
        _db_instance = None
