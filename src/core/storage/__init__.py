"""
Storage module.

PostgreSQL is the only backend: crawl schedules, crawl results,
settings and tracked project data.

Usage:
    from src.core.storage import get_db

    db = await get_db()
    async with db.session() as session:
        result = await session.execute(query)
"""

from src.core.storage.exceptions import (
    ConfigurationError,
    ConnectionError,
    NotFoundError,
    StorageError,
)
from src.core.storage.postgres import Base, Database, DatabaseConfig, close_db, get_db

__all__ = [
    "DatabaseConfig",
    "StorageError",
    "ConnectionError",
    "NotFoundError",
    "ConfigurationError",
    "Database",
    "Base",
    "get_db",
    "close_db",
]
