"""
Storage exceptions.

Services raise these so the scheduler and worker never handle SQLAlchemy
error types directly.
"""


class StorageError(Exception):
    """Base exception for crawl storage errors."""

    pass


class ConnectionError(StorageError):
    """The database is unreachable or the engine was never created."""

    pass


class NotFoundError(StorageError):
    """A schedule, run or project row does not exist."""

    pass


class ConfigurationError(StorageError):
    """No usable postgres section or DATABASE_URL."""

    pass
