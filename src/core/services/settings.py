"""
Settings service for operator-mutable configuration.

Provides a high-level interface for reading and writing settings
with default value fallbacks. The scheduler re-reads these while
running, so changes apply without a redeploy.
"""

import logging
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.core.models import Setting
from src.core.storage.postgres import Database, get_db
from src.core.utils.time import utcnow_naive

logger = logging.getLogger(__name__)


class SettingsService:
    """
    Service for managing scheduler settings.

    Settings are stored in the database but fall back to DEFAULTS when
    not set.
    """

    DEFAULTS: dict[str, Any] = {
        "timezone": "America/Chicago",
        "request_delay_ms": 500,
    }

    DESCRIPTIONS: dict[str, str] = {
        "timezone": "IANA timezone that crawl schedule times are evaluated in",
        "request_delay_ms": "Pause between consecutive ranking provider calls (milliseconds)",
    }

    TYPES: dict[str, str] = {
        "timezone": "timezone",
        "request_delay_ms": "number",
    }

    def __init__(self, db: Database | None = None) -> None:
        """Initialize with a database instance, or None to use get_db() lazily."""
        self._db = db

    async def _get_db(self) -> Database:
        if self._db is None:
            self._db = await get_db()
        return self._db

    async def get(self, key: str) -> Any:
        """
        Get a setting value by key.

        Args:
            key: The setting key.

        Returns:
            The setting value, or the default if not set.

        Raises:
            KeyError: If the key is not a valid setting.
        """
        if key not in self.DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")

        db = await self._get_db()
        async with db.session() as session:
            stmt = select(Setting).where(Setting.key == key)
            result = await session.execute(stmt)
            setting = result.scalar_one_or_none()

            if setting is not None:
                return setting.value.get("value", self.DEFAULTS[key])

            return self.DEFAULTS[key]

    async def set(self, key: str, value: Any) -> None:
        """
        Set a setting value (upsert).

        Raises:
            KeyError: If the key is not a valid setting.
            ValueError: If the value is invalid.
        """
        if key not in self.DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")

        self._validate_value(key, value)

        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                pg_insert(Setting)
                .values(
                    key=key,
                    value={"value": value},
                    updated_at=utcnow_naive(),
                )
                .on_conflict_do_update(
                    index_elements=["key"],
                    set_={
                        "value": {"value": value},
                        "updated_at": utcnow_naive(),
                    },
                )
            )
            await session.execute(stmt)
            await session.commit()

        logger.info(f"Setting '{key}' updated to: {value}")

    async def get_all(self) -> dict[str, dict[str, Any]]:
        """
        Get all settings with their metadata.

        Returns:
            Dict mapping setting keys to value, default, description,
            type and whether the default is in effect.
        """
        db = await self._get_db()
        async with db.session() as session:
            result = await session.execute(select(Setting))
            db_settings = {s.key: s.value.get("value") for s in result.scalars().all()}

        settings = {}
        for key, default in self.DEFAULTS.items():
            settings[key] = {
                "value": db_settings.get(key, default),
                "default": default,
                "description": self.DESCRIPTIONS.get(key, ""),
                "type": self.TYPES.get(key, "text"),
                "is_default": key not in db_settings,
            }

        return settings

    async def reset(self, key: str) -> None:
        """
        Reset a setting to its default value by deleting the stored row.

        Raises:
            KeyError: If the key is not a valid setting.
        """
        if key not in self.DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")

        db = await self._get_db()
        async with db.session() as session:
            stmt = select(Setting).where(Setting.key == key)
            result = await session.execute(stmt)
            setting = result.scalar_one_or_none()

            if setting is not None:
                await session.delete(setting)
                await session.commit()
                logger.info(f"Setting '{key}' reset to default")

    def _validate_value(self, key: str, value: Any) -> None:
        """
        Validate a setting value.

        Raises:
            ValueError: If the value is invalid.
        """
        setting_type = self.TYPES.get(key, "text")

        if setting_type == "number":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{key} must be a non-negative integer")

        elif setting_type == "timezone":
            if not isinstance(value, str) or not value:
                raise ValueError(f"{key} must be an IANA timezone name")
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown timezone '{value}'") from None
