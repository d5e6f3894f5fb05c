"""
Clock and timezone resolution for schedule evaluation.

Schedule times are wall-clock times in an operator-configured IANA zone.
The zone is cached and refreshed on a timer rather than read on every
poll tick, so a settings change takes effect within one refresh interval.
"""

import logging
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.core.services.settings import SettingsService
from src.core.utils.time import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Chicago"


def current_weekday_and_minute(tz: tzinfo, now: datetime | None = None) -> tuple[int, str]:
    """
    Weekday and "HH:MM" wall-clock time in `tz`.

    Weekdays count from Sunday: 0 = Sunday .. 6 = Saturday.

    Args:
        tz: Zone to resolve in.
        now: Aware instant to resolve (defaults to the current time).

    Example:
        >>> from datetime import UTC
        >>> current_weekday_and_minute(ZoneInfo("America/Chicago"),
        ...                            datetime(2026, 3, 4, 15, 0, tzinfo=UTC))
        (3, '09:00')
    """
    local = (now or utcnow()).astimezone(tz)
    return local.isoweekday() % 7, local.strftime("%H:%M")


class TimezoneResolver:
    """
    Holds the scheduler's current timezone.

    refresh() re-reads the "timezone" setting; a missing, invalid or
    unreadable value keeps the previously resolved zone.
    """

    def __init__(
        self,
        settings: SettingsService | None = None,
        default: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._settings = settings or SettingsService()
        self._name = default
        self._zone: ZoneInfo = ZoneInfo(default)

    @property
    def name(self) -> str:
        return self._name

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    async def refresh(self) -> ZoneInfo:
        """Re-read the timezone setting and return the zone now in effect."""
        try:
            name = await self._settings.get("timezone")
        except Exception as e:
            logger.warning(f"Could not read timezone setting: {e}, keeping {self._name}")
            return self._zone

        if name == self._name:
            return self._zone

        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            logger.warning(f"Invalid timezone setting '{name}', keeping {self._name}")
            return self._zone

        logger.info(f"Scheduler timezone changed: {self._name} -> {name}")
        self._name = name
        self._zone = zone
        return zone

    def now(self) -> datetime:
        """Current time in the resolved zone."""
        return utcnow().astimezone(self._zone)

    def current_weekday_and_minute(self, now: datetime | None = None) -> tuple[int, str]:
        return current_weekday_and_minute(self._zone, now)
