"""
Tests for SettingsService.

Validation tests run anywhere; integration tests use a real PostgreSQL
database and skip without one.
"""

import pytest

from src.core.services.settings import SettingsService


class TestSettingsServiceDefaults:
    """Tests for SettingsService default values."""

    def test_default_values(self) -> None:
        """Default values are correct."""
        service = SettingsService()

        assert service.DEFAULTS["timezone"] == "America/Chicago"
        assert service.DEFAULTS["request_delay_ms"] == 500

    def test_types_defined(self) -> None:
        """All settings have types defined."""
        service = SettingsService()

        for key in service.DEFAULTS:
            assert key in service.TYPES, f"Missing type for {key}"

    def test_descriptions_defined(self) -> None:
        """All settings have descriptions defined."""
        service = SettingsService()

        for key in service.DEFAULTS:
            assert key in service.DESCRIPTIONS, f"Missing description for {key}"


class TestSettingsServiceValidation:
    """Tests for SettingsService value validation."""

    def test_validate_number(self) -> None:
        """Number settings must be non-negative integers."""
        service = SettingsService()

        service._validate_value("request_delay_ms", 0)
        service._validate_value("request_delay_ms", 1500)

        with pytest.raises(ValueError):
            service._validate_value("request_delay_ms", -1)

        with pytest.raises(ValueError):
            service._validate_value("request_delay_ms", "500")

        with pytest.raises(ValueError):
            service._validate_value("request_delay_ms", True)

    def test_validate_timezone(self) -> None:
        """Timezone settings must name an IANA zone."""
        service = SettingsService()

        service._validate_value("timezone", "Europe/Berlin")
        service._validate_value("timezone", "UTC")

        with pytest.raises(ValueError):
            service._validate_value("timezone", "Mars/Olympus_Mons")

        with pytest.raises(ValueError):
            service._validate_value("timezone", "")

        with pytest.raises(ValueError):
            service._validate_value("timezone", 5)


class TestSettingsServiceIntegration:
    """Integration tests against PostgreSQL."""

    async def test_get_returns_default_when_unset(self, database) -> None:
        service = SettingsService(database)

        assert await service.get("timezone") == "America/Chicago"

    async def test_set_and_get(self, database) -> None:
        service = SettingsService(database)

        await service.set("timezone", "Europe/London")
        await service.set("timezone", "Asia/Tokyo")

        assert await service.get("timezone") == "Asia/Tokyo"

    async def test_set_rejects_invalid(self, database) -> None:
        service = SettingsService(database)

        with pytest.raises(ValueError):
            await service.set("request_delay_ms", -5)

        assert await service.get("request_delay_ms") == 500

    async def test_unknown_key(self, database) -> None:
        service = SettingsService(database)

        with pytest.raises(KeyError):
            await service.get("nope")

        with pytest.raises(KeyError):
            await service.set("nope", 1)

    async def test_get_all_and_reset(self, database) -> None:
        service = SettingsService(database)
        await service.set("request_delay_ms", 250)

        settings = await service.get_all()
        assert settings["request_delay_ms"]["value"] == 250
        assert settings["request_delay_ms"]["is_default"] is False
        assert settings["timezone"]["is_default"] is True

        await service.reset("request_delay_ms")
        assert await service.get("request_delay_ms") == 500
