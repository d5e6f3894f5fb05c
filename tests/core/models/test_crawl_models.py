"""Tests for crawl models and enums."""

import pytest

from src.core.models import CrawlResult, CrawlType, RunStatus
from tests.fakes import make_schedule


class TestCrawlType:
    """Tests for CrawlType.parse."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("keyword_ranks", CrawlType.KEYWORD_RANKS),
            ("  Competitors ", CrawlType.COMPETITORS),
            ("keywords", CrawlType.KEYWORD_RANKS),
            ("pages", CrawlType.PAGES_HEALTH),
            ("technical", CrawlType.PAGES_HEALTH),
            ("competitor_backlinks", CrawlType.COMPETITOR_BACKLINKS),
        ],
    )
    def test_parse(self, value, expected) -> None:
        assert CrawlType.parse(value) is expected

    def test_parse_unknown_lists_valid_types(self) -> None:
        with pytest.raises(ValueError) as exc_info:
            CrawlType.parse("seo_magic")

        assert "seo_magic" in str(exc_info.value)
        assert "deep_discovery" in str(exc_info.value)

    def test_string_value(self) -> None:
        assert str(CrawlType.BACKLINKS) == "backlinks"
        assert CrawlType.BACKLINKS == "backlinks"


class TestCrawlResult:
    def test_is_running(self) -> None:
        assert CrawlResult(status=RunStatus.RUNNING).is_running is True
        assert CrawlResult(status=RunStatus.STOPPED).is_running is False

    def test_repr(self) -> None:
        result = CrawlResult(
            id=3, crawl_type="backlinks", status="running", items_processed=2, items_total=9
        )
        assert repr(result) == "<CrawlResult(id=3, type='backlinks', status='running', 2/9)>"


def test_schedule_repr() -> None:
    schedule = make_schedule(schedule_id=4, scheduled_time="09:00", days_of_week=[1, 3])
    assert repr(schedule) == "<CrawlSchedule(id=4, type='keyword_ranks', at='09:00', days=[1, 3])>"
