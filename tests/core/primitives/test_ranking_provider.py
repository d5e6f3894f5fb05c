"""Tests for the ranking provider client."""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.primitives.fetcher import ContentType, FetchResult
from src.core.primitives.ranking_provider import ProviderConfig, ProviderError, RankingProvider


def provider_response(result: dict | None, status_code: int = 20000, http_status: int = 200):
    body = {
        "status_code": 20000,
        "status_message": "Ok.",
        "tasks": [
            {
                "status_code": status_code,
                "status_message": "Ok." if status_code == 20000 else "Task failed",
                "result": [result] if result is not None else None,
            }
        ],
    }
    return FetchResult(
        url="https://api.dataforseo.com/v3/x",
        status_code=http_status,
        content_type=ContentType.JSON,
        text=json.dumps(body),
        headers={"content-type": "application/json"},
        fetched_at=datetime.now(),
        elapsed_ms=12,
    )


@pytest.fixture
def fetcher() -> MagicMock:
    mock = MagicMock()
    mock.request = AsyncMock()
    return mock


@pytest.fixture
def provider(fetcher) -> RankingProvider:
    return RankingProvider(ProviderConfig(login="user", password="secret"), fetcher=fetcher)


class TestRankLookup:
    async def test_finds_own_position_and_competitors(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response(
            {
                "items": [
                    {"type": "paid", "domain": "ads.com", "rank_absolute": 1},
                    {"type": "organic", "domain": "rival.com", "url": "https://rival.com/a",
                     "rank_absolute": 2},
                    {"type": "organic", "domain": "www.example.com",
                     "url": "https://www.example.com/shoes", "rank_absolute": 3},
                ]
            }
        )

        result = await provider.rank_lookup("running shoes", "example.com")

        assert result.position == 3
        assert result.url == "https://www.example.com/shoes"
        assert [c.domain for c in result.competitors] == ["rival.com"]

        method, url = fetcher.request.call_args.args
        task = fetcher.request.call_args.kwargs["json"][0]
        assert method == "POST"
        assert url.endswith("/serp/google/organic/live/advanced")
        assert task["keyword"] == "running shoes"
        assert task["location_code"] == 2840

    async def test_not_ranking(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response(
            {"items": [{"type": "organic", "domain": "rival.com", "rank_absolute": 1}]}
        )

        result = await provider.rank_lookup("shoes", "example.com")

        assert result.position is None
        assert result.url is None


class TestCompetitorList:
    async def test_parses_entries_and_skips_self(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response(
            {
                "items": [
                    {"domain": "example.com", "intersections": 500},
                    {"domain": "Rival.com", "intersections": 40, "avg_position": 6.5},
                    {"domain": "other.org", "intersections": 12},
                ]
            }
        )

        entries = await provider.competitor_list("example.com", limit=5)

        assert [e.domain for e in entries] == ["rival.com", "other.org"]
        assert entries[0].shared_keywords == 40
        assert entries[0].avg_position == 6.5


class TestBacklinkSummary:
    async def test_summary(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response(
            {"backlinks": 1200, "referring_domains": 85, "rank": 310}
        )

        summary = await provider.backlink_summary("https://example.com/")

        assert summary.backlinks == 1200
        assert summary.referring_domains == 85
        assert summary.rank == 310

    async def test_empty_result_is_zero(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response(None)

        summary = await provider.backlink_summary("example.com")

        assert summary.backlinks == 0
        assert summary.rank is None


class TestProviderErrors:
    async def test_missing_credentials(self, fetcher) -> None:
        provider = RankingProvider(ProviderConfig(), fetcher=fetcher)

        with pytest.raises(ProviderError, match="credentials"):
            await provider.backlink_summary("example.com")

        fetcher.request.assert_not_called()

    async def test_http_error(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response({}, http_status=401)

        with pytest.raises(ProviderError, match="HTTP 401"):
            await provider.backlink_summary("example.com")

    async def test_task_error(self, provider, fetcher) -> None:
        fetcher.request.return_value = provider_response({}, status_code=40501)

        with pytest.raises(ProviderError, match="Task failed"):
            await provider.rank_lookup("shoes", "example.com")

    async def test_transport_error(self, provider, fetcher) -> None:
        fetcher.request.side_effect = RuntimeError("Failed to request after 2 attempts")

        with pytest.raises(ProviderError, match="2 attempts"):
            await provider.competitor_list("example.com")

    async def test_invalid_json(self, provider, fetcher) -> None:
        response = provider_response({})
        response.text = "<html>maintenance</html>"
        fetcher.request.return_value = response

        with pytest.raises(ProviderError, match="invalid JSON"):
            await provider.backlink_summary("example.com")


def test_from_config() -> None:
    with patch(
        "src.core.primitives.ranking_provider.get_provider_config",
        return_value={"login": "a", "password": "b", "location_code": "2826", "timeout": 30},
    ):
        provider = RankingProvider.from_config()

    assert provider.config.login == "a"
    assert provider.config.location_code == 2826
    assert provider.fetcher.config.timeout == 30.0
