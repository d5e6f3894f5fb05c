"""
Client for the external ranking-data provider.

One method per logical operation the crawl handlers need, one HTTP call
per invocation. Batching and pacing are the batch fetcher's job, not
this client's.

The wire format is the DataForSEO v3 task API: a JSON list of task
objects in, {"status_code": 20000, "tasks": [{"result": [...]}]} out.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.core.config.loader import get_provider_config
from src.core.primitives.fetcher import Fetcher, FetcherConfig

logger = logging.getLogger(__name__)

OK_STATUS = 20000


class ProviderError(Exception):
    """The provider call failed or returned an error status."""

    pass


@dataclass
class SerpCompetitor:
    """Another domain ranking organically for a keyword."""

    domain: str
    url: str
    position: int


@dataclass
class RankResult:
    """Where the project domain ranks for one keyword."""

    keyword: str
    position: int | None
    url: str | None
    competitors: list[SerpCompetitor] = field(default_factory=list)


@dataclass
class CompetitorEntry:
    """A domain competing with the target in organic search."""

    domain: str
    shared_keywords: int
    avg_position: float | None


@dataclass
class BacklinkSummary:
    """Backlink totals for a URL or domain."""

    target: str
    backlinks: int
    referring_domains: int
    rank: int | None


@dataclass
class ProviderConfig:
    """Connection settings for the provider."""

    base_url: str = "https://api.dataforseo.com/v3"
    login: str = ""
    password: str = ""
    location_code: int = 2840
    language_code: str = "en"
    timeout: float = 60.0
    max_retries: int = 2


def _matches_domain(item: dict[str, Any], domain: str) -> bool:
    item_domain = (item.get("domain") or "").lower()
    item_url = (item.get("url") or "").lower()
    return item_domain == domain or item_domain.endswith("." + domain) or domain in item_url


class RankingProvider:
    """
    Ranking-data provider client.

    Usage:
        provider = RankingProvider.from_config()
        result = await provider.rank_lookup("running shoes", "example.com")
    """

    def __init__(self, config: ProviderConfig, fetcher: Fetcher | None = None):
        self.config = config
        self.fetcher = fetcher or Fetcher(
            FetcherConfig(timeout=config.timeout, max_retries=config.max_retries)
        )

    @classmethod
    def from_config(cls) -> "RankingProvider":
        """Build a client from the provider section of the YAML config."""
        raw = get_provider_config()
        config = ProviderConfig(
            base_url=raw.get("base_url") or ProviderConfig.base_url,
            login=raw.get("login") or "",
            password=raw.get("password") or "",
            location_code=int(raw.get("location_code", ProviderConfig.location_code)),
            language_code=raw.get("language_code", ProviderConfig.language_code),
            timeout=float(raw.get("timeout", ProviderConfig.timeout)),
            max_retries=int(raw.get("max_retries", ProviderConfig.max_retries)),
        )
        return cls(config)

    async def _post(self, endpoint: str, task: dict[str, Any]) -> dict[str, Any]:
        """
        Submit a single task and return its first result object.

        Raises:
            ProviderError: On missing credentials, transport failure, HTTP
                error or a non-OK provider status.
        """
        if not self.config.login or not self.config.password:
            raise ProviderError("Ranking provider credentials not configured")

        url = f"{self.config.base_url.rstrip('/')}{endpoint}"
        try:
            response = await self.fetcher.request(
                "POST",
                url,
                json=[task],
                auth=httpx.BasicAuth(self.config.login, self.config.password),
            )
        except RuntimeError as e:
            raise ProviderError(str(e)) from e

        if not response.ok:
            raise ProviderError(
                f"Provider HTTP {response.status_code}: {(response.text or '')[:200]}"
            )

        try:
            data = json.loads(response.text or "")
        except ValueError as e:
            raise ProviderError(f"Provider returned invalid JSON: {e}") from e

        if data.get("status_code") != OK_STATUS:
            raise ProviderError(f"Provider error: {data.get('status_message', 'unknown')}")

        tasks = data.get("tasks") or []
        if not tasks:
            raise ProviderError("Provider returned no tasks")
        task_result = tasks[0]
        if task_result.get("status_code") != OK_STATUS:
            raise ProviderError(
                f"Provider task error: {task_result.get('status_message', 'unknown')}"
            )

        results = task_result.get("result") or []
        return results[0] if results else {}

    async def rank_lookup(self, keyword: str, domain: str, depth: int = 100) -> RankResult:
        """Organic position of `domain` for `keyword`, with the top competitors."""
        result = await self._post(
            "/serp/google/organic/live/advanced",
            {
                "keyword": keyword,
                "location_code": self.config.location_code,
                "language_code": self.config.language_code,
                "device": "desktop",
                "depth": depth,
            },
        )

        domain = domain.lower()
        organic = [i for i in result.get("items") or [] if i.get("type") == "organic"]
        own = next((i for i in organic if _matches_domain(i, domain)), None)
        competitors = [
            SerpCompetitor(
                domain=i["domain"].lower(),
                url=i.get("url") or "",
                position=int(i.get("rank_absolute") or 0),
            )
            for i in organic
            if i.get("domain") and not _matches_domain(i, domain)
        ][:10]

        return RankResult(
            keyword=keyword,
            position=int(own["rank_absolute"]) if own and own.get("rank_absolute") else None,
            url=own.get("url") if own else None,
            competitors=competitors,
        )

    async def competitor_list(self, domain: str, limit: int = 10) -> list[CompetitorEntry]:
        """Domains that compete with `domain` for the same keywords."""
        result = await self._post(
            "/dataforseo_labs/google/competitors_domain/live",
            {
                "target": domain,
                "location_code": self.config.location_code,
                "language_code": self.config.language_code,
                "limit": limit,
            },
        )

        entries = []
        for item in result.get("items") or []:
            competitor = (item.get("domain") or "").lower()
            if not competitor or competitor == domain.lower():
                continue
            entries.append(
                CompetitorEntry(
                    domain=competitor,
                    shared_keywords=int(item.get("intersections") or 0),
                    avg_position=item.get("avg_position"),
                )
            )
        return entries[:limit]

    async def backlink_summary(self, target: str) -> BacklinkSummary:
        """Backlink totals for a page URL or a domain."""
        result = await self._post(
            "/backlinks/summary/live",
            {"target": target, "internal_list_limit": 0},
        )
        return BacklinkSummary(
            target=target,
            backlinks=int(result.get("backlinks") or 0),
            referring_domains=int(result.get("referring_domains") or 0),
            rank=result.get("rank"),
        )
