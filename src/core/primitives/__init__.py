"""
Primitives: atomic building blocks for crawl handlers.

Each primitive does ONE thing well: an HTTP request, a paced batch of
calls, or a ranking provider operation. Handlers compose them.
"""

from src.core.primitives.batch import BatchResult, ItemError, fetch_all
from src.core.primitives.fetcher import (
    ContentType,
    Fetcher,
    FetcherConfig,
    FetchResult,
)
from src.core.primitives.ranking_provider import (
    BacklinkSummary,
    CompetitorEntry,
    ProviderError,
    RankingProvider,
    RankResult,
)

__all__ = [
    "BatchResult",
    "ItemError",
    "fetch_all",
    "ContentType",
    "Fetcher",
    "FetcherConfig",
    "FetchResult",
    "BacklinkSummary",
    "CompetitorEntry",
    "ProviderError",
    "RankingProvider",
    "RankResult",
]
