"""
Fetcher primitive: performs one HTTP request with retries.

Used for page health checks (GET the page itself) and as the transport
under the ranking provider client (POST JSON to the provider API).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ContentType(StrEnum):
    """Detected content type."""
    HTML = "html"
    JSON = "json"
    TEXT = "text"
    OTHER = "other"


@dataclass
class FetchResult:
    """Result of one HTTP request."""
    url: str
    status_code: int
    content_type: ContentType
    text: str | None
    headers: dict[str, str]
    fetched_at: datetime
    elapsed_ms: int

    @property
    def ok(self) -> bool:
        """True if request was successful (2xx status)."""
        return 200 <= self.status_code < 300


@dataclass
class FetcherConfig:
    """Configuration for Fetcher."""
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    user_agent: str = "crawl-scheduler/0.1 (+https://github.com/)"
    extra_headers: dict[str, str] = field(default_factory=dict)
    follow_redirects: bool = True
    verify_ssl: bool = True


class Fetcher:
    """
    Performs HTTP requests.

    Usage:
        fetcher = Fetcher()
        result = await fetcher.fetch("https://example.com")

        if result.ok:
            print(result.text)
    """

    def __init__(self, config: FetcherConfig | None = None):
        self.config = config or FetcherConfig()

    async def fetch(self, url: str, **kwargs: Any) -> FetchResult:
        """GET a URL."""
        return await self.request("GET", url, **kwargs)

    async def request(
        self,
        method: str,
        url: str,
        json: Any = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> FetchResult:
        """
        Send a request, retrying on timeouts and transport errors.

        HTTP error statuses are returned, not raised; callers check .ok.

        Raises:
            RuntimeError: When every attempt failed at the transport level.
        """
        request_headers = {
            "User-Agent": self.config.user_agent,
            **self.config.extra_headers,
            **(headers or {}),
        }

        start_time = datetime.now()

        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.config.timeout,
            follow_redirects=self.config.follow_redirects,
            verify=self.config.verify_ssl,
        ) as client:

            last_error: Exception | None = None

            for attempt in range(self.config.max_retries):
                try:
                    response = await client.request(
                        method, url, json=json, auth=auth, headers=request_headers
                    )

                    elapsed_ms = int((datetime.now() - start_time).total_seconds() * 1000)
                    content_type = self._detect_content_type(response)

                    return FetchResult(
                        url=str(response.url),
                        status_code=response.status_code,
                        content_type=content_type,
                        text=response.text if content_type != ContentType.OTHER else None,
                        headers=dict(response.headers),
                        fetched_at=datetime.now(),
                        elapsed_ms=elapsed_ms,
                    )

                except httpx.TimeoutException as e:
                    last_error = e
                    logger.warning(f"Timeout requesting {url}, attempt {attempt + 1}")

                except httpx.RequestError as e:
                    last_error = e
                    logger.warning(f"Error requesting {url}: {e}, attempt {attempt + 1}")

                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(self.config.retry_delay * (attempt + 1))

            raise RuntimeError(
                f"Failed to request {url} after {self.config.max_retries} attempts"
            ) from last_error

    def _detect_content_type(self, response: httpx.Response) -> ContentType:
        """Detect content type from response headers."""
        content_type_header = response.headers.get("content-type", "").lower()

        if "application/json" in content_type_header:
            return ContentType.JSON
        elif "text/html" in content_type_header or "xhtml" in content_type_header:
            return ContentType.HTML
        elif content_type_header.startswith("text/"):
            return ContentType.TEXT
        elif not content_type_header:
            head = response.content[:100].lower()
            if b"<!doctype html" in head or b"<html" in head:
                return ContentType.HTML
        return ContentType.OTHER
