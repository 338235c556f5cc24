"""Fetch raw page content over HTTP or through a rendering browser.

Two fetchers share one contract: ``await fetcher.fetch(url)`` returns the
decoded body as text, or raises :class:`~jepcrawl.errors.NetworkError` on
connection/DNS/timeout failures and on any non-2xx status. Neither retries;
retry policy belongs to the orchestrator.

Example usage:

    from jepcrawl.fetch import HttpFetcher

    async with HttpFetcher() as fetcher:
        html = await fetcher.fetch("https://openjdk.org/jeps/409")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol

import httpx
from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig

from .config import FetchSettings, build_render_run_config
from .errors import NetworkError

LOGGER = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> str: ...


def decode_body(response: httpx.Response) -> str:
    """Decode with the declared charset, UTF-8 when none is declared."""
    encoding = response.charset_encoding or "utf-8"
    try:
        return response.content.decode(encoding, errors="replace")
    except LookupError:
        LOGGER.debug(
            "Unknown charset '%s' for %s; decoding as UTF-8", encoding, response.url
        )
        return response.content.decode("utf-8", errors="replace")


class HttpFetcher:
    """Plain HTTP(S) fetcher backed by one reusable ``httpx.AsyncClient``."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self._client = client
        self._owns_client = client is None
        self._transport = transport

    async def __aenter__(self) -> "HttpFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.settings.as_headers(),
                timeout=self.settings.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> str:
        client = self._ensure_client()
        timeout = (
            timeout_ms / 1000.0 if timeout_ms is not None else httpx.USE_CLIENT_DEFAULT
        )

        try:
            response = await client.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise NetworkError(
                f"HTTP {status} for {url}", url=url, status_code=status
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Request failed for {url}: {exc}", url=url) from exc

        LOGGER.debug("Fetched %s (%d bytes)", url, len(response.content))
        return decode_body(response)


class RenderedFetcher:
    """Fetcher that loads the page in a headless browser via Crawl4AI.

    Use it when the listing only materialises after script execution. The
    returned text is the HTML after a single page load.
    """

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        *,
        run_config: Optional[CrawlerRunConfig] = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self.run_config = run_config or build_render_run_config(
            timeout_seconds=self.settings.timeout_seconds
        )
        self._crawler: Optional[AsyncWebCrawler] = None

    def build_browser_config(self) -> BrowserConfig:
        return BrowserConfig(
            headless=True,
            use_persistent_context=False,
            user_agent=self.settings.user_agent,
            headers=dict(self.settings.headers),
        )

    async def __aenter__(self) -> "RenderedFetcher":
        if self._crawler is None:
            self._crawler = AsyncWebCrawler(config=self.build_browser_config())
            await self._crawler.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._crawler is not None:
            await self._crawler.close()
            self._crawler = None

    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> str:
        if self._crawler is None:
            await self.__aenter__()
        assert self._crawler is not None

        if headers:
            LOGGER.debug("Per-request headers are not applied in rendered mode")
        config = self.run_config
        if timeout_ms is not None:
            config = config.clone(page_timeout=int(timeout_ms))

        try:
            container = await self._crawler.arun(url=url, config=config)
        except Exception as exc:
            raise NetworkError(f"Browser fetch failed for {url}: {exc}", url=url) from exc

        try:
            result = container[0]
        except (IndexError, TypeError):
            result = None

        if result is None:
            raise NetworkError(f"Crawler returned no results for {url}", url=url)

        status = result.status_code
        if not result.success:
            reason = result.error_message or (f"HTTP {status}" if status else "no content")
            raise NetworkError(
                f"Browser fetch failed for {url}: {reason}",
                url=url,
                status_code=status,
            )
        if status is not None and not 200 <= status < 300:
            raise NetworkError(f"HTTP {status} for {url}", url=url, status_code=status)

        return result.html or ""


async def fetch_async(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout_ms: Optional[int] = None,
    settings: Optional[FetchSettings] = None,
    render: bool = False,
) -> str:
    """Fetch a single URL with a short-lived fetcher."""
    fetcher = RenderedFetcher(settings) if render else HttpFetcher(settings)
    async with fetcher:
        return await fetcher.fetch(url, headers=headers, timeout_ms=timeout_ms)


def fetch(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout_ms: Optional[int] = None,
    settings: Optional[FetchSettings] = None,
    render: bool = False,
) -> str:
    """Synchronous wrapper for fetch_async."""
    return asyncio.run(
        fetch_async(
            url,
            headers=headers,
            timeout_ms=timeout_ms,
            settings=settings,
            render=render,
        )
    )
