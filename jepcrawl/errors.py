"""Exceptions raised by the crawl pipeline."""

from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for crawl failures.

    ``stage`` names the pipeline step that failed (``listing``, ``document``,
    ``links``, ``write``) so diagnostics can point at it.
    """

    def __init__(self, message: str, *, stage: str = "", url: Optional[str] = None):
        self.stage = stage
        self.url = url
        super().__init__(message)


class NetworkError(CrawlError):
    """Connection, DNS, timeout, or non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        stage: str = "fetch",
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, stage=stage, url=url)


class ExtractionEmpty(CrawlError):
    """No documents could be discovered and no fallback list is configured."""


class SerializationError(CrawlError):
    """The crawl result could not be written to its destination."""
