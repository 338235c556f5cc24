"""Crawl OpenJDK JEP listing pages and extract document sections.

One parameterized pipeline replaces the per-release scraping scripts:

- fetch a listing page (primary URL, then one alternate)
- discover document links with per-era rules
- fetch each document sequentially with fixed pacing
- extract named sections (structured DOM walk or flat-text split)
- write every record atomically to one JSON file

Example usage:

    from jepcrawl import crawl, load_profile

    profile = load_profile("jdk-17-21")
    result = crawl(profile, output="jeps-17-21.json")
    for record in result.records:
        print(record.title, record.fetch_error or "ok")

    # Pieces can be used on their own
    from jepcrawl import extract_links, extract_sections

    refs = extract_links(listing_html, "https://openjdk.org")
    sections = extract_sections(jep_html, ["Summary", "Goals"])
"""

from __future__ import annotations

from .config import (
    CrawlProfile,
    FetchSettings,
    LinkRules,
    list_profiles,
    load_profile,
    load_profile_file,
)
from .crawl import CrawlOrchestrator, CrawlState, crawl, crawl_async
from .document import CrawlResult, DocumentRecord, DocumentReference
from .errors import CrawlError, ExtractionEmpty, NetworkError, SerializationError
from .fetch import HttpFetcher, RenderedFetcher, fetch, fetch_async
from .links import extract_links
from .sections import extract_sections
from .writer import read_result, write_result

__all__ = [
    # Document types
    "DocumentReference",
    "DocumentRecord",
    "CrawlResult",
    # Errors
    "CrawlError",
    "NetworkError",
    "ExtractionEmpty",
    "SerializationError",
    # Configuration
    "CrawlProfile",
    "FetchSettings",
    "LinkRules",
    "list_profiles",
    "load_profile",
    "load_profile_file",
    # Fetching
    "HttpFetcher",
    "RenderedFetcher",
    "fetch",
    "fetch_async",
    # Extraction
    "extract_links",
    "extract_sections",
    # Orchestration
    "CrawlOrchestrator",
    "CrawlState",
    "crawl",
    "crawl_async",
    # Persistence
    "read_result",
    "write_result",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
