"""MCP server exposing the JEP crawler as tools.

Provides tools for:
- Listing the built-in crawl profiles
- Running a full profile crawl and returning the JSON records
- Extracting the sections of a single document URL

Supports both STDIO and HTTP transports.

Usage:
    # STDIO
    python -m jepcrawl.mcp_server

    # HTTP (for remote access)
    python -m jepcrawl.mcp_server --transport http --port 8000

Environment Variables:
    JEPCRAWL_USER_AGENT: User-Agent header for requests
    JEPCRAWL_TIMEOUT: Request timeout in seconds
"""

from __future__ import annotations

import argparse
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv
from fastmcp import FastMCP

from .config import (
    DEFAULT_PROFILE,
    CrawlProfile,
    fetch_settings_from_env,
    list_profiles as _builtin_profiles,
    load_profile,
)
from .document import CrawlResult, DocumentRecord, DocumentReference
from .errors import CrawlError, NetworkError
from .fetch import HttpFetcher, RenderedFetcher
from .links import normalize_title, normalize_url
from .writer import record_to_dict

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

load_dotenv()

mcp = FastMCP(
    name="JEP Crawler",
    instructions="""
    Crawls OpenJDK JEP listing pages and extracts document sections.

    Tools:
       - list_profiles: Built-in crawl profiles (one per JDK release range)
       - crawl_profile: Crawl a profile and return all records as JSON
       - extract_document: Extract the sections of a single JEP URL
    """,
)


def _format_timestamp() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _load_profile(name: str) -> CrawlProfile:
    profile = load_profile(name)
    profile.fetch = fetch_settings_from_env(profile.fetch)
    return profile


def _format_crawl_result(result: CrawlResult, profile: CrawlProfile) -> str:
    payload: Dict[str, Any] = {
        "crawled_at": _format_timestamp(),
        "profile": profile.name,
        "listing_url": result.listing_url,
        "used_fallback": result.used_fallback,
        "cancelled": result.cancelled,
        "summary": result.stats,
        "documents": [record_to_dict(record) for record in result.records],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _reference_for_url(url: str, profile: CrawlProfile) -> DocumentReference:
    rules = profile.link_rules
    canonical = normalize_url(url, rules)
    match = re.search(rules.path_pattern, urlsplit(canonical).path)
    doc_id = match.group("id") if match else canonical.rstrip("/").rsplit("/", 1)[-1]
    return DocumentReference(
        id=doc_id,
        title=normalize_title("", doc_id, rules.title_prefix),
        url=canonical,
    )


async def _crawl_profile_json(
    profile_name: str,
    output_path: Optional[str] = None,
    max_documents: Optional[int] = None,
) -> str:
    from .crawl import crawl_async

    try:
        profile = _load_profile(profile_name)
    except ValueError as exc:
        return json.dumps({"error": str(exc), "profile": profile_name})

    LOGGER.info("Crawling profile %s", profile.name)
    try:
        result = await crawl_async(
            profile, output=output_path, max_documents=max_documents
        )
    except CrawlError as exc:
        LOGGER.error("Crawl failed during %s: %s", exc.stage, exc)
        return json.dumps(
            {"error": str(exc), "stage": exc.stage, "url": exc.url},
            ensure_ascii=False,
        )
    return _format_crawl_result(result, profile)


async def _extract_document_json(
    url: str,
    profile_name: str = DEFAULT_PROFILE,
    strategy: Optional[str] = None,
    render: Optional[bool] = None,
) -> str:
    from .crawl import extract_record

    try:
        profile = _load_profile(profile_name)
    except ValueError as exc:
        return json.dumps({"error": str(exc), "profile": profile_name})

    reference = _reference_for_url(url, profile)
    try:
        use_browser = profile.render if render is None else render
        fetcher_cls = RenderedFetcher if use_browser else HttpFetcher
        async with fetcher_cls(profile.fetch) as fetcher:
            content = await fetcher.fetch(reference.url)
        record = extract_record(reference, content, profile, strategy=strategy)
    except (NetworkError, ValueError) as exc:
        record = DocumentRecord(reference=reference, fetch_error=str(exc))

    return json.dumps(record_to_dict(record), indent=2, ensure_ascii=False)


# =============================================================================
# TOOLS
# =============================================================================


@mcp.tool
async def list_profiles() -> str:
    """
    List the built-in crawl profiles.

    Returns:
        JSON array of objects with name, description, listing_urls and
        section_strategy.
    """
    profiles = []
    for name in _builtin_profiles():
        profile = load_profile(name)
        profiles.append(
            {
                "name": profile.name,
                "description": profile.description,
                "listing_urls": profile.listing_urls,
                "section_strategy": profile.section_strategy,
            }
        )
    return json.dumps(profiles, indent=2, ensure_ascii=False)


@mcp.tool
async def crawl_profile(
    profile: str = DEFAULT_PROFILE,
    output_path: Optional[str] = None,
    max_documents: Optional[int] = None,
) -> str:
    """
    Crawl a profile's listing page and every linked JEP.

    Args:
        profile: Built-in profile name (e.g. "jdk-17-21")
        output_path: Optional file path; records are also written there
        max_documents: Optional cap on documents processed

    Returns:
        JSON with the records, a summary, and whether the fallback list was used.
    """
    return await _crawl_profile_json(profile, output_path, max_documents)


@mcp.tool
async def extract_document(
    url: str,
    profile: str = DEFAULT_PROFILE,
    strategy: Optional[str] = None,
    render: Optional[bool] = None,
) -> str:
    """
    Fetch one JEP page and extract its sections.

    Args:
        url: JEP URL (e.g. "https://openjdk.org/jeps/409")
        profile: Profile supplying section names and the default strategy
        strategy: Optional override, "structured" or "flat"
        render: Load the page in a headless browser; defaults to the profile

    Returns:
        JSON record with id, title, url and sections, plus pageTitle and
        fullText when the profile captures them and fetchError when failed.
    """
    return await _extract_document_json(url, profile, strategy, render)


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the JEP crawler MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # STDIO transport (default)
    python -m jepcrawl.mcp_server

    # HTTP transport
    python -m jepcrawl.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
