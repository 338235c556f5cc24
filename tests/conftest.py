"""Shared fixtures: canned pages, a sample profile, and an in-memory fetcher."""

from __future__ import annotations

from typing import Dict, List, Optional, Union

import pytest

from jepcrawl.config import CrawlProfile, LinkRules
from jepcrawl.document import DocumentReference
from jepcrawl.errors import NetworkError

LISTING_URL = "https://openjdk.org/projects/jdk/21/jeps-since-jdk-17"
ALT_LISTING_URL = "https://openjdk.java.net/projects/jdk/21/jeps-since-jdk-17"

LISTING_HTML = """\
<html><body>
<table class="jeps">
<tr><td><a href="/jeps/409">409: Sealed Classes</a></td></tr>
<tr><td><a href="https://openjdk.java.net/jeps/440">Record Patterns</a></td></tr>
<tr><td><a href="/jeps/444">JEP 444: Virtual
      Threads</a></td></tr>
<tr><td><a href="/jeps/409">Sealed Classes (again)</a></td></tr>
<tr><td><a href="/projects/jdk/21/">JDK 21</a></td></tr>
</table>
</body></html>
"""


def _jep_page(summary: str, goals: str, motivation: Optional[str] = None) -> str:
    parts = [
        "<html><head><title>JEP</title><style>h2 { color: red }</style></head>",
        "<body><h1>JEP</h1>",
        f"<h2>Summary</h2><p>{summary}</p>",
        f"<h2>Goals</h2><p>{goals}</p>",
    ]
    if motivation is not None:
        parts.append(f"<h2>Motivation</h2><p>{motivation}</p>")
    parts.append("</body></html>")
    return "\n".join(parts)


class FakeFetcher:
    """Serves canned pages; unknown URLs fail like a 404."""

    def __init__(self, pages: Dict[str, Union[str, Exception]]):
        self.pages = dict(pages)
        self.calls: List[str] = []

    async def fetch(self, url, *, headers=None, timeout_ms=None) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise NetworkError(f"HTTP 404 for {url}", url=url, status_code=404)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def listing_url():
    return LISTING_URL


@pytest.fixture
def alt_listing_url():
    return ALT_LISTING_URL


@pytest.fixture
def listing_html():
    return LISTING_HTML


@pytest.fixture
def jep_page():
    return _jep_page


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def profile() -> CrawlProfile:
    return CrawlProfile(
        name="test",
        listing_urls=[LISTING_URL, ALT_LISTING_URL],
        section_names=["Summary", "Goals", "Motivation"],
        link_rules=LinkRules(
            canonical_host="openjdk.org",
            deprecated_hosts=["openjdk.java.net"],
        ),
        delay_seconds=0.5,
        fallback=[
            DocumentReference(
                "406",
                "JEP 406: Pattern Matching for switch (Preview)",
                "https://openjdk.org/jeps/406",
            ),
            DocumentReference(
                "409", "JEP 409: Sealed Classes", "https://openjdk.org/jeps/409"
            ),
        ],
    )
