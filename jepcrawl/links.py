"""Discover document links on a listing page."""

from __future__ import annotations

import html
import logging
import re
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from .config import LinkRules
from .document import DocumentReference

LOGGER = logging.getLogger(__name__)

ANCHOR_PATTERN = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*([\"'])(?P<href>.*?)\1[^>]*>(?P<text>.*?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def extract_links(
    listing_content: str,
    base_url: str,
    rules: Optional[LinkRules] = None,
) -> List[DocumentReference]:
    """Return the document references found on a listing page.

    Anchors are kept when their resolved path matches ``rules.path_pattern``.
    Order follows the page; the first anchor for a URL wins. An empty list
    means the page had no matching links, which is not an error.
    """
    rules = rules or LinkRules()
    path_pattern = re.compile(rules.path_pattern)
    title_filter = re.compile(rules.title_filter) if rules.title_filter else None

    if rules.strategy == "selector":
        anchors = _select_anchors(listing_content, rules.selector)
    else:
        anchors = _scan_anchors(listing_content)

    references: List[DocumentReference] = []
    seen: Set[str] = set()
    for href, text in anchors:
        url = normalize_url(urljoin(base_url, href.strip()), rules)
        match = path_pattern.search(urlsplit(url).path)
        if not match:
            continue

        label = collapse_whitespace(text)
        if title_filter and not title_filter.search(label):
            continue

        if url in seen:
            continue
        seen.add(url)

        doc_id = match.group("id")
        references.append(
            DocumentReference(
                id=doc_id,
                title=normalize_title(label, doc_id, rules.title_prefix),
                url=url,
            )
        )

    LOGGER.debug("Extracted %d document link(s) from %s", len(references), base_url)
    return references


def _scan_anchors(content: str) -> Iterable[Tuple[str, str]]:
    for match in ANCHOR_PATTERN.finditer(content or ""):
        href = html.unescape(match.group("href"))
        text = html.unescape(_TAG.sub("", match.group("text")))
        yield href, text


def _select_anchors(content: str, selector: str) -> Iterable[Tuple[str, str]]:
    soup = BeautifulSoup(content or "", "html.parser")
    for anchor in soup.select(selector):
        href = anchor.get("href")
        if not href or not isinstance(href, str):
            continue
        yield href, anchor.get_text()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_title(label: str, doc_id: str, prefix: str) -> str:
    """Ensure the title carries the canonical prefix, e.g. ``JEP 409: ...``."""
    title = collapse_whitespace(label)
    if title.startswith(prefix):
        return title
    rest = re.sub(rf"^{re.escape(doc_id)}(?:\s*:\s*|\s+|$)", "", title)
    if not rest:
        return f"{prefix}{doc_id}"
    return f"{prefix}{doc_id}: {rest}"


def _normalize_host(host: Optional[str]) -> str:
    """Normalize hostname by removing port and lowercasing."""
    if not host:
        return ""
    return host.split(":")[0].lower()


def normalize_url(url: str, rules: LinkRules) -> str:
    """Drop the fragment and move deprecated hosts onto the canonical host."""
    parts = urlsplit(url)
    netloc = parts.netloc
    deprecated = {_normalize_host(host) for host in rules.deprecated_hosts}
    if rules.canonical_host and _normalize_host(netloc) in deprecated:
        netloc = rules.canonical_host
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, ""))
