"""Split a document page into named sections.

Two strategies cover the markup eras seen on the document pages:

- ``structured``: walk the parsed DOM. A section starts at a heading whose
  text equals a known name (case-insensitive) and runs over the following
  siblings until the next heading of the same or a higher level.
- ``flat``: strip all markup first, then take the text after each known
  name up to the next known name. This assumes names only occur as their
  own headings; a name repeated in prose earlier in the page will shift or
  shorten the captured text.

Missing sections map to ``""``. Keys always follow the order of the
requested names.
"""

from __future__ import annotations

import html
import re
from typing import Dict, Optional, Sequence

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

STRATEGIES = ("structured", "flat")

_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_SCRIPT_STYLE = re.compile(
    r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def extract_sections(
    document_content: str,
    section_names: Sequence[str],
    strategy: str = "structured",
    max_chars: Optional[int] = None,
) -> Dict[str, str]:
    """Map every name in ``section_names`` to its text in the document.

    Args:
        document_content: Raw HTML of one document.
        section_names: Known section names, in output order.
        strategy: ``"structured"`` or ``"flat"``.
        max_chars: Optional cap applied to each section after extraction.

    Raises:
        ValueError: If ``strategy`` is unknown.
    """
    if strategy == "structured":
        sections = _extract_structured(document_content, section_names)
    elif strategy == "flat":
        sections = _extract_flat(document_content, section_names)
    else:
        raise ValueError(
            f"Unknown section strategy '{strategy}' "
            f"(expected one of {', '.join(STRATEGIES)})"
        )

    if max_chars and max_chars > 0:
        sections = {name: text[:max_chars] for name, text in sections.items()}
    return sections


def html_to_text(content: str) -> str:
    """Drop scripts, styles and tags; decode entities; collapse whitespace."""
    text = _SCRIPT_STYLE.sub(" ", content or "")
    text = _TAG.sub(" ", text)
    return _collapse(html.unescape(text))


def extract_full_text(content: str, max_chars: int) -> str:
    """Plain text of the page body, cut to ``max_chars``."""
    soup = BeautifulSoup(content or "", "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    root = soup.body or soup
    return _collapse(root.get_text(" "))[:max_chars]


def extract_page_title(content: str) -> str:
    """Text of the first ``h1``, or ``""`` when the page has none."""
    soup = BeautifulSoup(content or "", "html.parser")
    heading = soup.find("h1")
    return _collapse(heading.get_text()) if heading else ""


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _heading_level(tag: Tag) -> Optional[int]:
    if tag.name in _HEADING_TAGS:
        return int(tag.name[1])
    return None


def _extract_structured(content: str, section_names: Sequence[str]) -> Dict[str, str]:
    soup = BeautifulSoup(content or "", "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()

    wanted: Dict[str, str] = {}
    for name in section_names:
        wanted.setdefault(_collapse(name).lower(), name)

    found: Dict[str, str] = {}
    for heading in soup.find_all(_HEADING_TAGS):
        name = wanted.get(_collapse(heading.get_text()).lower())
        if name is None or name in found:
            continue
        found[name] = _section_body(heading)

    return {name: found.get(name, "") for name in section_names}


def _section_body(heading: Tag) -> str:
    level = _heading_level(heading) or 6
    parts = []
    for sibling in heading.next_siblings:
        if isinstance(sibling, Tag):
            sibling_level = _heading_level(sibling)
            if sibling_level is not None and sibling_level <= level:
                break
            parts.append(sibling.get_text())
        elif isinstance(sibling, NavigableString) and not isinstance(sibling, Comment):
            parts.append(str(sibling))
    return _collapse(" ".join(parts))


def _extract_flat(content: str, section_names: Sequence[str]) -> Dict[str, str]:
    text = html_to_text(content)
    if not section_names:
        return {}

    boundary = "|".join(re.escape(name) for name in section_names)

    sections: Dict[str, str] = {}
    for name in section_names:
        pattern = re.compile(
            rf"{re.escape(name)}\s*(.*?)(?=(?:{boundary})|$)",
            re.IGNORECASE | re.DOTALL,
        )
        match = pattern.search(text)
        sections[name] = match.group(1).strip() if match else ""
    return sections
