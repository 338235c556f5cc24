"""Crawl profiles, fetch settings, and Crawl4AI run configuration.

A profile bundles everything that is coupled to one markup era of the
listing page: the listing URLs, the link discovery rules, the section names
and extraction strategy, and the static fallback list. Built-in profiles
ship as JSON under ``jepcrawl/profiles`` so they can be edited without
touching code; ``load_profile_file`` accepts the same format from anywhere.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

from crawl4ai import CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

from .document import DocumentReference

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "jepcrawl/0.1 (+https://openjdk.org/jeps/0)"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_PROFILE = "jdk-21-25"

LINK_STRATEGIES = ("regex", "selector")
SECTION_STRATEGIES = ("structured", "flat")


@dataclass
class LinkRules:
    """How document links are recognised on a listing page."""

    strategy: str = "regex"
    path_pattern: str = r"/jeps/(?P<id>\d+)/?$"
    selector: str = "a[href]"
    title_filter: Optional[str] = None
    title_prefix: str = "JEP "
    canonical_host: Optional[str] = None
    deprecated_hosts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkRules":
        rules = cls(
            strategy=str(data.get("strategy", "regex")),
            path_pattern=str(data.get("path_pattern", cls.path_pattern)),
            selector=str(data.get("selector", cls.selector)),
            title_filter=data.get("title_filter"),
            title_prefix=str(data.get("title_prefix", cls.title_prefix)),
            canonical_host=data.get("canonical_host"),
            deprecated_hosts=list(data.get("deprecated_hosts") or []),
        )
        if rules.strategy not in LINK_STRATEGIES:
            raise ValueError(
                f"Unknown link strategy '{rules.strategy}' "
                f"(expected one of {', '.join(LINK_STRATEGIES)})"
            )
        if "(?P<id>" not in rules.path_pattern:
            raise ValueError("path_pattern must define a named group 'id'")
        return rules


@dataclass
class FetchSettings:
    """HTTP identity and timeout shared by every request of a run."""

    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    headers: Dict[str, str] = field(default_factory=dict)

    def as_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Default headers merged with configured and per-call overrides."""
        merged = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
        }
        merged.update(self.headers)
        if extra:
            merged.update(extra)
        return merged

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FetchSettings":
        return cls(
            user_agent=str(data.get("user_agent") or DEFAULT_USER_AGENT),
            timeout_seconds=float(
                data.get("timeout_seconds") or DEFAULT_TIMEOUT_SECONDS
            ),
            headers=dict(data.get("headers") or {}),
        )


@dataclass
class CrawlProfile:
    """Everything needed to crawl one listing page and its documents."""

    name: str
    listing_urls: List[str]
    section_names: List[str]
    description: str = ""
    link_rules: LinkRules = field(default_factory=LinkRules)
    section_strategy: str = "structured"
    max_section_chars: Optional[int] = None
    full_text_chars: Optional[int] = None
    capture_page_title: bool = False
    delay_seconds: float = 1.0
    render: bool = False
    retry_alternate_host: bool = False
    fallback: List[DocumentReference] = field(default_factory=list)
    fetch: FetchSettings = field(default_factory=FetchSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlProfile":
        """Build a profile from its JSON form.

        Raises:
            ValueError: If a required key is missing or a value is invalid.
        """
        name = data.get("name")
        if not name:
            raise ValueError("Profile is missing 'name'")

        listing_urls = [str(url) for url in data.get("listing_urls") or []]
        if not listing_urls:
            raise ValueError(f"Profile '{name}' has no listing_urls")

        section_names = [str(section) for section in data.get("section_names") or []]
        if not section_names:
            raise ValueError(f"Profile '{name}' has no section_names")

        strategy = str(data.get("section_strategy", "structured"))
        if strategy not in SECTION_STRATEGIES:
            raise ValueError(
                f"Unknown section strategy '{strategy}' in profile '{name}'"
            )

        max_chars = data.get("max_section_chars")
        full_text_chars = data.get("full_text_chars")
        fallback = [
            DocumentReference(
                id=str(entry["id"]),
                title=str(entry["title"]),
                url=str(entry["url"]),
            )
            for entry in data.get("fallback") or []
        ]

        return cls(
            name=str(name),
            description=str(data.get("description", "")),
            listing_urls=listing_urls,
            link_rules=LinkRules.from_dict(data.get("link_rules") or {}),
            section_names=section_names,
            section_strategy=strategy,
            max_section_chars=int(max_chars) if max_chars else None,
            full_text_chars=int(full_text_chars) if full_text_chars else None,
            capture_page_title=bool(data.get("capture_page_title", False)),
            delay_seconds=max(0.0, float(data.get("delay_seconds", 1.0))),
            render=bool(data.get("render", False)),
            retry_alternate_host=bool(data.get("retry_alternate_host", False)),
            fallback=fallback,
            fetch=FetchSettings.from_dict(data.get("fetch") or {}),
        )


def list_profiles() -> List[str]:
    """Names of the built-in profiles."""
    folder = resources.files("jepcrawl").joinpath("profiles")
    return sorted(
        entry.name[: -len(".json")]
        for entry in folder.iterdir()
        if entry.name.endswith(".json")
    )


def load_profile(name: str) -> CrawlProfile:
    """Load a built-in profile by name."""
    folder = resources.files("jepcrawl").joinpath("profiles")
    resource = folder.joinpath(f"{name}.json")
    if not resource.is_file():
        raise ValueError(
            f"Unknown profile '{name}' (available: {', '.join(list_profiles())})"
        )
    data = json.loads(resource.read_text(encoding="utf-8"))
    return CrawlProfile.from_dict(data)


def load_profile_file(path: str) -> CrawlProfile:
    """Load a profile from a JSON file on disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or not a valid profile.
    """
    profile_path = Path(path).expanduser()
    if not profile_path.is_file():
        raise FileNotFoundError(f"Profile file not found: {profile_path}")

    with open(profile_path, "r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid profile JSON in {profile_path}: {exc}") from exc

    LOGGER.info("Loaded profile '%s' from %s", data.get("name"), profile_path)
    return CrawlProfile.from_dict(data)


def fetch_settings_from_env(base: Optional[FetchSettings] = None) -> FetchSettings:
    """Apply JEPCRAWL_USER_AGENT / JEPCRAWL_TIMEOUT on top of ``base``.

    Environment variables are read at call time so that a late ``.env`` load
    is honoured.
    """
    settings = base or FetchSettings()
    user_agent = os.getenv("JEPCRAWL_USER_AGENT")
    timeout = os.getenv("JEPCRAWL_TIMEOUT")

    if user_agent:
        settings.user_agent = user_agent
    if timeout:
        try:
            settings.timeout_seconds = float(timeout)
        except ValueError:
            LOGGER.warning(
                "Ignoring invalid JEPCRAWL_TIMEOUT '%s'; using %.1fs.",
                timeout,
                settings.timeout_seconds,
            )
    return settings


def _convert_cache_mode(value: Optional[str], default: CacheMode) -> CacheMode:
    if not value:
        return default
    candidate = value.strip().replace("CacheMode.", "")
    try:
        return CacheMode[candidate.upper()]
    except KeyError:
        pass
    try:
        return CacheMode(candidate.lower())
    except ValueError:
        LOGGER.warning(
            "Unknown cache_mode '%s'; falling back to %s.", value, default.name
        )
        return default


def build_render_run_config(
    *,
    wait_until: str = "networkidle",
    delay_before_return_html: float = 1.0,
    cache_mode: Optional[str] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> CrawlerRunConfig:
    """RunConfig for rendered fetches: one page load, raw HTML back."""
    return CrawlerRunConfig(
        verbose=False,
        semaphore_count=1,
        wait_until=wait_until,
        delay_before_return_html=delay_before_return_html,
        page_timeout=int(timeout_seconds * 1000),
        cache_mode=_convert_cache_mode(cache_mode, CacheMode.BYPASS),
    )
