"""Sequential crawl of one listing page and the documents it links to.

The run moves through a fixed set of states::

    IDLE -> FETCHING_LISTING -> EXTRACTING_LINKS
         -> (FETCHING_DOCUMENT -> EXTRACTING_SECTIONS)* -> WRITING -> DONE

Fetches never overlap: documents are processed one at a time in discovery
order, with ``profile.delay_seconds`` between consecutive document fetches.
A failure on one document is recorded on its DocumentRecord and the run
continues. Only an unreachable listing page (primary and alternate URL),
an empty link set without fallback, or a failed write abort the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlsplit, urlunsplit

from .config import CrawlProfile
from .document import CrawlResult, DocumentRecord, DocumentReference
from .errors import ExtractionEmpty, NetworkError
from .fetch import Fetcher, HttpFetcher, RenderedFetcher
from .links import extract_links
from .sections import extract_full_text, extract_page_title, extract_sections
from .writer import PathLike, write_result

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class CrawlState(str, Enum):
    IDLE = "idle"
    FETCHING_LISTING = "fetching_listing"
    EXTRACTING_LINKS = "extracting_links"
    FETCHING_DOCUMENT = "fetching_document"
    EXTRACTING_SECTIONS = "extracting_sections"
    WRITING = "writing"
    DONE = "done"


def _dedupe(references: Sequence[DocumentReference]) -> List[DocumentReference]:
    seen: Set[str] = set()
    unique: List[DocumentReference] = []
    for reference in references:
        if reference.url in seen:
            continue
        seen.add(reference.url)
        unique.append(reference)
    return unique


class CrawlOrchestrator:
    """Drives one crawl run for a profile using an already opened fetcher."""

    def __init__(
        self,
        profile: CrawlProfile,
        fetcher: Fetcher,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.profile = profile
        self.fetcher = fetcher
        self.sleep = sleep
        self.state = CrawlState.IDLE

    def _transition(self, state: CrawlState) -> None:
        LOGGER.debug("Crawl state: %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(
        self,
        *,
        output: Optional[PathLike] = None,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
        max_documents: Optional[int] = None,
        debug_listing: Optional[PathLike] = None,
    ) -> CrawlResult:
        self._transition(CrawlState.FETCHING_LISTING)
        listing_url, listing_content = await self._fetch_listing()

        self._transition(CrawlState.EXTRACTING_LINKS)
        references = extract_links(
            listing_content, listing_url, self.profile.link_rules
        )
        result = CrawlResult(listing_url=listing_url)

        if references:
            LOGGER.info("Found %d document link(s) on %s", len(references), listing_url)
        else:
            _dump_listing(listing_url, listing_content, debug_listing)
            references = _dedupe(self.profile.fallback)
            if not references:
                raise ExtractionEmpty(
                    f"No document links found on {listing_url} and profile "
                    f"'{self.profile.name}' has no fallback list",
                    stage="links",
                    url=listing_url,
                )
            LOGGER.warning(
                "No document links found on %s; using %d fallback reference(s)",
                listing_url,
                len(references),
            )
            result.used_fallback = True

        if max_documents is not None and max_documents >= 0:
            references = references[:max_documents]

        total = len(references)
        for index, reference in enumerate(references):
            if index > 0 and self.profile.delay_seconds > 0:
                if not _cancelled(cancel_event, deadline):
                    await self.sleep(self.profile.delay_seconds)
            # A signal raised during the delay stops the next fetch.
            if _cancelled(cancel_event, deadline):
                LOGGER.warning(
                    "Crawl cancelled after %d of %d document(s)", index, total
                )
                result.cancelled = True
                break

            LOGGER.info("[%d/%d] %s", index + 1, total, reference.title)
            result.records.append(await self._process(reference))

        stats = result.summarize(total)
        LOGGER.info(
            "Crawl complete: %d document(s) (%d successful, %d failed, %d skipped)",
            stats["total"],
            stats["succeeded"],
            stats["failed"],
            stats["skipped"],
        )

        if output is not None:
            self._transition(CrawlState.WRITING)
            write_result(result.records, output)

        self._transition(CrawlState.DONE)
        return result

    async def _fetch_listing(self) -> Tuple[str, str]:
        # Primary URL plus at most one alternate.
        candidates = self.profile.listing_urls[:2]
        last_error: Optional[NetworkError] = None
        for url in candidates:
            try:
                content = await self.fetcher.fetch(url)
            except NetworkError as exc:
                LOGGER.warning("Listing fetch failed for %s: %s", url, exc)
                last_error = exc
                continue
            LOGGER.info("Loaded listing page %s", url)
            return url, content

        raise NetworkError(
            f"Could not load listing page (tried {', '.join(candidates)}): {last_error}",
            stage="listing",
            url=candidates[0],
            status_code=last_error.status_code if last_error else None,
        ) from last_error

    async def _process(self, reference: DocumentReference) -> DocumentRecord:
        self._transition(CrawlState.FETCHING_DOCUMENT)
        try:
            content = await self._fetch_document(reference.url)
        except NetworkError as exc:
            LOGGER.warning("Failed: %s - %s", reference.url, exc)
            return DocumentRecord(reference=reference, fetch_error=str(exc))

        self._transition(CrawlState.EXTRACTING_SECTIONS)
        try:
            return extract_record(reference, content, self.profile)
        except Exception as exc:
            LOGGER.warning("Section extraction failed for %s: %s", reference.url, exc)
            return DocumentRecord(
                reference=reference, fetch_error=f"Extraction failed: {exc}"
            )

    async def _fetch_document(self, url: str) -> str:
        try:
            return await self.fetcher.fetch(url)
        except NetworkError:
            alternate = self._alternate_url(url)
            if alternate is None:
                raise
            LOGGER.info("Retrying %s via %s", url, alternate)
            return await self.fetcher.fetch(alternate)

    def _alternate_url(self, url: str) -> Optional[str]:
        hosts = self.profile.link_rules.deprecated_hosts
        if not self.profile.retry_alternate_host or not hosts:
            return None
        parts = urlsplit(url)
        if parts.netloc.lower() == hosts[0].lower():
            return None
        return urlunsplit(parts._replace(netloc=hosts[0]))


def extract_record(
    reference: DocumentReference,
    content: str,
    profile: CrawlProfile,
    *,
    strategy: Optional[str] = None,
) -> DocumentRecord:
    """Build the record for one fetched document using the profile's rules.

    Raises:
        ValueError: If the section strategy is unknown.
    """
    sections = extract_sections(
        content,
        profile.section_names,
        strategy=strategy or profile.section_strategy,
        max_chars=profile.max_section_chars,
    )
    if not any(sections.values()):
        LOGGER.debug("No known sections found in %s", reference.url)

    page_title = extract_page_title(content) if profile.capture_page_title else None
    full_text = None
    if profile.full_text_chars:
        full_text = extract_full_text(content, profile.full_text_chars)

    return DocumentRecord(
        reference=reference,
        sections=sections,
        page_title=page_title,
        full_text=full_text,
    )


def _dump_listing(url: str, content: str, destination: Optional[PathLike]) -> None:
    LOGGER.debug("Listing page %s has no matching links (%d chars)", url, len(content))
    if destination is None:
        return
    path = Path(destination).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Could not save listing HTML to %s: %s", path, exc)
        return
    LOGGER.info("Saved listing HTML to %s for inspection", path)


def _cancelled(cancel_event: Optional[asyncio.Event], deadline: Optional[float]) -> bool:
    if cancel_event is not None and cancel_event.is_set():
        return True
    return deadline is not None and time.monotonic() >= deadline


async def crawl_async(
    profile: CrawlProfile,
    *,
    fetcher: Optional[Fetcher] = None,
    output: Optional[PathLike] = None,
    cancel_event: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
    max_documents: Optional[int] = None,
    debug_listing: Optional[PathLike] = None,
    sleep: Sleep = asyncio.sleep,
) -> CrawlResult:
    """
    Crawl the profile's listing page and every document it links to.

    Args:
        profile: The crawl profile (listing URLs, rules, fallback list).
        fetcher: Optional fetcher; by default an HttpFetcher (or a
            RenderedFetcher when ``profile.render`` is set) is opened for
            the run.
        output: Optional path; when given the records are written there
            atomically at the end of the run, including after cancellation.
        cancel_event: Checked before each document fetch.
        deadline: ``time.monotonic()`` value checked before each document
            fetch.
        max_documents: Optional cap on the number of documents processed.
        debug_listing: Optional path; when the listing page yields no links
            its HTML is saved there for inspection.
        sleep: Awaitable used for pacing between document fetches.

    Returns:
        CrawlResult with one record per processed reference.

    Raises:
        NetworkError: If neither listing URL could be fetched.
        ExtractionEmpty: If no links were found and no fallback exists.
        SerializationError: If the result could not be written.
    """
    run_kwargs = dict(
        output=output,
        cancel_event=cancel_event,
        deadline=deadline,
        max_documents=max_documents,
        debug_listing=debug_listing,
    )
    if fetcher is not None:
        return await CrawlOrchestrator(profile, fetcher, sleep=sleep).run(**run_kwargs)

    owned = RenderedFetcher(profile.fetch) if profile.render else HttpFetcher(profile.fetch)
    async with owned:
        return await CrawlOrchestrator(profile, owned, sleep=sleep).run(**run_kwargs)


def crawl(
    profile: CrawlProfile,
    *,
    output: Optional[PathLike] = None,
    deadline: Optional[float] = None,
    max_documents: Optional[int] = None,
    debug_listing: Optional[PathLike] = None,
) -> CrawlResult:
    """Synchronous wrapper for crawl_async."""
    return asyncio.run(
        crawl_async(
            profile,
            output=output,
            deadline=deadline,
            max_documents=max_documents,
            debug_listing=debug_listing,
        )
    )
