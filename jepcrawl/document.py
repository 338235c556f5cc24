"""Data structures representing discovered and extracted documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class DocumentReference:
    """Link to a single document discovered on a listing page."""

    id: str
    title: str
    url: str


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """Extraction outcome for one DocumentReference."""

    reference: DocumentReference
    sections: Dict[str, str] = field(default_factory=dict)
    fetch_error: Optional[str] = None
    page_title: Optional[str] = None
    full_text: Optional[str] = None

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def title(self) -> str:
        return self.reference.title

    @property
    def url(self) -> str:
        return self.reference.url

    @property
    def succeeded(self) -> bool:
        return self.fetch_error is None


@dataclass
class CrawlResult:
    """Result of a crawl run. Only ``records`` is persisted."""

    records: List[DocumentRecord] = field(default_factory=list)
    listing_url: Optional[str] = None
    used_fallback: bool = False
    cancelled: bool = False
    stats: Dict[str, Any] = field(default_factory=dict)

    def summarize(self, discovered: int) -> Dict[str, Any]:
        """Recompute ``stats`` from the collected records."""
        succeeded = sum(1 for record in self.records if record.succeeded)
        self.stats = {
            "total": len(self.records),
            "succeeded": succeeded,
            "failed": len(self.records) - succeeded,
            "skipped": max(0, discovered - len(self.records)),
        }
        return self.stats
