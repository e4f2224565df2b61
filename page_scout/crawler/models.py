# page_scout/crawler/models.py
"""
Data models for the PageScout crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class PageRecord:
    """One page of the sitemap: where it was found and how its fetch ended."""

    url: str
    depth: int = 1
    referrer: Optional[str] = None
    fetched: bool = False
    status: Optional[int] = None
    error: Optional[str] = None
    filenames: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "depth": self.depth,
            "referrer": self.referrer,
            "fetched": self.fetched,
            "status": self.status,
            "error": self.error,
            "filenames": list(self.filenames),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PageRecord:
        if not isinstance(data, dict) or "url" not in data:
            raise ValueError(f"Page record must be a mapping with 'url', got {data!r}")
        return cls(
            url=str(data["url"]),
            depth=int(data.get("depth") or 0),
            referrer=data.get("referrer"),
            fetched=bool(data.get("fetched", False)),
            status=data.get("status"),
            error=data.get("error"),
            filenames=list(data.get("filenames") or []),
        )


@dataclass(slots=True, frozen=True)
class LinkCandidate:
    """A link found on a rendered page together with the anchor's inner HTML."""

    target_url: str
    anchor_html: str = ""
