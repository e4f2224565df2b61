# page_scout/crawler/frontier.py
"""
Frontier: the crawl queue plus the record of everything already seen.
"""
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Iterator, List, Optional
from urllib.parse import urlparse

from page_scout.crawler.models import PageRecord
from page_scout.utils import normalize_url

__all__ = ("Frontier",)

_SCHEMES = ("http", "https")


class Frontier:
    """
    FIFO queue of pending :class:`PageRecord` with duplicate suppression.

    A URL (fragment stripped) is stored once; enqueueing it again, pending or
    fetched, is a no-op. Records keep insertion order, which is also the
    order of :meth:`records`.
    """

    def __init__(self, start_url: str, max_depth: int = 0) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.start_url = normalize_url(start_url)
        self.max_depth = max_depth
        self._host = (urlparse(self.start_url).hostname or "").lower()
        self._records: Dict[str, PageRecord] = {}
        self._pending: Deque[PageRecord] = deque()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and normalize_url(url) in self._records

    def __iter__(self) -> Iterator[PageRecord]:
        return iter(self._records.values())

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def done(self) -> bool:
        return not self._pending

    def in_scope(self, url: str, referrer: Optional[PageRecord] = None) -> bool:
        """Same host as the start URL, http(s), and within ``max_depth``."""
        parsed = urlparse(url)
        if parsed.scheme not in _SCHEMES:
            return False
        if (parsed.hostname or "").lower() != self._host:
            return False
        return self._depth_for(referrer) is not None

    def enqueue(self, url: str, referrer: Optional[PageRecord] = None) -> Optional[PageRecord]:
        """Добавляет URL в очередь. Возвращает новую запись или None (дубликат/вне области)."""
        key = normalize_url(url)
        if key in self._records or not self.in_scope(key, referrer):
            return None
        depth = self._depth_for(referrer)
        if depth is None:
            return None
        record = PageRecord(url=key, depth=depth, referrer=referrer.url if referrer else None)
        self._records[key] = record
        self._pending.append(record)
        return record

    def next(self) -> Optional[PageRecord]:
        """Next pending record, or None once the queue is exhausted."""
        while self._pending:
            record = self._pending.popleft()
            if not record.fetched:
                return record
        return None

    def mark_fetched(
        self,
        record: PageRecord,
        *,
        error: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        if record.fetched:
            raise ValueError(f"Record already fetched: {record.url}")
        record.fetched = True
        if status is not None:
            record.status = status
        if error is not None:
            record.error = error

    def records(self) -> List[PageRecord]:
        return list(self._records.values())

    def _depth_for(self, referrer: Optional[PageRecord]) -> Optional[int]:
        if referrer is None:
            return 1
        depth = referrer.depth + 1
        if self.max_depth and depth > self.max_depth:
            return None
        return depth
