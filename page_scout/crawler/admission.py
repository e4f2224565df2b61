# page_scout/crawler/admission.py
"""
Fetch-admission pipeline: decides whether a discovered link gets queued.

Checks run in a fixed order and stop at the first rejection:

1. rejection cache (silent),
2. file extension on the last path segment,
3. blacklist patterns searched in the anchor HTML,
4. route decisions, first matching rule wins.

All state here only grows during a crawl. One instance belongs to one crawl.
"""
from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from page_scout.config import RouteDecision
from page_scout.crawler.models import LinkCandidate, PageRecord
from page_scout.events import CrawlEvent
from page_scout.logger import logger
from page_scout.utils import has_extension, normalize_url, url_path

__all__ = ("FetchAdmission", "RejectCallback")

RejectCallback = Callable[[CrawlEvent, str], None]


class FetchAdmission:
    """Ordered admission checks with a sticky first-N route limiter."""

    def __init__(
        self,
        route_decisions: Sequence[RouteDecision] = (),
        blacklist: Iterable[Union[str, re.Pattern[str]]] = (),
        on_reject: Optional[RejectCallback] = None,
    ) -> None:
        self.route_decisions: List[RouteDecision] = list(route_decisions)
        self.blacklist: List[re.Pattern[str]] = [
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE) for p in blacklist
        ]
        self.on_reject = on_reject
        # rule index -> admitted paths in discovery order (dict keeps order)
        self.route_limiter: Dict[int, Dict[str, None]] = {}
        self.rejected: Set[str] = set()
        self._extension_paths: Set[str] = set()

    def admit(self, candidate: LinkCandidate, referrer: Optional[PageRecord] = None) -> bool:
        url = normalize_url(candidate.target_url)
        if url in self.rejected:
            return False

        path = url_path(url)
        if path in self._extension_paths:
            # asset path already reported once
            self.rejected.add(url)
            return False

        reason = (
            self._check_extension(path)
            or self._check_blacklist(candidate.anchor_html)
            or self._check_route(path)
        )
        if reason is None:
            return True

        self.rejected.add(url)
        logger.debug(
            "[admission] %s rejected %s (referrer %s)",
            reason.value,
            url,
            referrer.url if referrer else "-",
        )
        if self.on_reject is not None:
            self.on_reject(reason, url)
        return False

    # ------------------------------------------------------------------ #
    # individual checks: return the rejection event or None              #
    # ------------------------------------------------------------------ #

    def _check_extension(self, path: str) -> Optional[CrawlEvent]:
        if has_extension(path):
            self._extension_paths.add(path)
            return CrawlEvent.EXTENSION_REJECTED
        return None

    def _check_blacklist(self, html: str) -> Optional[CrawlEvent]:
        if html and any(p.search(html) for p in self.blacklist):
            return CrawlEvent.BLACKLIST_REJECTED
        return None

    def _check_route(self, path: str) -> Optional[CrawlEvent]:
        for index, route in enumerate(self.route_decisions):
            if not route.matches(path):
                continue
            if route.limit:
                allowed = self.route_limiter.setdefault(index, {})
                if path not in allowed and len(allowed) < route.limit:
                    allowed[path] = None
                admitted = path in allowed
            else:
                admitted = route.allow
            return None if admitted else CrawlEvent.ROUTE_REJECTED
        return None
