"""page_scout.crawler: frontier, admission, browser pool, link discovery and the crawl loop."""

from page_scout.crawler.admission import FetchAdmission
from page_scout.crawler.crawler import Crawler
from page_scout.crawler.discovery import LinkDiscoverer
from page_scout.crawler.frontier import Frontier
from page_scout.crawler.models import LinkCandidate, PageRecord
from page_scout.crawler.pool import BrowserPool

__all__ = [
    "BrowserPool",
    "Crawler",
    "FetchAdmission",
    "Frontier",
    "LinkCandidate",
    "LinkDiscoverer",
    "PageRecord",
]
