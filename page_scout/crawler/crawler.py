# === FILE: page_scout/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional

from aiohttp import ClientSession, CookieJar
from yarl import URL

from page_scout.config import ScoutConfig
from page_scout.crawler.admission import FetchAdmission
from page_scout.crawler.browser import PlaywrightLauncher
from page_scout.crawler.discovery import LinkDiscoverer
from page_scout.crawler.frontier import Frontier
from page_scout.crawler.models import LinkCandidate, PageRecord
from page_scout.crawler.pool import BrowserPool
from page_scout.crawler.probe import HttpProbe
from page_scout.errors import RenderError
from page_scout.events import CrawlEvent, CrawlEvents, log_event
from page_scout.logger import logger
from page_scout.utils import cookies_as_dicts, normalize_url, parse_cookie_header

__all__ = ("Crawler",)

_USER_AGENT = "PageScout/0.1"


class Crawler:
    """
    Однопоточный обход одного приложения: одна страница за раз.

    Порядок обнаружения ссылок определяет, какие пути займут места в
    ограничителе маршрутов, поэтому страницы не загружаются параллельно.
    """

    def __init__(
        self,
        config: ScoutConfig,
        *,
        pool: Optional[BrowserPool] = None,
        discoverer: Optional[LinkDiscoverer] = None,
        events: Optional[CrawlEvents] = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.config = config
        self.pool = pool
        self.discoverer = discoverer
        self.session = session
        if events is None:
            events = CrawlEvents()
            events.subscribe(log_event)
        self.events = events
        self.frontier = Frontier(config.start_url, max_depth=config.max_depth)
        self.admission = FetchAdmission(
            config.route_decisions,
            config.blacklist,
            on_reject=self.events.emit,
        )
        self.probe: Optional[HttpProbe] = None
        self._launcher: Optional[PlaywrightLauncher] = None
        self._owns_session = session is None

    async def __aenter__(self) -> Crawler:
        if self.session is None:
            self.session = ClientSession(
                cookie_jar=CookieJar(unsafe=True),
                headers={"User-Agent": _USER_AGENT},
            )
        try:
            await self._setup()
        except BaseException:
            # __aexit__ does not run when __aenter__ fails
            await self.close()
            raise
        return self

    async def _setup(self) -> None:
        if self.config.cookie:
            self.session.cookie_jar.update_cookies(
                parse_cookie_header(self.config.cookie),
                response_url=URL(self.config.start_url),
            )
        if self.config.http_probe:
            self.probe = HttpProbe(self.session, timeout=self.config.navigation_timeout)

        if self.discoverer is None:
            if self.pool is None:
                self._launcher = PlaywrightLauncher(verbose=self.config.verbose)
                self.pool = BrowserPool(
                    self._launcher.launch,
                    self.config.pool,
                    destroy=self._launcher.destroy,
                    validate=self._launcher.validate,
                )
                await self.pool.start()
            self.discoverer = LinkDiscoverer(
                self.pool,
                render_settle_delay=self.config.render_settle_delay,
                navigation_timeout=self.config.navigation_timeout,
            )

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._drain_pool()
        if self._launcher is not None:
            try:
                await self._launcher.stop()
            except Exception as err:
                logger.warning("Could not stop the browser driver: %s", err)
            self._launcher = None
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

    # ------------------------------------------------------------------ #
    # crawl loop                                                          #
    # ------------------------------------------------------------------ #

    async def crawl(self) -> List[PageRecord]:
        if self.discoverer is None:
            raise RuntimeError("Crawler must be used as 'async with Crawler(config) as crawler'")

        logger.info("Running crawler: %s", self.config.start_url)
        started = time.monotonic()
        interval = self.config.pacing_interval_ms / 1000
        self.frontier.enqueue(self.config.start_url)
        try:
            while (record := self.frontier.next()) is not None:
                await self._fetch(record)
                if interval and not self.frontier.done:
                    await asyncio.sleep(interval)
        finally:
            await self._drain_pool()

        records = self.frontier.records()
        failed = sum(1 for r in records if r.failed)
        self.events.emit(CrawlEvent.CRAWL_COMPLETED, self.config.start_url, pages=len(records), failed=failed)
        logger.info(
            "Completed crawling! Discovered site map with %d links (%d failed) in %.1f s",
            len(records),
            failed,
            time.monotonic() - started,
        )
        for r in records:
            logger.debug("  %s", r.url)
        return records

    # alias, same as the scanner API
    run = crawl

    async def _fetch(self, record: PageRecord) -> None:
        self.events.emit(CrawlEvent.FETCH_STARTED, record.url, depth=record.depth)

        status: Optional[int] = None
        if self.probe is not None:
            result = await self.probe.probe(record.url)
            status = result.status
            if result.redirect:
                self.frontier.mark_fetched(record, status=status)
                self.events.emit(CrawlEvent.FETCH_REDIRECT, record.url, code=status, location=result.location)
                if result.location == record.url:
                    logger.warning(
                        "Fetching %s resulted in a redirect to the same place. "
                        "This can happen when the session cookie has expired",
                        record.url,
                    )
                else:
                    self._offer(LinkCandidate(result.location), record)
                return
            if not result.ok:
                self.frontier.mark_fetched(record, status=status, error=f"HTTP probe failed: {result.code}")
                self.events.emit(CrawlEvent.FETCH_ERROR, record.url, code=result.code)
                return
            if not result.is_html:
                self.frontier.mark_fetched(record, status=status)
                self.events.emit(CrawlEvent.FETCH_COMPLETED, record.url, code=status, rendered=False)
                return

        try:
            candidates = await self.discoverer.discover_links(record.url, self._cookies_for(record.url))
        except RenderError as err:
            self.frontier.mark_fetched(record, status=status, error=str(err))
            self.events.emit(CrawlEvent.FETCH_ERROR, record.url, code=err.code or type(err).__name__)
            return

        self.frontier.mark_fetched(record, status=status)
        self.events.emit(CrawlEvent.FETCH_COMPLETED, record.url, code=status, rendered=True)
        for candidate in candidates:
            self._offer(candidate, record)
        self.events.emit(CrawlEvent.DISCOVERY_COMPLETED, record.url, links=len(candidates))

    def _offer(self, candidate: LinkCandidate, referrer: PageRecord) -> None:
        url = normalize_url(candidate.target_url)
        if url in self.frontier or not self.frontier.in_scope(url, referrer):
            return
        if not self.admission.admit(candidate, referrer):
            return
        if self.frontier.enqueue(url, referrer) is not None:
            self.events.emit(CrawlEvent.QUEUE_ADDED, url, referrer=referrer.url)

    def _cookies_for(self, url: str) -> List[Dict[str, str]]:
        if self.session is None:
            return []
        return cookies_as_dicts(self.session.cookie_jar.filter_cookies(URL(url)))

    async def _drain_pool(self) -> None:
        if self.pool is None:
            return
        try:
            await self.pool.drain_and_close()
        except Exception as err:
            logger.warning("Could not drain the browser pool: %s", err)
