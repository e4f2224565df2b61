# page_scout/crawler/discovery.py
"""
Link discovery: render a page in a pooled browser and collect its links from
inside the page, so client-rendered navigation is seen too.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from page_scout.crawler.models import LinkCandidate
from page_scout.crawler.pool import BrowserPool
from page_scout.errors import (
    AuthenticationError,
    NavigationError,
    RenderError,
    ScriptEvaluationError,
)
from page_scout.logger import logger
from page_scout.utils import resolve_url, url_host

__all__ = ("LinkDiscoverer", "FIND_PAGE_LINKS_JS", "FRAMEWORK_PROBE_JS")

FIND_PAGE_LINKS_JS = """
() => Array.from(document.querySelectorAll('a'))
    .map((a) => {
        let link = a.href;
        if (link && typeof link === 'object') {
            // SVGAnimatedString
            link = link.baseVal || null;
        }
        if (!link) {
            const handler = (a.getAttribute('onclick') || '').match(/['"]((?:https?:\\/\\/|\\/)[^'"]*)['"]/);
            link = handler ? handler[1] : a.getAttribute('src');
        }
        return {link: link || null, html: a.innerHTML};
    })
    .filter((item) => Boolean(item.link))
"""

FRAMEWORK_PROBE_JS = """
() => window.angular !== undefined || document.querySelector('[ng-version]') !== null
"""


def _far_future_expiry() -> float:
    now = datetime.now()
    return datetime(now.year + 10, 2, 1).timestamp()


class LinkDiscoverer:
    """Рендерит страницу через пул браузеров и возвращает найденные ссылки."""

    def __init__(
        self,
        pool: BrowserPool,
        *,
        render_settle_delay: float = 15.0,
        post_load_delay: float = 1.0,
        navigation_timeout: float = 30.0,
    ) -> None:
        self.pool = pool
        self.render_settle_delay = render_settle_delay
        self.post_load_delay = post_load_delay
        self.navigation_timeout = navigation_timeout

    async def discover_links(
        self,
        url: str,
        cookies: Sequence[Dict[str, str]] = (),
    ) -> List[LinkCandidate]:
        logger.info("[browser] attempting to load — %s", url)
        async with self.pool.acquire() as browser:
            try:
                page = await browser.new_page()
            except Exception as exc:
                raise RenderError(url, f"Could not open a browser page: {exc}") from exc
            try:
                await self._authenticate(page, url, cookies)
                await self._open(page, url)
                await self._settle(page, url)
                candidates = await self._extract(page, url)
            except Exception as exc:
                logger.error("[browser] ERROR %s", exc)
                await self._close_quietly(page, url)
                raise
            await self._close_quietly(page, url)
        logger.info("[browser] discovered %d URLs from — %s", len(candidates), url)
        return candidates

    async def _authenticate(self, page: Any, url: str, cookies: Sequence[Dict[str, str]]) -> None:
        if not cookies:
            return
        host = url_host(url)
        expires = _far_future_expiry()
        try:
            await page.context.add_cookies(
                [
                    {
                        "name": c["name"],
                        "value": c["value"],
                        "domain": host,
                        "path": "/",
                        "expires": expires,
                    }
                    for c in cookies
                ]
            )
            jar = await page.context.cookies()
        except Exception as exc:
            raise AuthenticationError(url, f"Failed to set browser cookies: {exc}") from exc
        # add_cookies does not report partial failure, so check the jar itself
        if not jar:
            raise AuthenticationError(url, "Failed to set browser cookies")
        logger.debug("[browser] %d cookies set — %s", len(jar), url)

    async def _open(self, page: Any, url: str) -> None:
        try:
            response = await page.goto(url, timeout=self.navigation_timeout * 1000)
        except Exception as exc:
            raise NavigationError(url, f"Browser unable to open URL: {exc}") from exc
        if response is None:
            # same-document navigation, nothing to judge
            return
        if not response.ok:
            logger.info("[browser] unable to open URL (%s) — %s", response.status, url)
            raise NavigationError(url, "Browser unable to open URL", code=response.status)
        logger.debug("[browser] opened URL with %s — %s", response.status, url)

    async def _settle(self, page: Any, url: str) -> None:
        if self.post_load_delay:
            await asyncio.sleep(self.post_load_delay)
        try:
            client_rendered = bool(await page.evaluate(FRAMEWORK_PROBE_JS))
        except Exception as exc:
            raise ScriptEvaluationError(url, f"Framework probe failed: {exc}") from exc
        logger.debug("[browser] page is client-rendered app? %s — %s", client_rendered, url)
        if client_rendered and self.render_settle_delay:
            await asyncio.sleep(self.render_settle_delay)

    async def _extract(self, page: Any, url: str) -> List[LinkCandidate]:
        try:
            raw = await page.evaluate(FIND_PAGE_LINKS_JS)
        except Exception as exc:
            raise ScriptEvaluationError(url, f"Link extraction failed: {exc}") from exc
        if not isinstance(raw, list):
            raise ScriptEvaluationError(url, f"Link extraction returned {type(raw).__name__}")

        candidates: List[LinkCandidate] = []
        for item in raw:
            link: Optional[str] = item.get("link") if isinstance(item, dict) else None
            if not link:
                continue
            candidates.append(LinkCandidate(resolve_url(url, link), item.get("html") or ""))
        return candidates

    @staticmethod
    async def _close_quietly(page: Any, url: str) -> None:
        try:
            await page.close()
        except Exception as exc:
            logger.warning("Could not close browser page for %s: %s", url, exc)

