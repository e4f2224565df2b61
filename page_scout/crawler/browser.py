# page_scout/crawler/browser.py
"""
Playwright glue for the browser pool: launch, health check and shutdown of
headless Chromium instances.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from playwright.async_api import Browser, Playwright, async_playwright

from page_scout.logger import logger

__all__ = ("PlaywrightLauncher", "DEFAULT_ARGS")

# images are never needed for link discovery
DEFAULT_ARGS: Sequence[str] = ("--blink-settings=imagesEnabled=false",)


class PlaywrightLauncher:
    """
    Starts the Playwright driver lazily and launches one browser per call.

    ``launch``, ``validate`` and ``destroy`` have the signatures
    :class:`~page_scout.crawler.pool.BrowserPool` expects.
    """

    def __init__(
        self,
        *,
        browser_type: str = "chromium",
        headless: bool = True,
        args: Sequence[str] = DEFAULT_ARGS,
        verbose: bool = False,
    ) -> None:
        self.browser_type = browser_type
        self.headless = headless
        self.args: List[str] = list(args)
        if verbose:
            self.args.append("--enable-logging=stderr")
        self._playwright: Optional[Playwright] = None

    async def launch(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        engine = getattr(self._playwright, self.browser_type)
        browser = await engine.launch(headless=self.headless, args=self.args)
        logger.debug("Launched %s %s", self.browser_type, browser.version)
        return browser

    @staticmethod
    async def validate(browser: Browser) -> bool:
        return browser.is_connected()

    @staticmethod
    async def destroy(browser: Browser) -> None:
        if browser.is_connected():
            await browser.close()

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
