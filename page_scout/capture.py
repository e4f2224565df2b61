# page_scout/capture.py
"""
Screenshot capture of sitemap pages.

Unlike the crawl, capture runs several pages at once: records are
independent, so order does not matter. A failure of any page fails the phase.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from page_scout.config import CaptureConfig
from page_scout.crawler.browser import PlaywrightLauncher
from page_scout.crawler.models import PageRecord
from page_scout.logger import logger
from page_scout.utils import cookies_as_dicts, parse_cookie_header, slugify_url, url_host

__all__ = ["Capturer", "parse_size"]


def parse_size(size: str) -> Tuple[int, int]:
    width, _, height = size.partition("x")
    return int(width), int(height)


class Capturer:
    """Снимает каждую запись в каждом размере, не более ``concurrency`` страниц одновременно."""

    def __init__(
        self,
        config: CaptureConfig,
        output_dir: Union[str, Path],
        *,
        cookie: Optional[str] = None,
        delay: float = 0.0,
        launcher: Optional[Any] = None,
    ) -> None:
        self.config = config
        self.output_dir = Path(output_dir)
        self.delay = delay
        self._cookies = cookies_as_dicts(parse_cookie_header(cookie))
        self._launcher = launcher or PlaywrightLauncher(args=())
        self._owns_launcher = launcher is None

    def filename_for(self, url: str, size: str) -> str:
        stem = self.config.filename.format(url=slugify_url(url), size=size)
        return f"{stem}.{self.config.format}"

    async def run(self, records: Sequence[PageRecord]) -> List[PageRecord]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        semaphore = asyncio.Semaphore(self.config.concurrency)
        browser = await self._launcher.launch()
        tasks = [asyncio.create_task(self._capture(browser, record, semaphore)) for record in records]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            # the browser goes away below; nothing may still be using it
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        finally:
            await self._launcher.destroy(browser)
            if self._owns_launcher:
                await self._launcher.stop()
        logger.info("Finished all captures (%d pages)", len(records))
        return list(records)

    async def _capture(self, browser: Any, record: PageRecord, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            logger.info("Starting capture for item %s", record.url)
            filenames = []
            for size in self.config.sizes:
                filenames.append(await self._shoot(browser, record.url, size))
            record.filenames = filenames
            logger.info("Finished capture for item %s %s", record.url, filenames)

    async def _shoot(self, browser: Any, url: str, size: str) -> str:
        width, height = parse_size(size)
        context = await browser.new_context(viewport={"width": width, "height": height})
        try:
            if self._cookies:
                await context.add_cookies(self._cookie_params(url))
            page = await context.new_page()
            await page.goto(url, timeout=self.config.timeout * 1000)
            if self.delay:
                await asyncio.sleep(self.delay)
            name = self.filename_for(url, size)
            await page.screenshot(
                path=str(self.output_dir / name),
                full_page=not self.config.crop,
                type=self.config.format,
            )
            return name
        finally:
            await context.close()

    def _cookie_params(self, url: str) -> List[Dict[str, Any]]:
        host = url_host(url)
        return [{**c, "domain": host, "path": "/"} for c in self._cookies]
