# File: page_scout/engine.py
"""page_scout.engine: Orchestration layer: обход, сохранение карты сайта и съёмка скриншотов."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from page_scout.capture import Capturer
from page_scout.config import ScoutConfig, load_config
from page_scout.crawler.crawler import Crawler
from page_scout.crawler.models import PageRecord
from page_scout.logger import logger
from page_scout.sitemap import load_sitemap, save_sitemap

__all__ = ["Engine", "SITEMAP_NAME"]

SITEMAP_NAME = "sitemap.json"


class Engine:
    """Фасад для CLI и тестов: обход (или загрузка карты), затем съёмка."""

    @staticmethod
    def load_config(path: Optional[str]) -> ScoutConfig:
        """Загружает конфиг из YAML/JSON."""
        return load_config(path)

    def __init__(self, config: ScoutConfig) -> None:
        self.config = config
        self.output_dir = Path(config.output_dir).expanduser().resolve()
        self.sitemap_file = self.output_dir / SITEMAP_NAME

    async def crawl(self) -> List[PageRecord]:
        """Обходит приложение и сохраняет sitemap.json."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        async with Crawler(self.config) as crawler:
            records = await crawler.crawl()
        logger.info("Completed crawl")
        save_sitemap(records, self.sitemap_file)
        return records

    async def capture(self, records: List[PageRecord]) -> List[PageRecord]:
        """Снимает скриншоты и перезаписывает sitemap.json с именами файлов."""
        logger.info("Beginning capture")
        capturer = Capturer(
            self.config.capture,
            self.output_dir,
            cookie=self.config.cookie,
            delay=self.config.capture_delay,
        )
        records = await capturer.run(records)
        logger.info("Completed capture")
        save_sitemap(records, self.sitemap_file)
        return records

    async def run(self) -> List[PageRecord]:
        """Все фазы: карта сайта (новая или загруженная), дополнительные URL, съёмка."""
        if self.config.input_sitemap is not None:
            records = load_sitemap(Path(self.config.input_sitemap).expanduser().resolve())
        else:
            records = await self.crawl()

        records = records + [PageRecord(url=url, depth=0) for url in self.config.additional_urls]

        if self.config.skip_capture:
            logger.info("Capture skipped")
            return records
        records = await self.capture(records)
        logger.info("Completed all phases! Done!")
        return records
