# page_scout/sitemap.py

"""
Чтение и запись карты сайта (sitemap.json) для проекта PageScout.

Документ — JSON-массив записей PageRecord.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Union

from page_scout.crawler.models import PageRecord
from page_scout.errors import PersistenceError
from page_scout.logger import logger

__all__ = ["load_sitemap", "save_sitemap"]


def save_sitemap(records: Iterable[PageRecord], output_path: Union[Path, str]) -> Path:
    """
    Сохраняет записи в формате JSON по указанному пути.

    :param records: записи PageRecord
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from page_scout.sitemap import save_sitemap
    path = save_sitemap(records, 'out/sitemap.json')
    ```
    """
    output = Path(output_path)
    data = [record.to_dict() for record in records]
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(output, "Cannot write sitemap", exc) from exc
    logger.info("Writing links as JSON to: %s (%d records)", output, len(data))
    return output


def load_sitemap(path: Union[Path, str]) -> List[PageRecord]:
    """Читает ранее сохранённую карту сайта. Любая ошибка — PersistenceError."""
    source = Path(path)
    logger.info("Loading previously generated sitemap %s", source)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise PersistenceError(source, "Cannot read sitemap", exc) from exc
    if not isinstance(data, list):
        raise PersistenceError(source, f"Sitemap must be a JSON array, got {type(data).__name__}")
    try:
        return [PageRecord.from_dict(item) for item in data]
    except (TypeError, ValueError) as exc:
        raise PersistenceError(source, "Malformed sitemap record", exc) from exc
