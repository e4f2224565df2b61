# File: page_scout/utils.py
"""page_scout.utils: Утилитарные функции для обработки URL и cookie."""

from __future__ import annotations

import re
from http.cookies import CookieError, SimpleCookie
from typing import Dict, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

from page_scout.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "resolve_url",
    "url_path",
    "url_host",
    "has_extension",
    "parse_cookie_header",
    "cookies_as_dicts",
    "slugify_url",
)

# trailing ".ext" on the last path segment
_EXTENSION_RE = re.compile(r"\.[^./\s]+$", re.IGNORECASE)
_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")


def normalize_url(url: str) -> str:
    """Убирает фрагмент (#...). Регистр и порядок параметров сохраняются как есть."""
    return urldefrag(url.strip())[0]


def resolve_url(base: str, target: str) -> str:
    """Делает target абсолютным относительно base и нормализует результат."""
    return normalize_url(urljoin(base, target.strip()))


def url_path(url: str) -> str:
    """Путь URL; пустой путь трактуется как "/"."""
    return urlparse(url).path or "/"


def url_host(url: str) -> str:
    """Имя хоста без порта и учётных данных."""
    return urlparse(url).hostname or ""


def has_extension(path: str) -> bool:
    return _EXTENSION_RE.search(path) is not None


def parse_cookie_header(cookie: Optional[str]) -> SimpleCookie:
    """
    Разбирает строку cookie: как заголовок ``Cookie`` (``a=1; b=2``),
    так и одиночный ``Set-Cookie`` (``sid=abc; Path=/; HttpOnly``).
    """
    jar: SimpleCookie = SimpleCookie()
    if not cookie:
        return jar
    try:
        jar.load(cookie)
    except CookieError as exc:
        raise ValueError(f"Cannot parse cookie string: {exc}") from exc
    logger.debug("Parsed %d cookie(s) from configuration", len(jar))
    return jar


def cookies_as_dicts(jar: SimpleCookie) -> List[Dict[str, str]]:
    """Превращает SimpleCookie в список {name, value}."""
    return [{"name": morsel.key, "value": morsel.value} for morsel in jar.values()]


def slugify_url(url: str) -> str:
    """Безопасное для файловой системы представление URL."""
    parsed = urlparse(url)
    raw = parsed.netloc + parsed.path
    if parsed.query:
        raw += "!" + parsed.query
    slug = _SLUG_RE.sub("!", raw).strip("!")
    return slug or "index"
