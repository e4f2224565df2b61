# page_scout/errors.py
"""
Exception hierarchy for PageScout.

A :class:`RenderError` concerns a single page and never stops the crawl;
:class:`PoolExhaustionError` and :class:`PersistenceError` are fatal to the
phase that raised them.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

__all__ = (
    "PageScoutError",
    "RenderError",
    "NavigationError",
    "AuthenticationError",
    "ScriptEvaluationError",
    "PoolExhaustionError",
    "PersistenceError",
)


class PageScoutError(Exception):
    """Base class for all project errors."""


class RenderError(PageScoutError):
    """A page could not be rendered or its links could not be extracted."""

    def __init__(self, url: str, message: str, code: Union[int, str, None] = None) -> None:
        super().__init__(f"{message} — {url}")
        self.url = url
        self.code = code


class NavigationError(RenderError):
    """Page load failed or finished with a non-success status."""


class AuthenticationError(RenderError):
    """Cookies did not make it into the page's cookie jar."""


class ScriptEvaluationError(RenderError):
    """The in-page script raised or returned garbage."""


class PoolExhaustionError(PageScoutError):
    """No browser instance could be obtained from the pool."""


class PersistenceError(PageScoutError):
    """Reading or writing the sitemap document failed."""

    def __init__(self, path: Union[str, Path], message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{message}: {path}" + (f" ({cause})" if cause else ""))
        self.path = Path(path)
