# page_scout/crawler/probe.py
"""
HTTP probe: a plain GET of each frontier URL before it is rendered.

It tells the crawler the status code, whether the server redirected (an
expired session usually shows up as a redirect back to the same page or to a
login screen) and whether the response is HTML at all. ``Set-Cookie`` headers
land in the session's cookie jar and are passed on to the browser.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Union

from aiohttp import ClientError, ClientSession, ClientTimeout

from page_scout.logger import logger
from page_scout.utils import resolve_url

__all__ = ("HttpProbe", "ProbeResult")

_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass(slots=True, frozen=True)
class ProbeResult:
    """Outcome of one probe. ``status`` is None when no response arrived."""

    url: str
    status: Optional[int]
    content_type: str = ""
    location: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    @property
    def redirect(self) -> bool:
        return self.status is not None and 300 <= self.status < 400 and self.location is not None

    @property
    def is_html(self) -> bool:
        # servers that omit Content-Type still get rendered
        return not self.content_type or self.content_type in _HTML_TYPES

    @property
    def code(self) -> Union[int, str, None]:
        return self.status if self.status is not None else self.error


class HttpProbe:
    """Fetches headers of a URL without following redirects."""

    def __init__(self, session: ClientSession, timeout: float = 30.0) -> None:
        self.session = session
        self.timeout = timeout

    async def probe(self, url: str) -> ProbeResult:
        try:
            async with self.session.get(
                url,
                allow_redirects=False,
                raise_for_status=False,
                timeout=ClientTimeout(total=self.timeout),
            ) as resp:
                mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                location = resp.headers.get("Location")
                result = ProbeResult(
                    url=url,
                    status=resp.status,
                    content_type=mime,
                    location=resolve_url(url, location) if location else None,
                )
        except asyncio.TimeoutError:
            logger.debug("Probe timed out: %s", url)
            return ProbeResult(url=url, status=None, error="timeout")
        except ClientError as exc:
            logger.debug("Probe failed %s: %s", url, exc)
            return ProbeResult(url=url, status=None, error=type(exc).__name__)
        logger.debug("Probe %s -> %s %s", url, result.status, result.content_type or "-")
        return result
