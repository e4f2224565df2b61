# File: tests/conftest.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pytest

from page_scout.config import ScoutConfig
from page_scout.crawler.discovery import FRAMEWORK_PROBE_JS
from page_scout.crawler.models import LinkCandidate, PageRecord


# --------------------------------------------------------------------------- #
#                       In-memory stand-ins for a browser                     #
# --------------------------------------------------------------------------- #


@dataclass
class FakePageSpec:
    """What the fake browser renders for one URL."""

    links: List[Dict[str, Any]] = field(default_factory=list)
    status: int = 200
    angular: bool = False
    goto_error: Optional[Exception] = None
    script_error: Optional[Exception] = None


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakeContext:
    def __init__(self, keep_cookies: bool) -> None:
        self.keep_cookies = keep_cookies
        self.added: List[Dict[str, Any]] = []
        self.jar: List[Dict[str, Any]] = []

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added.extend(cookies)
        if self.keep_cookies:
            self.jar.extend(cookies)

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self.jar)


class FakePage:
    def __init__(self, site: "FakeSite") -> None:
        self.site = site
        self.context = FakeContext(site.keep_cookies)
        self.url: Optional[str] = None
        self.closed = False
        self.scripts: List[str] = []

    async def goto(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.url = url
        spec = self.site.pages.get(url, FakePageSpec(status=404))
        if spec.goto_error is not None:
            raise spec.goto_error
        return FakeResponse(spec.status)

    async def evaluate(self, script: str) -> Any:
        self.scripts.append(script)
        spec = self.site.pages[self.url]
        if script == FRAMEWORK_PROBE_JS:
            return spec.angular
        if spec.script_error is not None:
            raise spec.script_error
        return list(spec.links)

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, site: "FakeSite") -> None:
        self.site = site
        self.pages: List[FakePage] = []
        self.connected = True

    async def new_page(self) -> FakePage:
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    def is_connected(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.connected = False


class FakeSite:
    """A tiny "application": URL -> FakePageSpec, plus a launcher for BrowserPool."""

    def __init__(self, pages: Optional[Dict[str, FakePageSpec]] = None, keep_cookies: bool = True) -> None:
        self.pages: Dict[str, FakePageSpec] = pages or {}
        self.keep_cookies = keep_cookies
        self.browsers: List[FakeBrowser] = []

    async def launch(self) -> FakeBrowser:
        browser = FakeBrowser(self)
        self.browsers.append(browser)
        return browser

    @staticmethod
    async def validate(browser: FakeBrowser) -> bool:
        return browser.is_connected()

    @staticmethod
    async def destroy(browser: FakeBrowser) -> None:
        await browser.close()


def link(href: Optional[str], html: str = "") -> Dict[str, Any]:
    return {"link": href, "html": html}


# --------------------------------------------------------------------------- #
#                        Stand-in for LinkDiscoverer                          #
# --------------------------------------------------------------------------- #


class FakeDiscoverer:
    """URL -> list of (href, html) or an exception to raise."""

    def __init__(self, graph: Dict[str, Any]) -> None:
        self.graph = graph
        self.calls: List[str] = []
        self.cookies: Dict[str, Sequence[Dict[str, str]]] = {}

    async def discover_links(self, url: str, cookies: Sequence[Dict[str, str]] = ()) -> List[LinkCandidate]:
        self.calls.append(url)
        self.cookies[url] = list(cookies)
        outcome = self.graph.get(url, [])
        if isinstance(outcome, Exception):
            raise outcome
        return [LinkCandidate(href, html) for href, html in outcome]


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def make_config(tmp_path):
    """Factory of ScoutConfig with fast test defaults."""

    def _make(**overrides: Any) -> ScoutConfig:
        data: Dict[str, Any] = {
            "url": "http://app.test/",
            "pacing_interval_ms": 0,
            "http_probe": False,
            "render_settle_delay": 0,
            "output_dir": tmp_path / "out",
        }
        data.update(overrides)
        return ScoutConfig(**data)

    return _make


@pytest.fixture()
def referrer() -> PageRecord:
    return PageRecord(url="http://app.test/", depth=1, fetched=True)
