# File: tests/test_crawler.py
# Test-suite for the PageScout crawl loop
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web

import page_scout.crawler.crawler as crawler_module
from page_scout.config import PoolConfig, RouteDecision
from page_scout.crawler.crawler import Crawler
from page_scout.crawler.discovery import LinkDiscoverer
from page_scout.crawler.pool import BrowserPool
from page_scout.errors import AuthenticationError, NavigationError, PoolExhaustionError
from page_scout.events import CrawlEvent, CrawlEvents

from conftest import FakeDiscoverer, FakePageSpec, FakeSite, link

HOME = "http://app.test/"


# --------------------------------------------------------------------------- #
#                               Helper utilities                              #
# --------------------------------------------------------------------------- #


async def run_crawler(config, discoverer, events=None, **kwargs):
    async with Crawler(config, discoverer=discoverer, events=events, **kwargs) as crawler:
        return await asyncio.wait_for(crawler.crawl(), timeout=15)


def collect(events: CrawlEvents) -> list:
    seen = []
    events.subscribe(lambda event, url, **details: seen.append((event, url, details)))
    return seen


def urls(records) -> list:
    return [r.url for r in records]


# --------------------------------------------------------------------------- #
#                         Crawl loop with fake discovery                      #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_breadth_first_order_and_depth(make_config):
    discoverer = FakeDiscoverer(
        {
            HOME: [("/a", "A"), ("/b", "B")],
            "http://app.test/a": [("/a/1", ""), ("/b", "B again")],
            "http://app.test/b": [("/", "Home")],
        }
    )
    records = await run_crawler(make_config(), discoverer)
    assert urls(records) == [HOME, "http://app.test/a", "http://app.test/b", "http://app.test/a/1"]
    assert [r.depth for r in records] == [1, 2, 2, 3]
    assert records[3].referrer == "http://app.test/a"
    assert all(r.fetched and not r.failed for r in records)
    assert discoverer.calls == urls(records)


@pytest.mark.asyncio()
async def test_max_depth(make_config):
    discoverer = FakeDiscoverer(
        {
            HOME: [("/a", "")],
            "http://app.test/a": [("/a/1", "")],
        }
    )
    records = await run_crawler(make_config(max_depth=2), discoverer)
    assert urls(records) == [HOME, "http://app.test/a"]


@pytest.mark.asyncio()
async def test_admission_applied_to_discovered_links(make_config):
    discoverer = FakeDiscoverer(
        {
            HOME: [
                ("/users/1", ""),
                ("/users/2", ""),
                ("/users/3", ""),
                ("/items/5/delete", "Delete item"),
                ("/assets/logo.png", ""),
                ("http://elsewhere.test/", "External"),
                ("mailto:help@app.test", "Mail"),
            ],
            "http://app.test/users/1": [("/users/4", ""), ("/users/2#x", "")],
        }
    )
    config = make_config(route_decisions=[{"match": r"^/users/\d+$", "regex": True, "limit": 2}])
    events = CrawlEvents()
    seen = collect(events)
    records = await run_crawler(config, discoverer, events)

    assert urls(records) == [HOME, "http://app.test/users/1", "http://app.test/users/2"]
    rejected = {(event, url) for event, url, _ in seen if event.is_rejection}
    assert rejected == {
        (CrawlEvent.ROUTE_REJECTED, "http://app.test/users/3"),
        (CrawlEvent.ROUTE_REJECTED, "http://app.test/users/4"),
        (CrawlEvent.BLACKLIST_REJECTED, "http://app.test/items/5/delete"),
        (CrawlEvent.EXTENSION_REJECTED, "http://app.test/assets/logo.png"),
    }


@pytest.mark.asyncio()
async def test_disallowed_route(make_config):
    discoverer = FakeDiscoverer({HOME: [("/admin/users", ""), ("/profile", "")]})
    config = make_config(route_decisions=[RouteDecision(match="/admin", allow=False)])
    records = await run_crawler(config, discoverer)
    assert urls(records) == [HOME, "http://app.test/profile"]


@pytest.mark.asyncio()
async def test_render_error_does_not_stop_crawl(make_config):
    discoverer = FakeDiscoverer(
        {
            HOME: [("/a", ""), ("/b", "")],
            "http://app.test/a": AuthenticationError("http://app.test/a", "Failed to set browser cookies"),
            "http://app.test/b": NavigationError("http://app.test/b", "Browser unable to open URL", code=500),
        }
    )
    events = CrawlEvents()
    seen = collect(events)
    records = await run_crawler(make_config(), discoverer, events)

    assert urls(records) == [HOME, "http://app.test/a", "http://app.test/b"]
    a, b = records[1], records[2]
    assert a.fetched and "Failed to set browser cookies" in a.error
    assert b.fetched and b.failed
    errors = [(url, details["code"]) for event, url, details in seen if event is CrawlEvent.FETCH_ERROR]
    assert errors == [("http://app.test/a", "AuthenticationError"), ("http://app.test/b", 500)]
    assert seen[-1][0] is CrawlEvent.CRAWL_COMPLETED
    assert seen[-1][2] == {"pages": 3, "failed": 2}


@pytest.mark.asyncio()
async def test_pool_exhaustion_is_fatal(make_config):
    discoverer = FakeDiscoverer({HOME: PoolExhaustionError("no browsers")})
    with pytest.raises(PoolExhaustionError):
        await run_crawler(make_config(), discoverer)


@pytest.mark.asyncio()
async def test_event_sequence_for_one_page(make_config):
    discoverer = FakeDiscoverer({HOME: [("/a", "")]})
    events = CrawlEvents()
    seen = collect(events)
    await run_crawler(make_config(max_depth=1), discoverer, events)
    assert [event for event, _, _ in seen] == [
        CrawlEvent.FETCH_STARTED,
        CrawlEvent.FETCH_COMPLETED,
        CrawlEvent.DISCOVERY_COMPLETED,
        CrawlEvent.CRAWL_COMPLETED,
    ]


@pytest.mark.asyncio()
async def test_config_cookie_passed_to_discovery(make_config):
    discoverer = FakeDiscoverer({})
    await run_crawler(make_config(cookie="_session=abc"), discoverer)
    assert discoverer.cookies[HOME] == [{"name": "_session", "value": "abc"}]


@pytest.mark.asyncio()
async def test_crawl_requires_context_manager(make_config):
    crawler = Crawler(make_config())
    with pytest.raises(RuntimeError):
        await crawler.crawl()


@pytest.mark.asyncio()
async def test_pacing_interval(make_config):
    discoverer = FakeDiscoverer({HOME: [("/a", ""), ("/b", "")]})
    loop = asyncio.get_running_loop()
    started = loop.time()
    await run_crawler(make_config(pacing_interval_ms=100), discoverer)
    # two pauses: after the first and the second of three pages
    assert loop.time() - started >= 0.2


# --------------------------------------------------------------------------- #
#                  Crawl with real discovery on a fake browser                #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_crawl_with_pool_drains_browsers(make_config):
    site = FakeSite(
        {
            HOME: FakePageSpec(links=[link("/a", "A"), link("/gone", "Gone")]),
            "http://app.test/a": FakePageSpec(links=[link("/", "Home")]),
            "http://app.test/gone": FakePageSpec(status=404),
        }
    )
    pool = BrowserPool(site.launch, PoolConfig(min_idle=1, max_total=2), destroy=site.destroy, validate=site.validate)
    await pool.start()
    discoverer = LinkDiscoverer(pool, render_settle_delay=0, post_load_delay=0)

    records = await run_crawler(make_config(), discoverer, pool=pool)

    assert urls(records) == [HOME, "http://app.test/a", "http://app.test/gone"]
    assert records[2].failed
    assert pool.closed
    assert site.browsers and not any(b.connected for b in site.browsers)
    assert all(page.closed for b in site.browsers for page in b.pages)


# --------------------------------------------------------------------------- #
#                        HTTP probe against a live server                     #
# --------------------------------------------------------------------------- #


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def probe_server(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_root(_):
        resp = web.Response(text="<h1>Home</h1>", content_type="text/html")
        resp.set_cookie("srv", "1")
        return resp

    async def handle_old(_):
        raise web.HTTPFound("/new")

    async def handle_loop(_):
        raise web.HTTPFound("/loop")

    async def handle_new(_):
        return web.Response(text="<h1>New</h1>", content_type="text/html")

    async def handle_data(_):
        return web.json_response({"ok": True})

    app.router.add_get("/", handle_root)
    app.router.add_get("/old", handle_old)
    app.router.add_get("/loop", handle_loop)
    app.router.add_get("/new", handle_new)
    app.router.add_get("/data", handle_data)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest.mark.asyncio()
async def test_http_probe(make_config, probe_server):
    base = probe_server
    discoverer = FakeDiscoverer(
        {
            base + "/": [("/old", ""), ("/missing", ""), ("/data", ""), ("/loop", "")],
        }
    )
    config = make_config(url=base + "/", http_probe=True, cookie="_session=abc")
    events = CrawlEvents()
    seen = collect(events)
    records = await run_crawler(config, discoverer, events)
    by_url = {r.url: r for r in records}

    assert urls(records) == [base + p for p in ("/", "/old", "/missing", "/data", "/loop", "/new")]
    assert discoverer.calls == [base + "/", base + "/new"]

    assert by_url[base + "/old"].status == 302 and not by_url[base + "/old"].failed
    assert by_url[base + "/new"].referrer == base + "/old"
    assert by_url[base + "/missing"].status == 404
    assert by_url[base + "/missing"].error == "HTTP probe failed: 404"
    assert by_url[base + "/data"].fetched and not by_url[base + "/data"].failed
    assert by_url[base + "/loop"].status == 302

    redirects = [url for event, url, _ in seen if event is CrawlEvent.FETCH_REDIRECT]
    assert redirects == [base + "/old", base + "/loop"]

    names = {c["name"] for c in discoverer.cookies[base + "/new"]}
    assert {"_session", "srv"} <= names


@pytest.mark.asyncio()
async def test_http_probe_connection_refused(make_config, unused_tcp_port):
    discoverer = FakeDiscoverer({})
    config = make_config(url=f"http://localhost:{unused_tcp_port}/", http_probe=True)
    records = await run_crawler(config, discoverer)
    assert len(records) == 1
    assert records[0].failed
    assert discoverer.calls == []


# --------------------------------------------------------------------------- #
#                          Cleanup when setup fails                           #
# --------------------------------------------------------------------------- #


class FlakyLauncher:
    """Launches one fake browser, then fails."""

    instances: list = []

    def __init__(self, **kwargs):
        self.site = FakeSite()
        self.launches = 0
        self.stopped = False
        FlakyLauncher.instances.append(self)

    async def launch(self):
        self.launches += 1
        if self.launches > 1:
            raise RuntimeError("Executable doesn't exist at /ms-playwright/chromium")
        return await self.site.launch()

    validate = staticmethod(FakeSite.validate)
    destroy = staticmethod(FakeSite.destroy)

    async def stop(self):
        self.stopped = True


@pytest.mark.asyncio()
async def test_failed_pool_start_cleans_up(make_config, monkeypatch):
    FlakyLauncher.instances = []
    monkeypatch.setattr(crawler_module, "PlaywrightLauncher", FlakyLauncher)
    crawler = Crawler(make_config(pool={"min_idle": 2, "max_total": 2}))

    with pytest.raises(PoolExhaustionError):
        async with crawler:
            pytest.fail("setup should have failed")

    (launcher,) = FlakyLauncher.instances
    assert launcher.stopped
    assert crawler.session.closed
    assert crawler.pool.closed
    assert crawler.pool.stats().live == 0
    assert not any(b.connected for b in launcher.site.browsers)
