# page_scout/crawler/pool.py
"""
Bounded pool of headless browser instances.

Browsers are expensive to start, so the crawl leases them from here instead
of launching one per page. The pool bounds the number of live instances,
validates an instance before every checkout, retires instances after a number
of uses and evicts idle ones from a background task.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Optional, Set

from page_scout.config import PoolConfig
from page_scout.errors import PoolExhaustionError
from page_scout.logger import logger

__all__ = ("BrowserPool", "PoolStats")

Factory = Callable[[], Awaitable[Any]]
Destroyer = Callable[[Any], Awaitable[None]]
Validator = Callable[[Any], Awaitable[bool]]


async def _always_valid(_: Any) -> bool:
    return True


async def _close(resource: Any) -> None:
    await resource.close()


@dataclass(slots=True, eq=False)
class _Entry:
    resource: Any
    uses: int = 0
    created: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)


@dataclass(slots=True, frozen=True)
class PoolStats:
    live: int
    idle: int
    leased: int
    creating: int


class BrowserPool:
    """
    Lease-based pool. Use only through :meth:`acquire`::

        async with pool.acquire() as browser:
            page = await browser.new_page()

    The lease is returned on every exit path of the ``async with`` block.
    """

    def __init__(
        self,
        factory: Factory,
        config: Optional[PoolConfig] = None,
        *,
        destroy: Destroyer = _close,
        validate: Validator = _always_valid,
    ) -> None:
        self.config = config or PoolConfig()
        self._factory = factory
        self._destroy = destroy
        self._validate = validate
        self._idle: Deque[_Entry] = deque()
        self._leased: Set[_Entry] = set()
        self._creating = 0
        self._retiring = 0
        self._cond = asyncio.Condition()
        self._closing = False
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._reaper: Optional[asyncio.Task[None]] = None
        self.created_total = 0
        self.destroyed_total = 0

    # ------------------------------------------------------------------ #
    # public API                                                          #
    # ------------------------------------------------------------------ #

    async def start(self) -> BrowserPool:
        """Pre-create ``min_idle`` instances and start the background reaper."""
        if self._closing:
            raise PoolExhaustionError("Pool is closed")
        await self._top_up()
        if self._reaper is None:
            self._reaper = asyncio.create_task(self._reap_loop(), name="browser-pool-reaper")
        return self

    @property
    def closed(self) -> bool:
        return self._closing

    def stats(self) -> PoolStats:
        return PoolStats(
            live=self._live(),
            idle=len(self._idle),
            leased=len(self._leased),
            creating=self._creating,
        )

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        entry = await self._checkout()
        try:
            yield entry.resource
        finally:
            await self._checkin(entry)

    async def drain_and_close(self) -> None:
        """Stop new checkouts, wait for outstanding leases, destroy everything. Idempotent."""
        if self._drain_task is None:
            self._drain_task = asyncio.create_task(self._drain(), name="browser-pool-drain")
        await asyncio.shield(self._drain_task)

    # ------------------------------------------------------------------ #
    # checkout / checkin                                                  #
    # ------------------------------------------------------------------ #

    async def _checkout(self) -> _Entry:
        while True:
            entry = await self._reserve()
            if entry is None:
                entry = await self._create_reserved()
            try:
                valid = await self._is_valid(entry)
            except BaseException:
                # cancelled mid-checkout: the caller never sees this entry
                await self._discard(entry)
                raise
            if valid:
                entry.uses += 1
                return entry
            logger.debug("Browser instance failed validation, replacing it")
            await self._discard(entry)

    async def _reserve(self) -> Optional[_Entry]:
        """
        Takes an idle instance (marked leased) or reserves a creation slot (returns None).
        Waits while the pool is at ``max_total``.
        """
        async with self._cond:
            deadline = None
            if self.config.acquire_timeout is not None:
                deadline = time.monotonic() + self.config.acquire_timeout
            while True:
                if self._closing:
                    raise PoolExhaustionError("Pool is draining, no new leases")
                if self._idle:
                    entry = self._idle.pop()
                    self._leased.add(entry)
                    return entry
                if self._live() < self.config.max_total:
                    self._creating += 1
                    return None
                if deadline is None:
                    await self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolExhaustionError(
                        f"No browser available within {self.config.acquire_timeout}s "
                        f"(max_total={self.config.max_total})"
                    )
                try:
                    await asyncio.wait_for(self._cond.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    continue

    async def _create_reserved(self) -> _Entry:
        try:
            resource = await self._factory()
        except BaseException as exc:
            self._creating -= 1
            await self._notify()
            if isinstance(exc, Exception):
                raise PoolExhaustionError(f"Failed to create browser instance: {exc}") from exc
            raise
        # no await between the slot release and the lease, so max_total holds
        entry = _Entry(resource)
        self._creating -= 1
        self._leased.add(entry)
        self.created_total += 1
        logger.debug("Browser instance created (%d live)", self._live())
        return entry

    async def _is_valid(self, entry: _Entry) -> bool:
        try:
            return bool(await self._validate(entry.resource))
        except Exception as exc:
            logger.debug("Browser validation raised: %s", exc)
            return False

    async def _checkin(self, entry: _Entry) -> None:
        max_uses = self.config.max_uses
        retire = self._closing or (max_uses and entry.uses >= max_uses)
        if retire:
            logger.debug("Retiring browser instance after %d use(s)", entry.uses)
            await self._discard(entry)
            return
        entry.last_used = time.monotonic()
        self._leased.discard(entry)
        self._idle.append(entry)
        await self._notify()

    async def _discard(self, entry: _Entry) -> None:
        """Destroys a leased entry; it stays counted as live until destroyed, so max_total holds."""
        try:
            await self._destroy_entry(entry)
        finally:
            self._leased.discard(entry)
            await self._notify()

    async def _notify(self) -> None:
        async with self._cond:
            self._cond.notify_all()

    async def _destroy_entry(self, entry: _Entry) -> None:
        try:
            await self._destroy(entry.resource)
        except Exception as exc:
            logger.warning("Could not destroy browser instance: %s", exc)
        finally:
            self.destroyed_total += 1

    def _live(self) -> int:
        return len(self._idle) + len(self._leased) + self._creating + self._retiring

    # ------------------------------------------------------------------ #
    # background maintenance                                              #
    # ------------------------------------------------------------------ #

    async def _reap_loop(self) -> None:
        while not self._closing:
            await asyncio.sleep(self.config.reap_interval)
            try:
                await self._evict_idle()
                await self._top_up()
            except Exception as exc:
                logger.warning("Browser pool maintenance failed: %s", exc)

    async def _evict_idle(self) -> None:
        now = time.monotonic()
        stale = []
        async with self._cond:
            for entry in list(self._idle):
                if self._live() - len(stale) <= self.config.min_idle:
                    break
                if now - entry.last_used > self.config.idle_timeout:
                    stale.append(entry)
            for entry in stale:
                self._idle.remove(entry)
            self._retiring += len(stale)
        for entry in stale:
            logger.debug("Evicting browser instance idle for %.0fs", now - entry.last_used)
        try:
            for entry in stale:
                await self._destroy_entry(entry)
        finally:
            if stale:
                self._retiring -= len(stale)
                await self._notify()

    async def _top_up(self) -> None:
        while True:
            async with self._cond:
                if self._closing or self._live() >= self.config.min_idle:
                    return
                self._creating += 1
            entry = await self._create_reserved()
            self._leased.discard(entry)
            self._idle.append(entry)
            await self._notify()

    async def _drain(self) -> None:
        async with self._cond:
            self._closing = True
            self._cond.notify_all()
            await self._cond.wait_for(
                lambda: not self._leased and self._creating == 0 and self._retiring == 0
            )
            idle = list(self._idle)
            self._idle.clear()
        if self._reaper is not None:
            self._reaper.cancel()
            try:
                await self._reaper
            except asyncio.CancelledError:
                pass
        for entry in idle:
            await self._destroy_entry(entry)
        logger.debug(
            "Browser pool closed (%d created, %d destroyed)",
            self.created_total,
            self.destroyed_total,
        )

    def __repr__(self) -> str:
        s = self.stats()
        return f"<BrowserPool live={s.live} idle={s.idle} leased={s.leased} closing={self._closing}>"

