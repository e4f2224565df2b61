# page_scout/events.py
"""
Lifecycle events of a crawl.

The crawler only calls :meth:`CrawlEvents.emit`; whoever wants to observe the
crawl subscribes a callback. :func:`log_event` is the default subscriber.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List

from page_scout.logger import logger

__all__ = ("CrawlEvent", "CrawlEvents", "EventCallback", "log_event")


class CrawlEvent(str, Enum):
    FETCH_STARTED = "fetch-started"
    FETCH_COMPLETED = "fetch-completed"
    FETCH_ERROR = "fetch-error"
    FETCH_REDIRECT = "fetch-redirect"
    QUEUE_ADDED = "queue-added"
    DISCOVERY_COMPLETED = "discovery-completed"
    ROUTE_REJECTED = "route-rejected"
    BLACKLIST_REJECTED = "blacklist-rejected"
    EXTENSION_REJECTED = "extension-rejected"
    CRAWL_COMPLETED = "crawl-completed"

    @property
    def is_error(self) -> bool:
        return self is CrawlEvent.FETCH_ERROR

    @property
    def is_rejection(self) -> bool:
        return self.value.endswith("-rejected")


EventCallback = Callable[..., Any]


class CrawlEvents:
    """Minimal synchronous dispatcher: callbacks run in subscription order."""

    def __init__(self) -> None:
        self._callbacks: List[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> EventCallback:
        self._callbacks.append(callback)
        return callback

    def unsubscribe(self, callback: EventCallback) -> None:
        self._callbacks.remove(callback)

    def emit(self, event: CrawlEvent, url: str = "", **details: Any) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event, url, **details)
            except Exception:
                logger.exception("Event subscriber %r failed on %s", callback, event.value)


def log_event(event: CrawlEvent, url: str = "", **details: Any) -> None:
    """Пишет событие в лог проекта: имя выровнено по 20 символам, затем URL."""
    name = f"{event.value:<20}"
    if event.is_error:
        logger.error("%s%s %s", name, url, details.get("code", ""))
    elif event.is_rejection:
        logger.warning("%s%s", name, url)
    elif event is CrawlEvent.QUEUE_ADDED:
        logger.debug("%s%s", name, url)
    else:
        logger.info("%s%s", name, url)
