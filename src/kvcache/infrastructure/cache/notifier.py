"""Observer registry for cache lifecycle notifications."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

import structlog

from kvcache.domain.entities.cache import CACHE_EVENTS, CacheEvent

log = structlog.get_logger(__name__)

Listener = Callable[..., Any]


class Notifier:
    """Dispatches cache events to registered listeners.

    - Listeners are plain callables or coroutine functions.
    - Coroutines are scheduled as tasks; emit() never waits on a listener.
    - A failing listener is logged and skipped, the others still run.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: CacheEvent, listener: Listener) -> None:
        if event not in CACHE_EVENTS:
            raise ValueError(f"Unknown cache event: {event!r}")
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: CacheEvent, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: CacheEvent) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: CacheEvent, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(*args)
            except Exception:
                log.error(
                    "cache_listener_failed",
                    source=self.source,
                    cache_event=event,
                    exc_info=True,
                )
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log.error(
                    "cache_listener_failed",
                    source=self.source,
                    cache_event=event,
                    error=str(t.exception()),
                )

        task.add_done_callback(_done)
