"""Background sweep loop that physically removes expired entries."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger(__name__)


class Sweeper:
    """Runs ``callback`` every ``interval`` seconds as an asyncio task.

    Reads filter expired entries on their own; a sweep only frees space,
    so a failing tick is logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        if interval <= 0:
            raise ValueError("sweep interval must be > 0")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop if an event loop is running. Idempotent."""
        if self.running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self.run_forever(), name=f"sweep:{self.name}")
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_forever(self) -> None:
        log.debug("sweeper_started", sweeper=self.name, interval=self.interval)
        try:
            while True:
                await asyncio.sleep(self.interval)
                await self.tick()
        except asyncio.CancelledError:
            log.debug("sweeper_cancelled", sweeper=self.name)
            raise

    async def tick(self) -> None:
        """Run one sweep; errors are logged, never raised."""
        try:
            await self._callback()
        except Exception as e:
            log.warning("sweep_failed", sweeper=self.name, error=str(e))
