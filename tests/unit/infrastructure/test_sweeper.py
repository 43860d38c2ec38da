"""Tests for the background Sweeper loop."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from kvcache.infrastructure.cache.sweeper import Sweeper


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        Sweeper("test", 0, AsyncMock())


def test_start_without_event_loop_is_deferred() -> None:
    sweeper = Sweeper("test", 1.0, AsyncMock())
    assert sweeper.start() is False
    assert sweeper.running is False


async def test_runs_callback_periodically() -> None:
    callback = AsyncMock()
    sweeper = Sweeper("test", 0.01, callback)

    assert sweeper.start() is True
    await asyncio.sleep(0.05)
    await sweeper.stop()

    assert callback.await_count >= 2
    assert sweeper.running is False


async def test_start_is_idempotent() -> None:
    sweeper = Sweeper("test", 10.0, AsyncMock())
    sweeper.start()
    task = sweeper._task
    sweeper.start()
    assert sweeper._task is task
    await sweeper.stop()


async def test_failing_tick_keeps_loop_alive() -> None:
    callback = AsyncMock(side_effect=RuntimeError("db gone"))
    sweeper = Sweeper("test", 0.01, callback)

    sweeper.start()
    await asyncio.sleep(0.05)
    assert sweeper.running is True
    await sweeper.stop()

    assert callback.await_count >= 2


async def test_stop_without_start() -> None:
    await Sweeper("test", 1.0, AsyncMock()).stop()
