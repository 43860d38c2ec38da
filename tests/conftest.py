"""Shared test fixtures for the kvcache test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from kvcache.infrastructure.cache.database_adapter import DatabaseCacheAdapter
from kvcache.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from kvcache.infrastructure.cache.redis_adapter import RedisCacheAdapter

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable stand-in for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Patch time.time; adapters built afterwards read this clock."""
    fake = FakeClock()
    monkeypatch.setattr("time.time", fake)
    return fake


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


@pytest.fixture()
async def memory_cache() -> MemoryCacheAdapter:
    """MemoryCacheAdapter with the default TTL."""
    adapter = MemoryCacheAdapter()
    async with adapter:
        yield adapter


@pytest.fixture()
async def database_cache(tmp_path: Path) -> DatabaseCacheAdapter:
    """DatabaseCacheAdapter on a throwaway SQLite file."""
    adapter = DatabaseCacheAdapter(
        url=f"sqlite+aiosqlite:///{tmp_path / 'cache.sqlite3'}",
    )
    async with adapter:
        yield adapter


@pytest.fixture()
def redis_client() -> AsyncMock:
    """AsyncMock standing in for redis.asyncio.Redis."""
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    client.set = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.getdel = AsyncMock(return_value=None)
    client.exists = AsyncMock(return_value=0)
    client.expire = AsyncMock(return_value=True)
    client.ttl = AsyncMock(return_value=-2)
    client.keys = AsyncMock(return_value=[])
    client.mget = AsyncMock(return_value=[])
    client.mset = AsyncMock(return_value=True)
    client.execute_command = AsyncMock(return_value=True)
    client.aclose = AsyncMock()

    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=None)
    pipe.execute = AsyncMock(return_value=[])
    client.pipeline = MagicMock(return_value=pipe)
    return client


@pytest.fixture()
def redis_cache(redis_client: AsyncMock) -> RedisCacheAdapter:
    """RedisCacheAdapter wired to the mocked client."""
    return RedisCacheAdapter(client=redis_client)
