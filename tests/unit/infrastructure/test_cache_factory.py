"""Tests for create_cache()."""

from __future__ import annotations

from pathlib import Path

import pytest

from kvcache.infrastructure.cache import (
    DatabaseCacheAdapter,
    MemoryCacheAdapter,
    RedisCacheAdapter,
    create_cache,
)
from kvcache.infrastructure.config.schema import AppConfig


def test_memory_backend_by_default() -> None:
    cache = create_cache(AppConfig(memory={"ttl_seconds": 60, "max_keys": 10}))
    assert isinstance(cache, MemoryCacheAdapter)
    assert cache.check_period == 6
    assert cache.client.maxsize == 10


def test_redis_backend() -> None:
    config = AppConfig(
        backend="redis",
        redis={"host": "cache.local", "port": 6380, "password": "pw", "db": 2},
    )
    cache = create_cache(config)
    assert isinstance(cache, RedisCacheAdapter)
    assert cache.display_url == "redis://cache.local:6380"
    assert cache.options["db"] == 2
    assert "password" not in cache.options


def test_database_backend(tmp_path: Path) -> None:
    config = AppConfig(
        backend="database",
        database={
            "url": f"sqlite+aiosqlite:///{tmp_path / 'c.db'}",
            "table_name": "kv",
            "ttl_seconds": 120,
        },
    )
    cache = create_cache(config)
    assert isinstance(cache, DatabaseCacheAdapter)
    assert cache.table_name == "kv"
    assert cache.check_period == 12


def test_backend_argument_overrides_config() -> None:
    cache = create_cache(AppConfig(backend="database"), backend="memory")
    assert isinstance(cache, MemoryCacheAdapter)


def test_unknown_backend() -> None:
    with pytest.raises(ValueError, match="Unknown cache backend"):
        create_cache(AppConfig(), backend="memcached")  # type: ignore[arg-type]
