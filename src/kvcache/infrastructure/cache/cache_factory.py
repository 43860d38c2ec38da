"""Cache factory - builds the configured backend adapter."""

from __future__ import annotations

from typing import Literal, Optional

import structlog

from kvcache.domain.ports.cache import CachePort
from kvcache.infrastructure.cache.database_adapter import DatabaseCacheAdapter
from kvcache.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from kvcache.infrastructure.cache.redis_adapter import RedisCacheAdapter
from kvcache.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

CacheBackend = Literal["memory", "redis", "database"]


def create_cache(
    config: AppConfig,
    backend: Optional[CacheBackend] = None,
) -> CachePort:
    """Create the cache adapter for a backend.

    Args:
        config: Validated application config holding the backend sections.
        backend: Overrides `config.backend` when given.

    Returns:
        CachePort implementation (memory, Redis or relational).

    Raises:
        ValueError: If `backend` is unknown.
    """
    backend = backend or config.backend

    if backend == "memory":
        settings = config.memory
        log.info(
            "cache_factory_create",
            backend=backend,
            ttl=settings.ttl_seconds,
            check_period=settings.check_period_seconds,
            max_keys=settings.max_keys,
        )
        return MemoryCacheAdapter(
            ttl_seconds=settings.ttl_seconds,
            check_period_seconds=settings.check_period_seconds,
            max_keys=settings.max_keys,
        )
    elif backend == "redis":
        settings_r = config.redis
        adapter = RedisCacheAdapter(
            host=settings_r.host,
            port=settings_r.port,
            username=settings_r.username,
            password=settings_r.password,
            db=settings_r.db,
            scheme=settings_r.scheme,
            ttl_seconds=settings_r.ttl_seconds,
        )
        log.info(
            "cache_factory_create",
            backend=backend,
            url=adapter.display_url,
            ttl=settings_r.ttl_seconds,
        )
        return adapter
    elif backend == "database":
        settings_d = config.database
        log.info(
            "cache_factory_create",
            backend=backend,
            table=settings_d.table_name,
            ttl=settings_d.ttl_seconds,
            check_period=settings_d.check_period_seconds,
        )
        return DatabaseCacheAdapter(
            url=settings_d.url,
            table_name=settings_d.table_name,
            ttl_seconds=settings_d.ttl_seconds,
            check_period_seconds=settings_d.check_period_seconds,
            echo=settings_d.echo,
        )
    else:
        raise ValueError(
            f"Unknown cache backend: {backend!r}. "
            "Must be 'memory', 'redis' or 'database'."
        )
