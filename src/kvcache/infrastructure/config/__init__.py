from __future__ import annotations

from .load import load_config
from .schema import (
    AppConfig,
    DatabaseCacheSettings,
    EnvOverrides,
    MemoryCacheSettings,
    RedisCacheSettings,
)

__all__ = [
    "AppConfig",
    "DatabaseCacheSettings",
    "EnvOverrides",
    "MemoryCacheSettings",
    "RedisCacheSettings",
    "load_config",
]
