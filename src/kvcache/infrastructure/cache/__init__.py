"""Cache infrastructure - backend implementations."""

from .cache_factory import CacheBackend, create_cache
from .codec import CacheMap, JsonCodec
from .database_adapter import DatabaseCacheAdapter
from .memory_adapter import MemoryCacheAdapter
from .redis_adapter import RedisCacheAdapter

__all__ = [
    "CacheBackend",
    "CacheMap",
    "DatabaseCacheAdapter",
    "JsonCodec",
    "MemoryCacheAdapter",
    "RedisCacheAdapter",
    "create_cache",
]
