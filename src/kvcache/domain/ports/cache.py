"""Cache Port - Interface shared by every key/value cache backend."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from kvcache.domain.entities.cache import CacheEvent, CacheFailure


@runtime_checkable
class CachePort(Protocol):
    """Async key/value cache with TTL support.

    Implementations:
      - MemoryCacheAdapter (in-process expiring map)
      - RedisCacheAdapter (redis.asyncio client)
      - DatabaseCacheAdapter (SQL table via SQLAlchemy)

    Keys and values are arbitrary JSON-representable data. ``None`` stands
    for "absent" on every read. ``ttl=None`` means the backend's configured
    default TTL.

    Each adapter supports async context-manager semantics:
        async with cache:
            await cache.set("key", value)
    """

    @property
    def is_ready(self) -> bool:
        """True when operations can run without an implicit connect."""
        ...

    @property
    def last_failure(self) -> CacheFailure | None:
        """Cause of the most recent failure reported as False/0/empty."""
        ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def set(self, key: Any, value: Any, ttl: int | None = None) -> bool:
        """Store value; True on success."""
        ...

    async def get(self, key: Any) -> Any:
        """Retrieve value. None = not found / expired."""
        ...

    async def includes(self, key: Any) -> bool:
        """Check if key exists (not expired)."""
        ...

    async def delete(self, key: Any) -> int:
        """Delete key. Returns number of removed entries (0 or 1)."""
        ...

    async def clear(self) -> bool:
        """Delete ALL keys."""
        ...

    async def keys(self) -> list[Any]: ...

    async def mget(self, keys: Sequence[Any]) -> Mapping[Any, Any]:
        """Bulk get; missing keys are omitted from the result."""
        ...

    async def mdel(self, keys: Sequence[Any]) -> int: ...

    async def mset(
        self,
        keys: Sequence[Any],
        values: Sequence[Any],
        ttl: int | None = None,
    ) -> bool:
        """Bulk set. Raises LengthMismatchError before writing anything."""
        ...

    async def entries(self) -> Mapping[Any, Any]:
        """Snapshot of all unexpired key/value pairs."""
        ...

    async def ttl(self, key: Any, ttl: int | None = None) -> bool:
        """Refresh expiration. False if the key does not exist."""
        ...

    async def get_ttl(self, key: Any) -> int | None:
        """Remaining seconds to live, None if missing or expired."""
        ...

    async def take(self, key: Any) -> Any:
        """Get and delete in one step."""
        ...

    def on(self, event: CacheEvent, listener: Callable[..., Any]) -> None: ...

    def off(self, event: CacheEvent, listener: Callable[..., Any]) -> None: ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
