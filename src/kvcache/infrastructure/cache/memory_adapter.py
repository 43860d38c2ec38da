"""Memory adapter - process-local expiring map (cachetools.TLRUCache)."""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from typing import Any

import structlog
from cachetools import TLRUCache

from kvcache.domain.entities.cache import (
    DEFAULT_TTL_SECONDS,
    CacheEvent,
    CacheFailure,
    Entry,
)
from kvcache.infrastructure.cache.codec import CacheMap
from kvcache.infrastructure.cache.context import CacheContext
from kvcache.infrastructure.cache.notifier import Listener
from kvcache.infrastructure.cache.sweeper import Sweeper

log = structlog.get_logger(__name__)


def _entry_expiry(_key: str, entry: Entry, _now: float) -> float:
    return entry.expires_at


class MemoryCacheAdapter:
    """Async facade over an in-process TLRUCache.

    - Each item carries its own absolute expiry (epoch seconds), so per-key
      TTLs work and expired items are invisible to reads immediately.
    - A Sweeper calls ``TLRUCache.expire()`` periodically and emits
      ``expired`` for every entry it removes.
    - Everything runs synchronously on the event loop; the async surface only
      matches the other adapters.

    Args:
        ttl_seconds: Default TTL for calls without an explicit value.
        check_period_seconds: Sweep interval (default: ttl_seconds / 10).
        max_keys: Capacity before least-recently-used entries are dropped
            (default: unbounded).
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        check_period_seconds: float | None = None,
        max_keys: int | None = None,
    ) -> None:
        self._ctx = CacheContext("memory", default_ttl=ttl_seconds)
        self.client: TLRUCache[str, Entry] = TLRUCache(
            maxsize=max_keys if max_keys is not None else math.inf,
            ttu=_entry_expiry,
            timer=time.time,
        )
        self.check_period = check_period_seconds or ttl_seconds / 10
        self._sweeper = Sweeper("memory", self.check_period, self._sweep)
        self._ready = True

        log.info(
            "memory_adapter_init",
            default_ttl=ttl_seconds,
            check_period=self.check_period,
            max_keys=max_keys,
        )

    # --- Context Manager ---
    async def __aenter__(self) -> MemoryCacheAdapter:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # --- lifecycle ---
    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def last_failure(self) -> CacheFailure | None:
        return self._ctx.last_failure

    async def connect(self) -> None:
        self._ready = True
        self._sweeper.start()

    async def disconnect(self) -> None:
        """Stop the sweep loop; stored entries are kept."""
        self._ready = False
        await self._sweeper.stop()
        log.debug("memory_adapter_disconnected")

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.connect()
        else:
            self._sweeper.start()

    async def _sweep(self) -> None:
        expired = self.client.expire()
        for key, entry in expired:
            self._ctx.emit("expired", self._ctx.decode(key), self._ctx.decode(entry.value))
        if expired:
            log.debug("memory_sweep", expired=len(expired))

    def on(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.on(event, listener)

    def off(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.off(event, listener)

    # --- CachePort implementation ---
    def _store(self, key: str, data: str, ttl: int) -> None:
        self.client[key] = Entry(value=data, expires_at=time.time() + ttl)

    def _remove(self, key: str) -> int:
        entry = self.client.pop(key, None)
        if entry is None:
            return 0
        self._ctx.emit("del", self._ctx.decode(key), self._ctx.decode(entry.value))
        return 1

    async def set(self, key: Any, value: Any, ttl: int | None = None) -> bool:
        _key = self._ctx.encode_key(key)
        data = self._ctx.encode(value)
        expire = self._ctx.resolve_ttl(ttl)
        await self._ensure_ready()

        self._store(_key, data, expire)
        self._ctx.emit("set", key, value)
        return True

    async def get(self, key: Any) -> Any:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        entry = self.client.get(_key)
        if entry is None:
            return None
        return self._ctx.decode(entry.value)

    async def includes(self, key: Any) -> bool:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()
        return _key in self.client

    async def delete(self, key: Any) -> int:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()
        return self._remove(_key)

    async def clear(self) -> bool:
        await self._ensure_ready()
        self.client.clear()
        self._ctx.emit("flush")
        return True

    def _live_keys(self) -> list[str]:
        # Iteration also yields expired-but-unswept items; membership does not.
        return [k for k in list(self.client) if k in self.client]

    async def keys(self) -> list[Any]:
        await self._ensure_ready()
        return [self._ctx.decode(k) for k in self._live_keys()]

    async def mget(self, keys: Sequence[Any]) -> CacheMap:
        fetch_keys = self._ctx.encode_keys(keys)
        await self._ensure_ready()

        values = self._ctx.new_map()
        for _key in fetch_keys:
            entry = self.client.get(_key)
            if entry is not None:
                values.add(_key, self._ctx.decode(entry.value))
        return values

    async def mdel(self, keys: Sequence[Any]) -> int:
        _keys = self._ctx.encode_keys(keys)
        await self._ensure_ready()
        return sum(self._remove(_key) for _key in _keys)

    async def mset(
        self,
        keys: Sequence[Any],
        values: Sequence[Any],
        ttl: int | None = None,
    ) -> bool:
        pairs = self._ctx.pair(keys, values)
        expire = self._ctx.resolve_ttl(ttl)
        await self._ensure_ready()

        for (_key, data), key, value in zip(pairs, keys, values):
            self._store(_key, data, expire)
            self._ctx.emit("set", key, value)
        return True

    async def entries(self) -> CacheMap:
        await self._ensure_ready()
        result = self._ctx.new_map()
        for _key in self._live_keys():
            entry = self.client.get(_key)
            if entry is not None:
                result.add(_key, self._ctx.decode(entry.value))
        return result

    async def ttl(self, key: Any, ttl: int | None = None) -> bool:
        _key = self._ctx.encode_key(key)
        expire = self._ctx.resolve_ttl(ttl)
        await self._ensure_ready()

        entry = self.client.get(_key)
        if entry is None:
            return False
        self._store(_key, entry.value, expire)
        return True

    async def get_ttl(self, key: Any) -> int | None:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        entry = self.client.get(_key)
        if entry is None:
            return None
        remaining = entry.remaining(time.time())
        return remaining if remaining > 0 else None

    async def take(self, key: Any) -> Any:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        entry = self.client.pop(_key, None)
        if entry is None:
            return None
        value = self._ctx.decode(entry.value)
        self._ctx.emit("del", key, value)
        return value

    def __len__(self) -> int:
        return len(self._live_keys())

    def __repr__(self) -> str:
        return f"MemoryCacheAdapter(entries={len(self)}, ready={self._ready})"
