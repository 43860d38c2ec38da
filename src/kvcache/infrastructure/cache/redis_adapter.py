"""Redis adapter - Async Redis via redis.asyncio."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import structlog
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from kvcache.domain.entities.cache import (
    DEFAULT_TTL_SECONDS,
    CacheEvent,
    CacheFailure,
    FailureKind,
)
from kvcache.domain.exceptions import CacheConnectionError
from kvcache.infrastructure.cache.codec import CacheMap
from kvcache.infrastructure.cache.context import CacheContext
from kvcache.infrastructure.cache.notifier import Listener

log = structlog.get_logger(__name__)


def build_redis_url(
    host: str = "localhost",
    port: int = 6379,
    username: str | None = None,
    password: str | None = None,
    scheme: str = "redis",
) -> str:
    """Build ``scheme://[user[:pass]@]host:port``."""
    auth = ""
    if username:
        auth += quote(username, safe="")
    if password:
        if username:
            auth += ":"
        auth += quote(password, safe="")
    if username or password:
        auth += "@"
    return f"{scheme}://{auth}{host}:{port}"


class RedisCacheAdapter:
    """Async Redis cache.

    - Uses ``redis.asyncio.Redis`` (async-native, string responses).
    - Every operation first ensures a live connection (reconnect on use).
    - Serialization via the canonical JSON codec, shared with the other
      adapters.
    - Credentials are only part of the connection URL; they are dropped from
      ``options`` and never logged.

    Args:
        host: Redis host.
        port: Redis port.
        username: ACL user (optional).
        password: Password (optional).
        db: Logical database index.
        scheme: ``redis`` or ``rediss`` (TLS).
        ttl_seconds: Default TTL.
        client: Pre-built client (skips URL handling; used by tests).
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        username: str | None = None,
        password: str | None = None,
        db: int = 0,
        scheme: str = "redis",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: Redis | None = None,
    ) -> None:
        self._ctx = CacheContext("redis", default_ttl=ttl_seconds)
        self._url = build_redis_url(host, port, username, password, scheme)
        self.options: dict[str, Any] = {
            "host": host,
            "port": port,
            "db": db,
            "scheme": scheme,
            "ttl_seconds": ttl_seconds,
        }
        self.display_url = build_redis_url(host, port, scheme=scheme)
        self._client: Redis | None = client
        self._ready = False
        self._was_connected = False

        log.info(
            "redis_adapter_init",
            url=self.display_url,
            db=db,
            default_ttl=ttl_seconds,
        )

    # --- Context Manager ---
    async def __aenter__(self) -> RedisCacheAdapter:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # --- lifecycle ---
    @property
    def client(self) -> Redis | None:
        return self._client

    @property
    def is_ready(self) -> bool:
        return self._ready and self._client is not None

    @property
    def last_failure(self) -> CacheFailure | None:
        return self._ctx.last_failure

    async def connect(self) -> None:
        """Create the client if needed and verify the server with PING."""
        if self.is_ready:
            return
        if self._was_connected:
            self._ctx.emit("reconnecting")
        if self._client is None:
            self._client = Redis.from_url(
                self._url,
                db=self.options["db"],
                encoding="utf-8",
                decode_responses=True,
            )
        try:
            await self._client.ping()
        except RedisError as e:
            self._ctx.fail("connection", "connect", e)
            self._ctx.emit("error", e)
            log.error("redis_connection_failed", url=self.display_url, error=str(e))
            raise CacheConnectionError(
                f"cannot connect to {self.display_url}: {e}"
            ) from e

        self._ready = True
        self._was_connected = True
        log.info("redis_connected", url=self.display_url)
        self._ctx.emit("connect")

    async def disconnect(self) -> None:
        """Close the connection pool."""
        client, self._client = self._client, None
        self._ready = False
        if client is not None:
            await client.aclose()
            log.info("redis_closed", url=self.display_url)
            self._ctx.emit("disconnect")

    async def _ensure_connected(self) -> Redis:
        if not self.is_ready:
            await self.connect()
        assert self._client is not None
        return self._client

    def _fail(self, kind: FailureKind, operation: str, error: BaseException) -> None:
        if isinstance(error, RedisConnectionError):
            # Next call goes through connect() again.
            self._ready = False
            self._ctx.emit("error", error)
        self._ctx.fail(kind, operation, error)

    def on(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.on(event, listener)

    def off(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.off(event, listener)

    # --- CachePort implementation ---
    async def set(self, key: Any, value: Any, ttl: int | None = None) -> bool:
        """SET with expiry."""
        _key = self._ctx.encode_key(key)
        data = self._ctx.encode(value)
        expire = self._ctx.resolve_ttl(ttl)

        try:
            client = await self._ensure_connected()
            ok = await client.set(_key, data, ex=expire)
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "set", e)
            return False

        if ok:
            self._ctx.emit("set", key, value)
        return bool(ok)

    async def get(self, key: Any) -> Any:
        _key = self._ctx.encode_key(key)
        client = await self._ensure_connected()

        raw = await client.get(_key)
        if raw is None:
            log.debug("cache_miss", key=_key)
            return None
        return self._ctx.decode(raw)

    async def includes(self, key: Any) -> bool:
        """EXISTS check."""
        _key = self._ctx.encode_key(key)
        client = await self._ensure_connected()
        return await client.exists(_key) == 1

    async def delete(self, key: Any) -> int:
        """GETDEL, so the removed value can be reported."""
        _key = self._ctx.encode_key(key)

        try:
            client = await self._ensure_connected()
            raw = await client.getdel(_key)
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "delete", e)
            return 0

        if raw is None:
            return 0
        self._ctx.emit("del", key, self._ctx.decode(raw))
        return 1

    async def clear(self) -> bool:
        """FLUSHALL SYNC (delete ALL keys of every database)."""
        try:
            client = await self._ensure_connected()
            ok = await client.execute_command("FLUSHALL", "SYNC")
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "clear", e)
            return False

        if ok:
            log.warning("redis_flushed", url=self.display_url)
            self._ctx.emit("flush")
        return bool(ok)

    async def keys(self) -> list[Any]:
        try:
            client = await self._ensure_connected()
            raw_keys = await client.keys("*")
        except (CacheConnectionError, RedisError) as e:
            self._fail("read", "keys", e)
            return []
        return [self._ctx.decode(k) for k in raw_keys]

    async def mget(self, keys: Sequence[Any]) -> CacheMap:
        fetch_keys = self._ctx.encode_keys(keys)
        values = self._ctx.new_map()
        if not fetch_keys:
            return values

        client = await self._ensure_connected()
        data = await client.mget(fetch_keys)
        for _key, raw in zip(fetch_keys, data):
            if raw is not None:
                values.add(_key, self._ctx.decode(raw))
        return values

    async def mdel(self, keys: Sequence[Any]) -> int:
        """GETDEL per key inside one MULTI/EXEC."""
        _keys = self._ctx.encode_keys(keys)
        if not _keys:
            return 0

        try:
            client = await self._ensure_connected()
            async with client.pipeline(transaction=True) as pipe:
                for _key in _keys:
                    pipe.getdel(_key)
                removed = await pipe.execute()
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "mdel", e)
            return 0

        count = 0
        for _key, raw in zip(_keys, removed):
            if raw is not None:
                count += 1
                self._ctx.emit("del", self._ctx.decode(_key), self._ctx.decode(raw))
        return count

    async def _expire(self, key: str, ttl: int) -> bool:
        try:
            client = await self._ensure_connected()
            return bool(await client.expire(key, ttl))
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "expire", e)
            return False

    async def mset(
        self,
        keys: Sequence[Any],
        values: Sequence[Any],
        ttl: int | None = None,
    ) -> bool:
        """MSET, then one EXPIRE per key.

        Values stay written if an EXPIRE fails; the call then reports False.
        """
        pairs = self._ctx.pair(keys, values)
        expire = self._ctx.resolve_ttl(ttl)
        if not pairs:
            return True

        try:
            client = await self._ensure_connected()
            ok = await client.mset(dict(pairs))
        except (CacheConnectionError, RedisError) as e:
            self._fail("transient", "mset", e)
            return False
        if not ok:
            return False

        results = await asyncio.gather(*(self._expire(k, expire) for k, _ in pairs))
        for applied, key, value in zip(results, keys, values):
            if applied:
                self._ctx.emit("set", key, value)

        if not all(results):
            log.warning(
                "redis_mset_partial_ttl",
                keys=len(pairs),
                failed=results.count(False),
            )
            return False
        return True

    async def entries(self) -> CacheMap:
        result = self._ctx.new_map()
        try:
            client = await self._ensure_connected()
            raw_keys = await client.keys("*")
            data = await client.mget(raw_keys) if raw_keys else []
        except (CacheConnectionError, RedisError) as e:
            self._fail("read", "entries", e)
            return result

        for _key, raw in zip(raw_keys, data):
            if raw is not None:
                result.add(_key, self._ctx.decode(raw))
        return result

    async def ttl(self, key: Any, ttl: int | None = None) -> bool:
        """EXPIRE; False when the key does not exist."""
        _key = self._ctx.encode_key(key)
        expire = self._ctx.resolve_ttl(ttl)
        return await self._expire(_key, expire)

    async def get_ttl(self, key: Any) -> int | None:
        _key = self._ctx.encode_key(key)
        client = await self._ensure_connected()

        result = await client.ttl(_key)
        if result >= 0:
            return result
        return None

    async def take(self, key: Any) -> Any:
        """GETDEL (atomic on the server)."""
        _key = self._ctx.encode_key(key)
        client = await self._ensure_connected()

        raw = await client.getdel(_key)
        if raw is None:
            return None
        value = self._ctx.decode(raw)
        self._ctx.emit("del", key, value)
        return value
