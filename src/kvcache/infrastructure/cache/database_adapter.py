"""Database adapter - SQL table cache via SQLAlchemy (asyncio)."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.schema import CreateTable
from sqlalchemy.sql.dml import Delete

from kvcache.domain.entities.cache import (
    DEFAULT_TTL_SECONDS,
    MAX_KEY_BYTES,
    CacheEvent,
    CacheFailure,
)
from kvcache.domain.exceptions import CacheConnectionError
from kvcache.infrastructure.cache.codec import CacheMap
from kvcache.infrastructure.cache.context import CacheContext
from kvcache.infrastructure.cache.notifier import Listener
from kvcache.infrastructure.cache.sweeper import Sweeper

log = structlog.get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///kvcache.sqlite3"
DEFAULT_TABLE_NAME = "cache"


def _now() -> int:
    return int(time.time())


def build_cache_table(name: str, metadata: MetaData | None = None) -> Table:
    """Table layout: key (primary key), value, expiration (epoch seconds)."""
    return Table(
        name,
        metadata or MetaData(),
        Column("key", String(MAX_KEY_BYTES), primary_key=True),
        Column("value", Text, nullable=False),
        Column("expiration", Integer, nullable=False),
    )


class DatabaseCacheAdapter:
    """Async SQL-backed cache.

    - The table is created lazily (``CREATE TABLE IF NOT EXISTS``) by the
      first operation, not by the constructor.
    - Every read filters ``expiration >= now``; a Sweeper deletes expired rows
      in the background, best effort.
    - ``set``/``mset`` upsert by primary key using the dialect's native
      conflict clause where one exists.

    Args:
        url: SQLAlchemy async URL (default: local SQLite file via aiosqlite).
        table_name: Cache table name.
        ttl_seconds: Default TTL.
        check_period_seconds: Sweep interval (default: ttl_seconds / 10).
        echo: Log SQL statements (SQLAlchemy engine echo).
        engine: Pre-built engine; the adapter takes ownership of it.
    """

    def __init__(
        self,
        url: str = DEFAULT_DATABASE_URL,
        table_name: str = DEFAULT_TABLE_NAME,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        check_period_seconds: float | None = None,
        echo: bool = False,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._ctx = CacheContext("database", default_ttl=ttl_seconds)
        self.client: AsyncEngine = engine or create_async_engine(url, echo=echo)
        self.table_name = table_name
        self.table = build_cache_table(table_name)
        self.check_period = check_period_seconds or ttl_seconds / 10
        self._sweeper = Sweeper(f"database:{table_name}", self.check_period, self.sweep)
        self._ready = False
        self._ready_lock = asyncio.Lock()

        self._key = self.table.c["key"]
        self._value = self.table.c["value"]
        self._expiration = self.table.c["expiration"]

        log.info(
            "database_adapter_init",
            dialect=self.client.dialect.name,
            table=table_name,
            default_ttl=ttl_seconds,
            check_period=self.check_period,
        )

    # --- Context Manager ---
    async def __aenter__(self) -> DatabaseCacheAdapter:
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
        await self._ensure_ready()

    async def disconnect(self) -> None:
        """Stop the sweep loop and close pooled connections."""
        was_ready = self._ready
        self._ready = False
        await self._sweeper.stop()
        await self.client.dispose()
        if was_ready:
            log.info("database_closed", table=self.table_name)
            self._ctx.emit("disconnect")

    async def _ensure_ready(self) -> None:
        """Create the cache table on first use and start the sweep loop.

        Concurrent first calls wait on one lock; only the first runs the DDL.
        """
        if self._ready:
            return
        async with self._ready_lock:
            if self._ready:
                return
            try:
                async with self.client.begin() as conn:
                    await conn.execute(CreateTable(self.table, if_not_exists=True))
            except SQLAlchemyError as e:
                self._ctx.fail("connection", "connect", e)
                self._ctx.emit("error", e)
                log.error(
                    "database_connection_failed", table=self.table_name, error=str(e)
                )
                raise CacheConnectionError(
                    f"cannot prepare cache table {self.table_name!r}: {e}"
                ) from e

            self._ready = True
        self._sweeper.start()
        log.info("database_ready", table=self.table_name)
        self._ctx.emit("connect")

    async def sweep(self) -> int:
        """Delete expired rows. Returns the number of rows removed."""
        async with self.client.begin() as conn:
            result = await conn.execute(
                delete(self.table).where(self._expiration < _now())
            )
        if result.rowcount:
            log.debug("database_sweep", table=self.table_name, expired=result.rowcount)
        return result.rowcount

    def on(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.on(event, listener)

    def off(self, event: CacheEvent, listener: Listener) -> None:
        self._ctx.off(event, listener)

    # --- SQL helpers ---
    async def _upsert(self, conn: AsyncConnection, rows: list[dict[str, Any]]) -> None:
        dialect = self.client.dialect.name
        if dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                from sqlalchemy.dialects.postgresql import insert
            stmt = insert(self.table)
            stmt = stmt.on_conflict_do_update(
                index_elements=[self._key],
                set_={
                    "value": stmt.excluded["value"],
                    "expiration": stmt.excluded["expiration"],
                },
            )
            await conn.execute(stmt, rows)
        elif dialect in ("mysql", "mariadb"):
            from sqlalchemy.dialects.mysql import insert as mysql_insert

            mstmt = mysql_insert(self.table)
            mstmt = mstmt.on_duplicate_key_update(
                value=mstmt.inserted["value"],
                expiration=mstmt.inserted["expiration"],
            )
            await conn.execute(mstmt, rows)
        else:
            await conn.execute(
                delete(self.table).where(self._key.in_([r["key"] for r in rows]))
            )
            await conn.execute(self.table.insert(), rows)

    def _delete_live(self, encoded_key: str, now: int) -> Delete:
        """DELETE of one unexpired row; expired rows are left to the sweep."""
        return delete(self.table).where(
            self._key == encoded_key, self._expiration >= now
        )

    async def _fetch(self, encoded_keys: list[str]) -> CacheMap:
        values = self._ctx.new_map()
        if not encoded_keys:
            return values
        stmt = select(self._key, self._value).where(
            self._key.in_(encoded_keys), self._expiration >= _now()
        )
        async with self.client.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        for _key, data in rows:
            values.add(_key, self._ctx.decode(data))
        return values

    # --- CachePort implementation ---
    async def set(self, key: Any, value: Any, ttl: int | None = None) -> bool:
        _key = self._ctx.encode_key(key)
        row = {
            "key": _key,
            "value": self._ctx.encode(value),
            "expiration": _now() + self._ctx.resolve_ttl(ttl),
        }

        try:
            await self._ensure_ready()
            async with self.client.begin() as conn:
                await self._upsert(conn, [row])
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "set", e)
            return False

        self._ctx.emit("set", key, value)
        return True

    async def get(self, key: Any) -> Any:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        stmt = select(self._value).where(
            self._key == _key, self._expiration >= _now()
        )
        async with self.client.connect() as conn:
            data = (await conn.execute(stmt)).scalar_one_or_none()

        if data is None:
            return None
        return self._ctx.decode(data)

    async def includes(self, key: Any) -> bool:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        stmt = select(self._key).where(self._key == _key, self._expiration >= _now())
        async with self.client.connect() as conn:
            return (await conn.execute(stmt)).first() is not None

    async def delete(self, key: Any) -> int:
        _key = self._ctx.encode_key(key)

        try:
            await self._ensure_ready()
            current = await self._fetch([_key])
            async with self.client.begin() as conn:
                result = await conn.execute(self._delete_live(_key, _now()))
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "delete", e)
            return 0

        if result.rowcount:
            self._ctx.emit("del", key, current.get(key))
        return result.rowcount

    async def clear(self) -> bool:
        try:
            await self._ensure_ready()
            async with self.client.begin() as conn:
                await conn.execute(delete(self.table))
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "clear", e)
            return False

        log.warning("database_cleared", table=self.table_name)
        self._ctx.emit("flush")
        return True

    async def keys(self) -> list[Any]:
        """Unexpired keys ordered by their encoded form."""
        stmt = (
            select(self._key)
            .where(self._expiration >= _now())
            .order_by(self._key)
        )
        try:
            await self._ensure_ready()
            async with self.client.connect() as conn:
                rows = (await conn.execute(stmt)).scalars().all()
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("read", "keys", e)
            return []
        return [self._ctx.decode(k) for k in rows]

    async def mget(self, keys: Sequence[Any]) -> CacheMap:
        fetch_keys = self._ctx.encode_keys(keys)
        await self._ensure_ready()
        return await self._fetch(fetch_keys)

    async def mdel(self, keys: Sequence[Any]) -> int:
        """One DELETE per key, all inside a single transaction."""
        _keys = self._ctx.encode_keys(keys)
        if not _keys:
            return 0

        try:
            await self._ensure_ready()
            current = await self._fetch(_keys)
            now = _now()
            removed: list[str] = []
            async with self.client.begin() as conn:
                for _key in dict.fromkeys(_keys):
                    result = await conn.execute(self._delete_live(_key, now))
                    if result.rowcount:
                        removed.append(_key)
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "mdel", e)
            return 0

        for _key in removed:
            key = self._ctx.decode(_key)
            self._ctx.emit("del", key, current.get(key))
        return len(removed)

    async def mset(
        self,
        keys: Sequence[Any],
        values: Sequence[Any],
        ttl: int | None = None,
    ) -> bool:
        pairs = self._ctx.pair(keys, values)
        expiration = _now() + self._ctx.resolve_ttl(ttl)
        if not pairs:
            return True
        # Last write wins for repeated keys, as with sequential sets.
        rows = {
            _key: {"key": _key, "value": data, "expiration": expiration}
            for _key, data in pairs
        }

        try:
            await self._ensure_ready()
            async with self.client.begin() as conn:
                await self._upsert(conn, list(rows.values()))
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "mset", e)
            return False

        for key, value in zip(keys, values):
            self._ctx.emit("set", key, value)
        return True

    async def entries(self) -> CacheMap:
        result = self._ctx.new_map()
        stmt = select(self._key, self._value).where(self._expiration >= _now())
        try:
            await self._ensure_ready()
            async with self.client.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("read", "entries", e)
            return result

        for _key, data in rows:
            result.add(_key, self._ctx.decode(data))
        return result

    async def ttl(self, key: Any, ttl: int | None = None) -> bool:
        """Move the expiration of an unexpired row."""
        _key = self._ctx.encode_key(key)
        now = _now()
        stmt = (
            update(self.table)
            .where(self._key == _key, self._expiration >= now)
            .values(expiration=now + self._ctx.resolve_ttl(ttl))
        )

        try:
            await self._ensure_ready()
            async with self.client.begin() as conn:
                result = await conn.execute(stmt)
        except (CacheConnectionError, SQLAlchemyError) as e:
            self._ctx.fail("transient", "ttl", e)
            return False
        return result.rowcount != 0

    async def get_ttl(self, key: Any) -> int | None:
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        now = _now()
        stmt = select(self._expiration).where(
            self._key == _key, self._expiration >= now
        )
        async with self.client.connect() as conn:
            expiration = (await conn.execute(stmt)).scalar_one_or_none()

        if expiration is None:
            return None
        # A row stays live through its expiration second.
        return max(expiration - now, 1)

    async def take(self, key: Any) -> Any:
        """SELECT ... FOR UPDATE and DELETE in one transaction.

        Only the caller whose DELETE removed the row gets the value; SQLite
        ignores FOR UPDATE, so the row count decides concurrent takes.
        """
        _key = self._ctx.encode_key(key)
        await self._ensure_ready()

        now = _now()
        stmt = (
            select(self._value)
            .where(self._key == _key, self._expiration >= now)
            .with_for_update()
        )
        async with self.client.begin() as conn:
            data = (await conn.execute(stmt)).scalar_one_or_none()
            if data is None:
                return None
            result = await conn.execute(self._delete_live(_key, now))
            if not result.rowcount:
                return None

        value = self._ctx.decode(data)
        self._ctx.emit("del", key, value)
        return value
