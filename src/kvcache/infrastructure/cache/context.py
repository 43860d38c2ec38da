"""Shared plumbing composed into every cache adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from kvcache.domain.entities.cache import (
    DEFAULT_TTL_SECONDS,
    CacheEvent,
    CacheFailure,
    FailureKind,
)
from kvcache.domain.exceptions import CacheValidationError, LengthMismatchError
from kvcache.infrastructure.cache.codec import CacheMap, JsonCodec
from kvcache.infrastructure.cache.notifier import Listener, Notifier

log = structlog.get_logger(__name__)


class CacheContext:
    """Codec, notifications, TTL policy and failure bookkeeping for one adapter.

    Adapters hold a context instead of inheriting from a common base class.

    Args:
        backend: Backend name used in logs and notifications.
        default_ttl: TTL applied when a call passes ``ttl=None``.
        codec: Key/value codec (default: canonical JSON).
    """

    def __init__(
        self,
        backend: str,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        codec: JsonCodec | None = None,
    ) -> None:
        self.backend = backend
        self.default_ttl = self._check_ttl(default_ttl)
        self.codec = codec or JsonCodec()
        self.notifier = Notifier(backend)
        self.last_failure: CacheFailure | None = None

    @staticmethod
    def _check_ttl(ttl: int) -> int:
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise CacheValidationError(f"ttl must be a positive integer, got {ttl!r}")
        return ttl

    def resolve_ttl(self, ttl: int | None) -> int:
        return self.default_ttl if ttl is None else self._check_ttl(ttl)

    # --- codec shortcuts ---
    def encode_key(self, key: Any) -> str:
        return self.codec.encode_key(key)

    def encode_keys(self, keys: Sequence[Any]) -> list[str]:
        return self.codec.encode_keys(keys)

    def encode(self, value: Any) -> str:
        return self.codec.encode(value)

    def decode(self, data: str | bytes) -> Any:
        return self.codec.decode(data)

    def new_map(self) -> CacheMap:
        return CacheMap(self.codec)

    def pair(
        self, keys: Sequence[Any], values: Sequence[Any]
    ) -> list[tuple[str, str]]:
        """Encode bulk keys/values; all validation happens before any write."""
        if len(keys) != len(values):
            raise LengthMismatchError(len(keys), len(values))
        encoded_keys = self.encode_keys(keys)
        return list(zip(encoded_keys, (self.encode(v) for v in values)))

    # --- notifications ---
    def on(self, event: CacheEvent, listener: Listener) -> None:
        self.notifier.on(event, listener)

    def off(self, event: CacheEvent, listener: Listener) -> None:
        self.notifier.off(event, listener)

    def emit(self, event: CacheEvent, *args: Any) -> None:
        self.notifier.emit(event, *args)

    # --- failures ---
    def fail(
        self, kind: FailureKind, operation: str, error: BaseException
    ) -> CacheFailure:
        """Record a failure that is reported to the caller as a falsy result."""
        failure = CacheFailure(kind=kind, operation=operation, error=error)
        self.last_failure = failure
        log.warning(
            "cache_operation_failed",
            backend=self.backend,
            kind=kind,
            operation=operation,
            error=failure.message,
        )
        return failure
