"""Canonical JSON codec for cache keys and values."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from kvcache.domain.entities.cache import MAX_KEY_BYTES
from kvcache.domain.exceptions import CacheEncodingError, KeySizeError


class JsonCodec:
    """Serializes keys/values to canonical JSON and back.

    Object members are sorted and separators are compact, so two logically
    equal keys always produce the same string and collide as cache keys.

    Args:
        max_key_bytes: Upper bound for an encoded key (UTF-8 bytes).
    """

    def __init__(self, max_key_bytes: int = MAX_KEY_BYTES) -> None:
        self.max_key_bytes = max_key_bytes

    def encode(self, value: Any) -> str:
        try:
            return json.dumps(
                value,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise CacheEncodingError(
                f"cannot encode {type(value).__name__}: {e}"
            ) from e

    def decode(self, data: str | bytes) -> Any:
        return json.loads(data)

    def encode_key(self, key: Any) -> str:
        """Encode a key and enforce the key size limit."""
        encoded = self.encode(key)
        size = len(encoded.encode("utf-8"))
        if size > self.max_key_bytes:
            raise KeySizeError(size, self.max_key_bytes)
        return encoded

    def encode_keys(self, keys: Sequence[Any]) -> list[str]:
        # Validate every key before the caller touches the backend.
        return [self.encode_key(key) for key in keys]


class CacheMap(Mapping[Any, Any]):
    """Read-only mapping returned by bulk reads.

    Entries are stored under their encoded key, so keys that Python cannot
    hash (dicts, lists) still work for lookup, membership and equality:

        >>> result = await cache.mget([{"id": 1}])
        >>> result[{"id": 1}]
    """

    def __init__(self, codec: JsonCodec) -> None:
        self._codec = codec
        self._data: dict[str, tuple[Any, Any]] = {}

    def add(self, encoded_key: str, value: Any) -> None:
        """Insert a decoded value under an already encoded key."""
        self._data[encoded_key] = (self._codec.decode(encoded_key), value)

    def _lookup(self, key: Any) -> str | None:
        try:
            return self._codec.encode(key)
        except CacheEncodingError:
            return None

    def __getitem__(self, key: Any) -> Any:
        encoded = self._lookup(key)
        if encoded is None or encoded not in self._data:
            raise KeyError(key)
        return self._data[encoded][1]

    def __contains__(self, key: object) -> bool:
        encoded = self._lookup(key)
        return encoded is not None and encoded in self._data

    def __iter__(self) -> Iterator[Any]:
        for key, _ in self._data.values():
            yield key

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        if len(other) != len(self):
            return False
        for key, value in other.items():
            encoded = self._lookup(key)
            if encoded is None or encoded not in self._data:
                return False
            if self._data[encoded][1] != value:
                return False
        return True

    def __repr__(self) -> str:
        pairs = ", ".join(f"{k!r}: {v!r}" for k, v in self._data.values())
        return f"CacheMap({{{pairs}}})"
