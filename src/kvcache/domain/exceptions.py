"""Cache exceptions."""

from __future__ import annotations


class CacheError(Exception):
    """Base class for all cache errors."""


class CacheValidationError(CacheError, ValueError):
    """Raised when a call is rejected before touching the backend."""


class KeySizeError(CacheValidationError):
    """Raised when an encoded key exceeds the maximum key size."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"key exceeds maximum allowable size ({size} > {limit} bytes)"
        )
        self.size = size
        self.limit = limit


class LengthMismatchError(CacheValidationError):
    """Raised when bulk keys and values differ in length."""

    def __init__(self, keys: int, values: int) -> None:
        super().__init__(
            f"keys and values lengths must match ({keys} != {values})"
        )
        self.keys = keys
        self.values = values


class CacheEncodingError(CacheValidationError):
    """Raised when a key or value cannot be represented by the codec."""


class CacheConnectionError(CacheError):
    """Raised when a backend cannot establish or re-establish its connection."""
