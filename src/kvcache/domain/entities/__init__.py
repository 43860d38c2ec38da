from .cache import (
    CACHE_EVENTS,
    DEFAULT_TTL_SECONDS,
    MAX_KEY_BYTES,
    CacheEvent,
    CacheFailure,
    Entry,
    FailureKind,
)

__all__ = [
    "CACHE_EVENTS",
    "DEFAULT_TTL_SECONDS",
    "MAX_KEY_BYTES",
    "CacheEvent",
    "CacheFailure",
    "Entry",
    "FailureKind",
]
