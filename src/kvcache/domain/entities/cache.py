from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, get_args

CacheEvent = Literal[
    "set",
    "del",
    "expired",
    "flush",
    "connect",
    "disconnect",
    "reconnecting",
    "error",
]

CACHE_EVENTS: frozenset[str] = frozenset(get_args(CacheEvent))

FailureKind = Literal["transient", "read", "connection"]

DEFAULT_TTL_SECONDS: int = 300
MAX_KEY_BYTES: int = 255


@dataclass(frozen=True)
class Entry:
    """Encoded value plus its absolute expiration (epoch seconds)."""

    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> int:
        # Whole seconds, rounded up so a live entry never reports 0.
        return math.ceil(self.expires_at - now)


@dataclass(frozen=True)
class CacheFailure:
    """A failure that was converted into a falsy result instead of raised."""

    kind: FailureKind
    operation: str
    error: BaseException

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"
