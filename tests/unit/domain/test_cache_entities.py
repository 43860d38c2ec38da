"""Tests for cache domain entities and exceptions."""

from __future__ import annotations

import dataclasses

import pytest

from kvcache.domain.entities import (
    CACHE_EVENTS,
    DEFAULT_TTL_SECONDS,
    MAX_KEY_BYTES,
    CacheFailure,
    Entry,
)
from kvcache.domain.exceptions import (
    CacheConnectionError,
    CacheEncodingError,
    CacheError,
    CacheValidationError,
    KeySizeError,
    LengthMismatchError,
)


class TestConstants:
    def test_defaults(self) -> None:
        assert DEFAULT_TTL_SECONDS == 300
        assert MAX_KEY_BYTES == 255

    def test_event_names(self) -> None:
        assert CACHE_EVENTS == {
            "set",
            "del",
            "expired",
            "flush",
            "connect",
            "disconnect",
            "reconnecting",
            "error",
        }


class TestEntry:
    def test_not_expired_before_deadline(self) -> None:
        entry = Entry(value='"v"', expires_at=100.0)
        assert entry.is_expired(99.9) is False

    def test_expired_at_deadline(self) -> None:
        entry = Entry(value='"v"', expires_at=100.0)
        assert entry.is_expired(100.0) is True

    def test_remaining_rounds_up(self) -> None:
        entry = Entry(value='"v"', expires_at=100.0)
        assert entry.remaining(99.5) == 1
        assert entry.remaining(40.0) == 60

    def test_frozen(self) -> None:
        entry = Entry(value='"v"', expires_at=100.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.value = "x"  # type: ignore[misc]


class TestCacheFailure:
    def test_message_includes_error_type(self) -> None:
        failure = CacheFailure(
            kind="transient", operation="set", error=TimeoutError("slow")
        )
        assert failure.message == "TimeoutError: slow"


class TestExceptions:
    def test_validation_errors_are_value_errors(self) -> None:
        for exc in (
            KeySizeError(300, 255),
            LengthMismatchError(2, 1),
            CacheEncodingError("nope"),
        ):
            assert isinstance(exc, CacheValidationError)
            assert isinstance(exc, ValueError)
            assert isinstance(exc, CacheError)

    def test_connection_error_is_not_validation(self) -> None:
        exc = CacheConnectionError("down")
        assert isinstance(exc, CacheError)
        assert not isinstance(exc, ValueError)

    def test_key_size_error_fields(self) -> None:
        exc = KeySizeError(300, 255)
        assert exc.size == 300
        assert exc.limit == 255
        assert "300 > 255" in str(exc)

    def test_length_mismatch_fields(self) -> None:
        exc = LengthMismatchError(3, 2)
        assert (exc.keys, exc.values) == (3, 2)
        assert "3 != 2" in str(exc)
