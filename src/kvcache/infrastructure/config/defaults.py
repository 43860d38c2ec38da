"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

# Backend sections (memory/redis/database) are deliberately absent: when no
# layer provides them, their settings classes read REDIS_*, DATABASE_* and
# MEMORY_CACHE_* from the environment.
DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "kvcache",
    "environment": "dev",
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "memory",
    },
}
