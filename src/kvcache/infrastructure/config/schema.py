"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kvcache.domain.entities.cache import DEFAULT_TTL_SECONDS

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackendName = Literal["memory", "redis", "database"]


def _positive_ttl(v: int) -> int:
    if v <= 0:
        raise ValueError("ttl_seconds must be > 0")
    return v


class MemoryCacheSettings(BaseSettings):
    """In-process cache settings."""

    ttl_seconds: int = Field(
        default=DEFAULT_TTL_SECONDS,
        description="Default TTL for cache entries (seconds)",
    )
    check_period_seconds: Optional[float] = Field(
        default=None,
        description="Sweep interval for expired entries. Unset = ttl / 10.",
    )
    max_keys: Optional[int] = Field(
        default=None,
        description="Maximum number of entries (LRU drop beyond). Unset = unbounded.",
    )

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_CACHE_",  # MEMORY_CACHE_TTL_SECONDS, ...
        case_sensitive=False,
    )

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        return _positive_ttl(v)

    @model_validator(mode="after")
    def _derive_check_period(self) -> "MemoryCacheSettings":
        if self.check_period_seconds is None:
            self.check_period_seconds = self.ttl_seconds / 10
        return self


class RedisCacheSettings(BaseSettings):
    """Remote (Redis) cache settings."""

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    username: Optional[str] = Field(default=None, description="ACL username")
    password: Optional[str] = Field(default=None, description="Password")
    db: int = Field(default=0, description="Logical database index")
    scheme: Literal["redis", "rediss"] = Field(
        default="redis",
        description="URL scheme ('rediss' = TLS)",
    )
    ttl_seconds: int = Field(
        default=DEFAULT_TTL_SECONDS,
        description="Default TTL for cache entries (seconds)",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",  # REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, ...
        case_sensitive=False,
    )

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        return _positive_ttl(v)


class DatabaseCacheSettings(BaseSettings):
    """Relational cache settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///kvcache.sqlite3",
        description="SQLAlchemy async database URL",
    )
    table_name: str = Field(default="cache", description="Cache table name")
    ttl_seconds: int = Field(
        default=DEFAULT_TTL_SECONDS,
        description="Default TTL for cache entries (seconds)",
    )
    check_period_seconds: Optional[float] = Field(
        default=None,
        description="Sweep interval for expired rows. Unset = ttl / 10.",
    )
    echo: bool = Field(default=False, description="Log emitted SQL")

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",  # DATABASE_URL, DATABASE_TABLE_NAME, ...
        case_sensitive=False,
    )

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        return _positive_ttl(v)

    @model_validator(mode="after")
    def _derive_check_period(self) -> "DatabaseCacheSettings":
        if self.check_period_seconds is None:
            self.check_period_seconds = self.ttl_seconds / 10
        return self


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (logging/cache/memory/redis/database).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    app_name: str = Field(default="kvcache", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    log_level: LogLevel = Field(default="INFO", description="Log level.")
    log_format: Optional[LogFormat] = Field(
        default=None,
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    backend: CacheBackendName = Field(
        default="memory",
        description="Cache backend built by create_cache().",
    )

    memory: MemoryCacheSettings = Field(default_factory=MemoryCacheSettings)
    redis: RedisCacheSettings = Field(default_factory=RedisCacheSettings)
    database: DatabaseCacheSettings = Field(default_factory=DatabaseCacheSettings)

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.

        Credentials are left out.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {"backend": self.backend},
            "memory": self.memory.model_dump(),
            "redis": self.redis.model_dump(exclude={"username", "password"}),
            "database": self.database.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read KVCACHE_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Backend sections read their own prefixes (REDIS_*, DATABASE_*,
    MEMORY_CACHE_*) when not given in YAML.

    Supported env var examples:
    - KVCACHE_ENVIRONMENT
    - KVCACHE_LOG_LEVEL
    - KVCACHE_BACKEND
    """

    model_config = SettingsConfigDict(
        env_prefix="KVCACHE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    backend: Optional[CacheBackendName] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
