"""Integration tests for configuration loading with layered precedence.

Tests the real load_config() function with actual YAML files, environment
variables, and CLI overrides to verify precedence: defaults < YAML < ENV < CLI.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from kvcache.infrastructure.config.load import load_config

pytestmark = pytest.mark.integration


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    """Write a minimal YAML config and return its path."""
    config = {
        "app_name": "kvcache-test",
        "environment": "test",
        "logging": {"level": "DEBUG", "format": "console"},
        "cache": {"backend": "database"},
        "database": {
            "url": f"sqlite+aiosqlite:///{tmp_path / 'cache.sqlite3'}",
            "table_name": "test_cache",
            "ttl_seconds": 1800,
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


class TestDefaultsOnly:
    """Load with no YAML, no ENV, no CLI: pure defaults."""

    def test_defaults_produce_valid_config(self) -> None:
        config = load_config()
        assert config.app_name == "kvcache"
        assert config.environment == "dev"
        assert config.log_level == "INFO"
        assert config.log_format == "console"  # dev → console
        assert config.backend == "memory"
        assert config.memory.ttl_seconds == 300
        assert config.memory.check_period_seconds == 30

    def test_defaults_derive_log_format_from_environment(self) -> None:
        config = load_config(cli_overrides={"environment": "prod"})
        assert config.log_format == "json"


class TestYamlOverrides:
    """YAML values override defaults."""

    def test_yaml_overrides_defaults(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.app_name == "kvcache-test"
        assert config.environment == "test"
        assert config.log_level == "DEBUG"
        assert config.backend == "database"
        assert config.database.table_name == "test_cache"
        assert config.database.ttl_seconds == 1800
        assert config.database.check_period_seconds == 180

    def test_yaml_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nonexistent.yaml")

    def test_empty_yaml_keeps_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(config_path=path).backend == "memory"

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=path)

    def test_yaml_partial_section_preserves_defaults(
        self, tmp_path: Path
    ) -> None:
        """YAML that only sets redis.host keeps other redis defaults."""
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.dump({"redis": {"host": "cache.lan"}}), encoding="utf-8")

        config = load_config(config_path=path)
        assert config.redis.host == "cache.lan"
        assert config.redis.port == 6379  # default preserved
        assert config.app_name == "kvcache"  # default preserved


class TestEnvOverrides:
    """Environment variables override YAML and defaults."""

    def test_env_overrides_yaml(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("KVCACHE_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("KVCACHE_BACKEND", "redis")

        config = load_config(config_path=yaml_config)
        assert config.log_level == "WARNING"
        assert config.backend == "redis"
        # YAML values not overridden by ENV stay
        assert config.app_name == "kvcache-test"

    def test_env_overrides_defaults(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("KVCACHE_ENVIRONMENT", "prod")

        config = load_config()
        assert config.environment == "prod"
        assert config.log_format == "json"  # prod → json

    def test_backend_section_read_from_env(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MEMORY_CACHE_TTL_SECONDS", "90")
        assert load_config().memory.ttl_seconds == 90

    def test_dotenv_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("KVCACHE_LOG_LEVEL", raising=False)
        dotenv = tmp_path / ".env"
        dotenv.write_text("KVCACHE_LOG_LEVEL=ERROR\n", encoding="utf-8")
        config = load_config(dotenv_path=dotenv)
        assert config.log_level == "ERROR"

    def test_dotenv_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / "missing.env")


class TestCliOverrides:
    """CLI overrides beat everything (highest precedence)."""

    def test_cli_overrides_yaml_and_env(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("KVCACHE_LOG_LEVEL", "WARNING")

        config = load_config(
            config_path=yaml_config,
            cli_overrides={"log_level": "ERROR"},
        )
        assert config.log_level == "ERROR"

    def test_cli_overrides_with_sectioned_format(
        self, yaml_config: Path
    ) -> None:
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"cache": {"backend": "memory"}},
        )
        assert config.backend == "memory"

    def test_cli_section_merges_into_yaml_section(
        self, yaml_config: Path
    ) -> None:
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"database": {"ttl_seconds": 60}},
        )
        assert config.database.ttl_seconds == 60
        assert config.database.table_name == "test_cache"

    def test_cli_overrides_defaults_without_yaml(self) -> None:
        config = load_config(
            cli_overrides={"app_name": "custom-app", "environment": "prod"},
        )
        assert config.app_name == "custom-app"
        assert config.environment == "prod"
        assert config.log_format == "json"
