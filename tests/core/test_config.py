"""Tests for settings models and loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from datasubjects.core.config import (
    DatabaseSettings,
    DataSubjectsSettings,
    ExportSettings,
    LoggingSettings,
    _expand_env_vars,
    load_settings,
)


class TestSettingsModels:
    def test_defaults(self) -> None:
        settings = DataSubjectsSettings(database=DatabaseSettings(url="sqlite:///:memory:"))

        assert settings.database.table_prefix == ""
        assert settings.database.echo is False
        assert settings.export.max_workers == 1
        assert settings.logging.level == "INFO"
        assert settings.logging.json_output is False

    def test_frozen(self) -> None:
        settings = DatabaseSettings(url="sqlite:///:memory:")
        with pytest.raises(ValidationError):
            settings.url = "sqlite:///other.db"  # type: ignore[misc]

    @pytest.mark.parametrize("prefix", ["matomo_", "piwik", "", "A1_"])
    def test_valid_table_prefixes(self, prefix: str) -> None:
        assert DatabaseSettings(url="sqlite://", table_prefix=prefix).table_prefix == prefix

    @pytest.mark.parametrize("prefix", ["bad-prefix", "drop table;", "a.b"])
    def test_invalid_table_prefixes(self, prefix: str) -> None:
        with pytest.raises(ValidationError, match="table_prefix"):
            DatabaseSettings(url="sqlite://", table_prefix=prefix)

    def test_max_workers_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ExportSettings(max_workers=0)

    def test_log_level_normalized(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"  # type: ignore[arg-type]

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(level="TRACE")  # type: ignore[arg-type]

    def test_database_required(self) -> None:
        with pytest.raises(ValidationError, match="database"):
            DataSubjectsSettings()  # type: ignore[call-arg]


class TestLoadSettings:
    def test_load_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text(
            "database:\n"
            "  url: sqlite:///logs.db\n"
            "  table_prefix: matomo_\n"
            "export:\n"
            "  max_workers: 4\n"
            "logging:\n"
            "  level: warning\n"
        )

        settings = load_settings(config)

        assert settings.database.url == "sqlite:///logs.db"
        assert settings.database.table_prefix == "matomo_"
        assert settings.export.max_workers == 4
        assert settings.logging.level == "WARNING"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_contents(self, tmp_path: Path) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("export:\n  max_workers: 2\n")

        with pytest.raises(ValidationError):
            load_settings(config)

    def test_environment_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("database:\n  url: sqlite:///file.db\n")
        monkeypatch.setenv("DATASUBJECTS_DATABASE__TABLE_PREFIX", "env_")

        settings = load_settings(config)

        assert settings.database.url == "sqlite:///file.db"
        assert settings.database.table_prefix == "env_"

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text('database:\n  url: "${LOG_DB_URL}"\n  table_prefix: "${LOG_PREFIX:-matomo_}"\n')
        monkeypatch.setenv("LOG_DB_URL", "postgresql://user:pass@db/matomo")
        monkeypatch.delenv("LOG_PREFIX", raising=False)

        settings = load_settings(config)

        assert settings.database.url == "postgresql://user:pass@db/matomo"
        assert settings.database.table_prefix == "matomo_"


class TestExpandEnvVars:
    def test_unset_without_default_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATASUBJECTS_TEST_UNSET", raising=False)
        assert _expand_env_vars({"a": "${DATASUBJECTS_TEST_UNSET}"}) == {"a": "${DATASUBJECTS_TEST_UNSET}"}

    def test_nested_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATASUBJECTS_TEST_HOST", "db")
        expanded = _expand_env_vars({"a": {"b": ["x-${DATASUBJECTS_TEST_HOST}", 3]}})
        assert expanded == {"a": {"b": ["x-db", 3]}}
