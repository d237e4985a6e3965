"""Tests for pydantic-settings configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from annosync.config import LlmConfig, Settings, SyncConfig, get_settings

if TYPE_CHECKING:
    from pytest import LogCaptureFixture


def _clear_env(monkeypatch: pytest.MonkeyPatch, *prefixes: str) -> None:
    for key in list(os.environ):
        if key.startswith(prefixes):
            monkeypatch.delenv(key, raising=False)


class TestSyncConfig:
    """SyncConfig sub-model tests."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _clear_env(monkeypatch, "SYNC__")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.sync.debounce_seconds == 0.3
        assert s.sync.removal_grace_seconds == 0.5
        assert s.sync.modification_timeout_seconds == 0.5
        assert s.sync.fallback_label == "claim"

    def test_override_via_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """SYNC__DEBOUNCE_SECONDS env var overrides the default."""
        monkeypatch.setenv("SYNC__DEBOUNCE_SECONDS", "1.5")
        monkeypatch.setenv("SYNC__FALLBACK_LABEL", "evidence")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.sync.debounce_seconds == 1.5
        assert s.sync.fallback_label == "evidence"

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SyncConfig(modification_timeout_seconds=0)


class TestLlmConfig:
    def test_api_key_is_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM__API_KEY", "sk-test")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.llm.api_key.get_secret_value() == "sk-test"
        assert "sk-test" not in repr(s)

    def test_temperature_bounds(self) -> None:
        with pytest.raises(ValidationError):
            LlmConfig(temperature=1.5)


class TestOtherSections:
    def test_catalog_path_and_database(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LABELS__CATALOG_PATH", "/tmp/labels.json")
        monkeypatch.setenv("DATABASE__URL", "sqlite+aiosqlite:///annosync.db")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.labels.catalog_path == Path("/tmp/labels.json")
        assert s.database.url == "sqlite+aiosqlite:///annosync.db"

    def test_unknown_env_vars_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UNRELATED__THING", "x")
        Settings(_env_file=None)  # type: ignore[call-arg]


class TestGetSettings:
    def test_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_logs_env_source(self, caplog: LogCaptureFixture) -> None:
        with caplog.at_level("INFO", logger="annosync.config"):
            get_settings()
        assert "Settings" in caplog.text
