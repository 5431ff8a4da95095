"""Unit tests for settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dandi.config import Settings, get_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DANDI_DATABASE__URL")
    monkeypatch.delenv("DANDI_IDENTITY__SESSION_SECRET")

    settings = Settings()

    assert settings.database.url is None
    assert settings.database.is_configured is False
    assert settings.identity.cookie_name == "dandi.session-token"
    assert settings.llm.model == "gpt-4o-mini"
    assert settings.llm.temperature == 0
    assert settings.llm.is_configured is False
    assert settings.metering.strategy == "atomic"
    assert settings.keys.default_limit == 1000
    assert settings.demo.requests_per_window == 3
    assert settings.demo.window_seconds == 86400
    assert settings.github.readme_max_chars == 10000


def test_yaml_file_loaded(tmp_path, monkeypatch: pytest.MonkeyPatch):
    config_file = tmp_path / "dandi.yaml"
    config_file.write_text(
        "keys:\n  default_limit: 50\nmetering:\n  strategy: read_write\n"
    )
    monkeypatch.setenv("DANDI_CONFIG_FILE", str(config_file))
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.keys.default_limit == 50
    assert settings.metering.strategy == "read_write"


def test_env_overrides_yaml(tmp_path, monkeypatch: pytest.MonkeyPatch):
    config_file = tmp_path / "dandi.yaml"
    config_file.write_text("keys:\n  default_limit: 50\n")
    monkeypatch.setenv("DANDI_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("DANDI_KEYS__DEFAULT_LIMIT", "75")
    get_settings.cache_clear()

    assert get_settings().keys.default_limit == 75


def test_unknown_metering_strategy_rejected():
    with pytest.raises(ValidationError):
        Settings(metering={"strategy": "eventual"})


def test_negative_default_limit_rejected():
    with pytest.raises(ValidationError):
        Settings(keys={"default_limit": -1})
