"""Tests for environment-driven settings."""

import pytest

from canvas_expander.config import Settings

ENV_VARS = [
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "API_KEY",
    "EXPANDER_MODEL",
    "EXPANDER_MAX_FILE_SIZE_MB",
    "EXPANDER_MAX_DIMENSION",
    "EXPANDER_REQUEST_DELAY_SECONDS",
    "EXPANDER_EXPORT_QUALITY",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()
    assert settings.api_key is None
    assert settings.model == "gemini-2.5-flash-image"
    assert settings.max_file_size_mb == 15
    assert settings.max_dimension == 5000
    assert settings.request_delay_seconds == 1.0
    assert settings.export_quality == 95
    assert settings.log_level == "INFO"


def test_api_key_precedence(monkeypatch):
    monkeypatch.setenv("API_KEY", "generic")
    assert Settings.from_env().api_key == "generic"

    monkeypatch.setenv("GOOGLE_API_KEY", "google")
    assert Settings.from_env().api_key == "google"

    monkeypatch.setenv("GEMINI_API_KEY", "gemini")
    assert Settings.from_env().api_key == "gemini"


def test_empty_api_key_is_missing(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    assert Settings.from_env().api_key is None


def test_overrides(monkeypatch):
    monkeypatch.setenv("EXPANDER_MODEL", "gemini-other")
    monkeypatch.setenv("EXPANDER_MAX_FILE_SIZE_MB", "20")
    monkeypatch.setenv("EXPANDER_MAX_DIMENSION", "4096")
    monkeypatch.setenv("EXPANDER_REQUEST_DELAY_SECONDS", "0.25")
    monkeypatch.setenv("EXPANDER_EXPORT_QUALITY", "80")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.model == "gemini-other"
    assert settings.max_file_size_mb == 20
    assert settings.max_dimension == 4096
    assert settings.request_delay_seconds == 0.25
    assert settings.export_quality == 80
    assert settings.log_level == "DEBUG"


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("EXPANDER_MAX_DIMENSION", "lots")
    with pytest.raises(ValueError, match="EXPANDER_MAX_DIMENSION"):
        Settings.from_env()
