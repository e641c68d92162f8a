"""Tests for settings parsing."""

import logging

import pytest
from pydantic import ValidationError

from luminal.core.config import AppSettings, LogSettings, parse_path_list, settings
from luminal.core.logging import configure_logging
from luminal.core.rate_limit import build_rate_limiter, strict_overrides


def test_parse_path_list():
    assert parse_path_list("/health, /readiness,,") == ("/health", "/readiness")
    assert parse_path_list("") == ()
    assert parse_path_list(None) == ()


def test_defaults_match_main_policy(monkeypatch: pytest.MonkeyPatch):
    for name in ("APP_RATE_LIMIT_MAX_REQUESTS", "APP_RATE_LIMIT_WINDOW_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    app_settings = AppSettings()

    assert app_settings.rate_limit_max_requests == 100
    assert app_settings.rate_limit_window_seconds == 900
    assert app_settings.rate_limit_block_duration_seconds == 900
    assert app_settings.excluded_paths == ("/health", "/liveness", "/readiness")


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("APP_RATE_LIMIT_EXCLUDE_PATHS", "/status")
    monkeypatch.setenv("LOG_FORMAT", "plain")

    assert AppSettings().rate_limit_max_requests == 7
    assert AppSettings().excluded_paths == ("/status",)
    assert LogSettings().format == "plain"


def test_non_positive_limits_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_RATE_LIMIT_MAX_REQUESTS", "0")

    with pytest.raises(ValidationError):
        AppSettings()


def test_build_rate_limiter_from_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_RATE_LIMIT_MAX_REQUESTS", "12")
    monkeypatch.setenv("APP_RATE_LIMIT_IDENTIFIER", "public")
    app_settings = AppSettings()

    with build_rate_limiter(app_settings) as limiter:
        assert limiter.default_config.max_requests == 12
        assert limiter.default_config.identifier == "public"
        assert limiter.is_healthy() is True

    assert strict_overrides(app_settings)["identifier"] == "strict"


def test_debug_forces_debug_logging(make_client):
    try:
        client = make_client(debug=True)

        assert client.app.debug is True
        assert logging.getLogger().level == logging.DEBUG
    finally:
        configure_logging(settings.log)


def test_debug_env_flag(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_DEBUG", "true")
    monkeypatch.setenv("APP_ADMIN_API_KEYS", "k1,k2")

    app_settings = AppSettings()

    assert app_settings.debug is True
    assert app_settings.admin_api_keys == "k1,k2"
