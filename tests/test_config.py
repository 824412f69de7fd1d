"""Tests for application settings and startup validation."""

import pytest

from retrolens import app as app_module
from retrolens.core.config import Settings
from retrolens.core.dependencies import build_generation_session
from retrolens.models.job import GenerationStyle


def test_defaults_in_test_environment():
    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.app_env == "test"
    assert settings.gemini_model == "gemini-2.5-flash-image"
    assert settings.max_attempts == 3
    assert settings.retry_initial_delay_seconds == 1.0
    assert settings.batch_concurrency == 2
    assert settings.default_style == "strict"


def test_missing_api_key_fails_fast_outside_tests(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_api_key_satisfies_validation(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.gemini_api_key == "test-key"


def test_cors_origins_list(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://retrolens.app")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.cors_origins_list == ["http://localhost:3000", "https://retrolens.app"]


def test_session_is_built_from_settings(monkeypatch):
    monkeypatch.setenv("BATCH_CONCURRENCY", "3")
    monkeypatch.setenv("GENERATION_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DEFAULT_GENERATION_STYLE", "creative")
    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    session = build_generation_session(settings, backend=object())

    assert session.concurrency == 3
    assert session.client.max_attempts == 5
    assert session.style == GenerationStyle.CREATIVE
    assert session.source_image is None


def test_serve_uses_configured_host_and_port(monkeypatch):
    calls = []
    monkeypatch.setattr(
        app_module.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs))
    )
    monkeypatch.setenv("HOST", "127.0.0.1")
    monkeypatch.setenv("PORT", "9001")

    app_module.serve()

    assert calls == [
        (("retrolens.app:app",), {"host": "127.0.0.1", "port": 9001, "log_level": "info"})
    ]
