"""
Tests for environment-driven settings.
"""

import logging

from ..config import Settings, setup_logging


def test_defaults(monkeypatch):
    for name in ("RETRO_DATA_DIR", "RETRO_DEFAULT_TIMER", "RETRO_HOST",
                 "RETRO_PORT", "ALLOWED_ORIGINS", "RETRO_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings == Settings()
    assert settings.port == 3000
    assert settings.default_timer_duration == 300


def test_from_env(monkeypatch):
    monkeypatch.setenv("RETRO_DATA_DIR", "/var/lib/retro")
    monkeypatch.setenv("RETRO_DEFAULT_TIMER", "120")
    monkeypatch.setenv("RETRO_PORT", "8080")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.test,http://b.test")
    monkeypatch.setenv("RETRO_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.data_dir == "/var/lib/retro"
    assert settings.default_timer_duration == 120
    assert settings.port == 8080
    assert settings.allowed_origins == ["http://a.test", "http://b.test"]
    assert settings.log_level == "DEBUG"


def test_setup_logging_quiets_access_log():
    setup_logging("INFO")

    assert logging.getLogger("uvicorn.access").level == logging.WARNING
