"""Tests for structlog/stdlib logging configuration."""

from __future__ import annotations

from tmdbembed.infrastructure.config import AppConfig
from tmdbembed.infrastructure.logging.setup import (
    _drop_color_message,
    _redact_secrets,
    build_logging_config,
)


class TestProcessors:
    def test_redacts_secret_keys(self) -> None:
        event = {"event": "login", "password": "hunter2", "token": "t", "user": "admin"}
        out = _redact_secrets(None, None, event)
        assert out["password"] == "***"
        assert out["token"] == "***"
        assert out["user"] == "admin"

    def test_drops_color_message(self) -> None:
        out = _drop_color_message(None, None, {"event": "x", "color_message": "y"})
        assert "color_message" not in out


class TestBuildLoggingConfig:
    def test_level_applied(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="DEBUG"))
        assert cfg["root"]["level"] == "DEBUG"
        for logger_cfg in cfg["loggers"].values():
            assert logger_cfg["level"] == "DEBUG"

    def test_handlers_use_structlog_formatter(self) -> None:
        cfg = build_logging_config(AppConfig())
        assert "structlog" in cfg["formatters"]
        assert cfg["handlers"]["default"]["formatter"] == "structlog"
        assert cfg["handlers"]["access"]["formatter"] == "structlog"
