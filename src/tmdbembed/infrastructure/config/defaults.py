"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "tmdbembed",
    "environment": "dev",
    "http": {
        "timeout_seconds": 10.0,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
        ),
        "cors_origins": ["*"],
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "tmdb": {
        "api_key": None,
    },
    "cache": {
        "dir": "./.cache/tmdbembed",
        "ttl_seconds": 86400,
    },
    "providers": {
        "default_providers": [],
        "disabled": [],
        "min_qualities": {},
        "exclude_codecs": {},
    },
    "relay": {
        "enabled": False,
        "secret": "",
        "rewrite_all": False,
        "timeout_seconds": 30.0,
    },
    "auth": {
        "username": "admin",
        "password": "",
        "session_ttl_seconds": 43200,
    },
}
