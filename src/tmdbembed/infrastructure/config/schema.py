"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


def _split_names(value: Any) -> Any:
    """Accept ``"a, b"`` as well as ``["a", "b"]`` for name lists."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class ProvidersConfig(BaseModel):
    """Provider selection and stream filter policies (YAML section: providers.*).

    ``min_qualities`` and ``exclude_codecs`` are keyed by scope:
    ``"aggregate"``, a provider name, or ``"default"``.
    """

    default_providers: list[str] = Field(
        default_factory=list,
        description="Providers used by the aggregate route. Empty = all registered.",
    )
    disabled: list[str] = Field(
        default_factory=list,
        description="Provider names switched off at startup.",
    )
    min_qualities: dict[str, str] = Field(
        default_factory=dict,
        description="Minimum quality label per scope, e.g. {'aggregate': '720p'}.",
    )
    exclude_codecs: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Codecs to drop per scope, e.g. {'default': ['hevc']}.",
    )

    @field_validator("default_providers", "disabled", mode="before")
    @classmethod
    def _validate_names(cls, v: Any) -> Any:
        return _split_names(v)


class RelayConfig(BaseModel):
    """Stream relay (YAML section: relay.*)."""

    enabled: bool = Field(
        default=False,
        description="Rewrite stream URLs to pass through /proxy/stream.",
    )
    secret: str = Field(
        default="",
        description="HMAC key for relay tokens. Empty = random per process.",
    )
    rewrite_all: bool = Field(
        default=False,
        description="Also relay streams that need no extra request headers.",
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="Upstream timeout for relayed fetches.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("relay.timeout_seconds must be > 0")
        return v


class AuthConfig(BaseModel):
    """Single-account login (YAML section: auth.*)."""

    username: str = Field(default="admin", description="Login user name.")
    password: str = Field(
        default="",
        description="Login password. Empty = every login attempt fails.",
    )
    session_ttl_seconds: int = Field(
        default=43200,
        description="Session lifetime in seconds (cookie Max-Age).",
    )

    @field_validator("session_ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("auth.session_ttl_seconds must be > 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/tmdb/cache/providers/relay/auth).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="tmdbembed", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Outgoing HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="HTTP timeout in seconds for provider and TMDB calls.",
    )
    http_user_agent: str = Field(
        default="tmdbembed/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )
    http_cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices(
            "http_cors_origins",
            AliasPath("http", "cors_origins"),
        ),
        description="Origins allowed to call the API from a browser. '*' = any.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # TMDB (YAML section: tmdb.api_key)
    tmdb_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "tmdb_api_key",
            AliasPath("tmdb", "api_key"),
        ),
        description="TMDB API key for IMDb id resolution and title lookup.",
    )

    # Lookup cache (YAML section: cache.*)
    cache_dir: Path = Field(
        default=Path("./.cache/tmdbembed"),
        validation_alias=AliasChoices(
            "cache_dir",
            AliasPath("cache", "dir"),
        ),
        description="Cache directory (disk).",
    )
    cache_ttl_seconds: int = Field(
        default=86400,
        validation_alias=AliasChoices(
            "cache_ttl_seconds",
            AliasPath("cache", "ttl_seconds"),
        ),
        description="TTL for cached TMDB lookups in seconds.",
    )

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("http_cors_origins", mode="before")
    @classmethod
    def _validate_cors_origins(cls, v: Any) -> Any:
        return _split_names(v)

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_cache_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.

        Secrets are masked.
        """
        relay = self.relay.model_dump()
        relay["secret"] = "***" if relay["secret"] else ""
        auth = self.auth.model_dump()
        auth["password"] = "***" if auth["password"] else ""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
                "cors_origins": list(self.http_cors_origins),
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "tmdb": {"api_key": "***" if self.tmdb_api_key else None},
            "cache": {
                "dir": str(self.cache_dir),
                "ttl_seconds": self.cache_ttl_seconds,
            },
            "providers": self.providers.model_dump(),
            "relay": relay,
            "auth": auth,
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read TMDBEMBED_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - TMDBEMBED_TMDB_API_KEY
    - TMDBEMBED_DEFAULT_PROVIDERS=mp4hydra,other
    - TMDBEMBED_RELAY_ENABLED=true
    - TMDBEMBED_AUTH_PASSWORD
    """

    model_config = SettingsConfigDict(
        env_prefix="TMDBEMBED_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    # Comma-separated origins.
    http_cors_origins: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    tmdb_api_key: Optional[str] = None

    cache_dir: Optional[Path] = None
    cache_ttl_seconds: Optional[int] = None

    # Comma-separated provider names.
    default_providers: Optional[str] = None
    disabled_providers: Optional[str] = None

    relay_enabled: Optional[bool] = None
    relay_secret: Optional[str] = None
    relay_rewrite_all: Optional[bool] = None
    relay_timeout_seconds: Optional[float] = None

    auth_username: Optional[str] = None
    auth_password: Optional[str] = None
    auth_session_ttl_seconds: Optional[int] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
