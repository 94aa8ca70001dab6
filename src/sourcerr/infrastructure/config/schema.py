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

from sourcerr.domain.entities.streams import SortOrder

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
ActiveSource = Literal["torrent_aggregator", "dmm_cache"]


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


class CacheConfig(BaseSettings):
    """Cache configuration (backend-agnostic)."""

    backend: Literal["diskcache", "redis"] = Field(
        default="diskcache",
        description="Cache backend: 'diskcache' (SQLite) or 'redis'",
    )

    # Diskcache settings
    directory: Path = Field(
        default=Path("./.cache/sourcerr"),
        alias="dir",
        description="Diskcache SQLite DB path",
    )

    # Redis settings
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )

    ttl_seconds: int = Field(
        default=3600,
        description="Default TTL for cache entries (seconds). 0 = no expiry.",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",  # Env vars: CACHE_BACKEND, CACHE_REDIS_URL, ...
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_dir(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("ttl_seconds must be >= 0")
        return v


class FetchConfig(BaseModel):
    """Proxy failover and direct retry behaviour of the resilient fetcher."""

    proxies: list[str] = Field(
        default_factory=list,
        description="CORS proxy prefixes; the target URL is appended percent-encoded.",
    )
    selected_proxy: str | None = Field(
        default=None,
        description="Proxy tried before all others.",
    )
    attempt_timeout_seconds: float = Field(default=8.0, gt=0)
    direct_attempts: int = Field(
        default=3,
        ge=1,
        description="Direct attempts when no proxy is configured.",
    )
    direct_attempts_after_proxies: int = Field(
        default=2,
        ge=1,
        description="Direct attempts after every proxy failed.",
    )
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    max_backoff_seconds: float = Field(default=8.0, ge=0)


class SourcesConfig(BaseModel):
    """Built-in sources and per-source outer timeouts."""

    aggregator_url: str = Field(default="https://torrentio.strem.fun")
    aggregator_name: str = Field(default="Torrentio")
    aggregator_token: str = Field(
        default="torbox",
        description="Path key the aggregator uses for the debrid credential.",
    )
    aggregator_timeout_seconds: float = Field(default=15.0, gt=0)

    dmm_url: str = Field(default="https://zileanfortheweebs.midnightignite.me")
    dmm_name: str = Field(default="Zilean")
    dmm_timeout_seconds: float = Field(default=15.0, gt=0)

    provider_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-provider timeout for third-party stream requests.",
    )
    manifest_timeout_seconds: float = Field(default=15.0, gt=0)

    request_deadline_seconds: float | None = Field(
        default=None,
        description="Overall deadline for the fetch phase. Unset = none.",
    )

    @field_validator("request_deadline_seconds")
    @classmethod
    def _validate_deadline(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("request_deadline_seconds must be > 0")
        return v


class DebridConfig(BaseModel):
    """TorBox API client settings."""

    api_url: str = Field(default="https://api.torbox.app/v1/api")
    timeout_seconds: float = Field(default=30.0, gt=0)
    url_cache_ttl_seconds: int = Field(
        default=1800,
        ge=0,
        description="TTL for resolved stream URLs (seconds).",
    )
    file_batch_size: int = Field(default=5, ge=1)
    file_batch_delay_seconds: float = Field(default=0.1, ge=0)


class RankingConfig(BaseModel):
    aggregator_cap: int = Field(
        default=10,
        ge=1,
        description="Max streams per quality tier in torrent-aggregator mode.",
    )
    default_sort: SortOrder = Field(default=SortOrder.HIGH_TO_LOW)


class SettingsConfig(BaseModel):
    """User-facing settings read by the aggregation engine."""

    third_party_enabled: bool = Field(
        default=False,
        description="Query installed third-party providers instead of built-in sources.",
    )
    active_source: ActiveSource = Field(default="torrent_aggregator")
    debrid_api_key: str | None = Field(
        default=None,
        description="TorBox API key (required by the built-in sources).",
    )

    @field_validator("debrid_api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/fetch/sources/debrid/ranking/
      settings/logging/cache).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="sourcerr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default timeout of the shared HTTP client.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default="Sourcerr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
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

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    debrid: DebridConfig = Field(default_factory=DebridConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
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

        The debrid API key is masked.
        """
        settings = self.settings.model_dump()
        if settings["debrid_api_key"]:
            settings["debrid_api_key"] = "***"
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "fetch": self.fetch.model_dump(),
            "sources": self.sources.model_dump(),
            "debrid": self.debrid.model_dump(),
            "ranking": self.ranking.model_dump(mode="json"),
            "settings": settings,
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": self.cache.model_dump(mode="json", by_alias=True),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read SOURCERR_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - SOURCERR_LOG_LEVEL
    - SOURCERR_DEBRID_API_KEY
    - SOURCERR_THIRD_PARTY_ENABLED
    - SOURCERR_FETCH_PROXIES='["https://proxy.example/?url="]'
    """

    model_config = SettingsConfigDict(
        env_prefix="SOURCERR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    fetch_proxies: Optional[list[str]] = None
    fetch_selected_proxy: Optional[str] = None
    fetch_attempt_timeout_seconds: Optional[float] = None

    aggregator_url: Optional[str] = None
    dmm_url: Optional[str] = None
    provider_timeout_seconds: Optional[float] = None
    request_deadline_seconds: Optional[float] = None

    debrid_api_url: Optional[str] = None

    third_party_enabled: Optional[bool] = None
    active_source: Optional[ActiveSource] = None
    debrid_api_key: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_dir: Optional[Path] = None
    cache_backend: Optional[Literal["diskcache", "redis"]] = None
    cache_redis_url: Optional[str] = None
    cache_ttl_seconds: Optional[int] = None

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
