"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Rate-limit rules and ban durations are not configurable here; they are
compiled into funnel.services.rate_limiter.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING", "").lower() != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    Static type checkers still treat fields as constructor arguments, which is
    not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()  # type: ignore[call-arg]


def _build_upstream_settings() -> "UpstreamSettings":
    return UpstreamSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Run the admission check before forwarding requests upstream",
    )
    rate_limit_debug_headers: bool = Field(
        False,
        description="Expose X-Rate-Limiter-* diagnostic headers on responses",
    )
    rate_limit_key_prefix: str = Field(
        "ratelimit:",
        description="Namespace prepended to the client identifier in store keys",
    )
    rate_limit_key_suffix: str = Field(
        ":v7",
        description="Version tag appended to store keys; change to discard old records",
    )

    trusted_ip_header: str = Field(
        "x-alicdn-security-xff",
        description="Header set by the trusted edge proxy carrying the client address",
    )
    forwarded_for_header: str = Field(
        "x-forwarded-for",
        description="Generic forwarded-for header used when the trusted one is absent",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Key-value store backend holding per-client rate records."""

    backend: str = Field(
        "memory",
        description="Store backend name (memory, redis)",
    )
    redis_url: str | None = Field(
        None,
        description="Redis connection URL (required when backend=redis)",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Redis socket timeout; a slow store must not stall requests",
        gt=0,
    )
    memory_max_entries: int | None = Field(
        100_000,
        description="Upper bound on in-memory records before LRU eviction (None for unlimited)",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class UpstreamSettings(BaseSettings):
    """Origin service receiving admitted requests."""

    base_url: str = Field(
        "http://localhost:8080",
        description="Base URL of the upstream origin",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Request timeout in seconds for upstream calls",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format (json, plain)")
    output: str = Field("stdout", description="Log destination (stdout, file)")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int | None = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (None disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the correlation id in and out",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
