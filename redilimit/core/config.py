"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are plain values handed to the factories (store client, limiter,
app). Nothing reads the module-level ``settings`` at request time.
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
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_redis_settings() -> "RedisSettings":
    """Build Redis settings from environment."""

    return RedisSettings()


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment."""

    return RateLimitSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


class RedisSettings(BaseSettings):
    """Connection settings for the shared Redis store.

    The host is process-wide: it is resolved once, before any limiter is
    constructed, and passed explicitly to the client factory.
    """

    host: str = Field(
        "localhost",
        description="Redis hostname",
    )
    port: int = Field(
        6379,
        description="Redis port",
        ge=1,
        le=65535,
    )
    db: int = Field(
        0,
        description="Redis logical database index",
        ge=0,
    )
    password: str | None = Field(
        None,
        description="Redis AUTH password (optional)",
    )
    socket_timeout_seconds: float = Field(
        5.0,
        description="Timeout for a single Redis command",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        5.0,
        description="Timeout for establishing a Redis connection",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding window rate limit configuration."""

    enabled: bool = Field(
        True,
        description="Install the rate limit middleware",
    )
    requests: int = Field(
        10,
        description="Maximum number of requests allowed per window (per identifier)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="Sliding window length in seconds",
        ge=1,
    )
    header_name: str = Field(
        "Authorization",
        description="Request header whose value identifies the rate-limited subject",
    )
    key_prefix: str = Field(
        "ratelimit:",
        description="Namespace prepended to every Redis key written by the limiter",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Limit headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level",
    )
    format: str = Field(
        "json",
        description="Log format: json or plain",
    )
    output: str = Field(
        "stdout",
        description="Log destination: stdout or file",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int | None = Field(
        None,
        description="Rotate the log file after this many bytes (file output only)",
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "RediLimit",
        description="Application title shown in the OpenAPI docs",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
