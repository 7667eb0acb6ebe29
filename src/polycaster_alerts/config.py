"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
PolyCaster price alert service, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL connection string")
        return v


class PolymarketSettings(BaseSettings):
    """Polymarket Gamma API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_")

    api_url: str = Field(
        default="https://gamma-api.polymarket.com/markets",
        alias="POLYMARKET_API_URL",
        description="Gamma markets endpoint",
    )
    requests_per_second: float = Field(
        default=5.0,
        alias="POLYMARKET_REQUESTS_PER_SECOND",
        description="Client-side rate limit for market lookups",
        gt=0,
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="POLYMARKET_TIMEOUT_SECONDS",
        description="HTTP timeout for market lookups",
        gt=0,
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("POLYMARKET_API_URL must be an HTTP(S) endpoint")
        return v


class EmailSettings(BaseSettings):
    """E-mail notification settings (Resend)."""

    model_config = SettingsConfigDict(env_prefix="")

    resend_api_key: SecretStr | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="Resend API key for e-mail delivery",
    )
    from_email: str = Field(
        default="onboarding@resend.dev",
        alias="EMAIL_FROM",
        description="Sender address, verified with Resend",
    )
    from_name: str = Field(
        default="PolyCaster",
        alias="EMAIL_FROM_NAME",
        description="Sender display name",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        alias="FRONTEND_URL",
        description="Client application URL used in e-mail links",
    )

    @property
    def enabled(self) -> bool:
        """Check if e-mail notifications are enabled."""
        return self.resend_api_key is not None


class CheckerSettings(BaseSettings):
    """Alert checker scheduling settings."""

    model_config = SettingsConfigDict(env_prefix="ALERT_")

    interval_seconds: float = Field(
        default=30.0,
        alias="ALERT_CHECK_INTERVAL_SECONDS",
        description="Seconds between alert check cycles",
        gt=0,
    )
    market_concurrency: int = Field(
        default=1,
        alias="ALERT_MARKET_CONCURRENCY",
        description="Markets checked concurrently within a cycle",
        ge=1,
        le=32,
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from polycaster_alerts.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.checker.interval_seconds)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    polymarket: PolymarketSettings = Field(default_factory=PolymarketSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    checker: CheckerSettings = Field(default_factory=CheckerSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    health_port: int = Field(
        default=8080,
        alias="HEALTH_PORT",
        description="HTTP port for health check endpoints (0 disables them)",
        ge=0,
        le=65535,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log notifications instead of sending them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "polymarket": {
                "api_url": self.polymarket.api_url,
                "requests_per_second": str(self.polymarket.requests_per_second),
            },
            "email": {
                "resend_api_key": "(set)" if self.email.resend_api_key else "(not set)",
                "from": f"{self.email.from_name} <{self.email.from_email}>",
                "frontend_url": self.email.frontend_url,
            },
            "email_enabled": str(self.email.enabled),
            "check_interval_seconds": f"{self.checker.interval_seconds:g}",
            "log_level": self.log_level,
            "health_port": str(self.health_port),
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.rindex("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
