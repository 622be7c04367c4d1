"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

The DB session timezone is locked to UTC so that date params (serialized as UTC ISO 8601) compare
deterministically against stored timestamps.
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.query.context import DEFAULT_LOCALE


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")
    db_pool_max_size: int = Field(default=10, ge=1, alias="DB_POOL_MAX_SIZE")

    # Capability flag for the author / author-group filters.
    author_filtering_enabled: bool = Field(default=True, alias="AUTHOR_FILTERING_ENABLED")
    default_locale: str = Field(default=DEFAULT_LOCALE, min_length=1, alias="DEFAULT_LOCALE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Validate that the DB timezone is locked to UTC.

        Date filters are normalized to UTC before comparison; any other session timezone would
        shift day boundaries, so it is rejected at startup.
        """

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {value}")
        return level


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
