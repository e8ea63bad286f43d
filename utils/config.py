"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

TOKEN, OUTPUT_FOLDER and LOG_FOLDER have no defaults: a missing value raises
pydantic.ValidationError at startup, which the entry point treats as fatal.

Usage:
    from utils.config import get_settings

    settings = get_settings()
    pipeline = ArchivePipeline(settings, service, dispatcher)
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Required
    TOKEN: str = Field(..., min_length=1, description="Bookmarking service API token")
    OUTPUT_FOLDER: Path = Field(..., description="Archive artifact destination")
    LOG_FOLDER: Path = Field(..., description="Logs, retry store and fetch cursor")

    # Bookmarking service
    PINBOARD_API_BASE: str = Field(default="https://api.pinboard.in/v1")
    API_TIMEOUT: int = Field(default=30, gt=0)
    API_MAX_RETRIES: int = Field(default=3, ge=1)

    # Renderer
    RENDER_COMMAND: str = Field(default="wkhtmltopdf --quiet {url} {output}")
    ARCHIVE_FORMAT: str = Field(default="pdf")
    RENDER_TIMEOUT: float = Field(default=240, gt=0)

    # Pipeline
    RETRY_CEILING: int = Field(default=3, ge=1)
    INTERACTIVE_PAUSE: float = Field(default=2.0, ge=0)

    # Scheduler Configuration
    RUN_ONCE: bool = Field(default=True)
    ARCHIVE_SCHEDULE_CRON: str = Field(default="0 * * * *")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Application Metadata
    APP_NAME: str = Field(default="bookmark-archiver")
    APP_VERSION: str = Field(default="0.1.0")

    @field_validator("ARCHIVE_FORMAT")
    @classmethod
    def strip_format_dot(cls, v: str) -> str:
        """Accept both 'pdf' and '.pdf'."""
        v = v.strip().lstrip(".")
        if not v:
            raise ValueError("ARCHIVE_FORMAT must be a non-empty extension")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    @property
    def retry_store_path(self) -> Path:
        return self.LOG_FOLDER / "retries.db"

    @property
    def cursor_path(self) -> Path:
        return self.LOG_FOLDER / "cursor.txt"

    @property
    def standard_log_path(self) -> Path:
        return self.LOG_FOLDER / "archiver.log"

    @property
    def error_log_path(self) -> Path:
        return self.LOG_FOLDER / "archiver.error.log"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings loaded from the environment and .env

    Raises:
        pydantic.ValidationError: If a required variable is missing or invalid
    """
    return Settings()
