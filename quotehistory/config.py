"""
Quote History Configuration Module

Pydantic-based configuration for the quote history cache with environment
variable overrides and validation of the gap-planning limits.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Supported log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class HistorySettings(BaseSettings):
    """
    Main configuration class for the quote history cache.

    Supports environment variable overrides with the QUOTEHISTORY_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="QUOTEHISTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Logging Configuration
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for structured logs"
    )

    # Storage Configuration
    history_root: Path = Field(
        default=Path("./data/history"),
        description="Directory holding one history document per symbol"
    )

    # Gap Planning Configuration
    years_to_check: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many years back to look for missing data"
    )

    gap_scan_limit: int = Field(
        default=10,
        ge=1,
        description="Stop the backward scan once this many gaps are found"
    )

    consolidation_days: int = Field(
        default=7,
        ge=0,
        description="Adjacent gaps spanning fewer days than this are merged"
    )

    max_fetch_ranges: int = Field(
        default=5,
        ge=1,
        description="More ranges than this collapse into one full-history fetch"
    )

    @field_validator("history_root")
    @classmethod
    def validate_paths(cls, v: Path) -> Path:
        """Ensure paths are absolute and expanded."""
        return Path(v).expanduser().resolve()


# Global settings instance
settings = HistorySettings()
