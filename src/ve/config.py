"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ve.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        DATABASE_PATH: SQLite file holding valuation records
        OUTPUT_DIR: Directory for exported valuations
        LOG_LEVEL: Logging level
        LOG_FILE: JSON-lines log file (console only when unset)
        CORS_ORIGINS: Comma-separated origins allowed by the HTTP API
        DEFAULT_PROJECTION_YEARS: Horizon used when a DCF input omits it
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    DATABASE_PATH: Path = Field(
        default=Path(".data/valuations.db"),
        description="SQLite database for valuation records",
    )
    OUTPUT_DIR: Path = Field(default=Path("output"), description="Export directory")

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    # HTTP API
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Valuation defaults
    DEFAULT_PROJECTION_YEARS: int = Field(
        default=5, ge=3, le=15, description="Default DCF projection horizon"
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def ensure_directories(self) -> None:
        """Create database and output directories if they don't exist."""
        self.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        self.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | None]:
        """Return settings as plain values for display."""
        return {
            "DATABASE_PATH": str(self.DATABASE_PATH),
            "OUTPUT_DIR": str(self.OUTPUT_DIR),
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
            "CORS_ORIGINS": self.CORS_ORIGINS,
            "DEFAULT_PROJECTION_YEARS": self.DEFAULT_PROJECTION_YEARS,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ConfigurationError: If settings are invalid, naming the bad fields.
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise ConfigurationError(
            "Invalid configuration", context={"fields": fields}
        ) from e


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
