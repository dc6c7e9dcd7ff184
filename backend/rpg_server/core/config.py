"""
Claude RPG - Configuration
==========================

All application settings loaded from environment variables.
Uses pydantic-settings for validation and type conversion.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "Claude RPG"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    # ==========================================================================
    # Server
    # ==========================================================================
    HOST: str = "127.0.0.1"
    PORT: int = 3333
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # ==========================================================================
    # Tracking Storage
    # ==========================================================================
    CLAUDE_HOME: Path = Path.home() / ".claude"
    STATS_FILENAME: str = "rpg-stats.json"
    PERSIST_DEBOUNCE_SECONDS: float = 5.0

    # ==========================================================================
    # Tracking Limits
    # ==========================================================================
    MAX_RECENT_SESSIONS: int = 50
    MAX_DAILY_ACTIVITY: int = 30
    MAX_OPEN_SESSIONS: int = 100

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def stats_path(self) -> Path:
        return self.CLAUDE_HOME / self.STATS_FILENAME

    @computed_field  # type: ignore[misc]
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
