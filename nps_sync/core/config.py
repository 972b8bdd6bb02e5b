"""
Configuration settings for NPS Sync.

This module provides configuration settings loaded from environment variables.
"""

import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Tuned for a single dashboard session talking to the 3C Plus API.
    """
    # Project info
    PROJECT_NAME: str = "NPS Sync"
    VERSION: str = "0.1.0"
    DESCRIPTION: str = "Local sync, cache and analytics core for NPS survey responses"

    # Remote API
    API_BASE_URL: str = "https://app.3c.plus/api/v1"
    API_TOKEN: str = ""
    REQUEST_TIMEOUT: int = 60  # seconds
    PAGE_SIZE: int = 10000

    # Sync settings
    BACKFILL_WINDOWS: int = 4
    WINDOW_MONTHS: int = 3
    CACHE_TTL_HOURS: int = 24
    REFRESH_INTERVAL_HOURS: int = 12
    LOADING_FINISH_DELAY: float = 0.5  # seconds
    AGGREGATE_CACHE_SIZE: int = 128

    # Storage
    STORAGE_URL: str = "sqlite:///./data/nps_cache.db"
    STORAGE_KEY_PREFIX: str = "nps"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "data/logs"

    @field_validator("STORAGE_URL")
    @classmethod
    def validate_storage_url(cls, v: str) -> str:
        """Ensure the SQLite directory exists"""
        if v.startswith("sqlite:///") and v != "sqlite:///:memory:":
            db_dir = os.path.dirname(v.replace("sqlite:///", ""))
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()
