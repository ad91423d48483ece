"""
Configuration and settings for the filter service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="VOWSWAP_USE_IN_MEMORY_BACKENDS"
    )

    # Listings
    default_page_limit: int = Field(
        default=10, ge=1, validation_alias="VOWSWAP_DEFAULT_PAGE_LIMIT"
    )
    max_page_limit: int = Field(
        default=100, ge=1, validation_alias="VOWSWAP_MAX_PAGE_LIMIT"
    )

    # Analytics
    analytics_max_queue_size: int = Field(
        default=1000, ge=1, validation_alias="VOWSWAP_ANALYTICS_MAX_QUEUE_SIZE"
    )
    usage_report_limit: int = Field(
        default=10, ge=1, validation_alias="VOWSWAP_USAGE_REPORT_LIMIT"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
