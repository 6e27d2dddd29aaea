"""
Application settings configuration for timekeeper.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from backend.src.services.rule_parser import DEFAULT_OCCURRENCE_COUNT


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        TIMEKEEPER_DEFAULT_OCCURRENCE_COUNT: Occurrences generated when a rule has
            neither COUNT nor UNTIL (default: 10)
        TIMEKEEPER_HORIZON_DAYS: Furthest day, counted from a series anchor date,
            up to which occurrences are materialized (default: 730)
        TIMEKEEPER_MAX_PAGE_SIZE: Upper bound for list endpoint page size (default: 100)
        TIMEKEEPER_CORS_ORIGINS: Comma-separated list of allowed CORS origins
    """

    # Safety bound for open-ended rules (no COUNT, no UNTIL)
    default_occurrence_count: int = Field(
        default=DEFAULT_OCCURRENCE_COUNT,
        validation_alias="TIMEKEEPER_DEFAULT_OCCURRENCE_COUNT",
        ge=1,
        le=1000,
    )

    # Materialization horizon
    # UNTIL-bounded rules far in the future are cut at anchor date + horizon_days
    horizon_days: int = Field(
        default=730,
        validation_alias="TIMEKEEPER_HORIZON_DAYS",
        ge=1,
        le=3660,
        description="Days after the anchor date up to which occurrences are generated"
    )

    max_page_size: int = Field(
        default=100,
        validation_alias="TIMEKEEPER_MAX_PAGE_SIZE",
        ge=1,
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="TIMEKEEPER_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins"
    )

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        """Normalize whitespace around configured origins."""
        return ",".join(o.strip() for o in v.split(",") if o.strip())

    @property
    def cors_origins_list(self) -> List[str]:
        """Get the allowed CORS origins as a list."""
        if not self.cors_origins:
            return []
        return self.cors_origins.split(",")


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
