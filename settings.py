"""Application settings using pydantic-settings.

Loads configuration from ``AUTOMATION_``-prefixed environment variables with
.env file support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite:///automations.db",
        description="SQLAlchemy database URL for automations, enrollments and logs",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements (debugging only)")

    # Step scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between two polling ticks of the step scheduler",
    )
    scheduler_batch_size: int | None = Field(
        default=None,
        ge=1,
        description="Maximum enrollments claimed per tick (None = all due enrollments)",
    )

    # Inline dispatch of single-step enrollments
    inline_dispatch_workers: int = Field(default=1, ge=1, le=8)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance (cached after first call)
    """
    return Settings()
