"""
Application configuration using 12-factor environment variables.
"""
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="NerdSphere Chat")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(default="sqlite:///./data/messages.db")
    store_timeout_seconds: float = Field(default=5.0, gt=0, description="Timeout for a single store call")

    # Message policy
    max_content_length: int = Field(default=500, ge=1)
    spam_run_length: int = Field(default=50, ge=2, description="Consecutive identical characters treated as spam")
    rate_limit_seconds: int = Field(default=10, ge=0, description="Cooldown between posts from one fingerprint")
    feed_limit: int = Field(default=100, ge=1)

    # Retention
    retention_hours: int = Field(default=24, ge=1)
    sweep_interval_seconds: int = Field(default=3600, ge=0, description="0 disables the scheduled sweeper")
    cleanup_secret: Optional[str] = Field(default=None, description="Bearer token required by /cleanup when set")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(seconds=self.rate_limit_seconds)

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)

    @property
    def is_cleanup_secret_configured(self) -> bool:
        """Check if the cleanup endpoint is protected."""
        return bool(self.cleanup_secret)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
