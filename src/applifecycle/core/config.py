"""Lifecycle configuration settings.

Provides settings for state persistence, restore policy and logging.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LifecycleSettings(BaseSettings):
    """Application lifecycle and state persistence settings."""

    storage_dir: Path = Field(
        default=Path.home() / ".applifecycle",
        description="Root directory for the file-based memento repository",
    )
    compression_threshold: int = Field(
        default=1024,
        ge=0,
        description="Serialized size in bytes above which records are compressed",
    )

    # Timing (in seconds)
    io_timeout_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Upper bound for a single repository call during capture/restore",
    )
    restore_max_age_seconds: int = Field(
        default=86400,
        description="Saved state older than this is not restored",
    )
    memento_lifetime_seconds: int = Field(
        default=7 * 86400,
        description="Mementos older than this are purged on startup",
    )
    periodic_save_interval_seconds: float = Field(
        default=300,
        ge=0,
        description="Interval for background state saves. 0 disables periodic saving.",
    )

    max_stored_mementos: int = Field(default=10, ge=1, description="Retention limit")
    restore_on_initialize: bool = Field(
        default=True, description="Restore the latest state when the manager starts"
    )
    save_on_dispose: bool = Field(
        default=True, description="Capture a final snapshot when the manager is disposed"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")

    model_config = SettingsConfigDict(
        env_prefix="LIFECYCLE_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def io_timeout(self) -> timedelta:
        return timedelta(seconds=self.io_timeout_seconds)

    @property
    def restore_max_age(self) -> timedelta:
        return timedelta(seconds=self.restore_max_age_seconds)

    @property
    def memento_lifetime(self) -> timedelta:
        return timedelta(seconds=self.memento_lifetime_seconds)


@lru_cache
def get_lifecycle_settings() -> LifecycleSettings:
    """Get cached lifecycle settings."""
    return LifecycleSettings()
