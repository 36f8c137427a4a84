"""Scheduler configuration settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """
    Configuration for the periodic feed refresh.

    Settings can be configured via environment variables with SCHEDULER__ prefix.
    """

    enabled: bool = Field(
        default=True,
        description="Whether the periodic feed refresh is enabled",
    )

    sync_interval_hours: float = Field(
        default=1.0,
        ge=0.05,
        le=168,
        description="Interval in hours between feed refresh runs",
    )

    max_concurrent_fetches: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum number of feeds fetched concurrently in a refresh run",
    )

    graceful_shutdown_timeout: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Seconds to wait for an in-flight refresh before cancelling it",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER__",
        case_sensitive=False,
    )
