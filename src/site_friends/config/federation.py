"""Settings for outbound calls to remote sites and inbound request limits."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FederationSettings(BaseSettings):
    """Timeouts, redirect limits and rate limits of the friends protocol."""

    model_config = SettingsConfigDict(
        env_prefix="FEDERATION__",
        case_sensitive=False,
        extra="ignore",
    )

    protocol_timeout: float = Field(
        default=20.0,
        gt=0,
        le=120.0,
        description="Timeout in seconds for hello/friend-request/acceptance calls",
    )
    feed_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout in seconds for feed fetches",
    )
    max_redirects: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Maximum redirects followed by any outbound call",
    )
    feed_fetch_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts per feed fetch on transport errors",
    )
    feed_retry_wait_seconds: float = Field(
        default=2.0,
        ge=0,
        le=60.0,
        description="Base wait between feed fetch attempts",
    )

    # Inbound friend-request limits
    rate_limit_requests: int = Field(
        default=5,
        ge=1,
        description="Friend requests accepted per window, per client IP and per site URL",
    )
    rate_limit_window_seconds: int = Field(
        default=3600,
        ge=1,
        description="Length of the friend-request rate limit window",
    )
