"""Security configuration settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecuritySettings(BaseSettings):
    """Security-specific configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SECURITY__",
        case_sensitive=False,
        extra="ignore",
    )

    admin_token: str | None = Field(
        default=None,
        description="Bearer token protecting the /admin routes (open when unset)",
    )

    session_ttl_seconds: int = Field(
        default=14 * 24 * 3600,
        ge=60,
        description="Lifetime of sessions created by remote login",
    )

    session_cookie_secure: bool = Field(
        default=False,
        description="Mark the remote-login session cookie as Secure",
    )
