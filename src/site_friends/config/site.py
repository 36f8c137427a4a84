"""Settings describing our own site as seen by remote friends."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SiteSettings(BaseSettings):
    """Identity of the local site.

    ``url`` is what we send as ``site_url`` in friend requests and what the
    hello endpoint advertises in its ``Link`` header, so it must be the
    publicly reachable root of this service.
    """

    model_config = SettingsConfigDict(
        env_prefix="SITE__",
        case_sensitive=False,
        extra="ignore",
    )

    url: str = Field(
        default="http://localhost:8000",
        description="Public root URL of this site",
    )
    name: str | None = Field(default=None, description="Display name sent to friends")
    email: str | None = Field(default=None, description="Contact e-mail sent to friends")
    title: str = Field(default="Site Friends", description="Title of the published feed")
    avatar_url: str | None = Field(
        default=None, description="Avatar URL published with our feed items"
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")
