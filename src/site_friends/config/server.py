"""HTTP server configuration settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServerSettings(BaseSettings):
    """Server-specific configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SERVER__",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="Interface to bind to")
    port: int = Field(default=8000, ge=1, le=65535, description="Port to bind to")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(
        default=None, description="Optional file to mirror logs into"
    )
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {LOG_LEVELS}")
        return level
