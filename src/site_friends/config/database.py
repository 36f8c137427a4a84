"""Database configuration settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from site_friends.config.discovery import data_dir


def _default_db_path() -> Path:
    return data_dir() / "friends.db"


class DatabaseSettings(BaseSettings):
    """SQLite database location."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE__",
        case_sensitive=False,
        extra="ignore",
    )

    path: Path = Field(
        default_factory=_default_db_path,
        description="Path of the SQLite database file",
    )
