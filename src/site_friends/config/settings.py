"""Top-level settings of the Site Friends server.

Values are layered, later layers winning:

1. Field defaults of each section
2. Environment variables (``SITE__URL``, ``FEDERATION__FEED_TIMEOUT`` ...) and ``.env``
3. The TOML file: ``CONFIG_FILE``, an explicit path, or the first file found
   by ``find_toml_config_file``
4. Overrides passed in code, typically from CLI options
"""

import os
import tomllib
from pathlib import Path
from typing import Any

import structlog
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from site_friends.config.discovery import find_toml_config_file
from site_friends.exceptions import ConfigurationError

from .database import DatabaseSettings
from .federation import FederationSettings
from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .server import ServerSettings
from .site import SiteSettings


__all__ = [
    "Settings",
    "ConfigurationManager",
    "config_manager",
    "get_settings",
]


logger = structlog.get_logger(__name__)

CONFIG_FILE_ENV = "CONFIG_FILE"


def merge_sections(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into ``base`` one table deep."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file.

    Raises:
        ValueError: If the file is not ``.toml``, unreadable or malformed
    """
    if path.suffix.lower() != ".toml":
        raise ValueError(f"Unsupported config file format: {path.suffix or path.name}")
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


class Settings(BaseSettings):
    """All configuration sections of one Site Friends instance."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Listening address and logging",
    )
    site: SiteSettings = Field(
        default_factory=SiteSettings,
        description="Identity of the local site",
    )
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings,
        description="Location of the SQLite file",
    )
    federation: FederationSettings = Field(
        default_factory=FederationSettings,
        description="Outbound call and inbound rate limit settings",
    )
    scheduler: SchedulerSettings = Field(
        default_factory=SchedulerSettings,
        description="Periodic feed refresh settings",
    )
    security: SecuritySettings = Field(
        default_factory=SecuritySettings,
        description="Admin token and session cookie settings",
    )

    @field_validator(
        "server", "site", "database", "federation", "scheduler", "security",
        mode="before",
    )
    @classmethod
    def build_section(cls, value: Any, info: ValidationInfo) -> Any:
        """Build a section from a TOML table; an empty value means defaults.

        Sections are settings classes of their own, so building them here
        lets their environment variables fill what the table leaves out.
        """
        section_class = cls.model_fields[info.field_name].annotation  # type: ignore[index]
        if value is None:
            return section_class()
        if isinstance(value, dict):
            return section_class(**value)
        return value

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **overrides: Any
    ) -> "Settings":
        """Build settings from a TOML file plus keyword overrides.

        Without ``config_path`` the ``CONFIG_FILE`` variable is used, then
        discovery. A discovered or named file that does not exist is skipped.

        Raises:
            ValueError: If the config file cannot be used
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_FILE_ENV) or find_toml_config_file()
        path = Path(config_path) if config_path else None

        file_data: dict[str, Any] = {}
        if path is not None and path.exists():
            file_data = read_toml(path)
            logger.debug("config_file_loaded", path=str(path))

        return cls(**merge_sections(file_data, overrides))


class ConfigurationManager:
    """Loads settings once per config path for the CLI and the server."""

    def __init__(self) -> None:
        self._settings: Settings | None = None
        self._config_path: Path | None = None

    def load_settings(
        self,
        config_path: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ) -> Settings:
        """Return cached settings, reloading when ``config_path`` changes.

        Raises:
            ConfigurationError: If the config file cannot be used
        """
        if self._settings is None or config_path != self._config_path:
            try:
                self._settings = Settings.from_config(config_path, **(cli_overrides or {}))
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Failed to load configuration: {e}") from e
            self._config_path = config_path
        return self._settings

    @staticmethod
    def get_cli_overrides_from_args(**cli_args: Any) -> dict[str, Any]:
        """Turn CLI options that were given into settings overrides."""
        overrides: dict[str, Any] = {}

        server = {
            key: cli_args[key]
            for key in ("host", "port", "log_level", "log_file")
            if cli_args.get(key) is not None
        }
        if server:
            overrides["server"] = server
        if cli_args.get("site_url") is not None:
            overrides["site"] = {"url": cli_args["site_url"]}
        if cli_args.get("db_path") is not None:
            overrides["database"] = {"path": cli_args["db_path"]}

        return overrides

    def reset(self) -> None:
        self._settings = None
        self._config_path = None


config_manager = ConfigurationManager()


def get_settings(config_path: Path | str | None = None) -> Settings:
    """Settings for an application created without explicit ones.

    Raises:
        ConfigurationError: If the config file cannot be used
    """
    try:
        return Settings.from_config(config_path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Configuration error: {e}") from e
