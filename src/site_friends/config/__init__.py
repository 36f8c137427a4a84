"""Configuration module for the Site Friends server."""

from site_friends.exceptions import ConfigurationError

from .database import DatabaseSettings
from .federation import FederationSettings
from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .server import ServerSettings
from .settings import Settings, config_manager, get_settings
from .site import SiteSettings


__all__ = [
    "Settings",
    "get_settings",
    "config_manager",
    "ServerSettings",
    "SiteSettings",
    "DatabaseSettings",
    "FederationSettings",
    "SchedulerSettings",
    "SecuritySettings",
    "ConfigurationError",
]
