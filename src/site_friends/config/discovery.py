"""Where the server looks for its TOML file and keeps its database."""

from pathlib import Path

import platformdirs


APP_DIR_NAME = "site_friends"

# Checked in order, relative to the working directory
LOCAL_CONFIG_NAMES = (".site_friends.toml", "site_friends.toml")


def config_dir() -> Path:
    """Per-user configuration directory of the server."""
    return platformdirs.user_config_path(APP_DIR_NAME)


def data_dir() -> Path:
    """Per-user data directory, home of the default SQLite file."""
    return platformdirs.user_data_path(APP_DIR_NAME)


def find_toml_config_file() -> Path | None:
    """First existing config file: local names, then ``config_dir()/config.toml``."""
    candidates = [Path(name).resolve() for name in LOCAL_CONFIG_NAMES]
    candidates.append(config_dir() / "config.toml")
    return next((path for path in candidates if path.is_file()), None)
