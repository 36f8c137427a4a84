# tests/unit/config/test_settings.py
"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from site_friends.config.settings import ConfigurationManager, Settings
from site_friends.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config discovery away from the developer's own files."""
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    monkeypatch.chdir(tmp_path)


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.federation.protocol_timeout == 20.0
        assert settings.federation.feed_timeout == 30.0
        assert settings.federation.max_redirects == 5
        assert settings.scheduler.sync_interval_hours == 1.0
        assert settings.security.admin_token is None
        assert settings.server.log_level == "INFO"

    def test_nested_environment(self, monkeypatch):
        monkeypatch.setenv("FEDERATION__RATE_LIMIT_REQUESTS", "9")
        monkeypatch.setenv("SITE__URL", "https://env.example/")

        settings = Settings()

        assert settings.federation.rate_limit_requests == 9
        assert settings.site.url == "https://env.example"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(server={"log_level": "LOUD"})

    def test_toml_file(self, tmp_path):
        config = tmp_path / "friends.toml"
        config.write_text(
            '[site]\nurl = "https://toml.example/"\nname = "Toml"\n\n'
            "[scheduler]\nenabled = false\n"
        )

        settings = Settings.from_config(config)

        assert settings.site.url == "https://toml.example"
        assert settings.site.name == "Toml"
        assert settings.scheduler.enabled is False

    def test_discovers_local_config(self, tmp_path):
        (tmp_path / "site_friends.toml").write_text('[site]\nname = "Local"\n')

        assert Settings.from_config().site.name == "Local"


class TestConfigurationManager:
    def test_cli_overrides(self):
        overrides = ConfigurationManager.get_cli_overrides_from_args(
            host="0.0.0.0",
            port=None,
            site_url="https://cli.example",
            db_path=Path("/tmp/friends.db"),
        )

        assert overrides == {
            "server": {"host": "0.0.0.0"},
            "site": {"url": "https://cli.example"},
            "database": {"path": Path("/tmp/friends.db")},
        }

    def test_overrides_win_over_file(self, tmp_path):
        config = tmp_path / "friends.toml"
        config.write_text('[server]\nport = 9000\nhost = "127.0.0.2"\n')

        settings = ConfigurationManager().load_settings(
            config, {"server": {"port": 9100}}
        )

        assert settings.server.port == 9100
        assert settings.server.host == "127.0.0.2"

    def test_unsupported_format(self, tmp_path):
        config = tmp_path / "friends.yaml"
        config.write_text("site: {}\n")

        with pytest.raises(ConfigurationError):
            ConfigurationManager().load_settings(config)

    def test_broken_toml(self, tmp_path):
        config = tmp_path / "friends.toml"
        config.write_text("[site\n")

        with pytest.raises(ConfigurationError):
            ConfigurationManager().load_settings(config)

    def test_caches_until_path_changes(self, tmp_path):
        manager = ConfigurationManager()
        first = manager.load_settings()

        assert manager.load_settings() is first
        manager.reset()
        assert manager.load_settings() is not first
