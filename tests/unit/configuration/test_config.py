"""Unit tests for settings and factories."""

import pytest

from sessionlink.configuration.config import DEFAULT_URL, Settings
from sessionlink.configuration.factories import build_connection_config
from sessionlink.domain.model.realtime.connection import BackoffPolicy


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "SESSIONLINK_URL",
        "SESSIONLINK_RECONNECT",
        "SESSIONLINK_RECONNECT_MAX_ATTEMPTS",
        "SESSIONLINK_PING_INTERVAL",
        "SESSIONLINK_READ_RECEIPTS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.url == DEFAULT_URL
        assert settings.reconnect is True
        assert settings.reconnect_max_attempts is None
        assert settings.log_level == "INFO"

    def test_reads_environment(self, clean_env):
        clean_env.setenv("SESSIONLINK_URL", "wss://example.com/ws")
        clean_env.setenv("SESSIONLINK_RECONNECT", "false")
        clean_env.setenv("SESSIONLINK_RECONNECT_MAX_ATTEMPTS", "5")
        clean_env.setenv("SESSIONLINK_READ_RECEIPTS", "true")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.url == "wss://example.com/ws"
        assert settings.reconnect is False
        assert settings.reconnect_max_attempts == 5
        assert settings.read_receipts is True
        assert settings.log_level == "DEBUG"

    def test_zero_max_attempts_means_unlimited(self, clean_env):
        clean_env.setenv("SESSIONLINK_RECONNECT_MAX_ATTEMPTS", "0")

        assert Settings(_env_file=None).reconnect_max_attempts is None


@pytest.mark.unit
class TestBuildConnectionConfig:
    """Tests for build_connection_config."""

    def test_maps_settings(self, clean_env):
        clean_env.setenv("SESSIONLINK_RECONNECT_MAX_ATTEMPTS", "3")
        clean_env.setenv("SESSIONLINK_PING_INTERVAL", "0")

        config = build_connection_config(Settings(_env_file=None))

        assert config.url == DEFAULT_URL
        assert config.ping_interval is None
        assert config.backoff == BackoffPolicy(max_attempts=3)

    def test_overrides_win(self, clean_env):
        config = build_connection_config(
            Settings(_env_file=None), url="ws://other/ws", auto_connect=False
        )

        assert config.url == "ws://other/ws"
        assert config.auto_connect is False
