"""Unit tests for configuration management."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from trunklink import config
from trunklink.config import Settings, get_settings


class TestSettingsDefault:
    """Test default configuration values."""

    def test_default_values(self):
        settings = Settings(_env_file=None)

        assert settings.host == "0.0.0.0"
        assert settings.port == 4000
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"

        assert settings.poll_interval_seconds == 10
        assert settings.initial_delay_seconds == 5
        assert settings.proximity_radius_km == 5
        assert settings.proximity_cooldown_ms == 300_000
        assert settings.running_cooldown_ms == 300_000
        assert settings.proximity_broadcast is False

        assert settings.push_channel == "fcm"
        assert settings.metrics_enabled is True

    def test_entities_url(self):
        settings = Settings(
            _env_file=None,
            data_source_url="https://trunklink-default-rtdb.firebaseio.com/",
            data_source_path="/elephants/",
        )

        assert settings.entities_url == (
            "https://trunklink-default-rtdb.firebaseio.com/elephants.json"
        )


class TestSettingsEnvironmentVariables:
    """Test configuration from environment variables."""

    def test_environment_variables(self):
        env_vars = {
            "TRUNKLINK_PORT": "9000",
            "TRUNKLINK_DATA_SOURCE_URL": "https://example-rtdb.firebaseio.com",
            "TRUNKLINK_PROXIMITY_RADIUS_KM": "2.5",
            "TRUNKLINK_PUSH_CHANNEL": "LOG",
            "TRUNKLINK_WATCH_ENABLED": "false",
        }

        with patch.dict(os.environ, env_vars):
            settings = Settings(_env_file=None)

        assert settings.port == 9000
        assert settings.data_source_url == "https://example-rtdb.firebaseio.com"
        assert settings.proximity_radius_km == 2.5
        assert settings.push_channel == "log"
        assert settings.watch_enabled is False


class TestSettingsValidation:
    """Test rejected values."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"poll_interval_seconds": 0},
            {"proximity_radius_km": -1},
            {"proximity_cooldown_ms": -5},
            {"data_source_timeout": 30},
            {"push_timeout": 0},
            {"push_channel": "sms"},
            {"log_format": "xml"},
            {"alert_history_size": 0},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_zero_cooldown_allowed(self):
        settings = Settings(_env_file=None, proximity_cooldown_ms=0, initial_delay_seconds=0)

        assert settings.proximity_cooldown_ms == 0


class TestSettingsAccessor:
    """Test the cached settings accessor."""

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_no_settings_built_at_import(self):
        assert not hasattr(config, "settings")
