"""
Unit tests for configuration loading.
"""
import pytest
from pydantic import ValidationError

from reservation_engine.config import Settings, get_settings, reset_settings
from reservation_engine.error_handling import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


class TestSettings:
    """Test defaults, environment overrides and validation."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.calendar_step_minutes == 60
        assert (settings.booking_form_start_hour, settings.booking_form_end_hour) == (11, 22)
        assert settings.booking_form_step_minutes == 30
        assert settings.default_booking_duration_minutes is None
        assert settings.request_timeout_seconds > 0

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "3.5")
        monkeypatch.setenv("RESTAURANT_TIMEZONE", "America/New_York")

        settings = Settings(_env_file=None)

        assert settings.request_timeout_seconds == 3.5
        assert settings.timezone.key == "America/New_York"

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, restaurant_timezone="Mars/Olympus")

    def test_grid_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, booking_form_start_hour=22, booking_form_end_hour=11)

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


class TestGetSettings:
    """Test the cached global instance."""

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_invalid_environment_raises_configuration_error(self, monkeypatch):
        monkeypatch.setenv("REQUEST_MAX_RETRIES", "0")

        with pytest.raises(ConfigurationError):
            get_settings()
