"""
Configuration module for the reservation availability engine.

Loads environment variables and provides typed configuration settings for
the database, the REST client, slot grids and logging.
"""
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from .error_handling.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy connection string
        api_base_url: Base URL of the booking backend used by the HTTP client
        request_timeout_seconds: Timeout applied to every HTTP request
        request_max_retries: Attempts for retryable transport failures
        restaurant_timezone: IANA zone used for "today" and cut-off checks
        calendar_*: Coarse one-slot-per-hour grid for calendar rendering
        booking_form_*: Finer grid for guest-facing booking forms
        default_booking_duration_minutes: End time assigned to new bookings
            (None keeps bookings open-ended)
        log_level / log_to_file / log_dir: Logging configuration
    """

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./reservations.db",
        alias="DATABASE_URL",
        description="SQLAlchemy connection string"
    )

    # REST client
    api_base_url: str = Field(
        default="http://localhost:8000",
        alias="API_BASE_URL",
        description="Booking backend base URL"
    )

    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        alias="REQUEST_TIMEOUT_SECONDS",
        description="Timeout for REST calls in seconds"
    )

    request_max_retries: int = Field(
        default=3,
        ge=1,
        alias="REQUEST_MAX_RETRIES",
        description="Maximum attempts for connection failures"
    )

    # Scheduling
    restaurant_timezone: str = Field(
        default="Europe/Berlin",
        alias="RESTAURANT_TIMEZONE",
        description="Restaurant-local timezone for calendar dates"
    )

    calendar_start_hour: int = Field(default=0, ge=0, le=23, alias="CALENDAR_START_HOUR")
    calendar_end_hour: int = Field(default=23, ge=0, le=23, alias="CALENDAR_END_HOUR")
    calendar_step_minutes: int = Field(default=60, gt=0, alias="CALENDAR_STEP_MINUTES")

    booking_form_start_hour: int = Field(default=11, ge=0, le=23, alias="BOOKING_FORM_START_HOUR")
    booking_form_end_hour: int = Field(default=22, ge=0, le=23, alias="BOOKING_FORM_END_HOUR")
    booking_form_step_minutes: int = Field(default=30, gt=0, alias="BOOKING_FORM_STEP_MINUTES")

    default_booking_duration_minutes: Optional[int] = Field(
        default=None,
        gt=0,
        alias="DEFAULT_BOOKING_DURATION_MINUTES",
        description="Duration for new bookings; unset means open-ended"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_to_file: bool = Field(default=False, alias="LOG_TO_FILE")
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    @field_validator("restaurant_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names at load time."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_slot_grids(self) -> "Settings":
        """Each grid must start no later than it ends."""
        if self.calendar_start_hour > self.calendar_end_hour:
            raise ValueError("CALENDAR_START_HOUR must not be after CALENDAR_END_HOUR")
        if self.booking_form_start_hour > self.booking_form_end_hour:
            raise ValueError("BOOKING_FORM_START_HOUR must not be after BOOKING_FORM_END_HOUR")
        return self

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.restaurant_timezone)

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration

    Raises:
        ConfigurationError: If an environment value is invalid
    """
    global _settings

    if _settings is None:
        try:
            _settings = Settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}", original_error=str(e))

    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
