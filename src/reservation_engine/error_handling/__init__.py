"""
Error handling module for the reservation engine.

This module provides the error handling infrastructure:
- Custom exception hierarchy for transport, database and input errors
- User-facing message generation for rejections and failures
- Centralized error handlers and retry helpers
- Logging configuration

Validation rejections are not exceptions; see ``models.schemas.ValidationResult``.
"""

from .exceptions import (
    BookingSystemError,
    InvalidTimeFormatError,
    UnknownTableError,
    ConfigurationError,
    TransportError,
    TransportTimeoutError,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseQueryError,
)

from .error_messages import (
    GENERIC_FAILURE_MESSAGE,
    get_rejection_message,
    get_error_message,
    format_time_friendly,
    format_date_friendly,
)

from .handlers import (
    log_error,
    error_response,
    retry_on_error,
    log_function_call,
)

from .logging_config import (
    configure_logging,
    log_booking_event,
    log_api_call,
)

__all__ = [
    # Exceptions
    "BookingSystemError",
    "InvalidTimeFormatError",
    "UnknownTableError",
    "ConfigurationError",
    "TransportError",
    "TransportTimeoutError",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseQueryError",

    # Messages
    "GENERIC_FAILURE_MESSAGE",
    "get_rejection_message",
    "get_error_message",
    "format_time_friendly",
    "format_date_friendly",

    # Handlers
    "log_error",
    "error_response",
    "retry_on_error",
    "log_function_call",

    # Logging
    "configure_logging",
    "log_booking_event",
    "log_api_call",
]
