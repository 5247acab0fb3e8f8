"""
Custom Exception Classes for the reservation availability engine.

Validation rejections (closed day, capacity, conflicts) are NOT exceptions:
the engine returns them as ``ValidationResult`` values. The classes here
cover the failures that do propagate:
- Transport errors between the HTTP client and the booking backend
- Database errors in the persistence layer
- Configuration and input errors

Each exception includes context for error recovery and logging.
"""

from typing import Optional, Any, Dict


class BookingSystemError(Exception):
    """Base exception for all booking system errors."""

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        """
        Initialize booking system error.

        Args:
            message: Technical error message for logging
            user_message: User-friendly message for display
            context: Additional context for error recovery
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = context or {}
        self.recoverable = recoverable


# ============================================================================
# Input Errors
# ============================================================================

class InvalidTimeFormatError(BookingSystemError, ValueError):
    """Raised when a time string is not a valid zero-padded HH:MM value."""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            f"Invalid time value {value!r}; expected HH:MM",
            user_message="Please pick a valid time.",
            context={"value": value, **kwargs},
            recoverable=True
        )
        self.value = value


class UnknownTableError(BookingSystemError):
    """Raised when a selection refers to a table or combination that does not exist."""

    def __init__(self, kind: str, unit_id: int, **kwargs):
        super().__init__(
            f"Unknown {kind} id {unit_id}",
            user_message="The selected table is no longer available. Please pick another table.",
            context={"kind": kind, "id": unit_id, **kwargs},
            recoverable=True
        )
        self.kind = kind
        self.unit_id = unit_id


class ConfigurationError(BookingSystemError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            user_message="The booking system is not configured correctly.",
            context={"setting": setting, **kwargs},
            recoverable=False
        )
        self.setting = setting


# ============================================================================
# Technical Errors - Transport
# ============================================================================

class TransportError(BookingSystemError):
    """
    Raised when the booking backend cannot be reached or answers unexpectedly.

    Distinct from a validation rejection: the request was never judged, so
    the user should simply try again.

    Examples:
    - Connection refused or DNS failure
    - Request timeout
    - 5xx response or malformed JSON body
    """

    reason = "transport_error"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        """
        Initialize transport error.

        Args:
            message: Error message
            operation: Client operation that failed (e.g. "get_bookings")
            status_code: HTTP status code, if a response was received
            original_error: Underlying requests exception
            **kwargs: Additional context
        """
        context = {
            "operation": operation,
            "status_code": status_code,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(
            message,
            user_message="Failed to load or save booking data. Please try again.",
            context=context,
            recoverable=True
        )
        self.operation = operation
        self.status_code = status_code
        self.original_error = original_error


class TransportTimeoutError(TransportError):
    """Raised when a request to the booking backend times out."""

    def __init__(self, operation: str, timeout_seconds: float, **kwargs):
        super().__init__(
            f"Request {operation} timed out after {timeout_seconds}s",
            operation=operation,
            timeout_seconds=timeout_seconds,
            **kwargs
        )
        self.timeout_seconds = timeout_seconds


# ============================================================================
# Technical Errors - Database
# ============================================================================

class DatabaseError(BookingSystemError):
    """
    Raised when database operations fail.

    Examples:
    - Connection failures
    - Query errors
    - Constraint violations that are not booking conflicts
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        can_retry: bool = True,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        """
        Initialize database error.

        Args:
            message: Error message
            operation: Database operation that failed
            can_retry: Whether operation can be retried
            original_error: Original exception
            **kwargs: Additional context (user_message is honoured)
        """
        user_message = kwargs.pop(
            "user_message",
            "Failed to load or save booking data. Please try again."
        )
        context = {
            "operation": operation,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(message, user_message, context, recoverable=True)
        self.operation = operation
        self.retry_possible = can_retry
        self.original_error = original_error


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message, operation="connection", **kwargs)


class DatabaseQueryError(DatabaseError):
    """Raised when a database query fails."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, operation="query", query=query, **kwargs)
