"""
Centralized error handling utilities for the booking system.

This module provides utilities for:
- Error logging with context
- Retrying transient database failures
- Translating technical errors into user-facing responses
"""
import time
import functools
from typing import Optional, Callable, Any, Dict
from loguru import logger

from .exceptions import (
    BookingSystemError,
    ConfigurationError,
    DatabaseError,
    TransportError,
)
from .error_messages import get_error_message


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    severity: str = "ERROR"
) -> None:
    """
    Log an error with its context.

    Args:
        error: Exception that occurred
        context: Additional context information
        severity: Log severity level (ERROR, WARNING, CRITICAL)
    """
    entry: Dict[str, Any] = {"error_type": type(error).__name__}
    if isinstance(error, BookingSystemError):
        entry.update(error.context)
        entry["recoverable"] = error.recoverable
    if context:
        entry.update(context)

    logger.bind(category="ERROR").log(
        severity.upper(),
        f"{entry['error_type']}: {error} | context={entry}"
    )


def error_response(error: Exception) -> Dict[str, Any]:
    """
    Build the response payload for a technical error.

    Returns:
        Dictionary with:
        - message: Message to show the user
        - error_type: Exception class name
        - retryable: Whether the user should simply try again
    """
    if isinstance(error, ConfigurationError):
        severity = "CRITICAL"
    else:
        severity = "ERROR"
    log_error(error, severity=severity)

    retryable = False
    if isinstance(error, TransportError):
        retryable = True
    elif isinstance(error, DatabaseError):
        retryable = error.retry_possible

    return {
        "message": get_error_message(error),
        "error_type": type(error).__name__,
        "retryable": retryable,
    }


def retry_on_error(
    max_retries: int = 3,
    exceptions: tuple = (Exception,),
    backoff_factor: float = 1.0,
    initial_delay: float = 0.1
):
    """
    Decorator for retrying functions on specific exceptions.

    Args:
        max_retries: Maximum number of attempts
        exceptions: Tuple of exception types to retry on
        backoff_factor: Multiplier applied to the delay after each attempt
        initial_delay: Delay before the second attempt in seconds

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = initial_delay
            last_exception: Optional[Exception] = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_retries - 1:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_retries} failed for {func.__name__}: {str(e)}. "
                            f"Retrying in {current_delay}s..."
                        )
                        time.sleep(current_delay)
                        current_delay *= max(backoff_factor, 1.0) * 2
                    else:
                        logger.error(
                            f"All {max_retries} attempts failed for {func.__name__}: {str(e)}"
                        )

            # All attempts failed, raise last exception
            raise last_exception

        return wrapper
    return decorator


def log_function_call(func: Callable) -> Callable:
    """
    Decorator for logging function calls and execution time.

    Args:
        func: Function to log

    Returns:
        Decorated function with logging
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        logger.debug(f"Calling {func.__name__}")

        try:
            result = func(*args, **kwargs)
            duration = time.time() - start_time
            logger.debug(f"{func.__name__} completed in {duration:.3f}s")
            return result
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"{func.__name__} failed after {duration:.3f}s: {str(e)}")
            raise

    return wrapper
