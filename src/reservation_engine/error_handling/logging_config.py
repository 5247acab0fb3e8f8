"""
Centralized logging configuration for the reservation engine.

This module configures loguru with a console sink and optional rotating
file sinks, plus a separate audit trail for booking decisions.
"""
import sys
from pathlib import Path
from typing import Optional
from loguru import logger


def configure_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: str = "logs",
    rotation: str = "100 MB",
    retention: str = "30 days",
    format_type: str = "detailed"
) -> None:
    """
    Configure loguru logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
        log_dir: Directory for log files
        rotation: When to rotate log files (e.g., "100 MB", "1 day")
        retention: How long to keep old log files
        format_type: Format style ("simple", "detailed", "json")
    """
    # Remove default logger
    logger.remove()

    serialize = False
    if format_type == "simple":
        format_string = "<level>{level: <8}</level> | <level>{message}</level>"
    elif format_type == "json":
        format_string = "{message}"
        serialize = True
    else:  # detailed
        format_string = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=format_string,
        level=log_level,
        colorize=not serialize,
        serialize=serialize,
        backtrace=True,
        diagnose=False
    )

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "reservations_{time:YYYY-MM-DD}.log",
            format=format_string,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
        )

        # Error log file (ERROR and CRITICAL only)
        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=format_string,
            level="ERROR",
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
        )

        # Booking decisions are kept longer as an audit trail
        logger.add(
            log_path / "bookings_{time:YYYY-MM-DD}.log",
            format=format_string,
            level="INFO",
            rotation="1 day",
            retention="1 year",
            compression="zip",
            filter=lambda record: record["extra"].get("category") == "BOOKING"
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"file_logging={log_to_file}, "
        f"format={format_type}"
    )


def log_booking_event(
    event_type: str,
    restaurant_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    details: Optional[dict] = None
) -> None:
    """
    Log a booking-related event for audit trail.

    Args:
        event_type: Type of event (e.g., "VALIDATED", "REJECTED", "CREATED", "AUTO_ASSIGNED")
        restaurant_id: Restaurant the booking belongs to
        booking_id: Booking id, once persisted
        details: Additional event details
    """
    details = details or {}

    logger.bind(category="BOOKING").info(
        f"BOOKING {event_type} | "
        f"restaurant={restaurant_id} | "
        f"booking_id={booking_id} | "
        f"details={details}"
    )


def log_api_call(
    service: str,
    operation: str,
    success: bool,
    duration: float,
    details: Optional[dict] = None
) -> None:
    """
    Log an outbound HTTP call.

    Args:
        service: Service name (e.g., "booking-api")
        operation: Operation performed (e.g., "get_bookings")
        success: Whether the call succeeded
        duration: Duration in seconds
        details: Additional call details
    """
    details = details or {}
    level = "INFO" if success else "WARNING"

    logger.bind(category="API").log(
        level,
        f"API {service}.{operation} | "
        f"success={success} | "
        f"duration={duration:.3f}s | "
        f"details={details}"
    )
