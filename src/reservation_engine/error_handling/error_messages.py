"""
User-facing messages for booking rejections and technical errors.

A rejected submission must never fail silently: every rejection reason
maps to a specific, actionable sentence so the user can change the party
size, the time or the table.
"""
from datetime import date, datetime, time
from typing import Any, Dict, Optional

from .exceptions import BookingSystemError, DatabaseError, TransportError

GENERIC_FAILURE_MESSAGE = "Failed to load or save booking data. Please try again."


def format_time_friendly(time_obj: time) -> str:
    """
    Format time in a friendly format.

    Args:
        time_obj: Time to format

    Returns:
        Friendly time string (e.g., "6:30 PM", "12:00 AM")
    """
    # Imported here: utils imports this package for its exceptions
    from ..utils import format_12h
    return format_12h(time_obj)


def format_date_friendly(date_obj: date) -> str:
    """Format a date as e.g. "Friday, June 7"."""
    return f"{date_obj.strftime('%A, %B')} {date_obj.day}"


def _as_time(value: Any) -> Optional[time]:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%H:%M").time()
        except ValueError:
            return None
    return None


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


def _closed_message(details: Dict[str, Any]) -> str:
    day = _as_date(details.get("date"))
    if day is not None:
        return f"The restaurant is closed on {format_date_friendly(day)}. Please choose another date."
    return "The restaurant is closed on the selected date. Please choose another date."


def _outside_hours_message(details: Dict[str, Any]) -> str:
    open_time = _as_time(details.get("open_time"))
    close_time = _as_time(details.get("close_time"))
    if open_time is not None and close_time is not None:
        return (
            f"Bookings are only possible between {format_time_friendly(open_time)} "
            f"and {format_time_friendly(close_time)}. Please choose another time."
        )
    return "The selected time is outside our operating hours. Please choose another time."


def _cutoff_message(details: Dict[str, Any]) -> str:
    hours = details.get("cut_off_hours")
    if hours:
        unit = "hour" if hours == 1 else "hours"
        return (
            f"Online bookings close {hours} {unit} before the reservation time. "
            "Please choose a later time or call the restaurant."
        )
    return "It is too late to book this time online. Please choose a later time."


def _capacity_message(details: Dict[str, Any]) -> str:
    required = details.get("required")
    available = details.get("available")
    if required is not None and available is not None:
        return (
            f"Selected table can only accommodate {available} guests. "
            f"You have {required} guests."
        )
    return "The selected table is too small for your party. Please pick a larger table."


def _conflict_message(details: Dict[str, Any]) -> str:
    return "The selected table is already booked at this time. Please pick another time or table."


_REJECTION_MESSAGES = {
    "restaurant_closed": _closed_message,
    "outside_operating_hours": _outside_hours_message,
    "cutoff_passed": _cutoff_message,
    "insufficient_capacity": _capacity_message,
    "slot_conflict": _conflict_message,
}


def get_rejection_message(reason: str, details: Optional[Dict[str, Any]] = None) -> str:
    """
    Generate the user-facing message for a rejection reason.

    Args:
        reason: Rejection reason value (e.g. "slot_conflict")
        details: Values collected by the guard (times, capacities, date)

    Returns:
        Specific, actionable message
    """
    builder = _REJECTION_MESSAGES.get(str(getattr(reason, "value", reason)))
    if builder is None:
        return "The booking could not be accepted. Please review your selection."
    return builder(details or {})


def get_error_message(error: Exception) -> str:
    """
    Get a user-friendly message for a technical error.

    Transport and database failures get the generic retry message; they
    must never be shown as a validation rejection.
    """
    if isinstance(error, (TransportError, DatabaseError)):
        return GENERIC_FAILURE_MESSAGE
    if isinstance(error, BookingSystemError):
        return error.user_message
    return GENERIC_FAILURE_MESSAGE
