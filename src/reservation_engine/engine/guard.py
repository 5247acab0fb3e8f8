"""
Booking acceptance guard.

Runs the full pre-commit check for a booking request against a snapshot of
the restaurant's data. The same function runs in the HTTP client, for
immediate feedback, and in the booking service inside the create
transaction, where its answer is authoritative.

Checks, stopping at the first failure:
1. The restaurant is open on the date          -> restaurant_closed
2. The time lies in [open_time, close_time)    -> outside_operating_hours
3. The cut-off lead time has not passed        -> cutoff_passed
4. An explicit table/combination seats the party -> insufficient_capacity
5. That table/combination is free at the time  -> slot_conflict
"""
from datetime import datetime, timedelta
from typing import Any, Optional

from loguru import logger

from ..error_handling.error_messages import get_rejection_message
from ..error_handling.exceptions import UnknownTableError
from ..models.schemas import (
    BookingRequest,
    GuardContext,
    RejectionReason,
    SelectionKind,
    ValidationResult,
)
from ..utils import day_of_week, format_hhmm
from .allocation import allocate
from .conflicts import bookings_for_combination, bookings_for_table, find_occupying
from .opening_hours import is_open_at, resolve_with_special_periods


def rejection(reason: RejectionReason, **details: Any) -> ValidationResult:
    """Build a rejected result with its user-facing message."""
    return ValidationResult(
        allowed=False,
        reason=reason,
        message=get_rejection_message(reason.value, details),
        details=details,
    )


def _check_cutoff(request: BookingRequest, context: GuardContext, now: datetime) -> Optional[ValidationResult]:
    weekday = day_of_week(request.date)
    cut_off = next((c for c in context.cut_off_times if c.day_of_week == weekday), None)
    if cut_off is None or cut_off.cut_off_hours == 0:
        return None

    booking_at = datetime.combine(request.date, request.time)
    deadline = now + timedelta(hours=cut_off.cut_off_hours)
    if booking_at > deadline:
        return None
    return rejection(
        RejectionReason.CUTOFF_PASSED,
        cut_off_hours=cut_off.cut_off_hours,
        earliest=deadline.isoformat(timespec="minutes"),
    )


def _check_selection(request: BookingRequest, context: GuardContext) -> Optional[ValidationResult]:
    selection = request.table_selection
    if selection is None:
        return None

    try:
        allocation = allocate(request.party_size, context.tables, context.combinations, selection)
    except UnknownTableError as e:
        # An unknown or deactivated unit seats nobody
        logger.warning(f"Booking request references unknown {e.kind} {e.unit_id}")
        return rejection(
            RejectionReason.INSUFFICIENT_CAPACITY,
            required=request.party_size,
            available=0,
            kind=e.kind,
            id=e.unit_id,
        )

    if allocation.is_rejected:
        return rejection(
            RejectionReason.INSUFFICIENT_CAPACITY,
            required=allocation.required,
            available=allocation.available,
            kind=selection.kind.value,
            id=selection.id,
        )

    if selection.kind == SelectionKind.TABLE:
        relevant = bookings_for_table(context.bookings, selection.id, context.combinations)
    else:
        combination = next(c for c in context.combinations if c.id == selection.id)
        relevant = bookings_for_combination(context.bookings, combination, context.combinations)

    occupying = find_occupying(relevant, request.date, request.time)
    if occupying is not None:
        return rejection(
            RejectionReason.SLOT_CONFLICT,
            kind=selection.kind.value,
            id=selection.id,
            booking_id=occupying.id,
        )
    return None


def validate(
    request: BookingRequest,
    context: GuardContext,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """
    Decide whether a booking request may be accepted.

    Never raises for a business rule violation; the reason is returned in
    the result so the caller can show a specific message.

    Args:
        request: Date, time, party size and optional table selection
        context: Snapshot of opening hours, bookings, tables, combinations,
                 special periods and cut-off times
        now: Restaurant-local current time; the cut-off check is skipped
             when omitted

    Returns:
        ValidationResult with ``allowed`` and, on rejection, ``reason``,
        ``message`` and ``details``
    """
    rule = resolve_with_special_periods(context.opening_hours, context.special_periods, request.date)
    if rule is None or not rule.is_open:
        return rejection(RejectionReason.RESTAURANT_CLOSED, date=request.date.isoformat())

    if not is_open_at(rule, request.time):
        return rejection(
            RejectionReason.OUTSIDE_OPERATING_HOURS,
            open_time=format_hhmm(rule.open_time),
            close_time=format_hhmm(rule.close_time),
            requested_time=format_hhmm(request.time),
        )

    if now is not None:
        failure = _check_cutoff(request, context, now)
        if failure is not None:
            return failure

    failure = _check_selection(request, context)
    if failure is not None:
        return failure

    return ValidationResult.ok()
