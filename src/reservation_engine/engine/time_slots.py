"""
Bookable time slot generation.

Two grids are used: a coarse one-slot-per-hour grid for calendar rendering
and a finer grid for guest-facing booking forms. Both come from the same
stateless generator with a different step.
"""
from typing import List, Optional

from loguru import logger

from ..models.schemas import OpeningHoursRule, TimeSlot
from ..utils import format_12h, to_minutes


def make_slot(minutes: int) -> TimeSlot:
    """Build a slot from minutes since midnight."""
    value = f"{minutes // 60:02d}:{minutes % 60:02d}"
    return TimeSlot(value=value, label=format_12h(value))


def _enumerate(start_minutes: int, last_minutes: int, step_minutes: int) -> List[TimeSlot]:
    return [make_slot(m) for m in range(start_minutes, last_minutes + 1, step_minutes)]


def generate(start_hour: int, end_hour_inclusive: int, step_minutes: int) -> List[TimeSlot]:
    """
    Generate slots from ``start_hour:00`` through ``end_hour_inclusive:00``.

    The last slot is exactly ``end_hour_inclusive:00``; steps that would
    pass it are not emitted. The same arguments always give the same
    ascending sequence.

    Args:
        start_hour: First hour (0-23)
        end_hour_inclusive: Last hour whose :00 slot is included (0-23)
        step_minutes: Spacing between slots in minutes

    Returns:
        Ordered list of TimeSlot values; empty when start is after end

    Raises:
        ValueError: If an hour is out of range or the step is not positive
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")
    for hour in (start_hour, end_hour_inclusive):
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {hour}")

    return _enumerate(start_hour * 60, end_hour_inclusive * 60, step_minutes)


def generate_for_rule(rule: Optional[OpeningHoursRule], step_minutes: int) -> List[TimeSlot]:
    """
    Generate the bookable start times inside an opening hours rule.

    Slots start at ``open_time`` and stay strictly before ``close_time``,
    matching the half-open interval the acceptance guard enforces.

    Args:
        rule: Resolved rule for a date (None or closed yields no slots)
        step_minutes: Spacing between slots in minutes

    Returns:
        Ordered list of TimeSlot values
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")
    if rule is None or not rule.is_open:
        return []

    open_minutes = to_minutes(rule.open_time)
    close_minutes = to_minutes(rule.close_time)
    slots = _enumerate(open_minutes, close_minutes - 1, step_minutes)
    logger.debug(
        f"Generated {len(slots)} slots for day {rule.day_of_week} "
        f"({rule.open_time:%H:%M}-{rule.close_time:%H:%M}, step={step_minutes})"
    )
    return slots
