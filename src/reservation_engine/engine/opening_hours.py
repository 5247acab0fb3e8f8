"""
Opening hours resolution.

Maps a calendar date to the opening hours rule that governs it. Weekday
rules use 0 = Sunday .. 6 = Saturday. Dated special periods, when given,
take precedence over the weekday rule.
"""
from datetime import date, time
from typing import Iterable, Optional

from ..models.schemas import OpeningHoursRule, SpecialPeriod
from ..utils import day_of_week


def resolve(rules: Iterable[OpeningHoursRule], target_date: date) -> Optional[OpeningHoursRule]:
    """
    Find the opening hours rule for the weekday of ``target_date``.

    Callers are expected to pass at most one rule per weekday; with
    duplicates the first match wins.

    Args:
        rules: Weekly opening hours of one restaurant
        target_date: Restaurant-local calendar date

    Returns:
        The matching rule, or None when the weekday has no rule (closed)
    """
    weekday = day_of_week(target_date)
    for rule in rules:
        if rule.day_of_week == weekday:
            return rule
    return None


def resolve_with_special_periods(
    rules: Iterable[OpeningHoursRule],
    special_periods: Iterable[SpecialPeriod],
    target_date: date,
) -> Optional[OpeningHoursRule]:
    """
    Resolve the effective opening hours for a date, honouring special periods.

    A special period covering the date overrides the weekday rule:
    - closed period: the day is closed
    - open period with times: those times apply
    - open period without times: the weekday rule's times apply

    Args:
        rules: Weekly opening hours
        special_periods: Dated overrides
        target_date: Restaurant-local calendar date

    Returns:
        Effective rule for the date, or None if no rule applies
    """
    weekday_rule = resolve(rules, target_date)
    period = next((p for p in special_periods if p.covers(target_date)), None)

    if period is None:
        return weekday_rule

    weekday = day_of_week(target_date)
    if not period.is_open:
        return OpeningHoursRule(
            day_of_week=weekday,
            is_open=False,
            open_time=weekday_rule.open_time if weekday_rule else time(0, 0),
            close_time=weekday_rule.close_time if weekday_rule else time(0, 0),
        )

    if period.open_time is not None:
        return OpeningHoursRule(
            day_of_week=weekday,
            is_open=True,
            open_time=period.open_time,
            close_time=period.close_time,
        )

    # Open period without its own times leaves the weekday rule in force
    return weekday_rule


def is_open_at(rule: Optional[OpeningHoursRule], at: time) -> bool:
    """True when ``at`` lies in [open_time, close_time) of an open rule."""
    if rule is None or not rule.is_open:
        return False
    return rule.open_time <= at < rule.close_time
