"""
Unit tests for opening hours resolution.

Tests:
- resolve() weekday matching (0 = Sunday .. 6 = Saturday)
- Missing and duplicate rules
- Special period overrides
"""
from datetime import date, time

from reservation_engine.engine import is_open_at, resolve, resolve_with_special_periods
from reservation_engine.models.schemas import OpeningHoursRule, SpecialPeriod

from conftest import FRIDAY, MONDAY, SUNDAY


class TestResolve:
    """Test weekday rule lookup."""

    def test_resolves_friday_rule(self, opening_hours):
        rule = resolve(opening_hours, FRIDAY)

        assert rule is not None
        assert rule.day_of_week == 5
        assert rule.open_time == time(17, 0)
        assert rule.close_time == time(23, 0)

    def test_sunday_is_day_zero(self):
        rules = [OpeningHoursRule(day_of_week=0, open_time="10:00", close_time="14:00")]

        assert resolve(rules, SUNDAY) is rules[0]

    def test_missing_rule_returns_none(self, opening_hours):
        """A weekday without a rule is treated as closed by callers."""
        assert resolve(opening_hours, SUNDAY) is None

    def test_closed_rule_is_returned(self, opening_hours):
        rule = resolve(opening_hours, MONDAY)

        assert rule is not None
        assert rule.is_open is False

    def test_first_duplicate_wins(self):
        rules = [
            OpeningHoursRule(day_of_week=5, open_time="17:00", close_time="23:00"),
            OpeningHoursRule(day_of_week=5, open_time="12:00", close_time="15:00"),
        ]

        assert resolve(rules, FRIDAY).open_time == time(17, 0)


class TestSpecialPeriods:
    """Test that dated periods take precedence over weekday rules."""

    def test_closed_period_closes_open_day(self, opening_hours):
        period = SpecialPeriod(name="Private event", start_date=FRIDAY, end_date=FRIDAY, is_open=False)

        rule = resolve_with_special_periods(opening_hours, [period], FRIDAY)

        assert rule is not None
        assert rule.is_open is False

    def test_open_period_with_times_replaces_hours(self, opening_hours):
        period = SpecialPeriod(
            name="Late opening",
            start_date=date(2024, 6, 1),
            end_date=date(2024, 6, 30),
            is_open=True,
            open_time="19:00",
            close_time="23:30",
        )

        rule = resolve_with_special_periods(opening_hours, [period], FRIDAY)

        assert rule.open_time == time(19, 0)
        assert rule.close_time == time(23, 30)

    def test_open_period_opens_day_without_rule(self, opening_hours):
        period = SpecialPeriod(
            name="Sunday brunch",
            start_date=SUNDAY,
            end_date=SUNDAY,
            is_open=True,
            open_time="10:00",
            close_time="15:00",
        )

        rule = resolve_with_special_periods(opening_hours, [period], SUNDAY)

        assert rule is not None
        assert rule.is_open is True
        assert rule.day_of_week == 0

    def test_open_period_without_times_keeps_weekday_rule(self, opening_hours):
        period = SpecialPeriod(name="Season", start_date=FRIDAY, end_date=FRIDAY, is_open=True)

        rule = resolve_with_special_periods(opening_hours, [period], FRIDAY)

        assert rule.open_time == time(17, 0)

    def test_period_outside_date_is_ignored(self, opening_hours):
        period = SpecialPeriod(name="Holiday", start_date=date(2024, 12, 24), end_date=date(2024, 12, 26), is_open=False)

        rule = resolve_with_special_periods(opening_hours, [period], FRIDAY)

        assert rule.is_open is True


class TestIsOpenAt:
    """Test the half-open operating interval."""

    def test_open_time_is_inside(self, opening_hours):
        assert is_open_at(resolve(opening_hours, FRIDAY), time(17, 0)) is True

    def test_close_time_is_outside(self, opening_hours):
        assert is_open_at(resolve(opening_hours, FRIDAY), time(23, 0)) is False

    def test_closed_or_missing_rule(self, opening_hours):
        assert is_open_at(resolve(opening_hours, MONDAY), time(18, 0)) is False
        assert is_open_at(None, time(18, 0)) is False
