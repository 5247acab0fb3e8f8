"""
Unit tests for the booking service.

Tests:
- Snapshot queries against the database
- validate_booking() with the server clock
- create_booking() for manual, combination and automatic assignment
- Rejection of a second concurrent writer, by the unique index or by the
  re-read inside the write transaction
- Combination creation, time slots and the availability grid
"""
from datetime import datetime, time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from reservation_engine.error_handling import DatabaseConnectionError, UnknownTableError
from reservation_engine.models.database import Booking, CutOffTimeRecord, DiningTable
from reservation_engine.models.schemas import (
    BookingCreate,
    BookingRequest,
    CombinedTableCreate,
    GuardContext,
    RejectionReason,
)
from reservation_engine.services.booking_service import BookingService

from conftest import FRIDAY, MONDAY, SATURDAY


def booking_data(at="18:30", party_size=2, selection=None, day=FRIDAY, **kwargs) -> BookingCreate:
    return BookingCreate(
        restaurant_id=1,
        date=day,
        time=at,
        party_size=party_size,
        table_selection=selection,
        customer_name=kwargs.pop("customer_name", "Jane Doe"),
        customer_phone=kwargs.pop("customer_phone", "+49 30 1234567"),
        **kwargs,
    )


class TestSnapshotQueries:
    """Test the reads that feed the engine."""

    def test_get_tables_excludes_inactive(self, booking_service, db_session: Session, restaurant):
        db_session.get(DiningTable, 2).is_active = False
        db_session.commit()

        tables = booking_service.get_tables(restaurant)

        assert [t.id for t in tables] == [1, 3, 4, 5]

    def test_get_opening_hours(self, booking_service, restaurant):
        rules = booking_service.get_opening_hours(restaurant)

        assert [r.day_of_week for r in rules] == [1, 5, 6]

    def test_get_combined_tables(self, booking_service, restaurant):
        combinations = booking_service.get_combined_tables(restaurant)

        assert len(combinations) == 1
        assert combinations[0].table_ids == [3, 4]

    def test_get_bookings_filters_by_table(self, booking_service, friday_booking, restaurant):
        assert len(booking_service.get_bookings(restaurant, FRIDAY)) == 1
        assert booking_service.get_bookings(restaurant, FRIDAY, table_id=5)[0].id == friday_booking.id
        assert booking_service.get_bookings(restaurant, FRIDAY, table_id=1) == []
        assert booking_service.get_bookings(restaurant, SATURDAY) == []

    def test_other_restaurant_is_isolated(self, booking_service, restaurant):
        assert booking_service.get_tables(2) == []
        assert booking_service.get_opening_hours(2) == []


class TestValidateBooking:
    """Test server-side validation without writing."""

    def test_conflict_at_existing_booking(self, booking_service, friday_booking):
        request = BookingRequest(restaurant_id=1, date=FRIDAY, time="19:00", party_size=2,
                                 table_selection={"kind": "table", "id": 5})

        result = booking_service.validate_booking(request)

        assert result.reason == RejectionReason.SLOT_CONFLICT

    def test_closed_monday(self, booking_service, restaurant):
        request = BookingRequest(restaurant_id=1, date=MONDAY, time="19:00", party_size=2)

        assert booking_service.validate_booking(request).reason == RejectionReason.RESTAURANT_CLOSED

    def test_cutoff_uses_service_clock(self, booking_service, db_session, restaurant):
        db_session.add(CutOffTimeRecord(restaurant_id=1, day_of_week=5, cut_off_hours=3))
        db_session.commit()
        request = BookingRequest(restaurant_id=1, date=FRIDAY, time="19:00", party_size=2)

        with patch.object(BookingService, "now", return_value=datetime(2024, 6, 7, 17, 0)):
            result = booking_service.validate_booking(request)

        assert result.reason == RejectionReason.CUTOFF_PASSED

    def test_connection_failure_raises(self, booking_service, restaurant):
        request = BookingRequest(restaurant_id=1, date=FRIDAY, time="19:00", party_size=2)
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))

        with patch.object(BookingService, "_read_context", side_effect=error), \
                patch("reservation_engine.error_handling.handlers.time.sleep"):
            with pytest.raises(DatabaseConnectionError):
                booking_service.validate_booking(request)


class TestCreateBooking:
    """Test the guarded create transaction."""

    def test_manual_table_booking(self, booking_service, db_session, friday_booking):
        booking, result = booking_service.create_booking(
            booking_data(at="18:30", selection={"kind": "table", "id": 5})
        )

        assert result.allowed is True
        assert booking is not None
        assert booking.id is not None
        assert booking.table_id == 5
        assert booking.assignment_type == "manual"
        assert booking.end_time is None
        assert db_session.query(Booking).count() == 2

    def test_conflict_is_rejected_and_nothing_written(self, booking_service, db_session, friday_booking):
        booking, result = booking_service.create_booking(
            booking_data(at="19:00", selection={"kind": "table", "id": 5})
        )

        assert booking is None
        assert result.reason == RejectionReason.SLOT_CONFLICT
        assert db_session.query(Booking).count() == 1

    def test_capacity_rejection(self, booking_service, restaurant):
        booking, result = booking_service.create_booking(
            booking_data(party_size=6, selection={"kind": "table", "id": 3})
        )

        assert booking is None
        assert result.message == "Selected table can only accommodate 4 guests. You have 6 guests."

    def test_combination_booking_blocks_members(self, booking_service, restaurant):
        booking, result = booking_service.create_booking(
            booking_data(at="19:00", party_size=8, selection={"kind": "combination", "id": 1})
        )
        assert result.allowed is True
        assert booking.combined_table_id == 1
        assert booking.table_id is None

        _, member_result = booking_service.create_booking(
            booking_data(at="19:30", party_size=2, selection={"kind": "table", "id": 3})
        )

        assert member_result.reason == RejectionReason.SLOT_CONFLICT

    def test_auto_assignment_picks_smallest_free_table(self, booking_service, restaurant):
        first, _ = booking_service.create_booking(booking_data(at="19:00", party_size=2))
        second, _ = booking_service.create_booking(booking_data(at="19:00", party_size=2))

        assert first.table_id == 1
        assert second.table_id == 2
        assert first.assignment_type == "auto"

    def test_auto_assignment_without_room(self, booking_service, restaurant):
        booking, result = booking_service.create_booking(booking_data(party_size=12))

        assert booking is None
        assert result.reason == RejectionReason.INSUFFICIENT_CAPACITY
        assert result.details["available"] == 8

    def test_default_duration_sets_end_time(self, db_session, settings, restaurant):
        settings.default_booking_duration_minutes = 120
        service = BookingService(db_session, settings=settings)

        booking, _ = service.create_booking(booking_data(at="20:00", selection={"kind": "table", "id": 1}))

        assert booking.end_time == time(22, 0)

    def test_explicit_end_time_is_kept(self, booking_service, restaurant):
        booking, _ = booking_service.create_booking(
            booking_data(at="18:00", end_time="19:30", selection={"kind": "table", "id": 1})
        )

        assert booking.end_time == time(19, 30)

    def test_second_writer_rejected_by_unique_index(self, booking_service, db_session, restaurant):
        """
        Simulate two writers that both validated against the same empty
        snapshot: the second insert hits the unique index.
        """
        first, _ = booking_service.create_booking(
            booking_data(at="19:00", selection={"kind": "table", "id": 5})
        )
        assert first is not None

        stale = GuardContext(
            opening_hours=booking_service.get_opening_hours(1),
            tables=booking_service.get_tables(1),
            combinations=booking_service.get_combined_tables(1),
        )
        with patch.object(BookingService, "_read_context", return_value=stale):
            second, result = booking_service.create_booking(
                booking_data(at="19:00", selection={"kind": "table", "id": 5}, customer_name="Late Writer")
            )

        assert second is None
        assert result.reason == RejectionReason.SLOT_CONFLICT
        assert db_session.query(Booking).count() == 1

    def test_second_writer_with_later_start_is_rejected(self, booking_service, db_session, restaurant):
        """
        The stale writer starts half an hour later, so the unique index does
        not fire; the re-read inside the transaction still finds table 5 taken.
        """
        first, _ = booking_service.create_booking(
            booking_data(at="19:00", end_time="20:30", selection={"kind": "table", "id": 5})
        )
        assert first is not None

        stale = GuardContext(
            opening_hours=booking_service.get_opening_hours(1),
            tables=booking_service.get_tables(1),
            combinations=booking_service.get_combined_tables(1),
        )
        with patch.object(BookingService, "_read_context", return_value=stale):
            second, result = booking_service.create_booking(
                booking_data(at="19:30", end_time="21:00", selection={"kind": "table", "id": 5},
                             customer_name="Late Writer")
            )

        assert second is None
        assert result.reason == RejectionReason.SLOT_CONFLICT
        assert [b.start_time for b in db_session.query(Booking).all()] == [time(19, 0)]

    def test_member_table_racing_combination_is_rejected(self, booking_service, db_session, restaurant):
        first, _ = booking_service.create_booking(
            booking_data(at="19:00", party_size=6, selection={"kind": "combination", "id": 1})
        )
        assert first is not None

        stale = GuardContext(
            opening_hours=booking_service.get_opening_hours(1),
            tables=booking_service.get_tables(1),
            combinations=booking_service.get_combined_tables(1),
        )
        with patch.object(BookingService, "_read_context", return_value=stale):
            second, result = booking_service.create_booking(
                booking_data(at="19:00", selection={"kind": "table", "id": 3}, customer_name="Late Writer")
            )

        assert second is None
        assert result.reason == RejectionReason.SLOT_CONFLICT
        assert db_session.query(Booking).count() == 1

    def test_earlier_open_ended_booking_still_allowed(self, booking_service, friday_booking):
        booking, result = booking_service.create_booking(
            booking_data(at="18:30", selection={"kind": "table", "id": 5})
        )

        assert result.allowed is True
        assert booking.start_time == time(18, 30)
        assert booking.created_at is not None

    def test_cancelled_booking_releases_slot(self, booking_service, db_session, friday_booking):
        friday_booking.status = "cancelled"
        db_session.commit()

        booking, result = booking_service.create_booking(
            booking_data(at="19:00", selection={"kind": "table", "id": 5})
        )

        assert result.allowed is True
        assert booking.table_id == 5


class TestCombinedTables:
    """Test combination creation."""

    def test_capacity_is_sum_of_members(self, booking_service, restaurant):
        combination = booking_service.create_combined_table(
            restaurant, CombinedTableCreate(name="T1+T2", table_ids=[1, 2])
        )

        assert combination.id is not None
        assert combination.total_capacity == 4

    def test_unknown_member_is_rejected(self, booking_service, restaurant):
        with pytest.raises(UnknownTableError):
            booking_service.create_combined_table(
                restaurant, CombinedTableCreate(name="Ghost", table_ids=[1, 99])
            )


class TestSlotViews:
    """Test time slots and the availability grid."""

    def test_time_slots_inside_opening_and_form_window(self, booking_service, restaurant):
        slots = booking_service.get_time_slots(restaurant, FRIDAY)

        values = [slot.value for slot in slots]
        assert values[0] == "17:00"
        # Booking form grid ends at 22:00
        assert values[-1] == "22:00"

    def test_time_slots_custom_step(self, booking_service, restaurant):
        slots = booking_service.get_time_slots(restaurant, FRIDAY, step_minutes=60)

        assert [slot.value for slot in slots] == ["17:00", "18:00", "19:00", "20:00", "21:00", "22:00"]

    def test_closed_day_has_no_slots(self, booking_service, restaurant):
        assert booking_service.get_time_slots(restaurant, MONDAY) == []

    def test_availability_grid(self, booking_service, friday_booking, restaurant):
        grid = booking_service.get_availability_grid(restaurant, FRIDAY)

        assert len(grid) == 5
        table_5 = next(row for row in grid if row.table_id == 5)
        occupied = [cell.value for cell in table_5.slots if cell.occupied]
        assert occupied == ["19:00", "20:00", "21:00", "22:00", "23:00"]
        assert len(table_5.slots) == 24
