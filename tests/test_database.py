"""
Unit tests for database models and operations.

Tests:
- Database initialization and session management
- Booking, table and combination persistence
- Constraint violations (invalid data, double booking of a slot)
"""
import pytest
from datetime import time, timedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reservation_engine.models import database
from reservation_engine.models.database import (
    Booking,
    CombinedTable,
    DiningTable,
    OpeningHours,
    create_tables,
    get_db_session,
    init_db,
)
from reservation_engine.models.schemas import BookingInfo, CombinedTableInfo, OpeningHoursRule
from reservation_engine.utils import utc_now

from conftest import FRIDAY


def make_booking(**overrides) -> Booking:
    fields = dict(
        restaurant_id=1,
        table_id=1,
        booking_date=FRIDAY,
        start_time=time(19, 0),
        guest_count=2,
        customer_name="John Doe",
        status="confirmed",
    )
    fields.update(overrides)
    return Booking(**fields)


class TestDatabaseConnection:
    """Test database initialization and connectivity."""

    def test_init_db_with_url(self):
        """Test database initialization with explicit URL."""
        engine = init_db("sqlite:///:memory:")
        assert engine is not None
        assert engine.url.database == ":memory:"
        assert database.SessionLocal is not None

    def test_session_context_manager_commits(self, tmp_path):
        init_db(f"sqlite:///{tmp_path / 'reservations.db'}")
        create_tables()

        with get_db_session() as session:
            session.add(DiningTable(restaurant_id=1, table_number="T1", capacity=2))

        with get_db_session() as session:
            assert session.query(DiningTable).count() == 1

    def test_session_context_manager_rolls_back(self, tmp_path):
        init_db(f"sqlite:///{tmp_path / 'reservations.db'}")
        create_tables()

        with pytest.raises(RuntimeError):
            with get_db_session() as session:
                session.add(DiningTable(restaurant_id=1, table_number="T1", capacity=2))
                session.flush()
                raise RuntimeError("abort")

        with get_db_session() as session:
            assert session.query(DiningTable).count() == 0


class TestModels:
    """Test persistence and conversion to engine snapshots."""

    def test_booking_round_trips_to_snapshot(self, db_session: Session, restaurant):
        booking = make_booking(end_time=time(21, 0))
        db_session.add(booking)
        db_session.commit()

        info = BookingInfo.model_validate(booking)

        assert info.id == booking.id
        assert info.start_time == time(19, 0)
        assert info.end_time == time(21, 0)
        assert info.holds_table is True

    def test_combination_keeps_member_order(self, db_session: Session, restaurant):
        combination = db_session.query(CombinedTable).first()

        info = CombinedTableInfo.model_validate(combination)

        assert info.table_ids == [3, 4]
        assert info.total_capacity == 8

    def test_opening_hours_snapshot(self, db_session: Session, restaurant):
        row = db_session.query(OpeningHours).filter_by(day_of_week=5).one()

        rule = OpeningHoursRule.model_validate(row)

        assert rule.model_dump(mode="json")["open_time"] == "17:00"

    def test_timestamps_default_to_naive_utc(self, db_session: Session, restaurant):
        table = db_session.get(DiningTable, 1)

        assert table.created_at.tzinfo is None
        assert abs(utc_now() - table.created_at) < timedelta(minutes=5)


class TestBookingConstraints:
    """Test database-level constraints."""

    def test_guest_count_must_be_positive(self, db_session: Session, restaurant):
        db_session.add(make_booking(guest_count=0))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_end_must_follow_start(self, db_session: Session, restaurant):
        db_session.add(make_booking(end_time=time(18, 0)))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_table_capacity_must_be_positive(self, db_session: Session):
        db_session.add(DiningTable(restaurant_id=1, table_number="T9", capacity=0))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_same_table_and_start_rejected(self, db_session: Session, restaurant):
        """Unique index: one holding booking per table and start time."""
        db_session.add(make_booking())
        db_session.commit()

        db_session.add(make_booking(customer_name="Second Writer"))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_cancelled_booking_frees_slot(self, db_session: Session, restaurant):
        db_session.add(make_booking(status="cancelled"))
        db_session.commit()

        db_session.add(make_booking(customer_name="New Guest"))
        db_session.commit()

        assert db_session.query(Booking).count() == 2

    def test_one_opening_rule_per_weekday(self, db_session: Session, restaurant):
        db_session.add(OpeningHours(restaurant_id=1, day_of_week=5, is_open=True,
                                    open_time=time(12, 0), close_time=time(15, 0)))

        with pytest.raises(IntegrityError):
            db_session.commit()


class TestSeeding:
    """Test the demo restaurant seed."""

    def test_seed_demo_restaurant(self, tmp_path):
        from reservation_engine.db_init import seed_demo_restaurant

        init_db(f"sqlite:///{tmp_path / 'reservations.db'}")
        create_tables()

        seed_demo_restaurant()
        seed_demo_restaurant()

        with get_db_session() as session:
            assert session.query(OpeningHours).count() == 7
            assert session.query(DiningTable).count() == 5
            combination = session.query(CombinedTable).one()
            assert combination.total_capacity == 8
