"""
Pytest configuration and shared fixtures.
"""
from datetime import date, time
from typing import Callable, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from reservation_engine.config import Settings
from reservation_engine.models.database import (
    Base,
    Booking,
    CombinedTable,
    DiningTable,
    OpeningHours,
)
from reservation_engine.models.schemas import (
    BookingInfo,
    CombinedTableInfo,
    GuardContext,
    OpeningHoursRule,
    TableInfo,
)
from reservation_engine.services.booking_service import BookingService

RESTAURANT_ID = 1

# 2024-06-07 is a Friday, 2024-06-10 a Monday
FRIDAY = date(2024, 6, 7)
SATURDAY = date(2024, 6, 8)
SUNDAY = date(2024, 6, 9)
MONDAY = date(2024, 6, 10)


# ============================================================================
# Engine snapshots
# ============================================================================

@pytest.fixture
def opening_hours() -> List[OpeningHoursRule]:
    """
    Friday 17:00-23:00, Saturday 12:00-23:00, Monday explicitly closed,
    no rule for the other days.
    """
    return [
        OpeningHoursRule(day_of_week=5, is_open=True, open_time="17:00", close_time="23:00"),
        OpeningHoursRule(day_of_week=6, is_open=True, open_time="12:00", close_time="23:00"),
        OpeningHoursRule(day_of_week=1, is_open=False, open_time="17:00", close_time="23:00"),
    ]


@pytest.fixture
def tables() -> List[TableInfo]:
    return [
        TableInfo(id=1, table_number="T1", capacity=2),
        TableInfo(id=2, table_number="T2", capacity=2),
        TableInfo(id=3, table_number="T3", capacity=4),
        TableInfo(id=4, table_number="T4", capacity=4),
        TableInfo(id=5, table_number="T5", capacity=6),
    ]


@pytest.fixture
def combinations() -> List[CombinedTableInfo]:
    return [CombinedTableInfo(id=1, name="T3+T4", table_ids=[3, 4], total_capacity=8)]


@pytest.fixture
def make_booking() -> Callable[..., BookingInfo]:
    """
    Factory for booking snapshots. Ids are assigned in call order.
    """
    counter = {"next": 100}

    def _make(
        start: str,
        end: Optional[str] = None,
        table_id: Optional[int] = None,
        combined_table_id: Optional[int] = None,
        booking_date: date = FRIDAY,
        status: str = "confirmed",
        guest_count: int = 2,
    ) -> BookingInfo:
        counter["next"] += 1
        return BookingInfo(
            id=counter["next"],
            restaurant_id=RESTAURANT_ID,
            table_id=table_id,
            combined_table_id=combined_table_id,
            booking_date=booking_date,
            start_time=start,
            end_time=end,
            guest_count=guest_count,
            status=status,
        )

    return _make


@pytest.fixture
def context(opening_hours, tables, combinations) -> GuardContext:
    """Guard context without bookings, special periods or cut-offs."""
    return GuardContext(
        opening_hours=opening_hours,
        tables=tables,
        combinations=combinations,
    )


# ============================================================================
# Database
# ============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory SQLite engine with all tables.

    StaticPool keeps one connection so the API test client, which runs
    requests in a worker thread, sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create a database session for testing.
    """
    SessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        restaurant_timezone="UTC",
        default_booking_duration_minutes=None,
        request_max_retries=3,
        request_timeout_seconds=2.0,
    )


@pytest.fixture
def booking_service(db_session: Session, settings: Settings) -> BookingService:
    """
    Create a BookingService instance for testing.
    """
    return BookingService(db_session, settings=settings)


@pytest.fixture
def restaurant(db_session: Session) -> int:
    """
    Seed restaurant 1: the opening hours, tables and combination of the
    snapshot fixtures above.

    Returns:
        The restaurant id
    """
    db_session.add_all([
        OpeningHours(restaurant_id=RESTAURANT_ID, day_of_week=5, is_open=True,
                     open_time=time(17, 0), close_time=time(23, 0)),
        OpeningHours(restaurant_id=RESTAURANT_ID, day_of_week=6, is_open=True,
                     open_time=time(12, 0), close_time=time(23, 0)),
        OpeningHours(restaurant_id=RESTAURANT_ID, day_of_week=1, is_open=False,
                     open_time=time(17, 0), close_time=time(23, 0)),
    ])
    for number, capacity in [("T1", 2), ("T2", 2), ("T3", 4), ("T4", 4), ("T5", 6)]:
        db_session.add(DiningTable(restaurant_id=RESTAURANT_ID, table_number=number, capacity=capacity))
    db_session.flush()
    db_session.add(CombinedTable(restaurant_id=RESTAURANT_ID, name="T3+T4", table_ids=[3, 4], total_capacity=8))
    db_session.commit()
    return RESTAURANT_ID


@pytest.fixture
def friday_booking(db_session: Session, restaurant: int) -> Booking:
    """Open-ended booking on table 5 from 19:00 on Friday 2024-06-07."""
    booking = Booking(
        restaurant_id=restaurant,
        table_id=5,
        booking_date=FRIDAY,
        start_time=time(19, 0),
        end_time=None,
        guest_count=4,
        customer_name="Existing Guest",
        status="confirmed",
        assignment_type="manual",
    )
    db_session.add(booking)
    db_session.commit()
    return booking
