"""
SQLAlchemy database models and session management for the reservation engine.
"""
import time
from contextlib import contextmanager
from typing import Generator, Optional
from loguru import logger

from sqlalchemy import (
    create_engine,
    Boolean,
    Column,
    Integer,
    String,
    Text,
    Date,
    Time,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    CheckConstraint,
    JSON,
    event,
    text,
)
from sqlalchemy.orm import declarative_base, Session, sessionmaker
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError

from ..error_handling.exceptions import DatabaseError
from ..utils import utc_now

# Create declarative base
Base = declarative_base()

# Database engine and session factory (initialized by init_db)
engine: Engine | None = None
SessionLocal: sessionmaker | None = None

BOOKING_STATUSES = ("pending", "confirmed", "seated", "completed", "cancelled", "no_show")

# Partial-index predicate: released bookings do not hold their slot
_HOLDING_STATUS_CLAUSE = "status NOT IN ('cancelled', 'no_show')"


class OpeningHours(Base):
    """
    Weekly opening hours, one row per weekday per restaurant.
    """
    __tablename__ = "opening_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday, 6 = Saturday
    is_open = Column(Boolean, nullable=False, default=True)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_opening_hours_day"),
        Index("uq_opening_hours_restaurant_day", "restaurant_id", "day_of_week", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<OpeningHours(restaurant_id={self.restaurant_id}, day_of_week={self.day_of_week}, "
            f"is_open={self.is_open}, {self.open_time}-{self.close_time})>"
        )


class SpecialPeriodRecord(Base):
    """
    Dated override of the weekly opening hours.
    """
    __tablename__ = "special_periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_special_period_range"),
    )


class CutOffTimeRecord(Base):
    """
    Minimum booking lead time per weekday.
    """
    __tablename__ = "cut_off_times"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    cut_off_hours = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("cut_off_hours >= 0", name="ck_cut_off_hours_positive"),
        Index("uq_cut_off_restaurant_day", "restaurant_id", "day_of_week", unique=True),
    )


class DiningTable(Base):
    """
    A physical table that can be booked on its own or as part of a combination.
    """
    __tablename__ = "dining_tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    table_number = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_table_capacity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<DiningTable(id={self.id}, table_number='{self.table_number}', "
            f"capacity={self.capacity}, is_active={self.is_active})>"
        )


class CombinedTable(Base):
    """
    A named group of tables booked as a single unit.

    ``total_capacity`` is computed when the combination is created and is
    not kept in sync with later member changes.
    """
    __tablename__ = "combined_tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    table_ids = Column(JSON, nullable=False)  # Ordered list of dining_tables.id
    total_capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return (
            f"<CombinedTable(id={self.id}, name='{self.name}', table_ids={self.table_ids}, "
            f"total_capacity={self.total_capacity})>"
        )


class Booking(Base):
    """
    Booking model representing a guest's reservation.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, nullable=False)
    table_id = Column(Integer, ForeignKey("dining_tables.id"), nullable=True)
    combined_table_id = Column(Integer, ForeignKey("combined_tables.id"), nullable=True)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)  # NULL = open-ended
    guest_count = Column(Integer, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(
        Enum(*BOOKING_STATUSES, name="booking_status"),
        nullable=False,
        default="confirmed",
    )
    assignment_type = Column(String(20), nullable=True)  # manual, auto
    created_at = Column(DateTime, nullable=False, default=utc_now)

    # Table constraints
    __table_args__ = (
        CheckConstraint("guest_count >= 1", name="ck_guest_count_positive"),
        CheckConstraint(
            "end_time IS NULL OR start_time < end_time",
            name="ck_booking_interval"
        ),
        # One holding booking per table and start time; the second of two
        # concurrent writers fails here.
        Index(
            "uq_booking_table_slot",
            "restaurant_id", "table_id", "booking_date", "start_time",
            unique=True,
            postgresql_where=text(_HOLDING_STATUS_CLAUSE),
            sqlite_where=text(_HOLDING_STATUS_CLAUSE),
        ),
        Index(
            "uq_booking_combination_slot",
            "restaurant_id", "combined_table_id", "booking_date", "start_time",
            unique=True,
            postgresql_where=text(_HOLDING_STATUS_CLAUSE),
            sqlite_where=text(_HOLDING_STATUS_CLAUSE),
        ),
        # Index for fast per-day availability queries
        Index("ix_booking_restaurant_date", "restaurant_id", "booking_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, booking_date={self.booking_date}, start_time={self.start_time}, "
            f"table_id={self.table_id}, combined_table_id={self.combined_table_id}, "
            f"guest_count={self.guest_count}, status='{self.status}')>"
        )


def init_db(database_url: str | None = None) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Optional database connection string. If not provided,
                     the DATABASE_URL setting is used.

    Returns:
        SQLAlchemy Engine instance
    """
    global engine, SessionLocal

    if database_url is None:
        from ..config import get_settings
        database_url = get_settings().database_url

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            database_url,
            echo=False,  # Set to True for SQL query logging
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=5,
            max_overflow=10,
        )

    # Create session factory
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    return engine


def create_tables() -> None:
    """
    Create all tables in the database.

    Raises:
        RuntimeError: If database engine is not initialized
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        with get_db_session() as session:
            tables = session.query(DiningTable).all()

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call init_db() first.")

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function for getting database sessions in FastAPI routes.

    Yields:
        SQLAlchemy Session instance
    """
    with get_db_session() as session:
        yield session


# ============================================================================
# Connection Pool Events
# ============================================================================

def setup_connection_events(engine: Engine) -> None:
    """
    Set up connection pool event handlers for better error handling.

    Args:
        engine: SQLAlchemy engine instance
    """

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        """Log successful database connections."""
        logger.debug("Database connection established")

    @event.listens_for(engine, "checkout")
    def receive_checkout(dbapi_conn, connection_record, connection_proxy):
        """Verify connection is alive on checkout."""
        try:
            cursor = dbapi_conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()
        except Exception as e:
            logger.warning(f"Stale connection detected: {e}. Will be recycled.")
            # Invalidate the connection so it gets recycled
            connection_record.invalidate(e)
            raise DisconnectionError("Connection invalidated")

    logger.info("Database connection event handlers configured")


def init_db_with_retry(
    database_url: Optional[str] = None,
    max_retries: int = 3,
    retry_delay: float = 2.0
) -> Engine:
    """
    Initialize database with retry logic for initial connection.

    Args:
        database_url: Optional database connection string
        max_retries: Maximum connection attempts
        retry_delay: Delay between attempts (seconds)

    Returns:
        SQLAlchemy Engine instance

    Raises:
        DatabaseError: If connection fails after retries
    """
    delay = retry_delay

    for attempt in range(max_retries + 1):
        try:
            db_engine = init_db(database_url)
            setup_connection_events(db_engine)

            with db_engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            logger.info("Database initialized successfully")
            return db_engine

        except Exception as e:
            if attempt < max_retries:
                logger.warning(
                    f"Database initialization failed (attempt {attempt + 1}/{max_retries}): {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                time.sleep(delay)
                delay *= 2.0
            else:
                logger.error(f"Database initialization failed after {max_retries} retries: {e}")
                raise DatabaseError(
                    f"Database initialization failed after {max_retries} retries",
                    operation="connection",
                    can_retry=False,
                    original_error=e
                )
