"""
BookingService - Server-side booking logic for the reservation engine.

This service handles:
- Loading restaurant snapshots (opening hours, tables, combinations, bookings)
- Authoritative booking validation with the acceptance guard
- Booking creation inside one transaction with row locks and a uniqueness
  constraint, so two concurrent writers cannot take the same table
- Automatic table assignment when no table was chosen
- Time slot and availability grid queries
"""
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..engine import (
    auto_assign,
    bookings_for_combination,
    bookings_for_table,
    build_availability_grid,
    compute_total_capacity,
    find_occupying,
    generate,
    generate_for_rule,
    rejection,
    resolve_with_special_periods,
    validate,
)
from ..error_handling.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    DatabaseQueryError,
)
from ..error_handling.handlers import log_function_call, retry_on_error
from ..error_handling.logging_config import log_booking_event
from ..models.database import (
    Booking,
    CombinedTable,
    CutOffTimeRecord,
    DiningTable,
    OpeningHours,
    SpecialPeriodRecord,
)
from ..models.schemas import (
    INACTIVE_BOOKING_STATUSES,
    AllocationStatus,
    BookingCreate,
    BookingInfo,
    BookingRequest,
    CombinedTableCreate,
    CombinedTableInfo,
    CutOffTime,
    GuardContext,
    OpeningHoursRule,
    RejectionReason,
    SelectionKind,
    SpecialPeriod,
    TableAvailability,
    TableInfo,
    TimeSlot,
    ValidationResult,
)
from ..utils import local_now, to_minutes, utc_now


class BookingService:
    """
    Service class that encapsulates server-side booking logic.

    The scheduling engine itself is pure; this service reads fresh snapshots
    from the database, runs the engine, and persists accepted bookings.
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        """
        Initialize the booking service with a database session.

        Args:
            session: SQLAlchemy database session
            settings: Application settings (defaults to the global settings)
        """
        self.session = session
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Snapshot queries
    # ------------------------------------------------------------------

    def get_opening_hours(self, restaurant_id: int) -> List[OpeningHoursRule]:
        rows = (
            self.session.query(OpeningHours)
            .filter(OpeningHours.restaurant_id == restaurant_id)
            .order_by(OpeningHours.day_of_week)
            .all()
        )
        return [OpeningHoursRule.model_validate(row) for row in rows]

    def get_special_periods(self, restaurant_id: int) -> List[SpecialPeriod]:
        rows = (
            self.session.query(SpecialPeriodRecord)
            .filter(SpecialPeriodRecord.restaurant_id == restaurant_id)
            .order_by(SpecialPeriodRecord.start_date)
            .all()
        )
        return [SpecialPeriod.model_validate(row) for row in rows]

    def get_cut_off_times(self, restaurant_id: int) -> List[CutOffTime]:
        rows = (
            self.session.query(CutOffTimeRecord)
            .filter(CutOffTimeRecord.restaurant_id == restaurant_id)
            .order_by(CutOffTimeRecord.day_of_week)
            .all()
        )
        return [CutOffTime.model_validate(row) for row in rows]

    def get_tables(self, restaurant_id: int) -> List[TableInfo]:
        """Active tables only; inactive tables never take part in allocation."""
        rows = (
            self.session.query(DiningTable)
            .filter(DiningTable.restaurant_id == restaurant_id, DiningTable.is_active.is_(True))
            .order_by(DiningTable.id)
            .all()
        )
        return [TableInfo.model_validate(row) for row in rows]

    def get_combined_tables(self, restaurant_id: int) -> List[CombinedTableInfo]:
        rows = (
            self.session.query(CombinedTable)
            .filter(CombinedTable.restaurant_id == restaurant_id, CombinedTable.is_active.is_(True))
            .order_by(CombinedTable.id)
            .all()
        )
        return [CombinedTableInfo.model_validate(row) for row in rows]

    def get_bookings(
        self,
        restaurant_id: int,
        target_date: date,
        table_id: Optional[int] = None,
    ) -> List[BookingInfo]:
        """
        Bookings of a restaurant on one restaurant-local date.

        Args:
            restaurant_id: Restaurant to query
            target_date: Calendar date
            table_id: When given, only bookings holding that table (directly
                      or through a combination)

        Returns:
            List of BookingInfo ordered by start time
        """
        rows = (
            self.session.query(Booking)
            .filter(Booking.restaurant_id == restaurant_id, Booking.booking_date == target_date)
            .order_by(Booking.start_time, Booking.id)
            .all()
        )
        bookings = [BookingInfo.model_validate(row) for row in rows]
        if table_id is not None:
            bookings = bookings_for_table(bookings, table_id, self.get_combined_tables(restaurant_id))
        return bookings

    def _read_context(self, restaurant_id: int, target_date: date) -> GuardContext:
        bookings = [
            b for b in self.get_bookings(restaurant_id, target_date)
            if b.status not in INACTIVE_BOOKING_STATUSES
        ]
        return GuardContext(
            opening_hours=self.get_opening_hours(restaurant_id),
            special_periods=self.get_special_periods(restaurant_id),
            cut_off_times=self.get_cut_off_times(restaurant_id),
            tables=self.get_tables(restaurant_id),
            combinations=self.get_combined_tables(restaurant_id),
            bookings=bookings,
        )

    @retry_on_error(max_retries=3, exceptions=(OperationalError,), backoff_factor=1.0)
    def load_context(self, restaurant_id: int, target_date: date) -> GuardContext:
        """
        Read a fresh snapshot of everything the acceptance guard needs.

        Raises:
            OperationalError: If the database stays unreachable after retries
        """
        return self._read_context(restaurant_id, target_date)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        """Restaurant-local current time."""
        return local_now(self.settings.timezone)

    def validate_booking(self, request: BookingRequest) -> ValidationResult:
        """
        Run the acceptance guard against a freshly read snapshot.

        Args:
            request: Booking request to check

        Returns:
            ValidationResult; rejections are returned, not raised

        Raises:
            DatabaseConnectionError: If the snapshot cannot be read
        """
        try:
            context = self.load_context(request.restaurant_id, request.date)
        except OperationalError as e:
            raise DatabaseConnectionError(
                f"Database connection error: {str(e)}",
                original_error=e
            )
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to load booking context: {str(e)}",
                query="load_context",
                original_error=e
            )

        result = validate(request, context, now=self.now())
        event = "VALIDATED" if result.allowed else "REJECTED"
        log_booking_event(
            event,
            restaurant_id=request.restaurant_id,
            details={
                "date": request.date.isoformat(),
                "time": request.time.strftime("%H:%M"),
                "party_size": request.party_size,
                "reason": result.reason.value if result.reason else None,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _lock_tables(self, restaurant_id: int, table_ids: Optional[Sequence[int]] = None) -> None:
        """
        Take row locks on dining tables for the rest of the transaction.

        Locks are taken in id order so concurrent writers cannot deadlock.
        With ``table_ids`` of None every table of the restaurant is locked.
        SQLite ignores FOR UPDATE, so there the rows are touched instead,
        which takes the database write lock until commit or rollback.
        """
        conditions = [DiningTable.restaurant_id == restaurant_id]
        if table_ids is not None:
            conditions.append(DiningTable.id.in_(list(table_ids)))

        if self.session.get_bind().dialect.name == "sqlite":
            self.session.execute(
                update(DiningTable)
                .where(*conditions)
                .values(updated_at=DiningTable.updated_at)
                .execution_options(synchronize_session=False)
            )
            return
        self.session.query(DiningTable).filter(*conditions).order_by(DiningTable.id).with_for_update().all()

    def _find_occupying(self, booking: Booking) -> Optional[BookingInfo]:
        """
        Re-read the day's bookings inside the write transaction and return
        one that already holds ``booking``'s table or combination at its
        start time.
        """
        rows = (
            self.session.query(Booking)
            .filter(
                Booking.restaurant_id == booking.restaurant_id,
                Booking.booking_date == booking.booking_date,
                Booking.id != booking.id,
            )
            .all()
        )
        others = [BookingInfo.model_validate(row) for row in rows]
        combinations = self.get_combined_tables(booking.restaurant_id)
        if booking.combined_table_id is not None:
            combination = next((c for c in combinations if c.id == booking.combined_table_id), None)
            if combination is None:
                return None
            held = bookings_for_combination(others, combination, combinations)
        else:
            held = bookings_for_table(others, booking.table_id, combinations)
        return find_occupying(held, booking.booking_date, booking.start_time)

    def _slot_conflict(self, data: BookingCreate) -> ValidationResult:
        selection = data.table_selection
        return rejection(
            RejectionReason.SLOT_CONFLICT,
            kind=selection.kind.value if selection else None,
            id=selection.id if selection else None,
        )

    def _units_to_lock(self, data: BookingCreate) -> Optional[List[int]]:
        selection = data.table_selection
        if selection is None:
            return None
        if selection.kind == SelectionKind.TABLE:
            return [selection.id]
        combination = self.session.get(CombinedTable, selection.id)
        if combination is None:
            return []
        return list(combination.table_ids)

    def _end_time_for(self, data: BookingCreate) -> Optional[time]:
        if data.end_time is not None:
            return data.end_time
        duration = self.settings.default_booking_duration_minutes
        if duration is None:
            return None
        end_minutes = to_minutes(data.time) + duration
        if end_minutes >= 24 * 60:
            # Runs past midnight: keep it open-ended for the day
            return None
        return (datetime.combine(data.date, data.time) + timedelta(minutes=duration)).time()

    @log_function_call
    def create_booking(self, data: BookingCreate) -> Tuple[Optional[Booking], ValidationResult]:
        """
        Validate and insert a booking in a single transaction.

        The transaction:
        1. Locks the requested tables (all tables for auto-assignment)
        2. Re-reads the snapshot and re-runs the acceptance guard
        3. Picks a table when none was chosen
        4. Inserts the booking; the unique index rejects a racing duplicate
        5. Re-reads the held tables and rolls back if another booking
           already occupies the start time

        Args:
            data: Booking data to create

        Returns:
            (booking, result): booking is None when the request was rejected

        Raises:
            DatabaseConnectionError: If the database is unreachable
            DatabaseError: If the database operation fails unexpectedly
        """
        try:
            self._lock_tables(data.restaurant_id, self._units_to_lock(data))
            context = self._read_context(data.restaurant_id, data.date)

            result = validate(data, context, now=self.now())
            if not result.allowed:
                self.session.rollback()
                log_booking_event(
                    "REJECTED",
                    restaurant_id=data.restaurant_id,
                    details={"reason": result.reason.value, **result.details},
                )
                return None, result

            table_id: Optional[int] = None
            combined_table_id: Optional[int] = None
            if data.table_selection is None:
                allocation = auto_assign(
                    data.party_size,
                    context.tables,
                    context.combinations,
                    context.bookings,
                    data.date,
                    data.time,
                )
                if allocation.status != AllocationStatus.ASSIGNED:
                    self.session.rollback()
                    result = rejection(
                        allocation.reason or RejectionReason.INSUFFICIENT_CAPACITY,
                        required=allocation.required,
                        available=allocation.available,
                    )
                    log_booking_event(
                        "REJECTED",
                        restaurant_id=data.restaurant_id,
                        details={"reason": result.reason.value, "auto_assign": True},
                    )
                    return None, result
                table_id = allocation.table_id
                combined_table_id = allocation.combination_id
                assignment_type = "auto"
            else:
                if data.table_selection.kind == SelectionKind.TABLE:
                    table_id = data.table_selection.id
                else:
                    combined_table_id = data.table_selection.id
                assignment_type = "manual"

            booking = Booking(
                restaurant_id=data.restaurant_id,
                table_id=table_id,
                combined_table_id=combined_table_id,
                booking_date=data.date,
                start_time=data.time,
                end_time=self._end_time_for(data),
                guest_count=data.party_size,
                customer_name=data.customer_name,
                customer_phone=data.customer_phone,
                customer_email=data.customer_email,
                notes=data.notes,
                status="confirmed",
                assignment_type=assignment_type,
                created_at=utc_now(),
            )
            self.session.add(booking)
            self.session.flush()

            occupying = self._find_occupying(booking)
            if occupying is not None:
                # Another writer took the table first with a different start time
                self.session.rollback()
                logger.warning(
                    f"Booking at {data.time.strftime('%H:%M')} is taken by booking {occupying.id}; rejected"
                )
                result = self._slot_conflict(data)
                log_booking_event(
                    "REJECTED",
                    restaurant_id=data.restaurant_id,
                    details={"reason": result.reason.value, "occupied_by": occupying.id},
                )
                return None, result

            self.session.commit()

            log_booking_event(
                "CREATED",
                restaurant_id=data.restaurant_id,
                booking_id=booking.id,
                details={
                    "date": data.date.isoformat(),
                    "time": data.time.strftime("%H:%M"),
                    "party_size": data.party_size,
                    "table_id": table_id,
                    "combined_table_id": combined_table_id,
                    "assignment": assignment_type,
                },
            )
            return booking, ValidationResult.ok()

        except IntegrityError as e:
            self.session.rollback()
            error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)

            if 'uq_booking_table_slot' in error_msg or 'uq_booking_combination_slot' in error_msg \
                    or 'UNIQUE' in error_msg.upper():
                # Another writer committed the same table and start time first
                logger.warning(f"Concurrent booking rejected by unique index: {error_msg}")
                return None, self._slot_conflict(data)

            raise DatabaseError(
                f"Database constraint violation: {error_msg}",
                operation="create_booking",
                original_error=e
            )

        except OperationalError as e:
            self.session.rollback()
            raise DatabaseConnectionError(
                f"Database operation failed: {str(e)}",
                original_error=e
            )

        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Unexpected database error creating booking: {str(e)}")
            raise DatabaseError(
                f"Unexpected error creating booking: {str(e)}",
                operation="create_booking",
                original_error=e
            )

    def create_combined_table(self, restaurant_id: int, data: CombinedTableCreate) -> CombinedTable:
        """
        Create a table combination, computing its capacity once from the members.

        Raises:
            UnknownTableError: If a member is not an active table of the restaurant
            DatabaseError: If the insert fails
        """
        total_capacity = compute_total_capacity(data.table_ids, self.get_tables(restaurant_id))
        combination = CombinedTable(
            restaurant_id=restaurant_id,
            name=data.name,
            table_ids=list(data.table_ids),
            total_capacity=total_capacity,
            is_active=True,
        )
        try:
            self.session.add(combination)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise DatabaseError(
                f"Failed to create combined table: {str(e)}",
                operation="create_combined_table",
                original_error=e
            )

        logger.info(
            f"Created combination '{combination.name}' from tables {combination.table_ids} "
            f"with capacity {total_capacity}"
        )
        return combination

    # ------------------------------------------------------------------
    # Availability views
    # ------------------------------------------------------------------

    def get_time_slots(
        self,
        restaurant_id: int,
        target_date: date,
        step_minutes: Optional[int] = None,
    ) -> List[TimeSlot]:
        """
        Bookable start times for a date.

        Slots lie inside the day's operating interval and inside the booking
        form window (BOOKING_FORM_START_HOUR:00 through BOOKING_FORM_END_HOUR:00).

        Args:
            restaurant_id: Restaurant to query
            target_date: Calendar date
            step_minutes: Slot spacing (defaults to the booking form step)

        Returns:
            Ordered list of TimeSlot values; empty on closed days
        """
        step = step_minutes or self.settings.booking_form_step_minutes
        rule = resolve_with_special_periods(
            self.get_opening_hours(restaurant_id),
            self.get_special_periods(restaurant_id),
            target_date,
        )
        first = self.settings.booking_form_start_hour * 60
        last = self.settings.booking_form_end_hour * 60
        return [slot for slot in generate_for_rule(rule, step) if first <= to_minutes(slot.value) <= last]

    def get_availability_grid(self, restaurant_id: int, target_date: date) -> List[TableAvailability]:
        """
        Per-table occupancy over the hourly calendar grid.

        Returns:
            One row per active table with each calendar slot marked
        """
        context = self.load_context(restaurant_id, target_date)
        slots = generate(
            self.settings.calendar_start_hour,
            self.settings.calendar_end_hour,
            self.settings.calendar_step_minutes,
        )
        return build_availability_grid(
            context.tables,
            context.bookings,
            target_date,
            slots,
            context.combinations,
        )
