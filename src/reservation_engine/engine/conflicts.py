"""
Booking conflict detection.

``find_occupying`` is table-agnostic: it answers "does any of these
bookings cover this time on this day". When checking one table the caller
MUST first narrow the bookings to that table (``bookings_for_table`` /
``bookings_for_combination``); passing a whole restaurant's bookings
reports false conflicts across tables.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.schemas import (
    BookingInfo,
    CombinedTableInfo,
    SlotOccupancy,
    TableAvailability,
    TableInfo,
    TimeSlot,
)
from ..utils import TimeLike, parse_time, to_minutes

END_OF_DAY_MINUTES = 24 * 60


def find_occupying(
    bookings: Iterable[BookingInfo],
    target_date: date,
    at: TimeLike,
) -> Optional[BookingInfo]:
    """
    Return a booking that occupies ``at`` on ``target_date``, if any.

    A booking occupies ``at`` when ``start_time <= at`` and either it has no
    end time or ``end_time > at``. Bookings without an end time block every
    later time that day. Only bookings on the same calendar date are
    considered; which of several matches is returned is unspecified.

    Args:
        bookings: Bookings already narrowed to one table or combination
        target_date: Restaurant-local calendar date
        at: Candidate time (HH:MM string or time)

    Returns:
        The occupying booking, or None when the time is free
    """
    candidate = parse_time(at)
    for booking in bookings:
        if booking.booking_date != target_date:
            continue
        if booking.start_time <= candidate and (
            booking.end_time is None or booking.end_time > candidate
        ):
            return booking
    return None


def _members_by_combination(combinations: Iterable[CombinedTableInfo]) -> Dict[int, set]:
    return {c.id: set(c.table_ids) for c in combinations}


def bookings_for_table(
    bookings: Iterable[BookingInfo],
    table_id: int,
    combinations: Iterable[CombinedTableInfo] = (),
) -> List[BookingInfo]:
    """
    Narrow bookings to those holding ``table_id``.

    A booking holds a table when it is assigned to it directly or to a
    combination that contains it. Cancelled and no-show bookings are dropped.
    """
    members = _members_by_combination(combinations)
    result = []
    for booking in bookings:
        if not booking.holds_table:
            continue
        if booking.table_id == table_id:
            result.append(booking)
        elif booking.combined_table_id is not None and table_id in members.get(booking.combined_table_id, ()):
            result.append(booking)
    return result


def bookings_for_combination(
    bookings: Iterable[BookingInfo],
    combination: CombinedTableInfo,
    combinations: Iterable[CombinedTableInfo] = (),
) -> List[BookingInfo]:
    """
    Narrow bookings to those that would collide with ``combination``.

    The combination is one unit made of its member tables, so it collides
    with bookings on the combination itself, on any member table, and on any
    other combination sharing a member table.
    """
    own_members = set(combination.table_ids)
    members = _members_by_combination(combinations)
    members[combination.id] = own_members

    result = []
    for booking in bookings:
        if not booking.holds_table:
            continue
        if booking.combined_table_id == combination.id:
            result.append(booking)
        elif booking.table_id is not None and booking.table_id in own_members:
            result.append(booking)
        elif booking.combined_table_id is not None and own_members & members.get(booking.combined_table_id, set()):
            result.append(booking)
    return result


def build_availability_grid(
    tables: Sequence[TableInfo],
    bookings: Sequence[BookingInfo],
    target_date: date,
    slots: Sequence[TimeSlot],
    combinations: Sequence[CombinedTableInfo] = (),
) -> List[TableAvailability]:
    """
    Mark every slot of every active table as free or occupied.

    Bookings are narrowed per table before each lookup.

    Args:
        tables: Tables to render (inactive ones are skipped)
        bookings: All bookings of the restaurant for the date
        target_date: Restaurant-local calendar date
        slots: Slot grid to evaluate
        combinations: Combinations, so combination bookings block members

    Returns:
        One TableAvailability per active table, in input order
    """
    grid = []
    for table in tables:
        if not table.is_active:
            continue
        table_bookings = bookings_for_table(bookings, table.id, combinations)
        cells = []
        for slot in slots:
            occupying = find_occupying(table_bookings, target_date, slot.value)
            cells.append(SlotOccupancy(
                value=slot.value,
                label=slot.label,
                occupied=occupying is not None,
                booking_id=occupying.id if occupying else None,
            ))
        grid.append(TableAvailability(
            table_id=table.id,
            table_number=table.table_number,
            capacity=table.capacity,
            slots=cells,
        ))
    return grid


def _interval(booking: BookingInfo) -> Tuple[int, int]:
    start = to_minutes(booking.start_time)
    end = to_minutes(booking.end_time) if booking.end_time is not None else END_OF_DAY_MINUTES
    return start, end


def detect_double_bookings(
    bookings: Iterable[BookingInfo],
    combinations: Iterable[CombinedTableInfo] = (),
) -> List[Tuple[int, BookingInfo, BookingInfo]]:
    """
    Find pairs of holding bookings on the same table whose intervals overlap.

    Combination bookings count against each member table. Open-ended
    bookings extend to the end of the day.

    Returns:
        List of (table_id, first_booking, second_booking) tuples
    """
    members = _members_by_combination(combinations)
    by_table_day: Dict[Tuple[int, date], List[BookingInfo]] = defaultdict(list)

    for booking in bookings:
        if not booking.holds_table:
            continue
        held = set()
        if booking.table_id is not None:
            held.add(booking.table_id)
        if booking.combined_table_id is not None:
            held |= members.get(booking.combined_table_id, set())
        for table_id in held:
            by_table_day[(table_id, booking.booking_date)].append(booking)

    conflicts = []
    for (table_id, _), day_bookings in sorted(by_table_day.items(), key=lambda item: item[0]):
        day_bookings = sorted(day_bookings, key=lambda b: b.start_time)
        for i, first in enumerate(day_bookings):
            first_start, first_end = _interval(first)
            for second in day_bookings[i + 1:]:
                second_start, second_end = _interval(second)
                if second_start >= first_end:
                    break
                if first_start < second_end:
                    conflicts.append((table_id, first, second))
    return conflicts
