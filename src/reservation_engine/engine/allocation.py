"""
Table capacity allocation.

``allocate`` pre-validates an operator's explicit table or combination
choice. Choosing a table automatically is deliberately not done there; it
returns ``auto`` and the backend runs ``auto_assign`` under the same
capacity rule: never seat a party at a unit smaller than the party.

Combination capacity is always recomputed from the live member tables.
The ``total_capacity`` stored on a combination is a display value that can
drift when a member table's capacity is edited later.
"""
from datetime import date
from typing import Dict, Iterable, Optional, Sequence

from loguru import logger

from ..error_handling.exceptions import UnknownTableError
from ..models.schemas import (
    AllocationResult,
    BookingInfo,
    CombinedTableInfo,
    RejectionReason,
    SelectionKind,
    TableInfo,
    TableSelection,
)
from ..utils import TimeLike
from .conflicts import bookings_for_combination, bookings_for_table, find_occupying


def _index(tables: Iterable[TableInfo]) -> Dict[int, TableInfo]:
    return {table.id: table for table in tables}


def compute_total_capacity(table_ids: Sequence[int], tables: Iterable[TableInfo]) -> int:
    """
    Sum the capacities of the given tables.

    Used once when a combination is created to fill its stored
    ``total_capacity``.

    Raises:
        UnknownTableError: If an id does not refer to a known table
    """
    by_id = _index(tables)
    total = 0
    for table_id in table_ids:
        table = by_id.get(table_id)
        if table is None:
            raise UnknownTableError("table", table_id)
        total += table.capacity
    return total


def live_combination_capacity(combination: CombinedTableInfo, tables: Iterable[TableInfo]) -> int:
    """
    Capacity of a combination computed from its current member tables.

    Members missing from ``tables`` (deleted or deactivated) contribute
    nothing.
    """
    by_id = _index(tables)
    capacity = 0
    for table_id in combination.table_ids:
        table = by_id.get(table_id)
        if table is None or not table.is_active:
            logger.warning(
                f"Combination {combination.id} ({combination.name}) references "
                f"unavailable table {table_id}"
            )
            continue
        capacity += table.capacity

    if capacity != combination.total_capacity:
        logger.debug(
            f"Combination {combination.id} stored capacity {combination.total_capacity} "
            f"differs from live capacity {capacity}"
        )
    return capacity


def allocate(
    party_size: int,
    tables: Sequence[TableInfo],
    combinations: Sequence[CombinedTableInfo],
    explicit_selection: Optional[TableSelection] = None,
) -> AllocationResult:
    """
    Check an explicit table or combination choice against the party size.

    Args:
        party_size: Number of guests (positive)
        tables: Candidate tables (callers exclude inactive tables)
        combinations: Candidate combinations
        explicit_selection: Operator's choice; None means auto-assign

    Returns:
        assigned, auto, or rejected with required/available capacity

    Raises:
        ValueError: If party_size is not positive
        UnknownTableError: If the selection refers to an unknown unit
    """
    if party_size < 1:
        raise ValueError(f"party_size must be positive, got {party_size}")

    if explicit_selection is None:
        return AllocationResult.auto()

    if explicit_selection.kind == SelectionKind.TABLE:
        table = _index(tables).get(explicit_selection.id)
        if table is None:
            raise UnknownTableError("table", explicit_selection.id)
        if table.capacity < party_size:
            return AllocationResult.rejected(required=party_size, available=table.capacity)
        return AllocationResult.assigned_table(table.id)

    combination = next((c for c in combinations if c.id == explicit_selection.id), None)
    if combination is None:
        raise UnknownTableError("combination", explicit_selection.id)
    capacity = live_combination_capacity(combination, tables)
    if capacity < party_size:
        return AllocationResult.rejected(required=party_size, available=capacity)
    return AllocationResult.assigned_combination(combination.id)


def auto_assign(
    party_size: int,
    tables: Sequence[TableInfo],
    combinations: Sequence[CombinedTableInfo],
    bookings: Sequence[BookingInfo],
    target_date: date,
    at: TimeLike,
) -> AllocationResult:
    """
    Pick the smallest free unit that seats the party.

    Single tables are preferred; combinations are only used when no single
    table fits. Ties on capacity go to the lower id.

    Returns:
        assigned on success; rejected with ``insufficient_capacity`` when no
        active unit is large enough, or ``slot_conflict`` when every large
        enough unit is occupied at that time
    """
    if party_size < 1:
        raise ValueError(f"party_size must be positive, got {party_size}")

    active_tables = [t for t in tables if t.is_active]
    largest = 0

    for table in sorted(active_tables, key=lambda t: (t.capacity, t.id)):
        largest = max(largest, table.capacity)
        if table.capacity < party_size:
            continue
        if find_occupying(bookings_for_table(bookings, table.id, combinations), target_date, at) is None:
            return AllocationResult.assigned_table(table.id)

    sized = [
        (live_combination_capacity(c, active_tables), c)
        for c in combinations if c.is_active
    ]
    for capacity, combination in sorted(sized, key=lambda pair: (pair[0], pair[1].id)):
        largest = max(largest, capacity)
        if capacity < party_size:
            continue
        colliding = bookings_for_combination(bookings, combination, combinations)
        if find_occupying(colliding, target_date, at) is None:
            return AllocationResult.assigned_combination(combination.id)

    if largest < party_size:
        return AllocationResult.rejected(required=party_size, available=largest)
    return AllocationResult.rejected(
        required=party_size,
        available=largest,
        reason=RejectionReason.SLOT_CONFLICT,
    )
