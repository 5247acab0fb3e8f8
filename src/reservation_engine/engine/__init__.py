"""
Scheduling engine - pure availability and allocation logic.

Nothing in this package performs I/O. Callers fetch snapshots (opening
hours, bookings, tables, combinations) once and pass them in.
"""
from .opening_hours import resolve, resolve_with_special_periods, is_open_at
from .time_slots import generate, generate_for_rule, make_slot
from .conflicts import (
    find_occupying,
    bookings_for_table,
    bookings_for_combination,
    build_availability_grid,
    detect_double_bookings,
)
from .allocation import (
    allocate,
    auto_assign,
    compute_total_capacity,
    live_combination_capacity,
)
from .guard import rejection, validate

__all__ = [
    "resolve",
    "resolve_with_special_periods",
    "is_open_at",
    "generate",
    "generate_for_rule",
    "make_slot",
    "find_occupying",
    "bookings_for_table",
    "bookings_for_combination",
    "build_availability_grid",
    "detect_double_bookings",
    "allocate",
    "auto_assign",
    "compute_total_capacity",
    "live_combination_capacity",
    "rejection",
    "validate",
]
