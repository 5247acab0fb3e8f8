"""
Models package - SQLAlchemy ORM models and Pydantic schemas.
"""
from .database import (
    Base,
    Booking,
    CombinedTable,
    CutOffTimeRecord,
    DiningTable,
    OpeningHours,
    SpecialPeriodRecord,
    init_db,
    create_tables,
    get_db_session,
    get_db,
)

from .schemas import (
    AllocationResult,
    AllocationStatus,
    BookingCreate,
    BookingInfo,
    BookingRequest,
    BookingResponse,
    BookingStatus,
    CombinedTableCreate,
    CombinedTableInfo,
    CutOffTime,
    GuardContext,
    OpeningHoursRule,
    RejectionReason,
    SelectionKind,
    SlotOccupancy,
    SpecialPeriod,
    TableAvailability,
    TableInfo,
    TableSelection,
    TimeSlot,
    ValidationResult,
)

__all__ = [
    # Database models
    "Base",
    "Booking",
    "CombinedTable",
    "CutOffTimeRecord",
    "DiningTable",
    "OpeningHours",
    "SpecialPeriodRecord",
    # Database utilities
    "init_db",
    "create_tables",
    "get_db_session",
    "get_db",
    # Pydantic schemas
    "AllocationResult",
    "AllocationStatus",
    "BookingCreate",
    "BookingInfo",
    "BookingRequest",
    "BookingResponse",
    "BookingStatus",
    "CombinedTableCreate",
    "CombinedTableInfo",
    "CutOffTime",
    "GuardContext",
    "OpeningHoursRule",
    "RejectionReason",
    "SelectionKind",
    "SlotOccupancy",
    "SpecialPeriod",
    "TableAvailability",
    "TableInfo",
    "TableSelection",
    "TimeSlot",
    "ValidationResult",
]
