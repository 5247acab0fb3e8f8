"""
Pydantic models for data validation and serialization.

These are the value objects the scheduling engine computes on. ORM rows
convert into them with ``Model.model_validate(row)`` (``from_attributes``),
and HTTP payloads parse into them directly. Times travel as "HH:MM".
"""
import datetime as dt
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from ..utils import format_hhmm, parse_time


def _coerce_time(value: Any) -> Any:
    if isinstance(value, (str, dt.time)):
        return parse_time(value)
    return value


HHMM = Annotated[
    dt.time,
    BeforeValidator(_coerce_time),
    PlainSerializer(format_hhmm, return_type=str),
]


class RejectionReason(str, Enum):
    """Why the acceptance guard refused a booking request."""

    RESTAURANT_CLOSED = "restaurant_closed"
    OUTSIDE_OPERATING_HOURS = "outside_operating_hours"
    CUTOFF_PASSED = "cutoff_passed"
    INSUFFICIENT_CAPACITY = "insufficient_capacity"
    SLOT_CONFLICT = "slot_conflict"


class AllocationStatus(str, Enum):
    ASSIGNED = "assigned"
    AUTO = "auto"
    REJECTED = "rejected"


class SelectionKind(str, Enum):
    TABLE = "table"
    COMBINATION = "combination"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Bookings in these states no longer hold their table
INACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.CANCELLED.value, BookingStatus.NO_SHOW.value})


# ============================================================================
# Restaurant configuration snapshots
# ============================================================================

class OpeningHoursRule(BaseModel):
    """
    Opening hours for one weekday (0 = Sunday .. 6 = Saturday).
    """
    id: Optional[int] = None
    restaurant_id: Optional[int] = None
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday, 6 = Saturday")
    is_open: bool = True
    open_time: HHMM
    close_time: HHMM

    @model_validator(mode="after")
    def validate_interval(self) -> "OpeningHoursRule":
        """An open day must open before it closes."""
        if self.is_open and not self.open_time < self.close_time:
            raise ValueError("open_time must be earlier than close_time on an open day")
        return self

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "day_of_week": 5,
                "is_open": True,
                "open_time": "17:00",
                "close_time": "23:00"
            }
        }
    )


class SpecialPeriod(BaseModel):
    """
    Dated override of the weekday rules (holidays, private events).
    """
    id: Optional[int] = None
    restaurant_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    start_date: dt.date
    end_date: dt.date
    is_open: bool = True
    open_time: Optional[HHMM] = None
    close_time: Optional[HHMM] = None

    @model_validator(mode="after")
    def validate_period(self) -> "SpecialPeriod":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.open_time is None) != (self.close_time is None):
            raise ValueError("open_time and close_time must be given together")
        if self.is_open and self.open_time is not None and not self.open_time < self.close_time:
            raise ValueError("open_time must be earlier than close_time")
        return self

    def covers(self, target_date: dt.date) -> bool:
        return self.start_date <= target_date <= self.end_date

    model_config = ConfigDict(from_attributes=True)


class CutOffTime(BaseModel):
    """Minimum lead time, in hours, for bookings on one weekday."""
    id: Optional[int] = None
    restaurant_id: Optional[int] = None
    day_of_week: int = Field(..., ge=0, le=6)
    cut_off_hours: int = Field(0, ge=0, description="0 means no cut-off")

    model_config = ConfigDict(from_attributes=True)


class TableInfo(BaseModel):
    """A single bookable table."""
    id: int
    restaurant_id: Optional[int] = None
    table_number: str
    capacity: int = Field(..., gt=0)
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class CombinedTableInfo(BaseModel):
    """
    A named group of tables booked as one unit.

    ``total_capacity`` is the sum stored when the combination was created.
    It is kept for display only; allocation recomputes capacity from the
    live member tables.
    """
    id: int
    restaurant_id: Optional[int] = None
    name: str
    table_ids: List[int] = Field(..., min_length=2)
    total_capacity: int = Field(..., ge=0)
    is_active: bool = True

    @field_validator("table_ids")
    @classmethod
    def validate_distinct_members(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("A combination cannot contain the same table twice")
        return v

    model_config = ConfigDict(from_attributes=True)


class CombinedTableCreate(BaseModel):
    """Payload for creating a combination; capacity is computed server-side."""
    name: str = Field(..., min_length=1, max_length=255)
    table_ids: List[int] = Field(..., min_length=2)

    @field_validator("table_ids")
    @classmethod
    def validate_distinct_members(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("A combination cannot contain the same table twice")
        return v


# ============================================================================
# Bookings
# ============================================================================

class BookingInfo(BaseModel):
    """
    Snapshot of an existing booking as seen by the conflict detector.

    ``end_time`` of None means open-ended occupancy for the rest of the day.
    """
    id: Optional[int] = None
    restaurant_id: Optional[int] = None
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None
    booking_date: dt.date
    start_time: HHMM
    end_time: Optional[HHMM] = None
    guest_count: int = Field(1, ge=1)
    status: str = BookingStatus.CONFIRMED.value

    @model_validator(mode="after")
    def validate_interval(self) -> "BookingInfo":
        if self.end_time is not None and not self.start_time < self.end_time:
            raise ValueError("start_time must be earlier than end_time")
        return self

    @property
    def holds_table(self) -> bool:
        return self.status not in INACTIVE_BOOKING_STATUSES

    model_config = ConfigDict(from_attributes=True)


class TableSelection(BaseModel):
    """An operator's explicit choice of table or combination."""
    kind: SelectionKind
    id: int


class BookingRequest(BaseModel):
    """
    A booking request as checked by the acceptance guard.

    ``table_selection`` of None means auto-assign. Over HTTP the restaurant
    comes from the URL path, so ``restaurant_id`` may be left out of the body.
    """
    restaurant_id: Optional[int] = None
    date: dt.date
    time: HHMM
    party_size: int = Field(..., ge=1, description="Number of guests")
    table_selection: Optional[TableSelection] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "restaurant_id": 1,
                "date": "2024-06-07",
                "time": "18:30",
                "party_size": 2,
                "table_selection": {"kind": "table", "id": 5}
            }
        }
    )


class BookingCreate(BookingRequest):
    """
    Pydantic model for validating incoming booking creation requests.
    """
    end_time: Optional[HHMM] = None
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    customer_email: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v: str) -> str:
        """Validate customer name is not empty after stripping whitespace."""
        if not v.strip():
            raise ValueError("Customer name cannot be empty")
        return v.strip()

    @field_validator("customer_phone")
    @classmethod
    def validate_phone_format(cls, v: Optional[str]) -> Optional[str]:
        """
        Validate phone number format if provided.
        Accepts formats like: +1234567890, (123) 456-7890, 123-456-7890
        """
        if v is None or v.strip() == "":
            return None

        cleaned = re.sub(r'[\s\-\(\)\.]', '', v)
        if not re.match(r'^\+?\d{7,15}$', cleaned):
            raise ValueError(
                "Phone number must contain 7-15 digits and may include spaces, "
                "dashes, parentheses, or a leading +"
            )
        return v

    @field_validator("customer_email")
    @classmethod
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate email format if provided."""
        if v is None or v.strip() == "":
            return None

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v):
            raise ValueError("Invalid email format")
        return v

    @model_validator(mode="after")
    def validate_end_time(self) -> "BookingCreate":
        if self.end_time is not None and not self.time < self.end_time:
            raise ValueError("end_time must be later than time")
        return self


class BookingResponse(BaseModel):
    """
    Pydantic model for formatting booking data in API responses.
    """
    id: int
    restaurant_id: int
    table_id: Optional[int]
    combined_table_id: Optional[int]
    booking_date: dt.date
    start_time: HHMM
    end_time: Optional[HHMM]
    guest_count: int
    status: str
    customer_name: str
    customer_phone: Optional[str]
    customer_email: Optional[str]
    notes: Optional[str]
    assignment_type: Optional[str]
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Engine results
# ============================================================================

class TimeSlot(BaseModel):
    """A bookable start time; generated, never persisted."""
    value: str = Field(..., description="Zero-padded HH:MM")
    label: str = Field(..., description="12-hour clock rendering, e.g. 7:00 PM")

    model_config = ConfigDict(frozen=True)


class AllocationResult(BaseModel):
    """
    Outcome of the table capacity allocator.

    - assigned: ``table_id`` or ``combination_id`` is set
    - auto: table choice is deferred to server-side auto-assignment
    - rejected: ``reason``, ``required`` and ``available`` describe the shortfall
    """
    status: AllocationStatus
    table_id: Optional[int] = None
    combination_id: Optional[int] = None
    reason: Optional[RejectionReason] = None
    required: Optional[int] = None
    available: Optional[int] = None

    @classmethod
    def assigned_table(cls, table_id: int) -> "AllocationResult":
        return cls(status=AllocationStatus.ASSIGNED, table_id=table_id)

    @classmethod
    def assigned_combination(cls, combination_id: int) -> "AllocationResult":
        return cls(status=AllocationStatus.ASSIGNED, combination_id=combination_id)

    @classmethod
    def auto(cls) -> "AllocationResult":
        return cls(status=AllocationStatus.AUTO)

    @classmethod
    def rejected(
        cls,
        required: int,
        available: int,
        reason: RejectionReason = RejectionReason.INSUFFICIENT_CAPACITY
    ) -> "AllocationResult":
        return cls(
            status=AllocationStatus.REJECTED,
            reason=reason,
            required=required,
            available=available
        )

    @property
    def is_rejected(self) -> bool:
        return self.status == AllocationStatus.REJECTED


class ValidationResult(BaseModel):
    """
    Outcome of the booking acceptance guard.

    A rejection is an expected result, not an error: callers branch on
    ``allowed`` and show ``message`` to the user.
    """
    allowed: bool
    reason: Optional[RejectionReason] = None
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(allowed=True)


class GuardContext(BaseModel):
    """
    Snapshot of everything the acceptance guard reads.

    Fetched once by the caller; the guard never performs I/O.
    """
    opening_hours: List[OpeningHoursRule] = Field(default_factory=list)
    bookings: List[BookingInfo] = Field(default_factory=list)
    tables: List[TableInfo] = Field(default_factory=list)
    combinations: List[CombinedTableInfo] = Field(default_factory=list)
    special_periods: List[SpecialPeriod] = Field(default_factory=list)
    cut_off_times: List[CutOffTime] = Field(default_factory=list)


class SlotOccupancy(BaseModel):
    """One cell of the availability grid."""
    value: str
    label: str
    occupied: bool
    booking_id: Optional[int] = None


class TableAvailability(BaseModel):
    """One row of the availability grid: a table and its slots."""
    table_id: int
    table_number: str
    capacity: int
    slots: List[SlotOccupancy]
