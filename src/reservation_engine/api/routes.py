"""
REST routes of the booking backend.

All routes are scoped to one restaurant. Reads return plain snapshots for
the client-side engine; the two write routes run the authoritative checks
in ``BookingService``.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..error_handling.exceptions import UnknownTableError
from ..models.database import get_db
from ..models.schemas import (
    BookingCreate,
    BookingInfo,
    BookingRequest,
    BookingResponse,
    CombinedTableCreate,
    CombinedTableInfo,
    CutOffTime,
    OpeningHoursRule,
    SpecialPeriod,
    TableAvailability,
    TableInfo,
    TimeSlot,
    ValidationResult,
)
from ..services.booking_service import BookingService

router = APIRouter(prefix="/api/restaurants/{restaurant_id}", tags=["reservations"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


@router.get("/opening-hours", response_model=List[OpeningHoursRule])
def list_opening_hours(restaurant_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_opening_hours(restaurant_id)


@router.get("/special-periods", response_model=List[SpecialPeriod])
def list_special_periods(restaurant_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_special_periods(restaurant_id)


@router.get("/cut-off-times", response_model=List[CutOffTime])
def list_cut_off_times(restaurant_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_cut_off_times(restaurant_id)


@router.get("/tables", response_model=List[TableInfo])
def list_tables(restaurant_id: int, service: BookingService = Depends(get_booking_service)):
    """Active tables of the restaurant."""
    return service.get_tables(restaurant_id)


@router.get("/combined-tables", response_model=List[CombinedTableInfo])
def list_combined_tables(restaurant_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_combined_tables(restaurant_id)


@router.post(
    "/combined-tables",
    response_model=CombinedTableInfo,
    status_code=status.HTTP_201_CREATED,
)
def create_combined_table(
    restaurant_id: int,
    payload: CombinedTableCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Create a combination; its capacity is the sum of the member tables."""
    try:
        combination = service.create_combined_table(restaurant_id, payload)
    except UnknownTableError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.user_message)
    return CombinedTableInfo.model_validate(combination)


@router.get("/bookings", response_model=List[BookingInfo])
def list_bookings(
    restaurant_id: int,
    date: date = Query(..., description="Restaurant-local date (YYYY-MM-DD)"),
    table_id: Optional[int] = Query(None, description="Only bookings holding this table"),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_bookings(restaurant_id, date, table_id=table_id)


@router.get("/time-slots", response_model=List[TimeSlot])
def list_time_slots(
    restaurant_id: int,
    date: date = Query(...),
    step_minutes: Optional[int] = Query(None, gt=0, le=240),
    service: BookingService = Depends(get_booking_service),
):
    """Bookable start times inside the day's opening hours."""
    return service.get_time_slots(restaurant_id, date, step_minutes=step_minutes)


@router.get("/availability", response_model=List[TableAvailability])
def get_availability(
    restaurant_id: int,
    date: date = Query(...),
    service: BookingService = Depends(get_booking_service),
):
    """Hourly occupancy grid per active table."""
    return service.get_availability_grid(restaurant_id, date)


@router.post("/validate-booking", response_model=ValidationResult)
def validate_booking(
    restaurant_id: int,
    payload: BookingRequest,
    service: BookingService = Depends(get_booking_service),
):
    """
    Check a booking request without creating it.

    A rejection is a normal 200 response with ``allowed`` false.
    """
    request = payload.model_copy(update={"restaurant_id": restaurant_id})
    return service.validate_booking(request)


@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ValidationResult, "description": "Booking rejected"}},
)
def create_booking(
    restaurant_id: int,
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """
    Create a booking.

    Returns 201 with the booking, or 409 with the rejection reason and the
    user-facing message.
    """
    data = payload.model_copy(update={"restaurant_id": restaurant_id})
    booking, result = service.create_booking(data)
    if booking is None:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=result.model_dump(mode="json"),
        )
    return BookingResponse.model_validate(booking)
