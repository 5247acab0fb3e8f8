"""
Services package - Booking persistence and the REST client.
"""
from .booking_service import BookingService
from .availability_client import AvailabilityClient

__all__ = [
    "BookingService",
    "AvailabilityClient",
]
