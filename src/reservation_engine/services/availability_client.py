"""
AvailabilityClient - REST client for the booking backend.

Used by front-of-house tools to fetch restaurant snapshots, give immediate
feedback with the local acceptance guard, and submit bookings.

Two kinds of failure are kept apart:
- A rejected booking is data: ``ValidationResult`` with a reason
- A failed request (connection, timeout, 5xx, bad payload) raises
  ``TransportError`` and is never reported as a rejection
"""
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import requests
from loguru import logger
from pydantic import ValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Settings, get_settings
from ..engine import validate as validate_request
from ..error_handling.exceptions import TransportError, TransportTimeoutError
from ..error_handling.logging_config import log_api_call
from ..models.schemas import (
    INACTIVE_BOOKING_STATUSES,
    BookingCreate,
    BookingInfo,
    BookingRequest,
    BookingResponse,
    CombinedTableCreate,
    CombinedTableInfo,
    CutOffTime,
    GuardContext,
    OpeningHoursRule,
    SpecialPeriod,
    TableAvailability,
    TableInfo,
    TimeSlot,
    ValidationResult,
)
from ..utils import local_now

SERVICE_NAME = "booking-api"

# Safe to resend: the request never reached the server
_CONNECT_ERRORS: Tuple[Type[Exception], ...] = (requests.ConnectionError,)
# Reads may also be resent after a timeout
_READ_RETRY_ERRORS: Tuple[Type[Exception], ...] = (requests.ConnectionError, requests.Timeout)


class AvailabilityClient:
    """
    Thin typed wrapper around the booking backend's REST endpoints.

    Every request carries a timeout. Connection failures are retried with
    exponential backoff; timeouts are retried for reads only.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        backoff_multiplier: float = 0.5,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL (defaults to API_BASE_URL)
            settings: Application settings (defaults to the global settings)
            session: requests session to reuse (a new one is created if omitted)
            backoff_multiplier: Base delay in seconds for retry backoff
        """
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.api_base_url).rstrip("/")
        self.timeout = self.settings.request_timeout_seconds
        self.max_retries = self.settings.request_max_retries
        self.session = session or requests.Session()
        self.backoff_multiplier = backoff_multiplier

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, restaurant_id: Optional[int], path: str) -> str:
        if restaurant_id is None:
            raise ValueError("restaurant_id is required to address the booking backend")
        return f"{self.base_url}/api/restaurants/{restaurant_id}/{path}"

    def _send(
        self,
        method: str,
        url: str,
        operation: str,
        retry_on: Tuple[Type[Exception], ...],
        **kwargs: Any,
    ) -> requests.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=5),
            retry=retry_if_exception_type(retry_on),
            reraise=True,
        )
        start_time = time.time()
        try:
            for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying {operation} (attempt "
                            f"{attempt.retry_state.attempt_number}/{self.max_retries})"
                        )
                    return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            log_api_call(SERVICE_NAME, operation, False, time.time() - start_time, {"error": "timeout"})
            raise TransportTimeoutError(operation, self.timeout, original_error=e)
        except requests.RequestException as e:
            log_api_call(SERVICE_NAME, operation, False, time.time() - start_time, {"error": str(e)})
            raise TransportError(
                f"Request {operation} failed: {str(e)}",
                operation=operation,
                original_error=e
            )
        finally:
            logger.debug(f"{method} {url} finished in {time.time() - start_time:.3f}s")

    def _json(
        self,
        method: str,
        url: str,
        operation: str,
        expected: Sequence[int] = (200,),
        **kwargs: Any,
    ) -> Tuple[int, Any]:
        """
        Send a request and decode the JSON body.

        Returns:
            (status_code, payload) for an expected status

        Raises:
            TransportError: On network failure, unexpected status or bad JSON
        """
        retry_on = _READ_RETRY_ERRORS if method == "GET" else _CONNECT_ERRORS
        start_time = time.time()
        response = self._send(method, url, operation, retry_on, **kwargs)
        duration = time.time() - start_time

        if response.status_code not in expected:
            log_api_call(SERVICE_NAME, operation, False, duration, {"status": response.status_code})
            raise TransportError(
                f"Unexpected status {response.status_code} from {operation}",
                operation=operation,
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            log_api_call(SERVICE_NAME, operation, False, duration, {"error": "invalid json"})
            raise TransportError(
                f"Malformed response body from {operation}",
                operation=operation,
                status_code=response.status_code,
                original_error=e
            )

        log_api_call(SERVICE_NAME, operation, True, duration, {"status": response.status_code})
        return response.status_code, payload

    def _parse(self, model, payload: Any, operation: str):
        try:
            if isinstance(payload, list):
                return [model.model_validate(item) for item in payload]
            return model.model_validate(payload)
        except (TypeError, ValidationError) as e:
            raise TransportError(
                f"Unexpected payload from {operation}: {str(e)}",
                operation=operation,
                original_error=e
            )

    def _get_list(self, model, restaurant_id: int, path: str, operation: str, params=None) -> list:
        _, payload = self._json("GET", self._url(restaurant_id, path), operation, params=params)
        if not isinstance(payload, list):
            raise TransportError(f"Expected a list from {operation}", operation=operation)
        return self._parse(model, payload, operation)

    # ------------------------------------------------------------------
    # Snapshot reads
    # ------------------------------------------------------------------

    def get_opening_hours(self, restaurant_id: int) -> List[OpeningHoursRule]:
        return self._get_list(OpeningHoursRule, restaurant_id, "opening-hours", "get_opening_hours")

    def get_special_periods(self, restaurant_id: int) -> List[SpecialPeriod]:
        return self._get_list(SpecialPeriod, restaurant_id, "special-periods", "get_special_periods")

    def get_cut_off_times(self, restaurant_id: int) -> List[CutOffTime]:
        return self._get_list(CutOffTime, restaurant_id, "cut-off-times", "get_cut_off_times")

    def get_tables(self, restaurant_id: int) -> List[TableInfo]:
        return self._get_list(TableInfo, restaurant_id, "tables", "get_tables")

    def get_combined_tables(self, restaurant_id: int) -> List[CombinedTableInfo]:
        return self._get_list(CombinedTableInfo, restaurant_id, "combined-tables", "get_combined_tables")

    def get_bookings(
        self,
        restaurant_id: int,
        target_date: date,
        table_id: Optional[int] = None,
    ) -> List[BookingInfo]:
        params: Dict[str, Any] = {"date": target_date.isoformat()}
        if table_id is not None:
            params["table_id"] = table_id
        return self._get_list(BookingInfo, restaurant_id, "bookings", "get_bookings", params=params)

    def load_context(self, restaurant_id: int, target_date: date) -> GuardContext:
        """
        Fetch everything the acceptance guard needs for one date.

        Raises:
            TransportError: If any of the reads fails
        """
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

    def get_time_slots(
        self,
        restaurant_id: int,
        target_date: date,
        step_minutes: Optional[int] = None,
    ) -> List[TimeSlot]:
        params: Dict[str, Any] = {"date": target_date.isoformat()}
        if step_minutes is not None:
            params["step_minutes"] = step_minutes
        return self._get_list(TimeSlot, restaurant_id, "time-slots", "get_time_slots", params=params)

    def get_availability(self, restaurant_id: int, target_date: date) -> List[TableAvailability]:
        return self._get_list(
            TableAvailability,
            restaurant_id,
            "availability",
            "get_availability",
            params={"date": target_date.isoformat()},
        )

    # ------------------------------------------------------------------
    # Validation and writes
    # ------------------------------------------------------------------

    def validate_locally(
        self,
        request: BookingRequest,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Run the acceptance guard against a freshly fetched snapshot.

        Gives the user immediate feedback; the backend repeats the check
        inside its create transaction and has the final word.

        Args:
            request: Booking request to check
            now: Restaurant-local current time (defaults to the clock)

        Raises:
            TransportError: If the snapshot cannot be loaded
        """
        context = self.load_context(request.restaurant_id, request.date)
        return validate_request(request, context, now=now or local_now(self.settings.timezone))

    def validate(self, request: BookingRequest) -> ValidationResult:
        """Ask the backend to validate a request without creating it."""
        url = self._url(request.restaurant_id, "validate-booking")
        _, payload = self._json("POST", url, "validate_booking", json=request.model_dump(mode="json"))
        return self._parse(ValidationResult, payload, "validate_booking")

    def create(self, data: BookingCreate) -> Tuple[Optional[BookingResponse], ValidationResult]:
        """
        Submit a booking to the backend.

        Returns:
            (booking, ValidationResult.ok()) on 201, or (None, rejection) on 409

        Raises:
            TransportError: On any other outcome
        """
        url = self._url(data.restaurant_id, "bookings")
        status, payload = self._json(
            "POST", url, "create_booking", expected=(201, 409), json=data.model_dump(mode="json")
        )
        if status == 409:
            result = self._parse(ValidationResult, payload, "create_booking")
            logger.info(f"Booking rejected by backend: {result.reason}")
            return None, result
        return self._parse(BookingResponse, payload, "create_booking"), ValidationResult.ok()

    def book(
        self,
        data: BookingCreate,
        now: Optional[datetime] = None,
    ) -> Tuple[Optional[BookingResponse], ValidationResult]:
        """
        Validate locally, ask the backend to validate, then submit.

        A rejection from either check is returned without contacting the
        write endpoint. The backend repeats the check when creating.
        """
        result = self.validate_locally(data, now=now)
        if not result.allowed:
            return None, result
        result = self.validate(data)
        if not result.allowed:
            logger.info(f"Booking rejected by backend validation: {result.reason}")
            return None, result
        return self.create(data)

    def create_combined_table(self, restaurant_id: int, data: CombinedTableCreate) -> CombinedTableInfo:
        url = self._url(restaurant_id, "combined-tables")
        _, payload = self._json(
            "POST", url, "create_combined_table", expected=(201,), json=data.model_dump(mode="json")
        )
        return self._parse(CombinedTableInfo, payload, "create_combined_table")
