"""
FastAPI application factory.
"""
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..error_handling.exceptions import BookingSystemError, DatabaseError
from ..error_handling.handlers import error_response
from .routes import router


def create_app() -> FastAPI:
    """
    Build the booking backend application.

    Technical failures are answered with the generic retry message; they
    never look like a booking rejection.
    """
    app = FastAPI(title="Reservation Availability & Table Allocation API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_response(exc),
        )

    @app.exception_handler(BookingSystemError)
    async def booking_error_handler(request: Request, exc: BookingSystemError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_response(exc),
        )

    @app.get("/")
    def root():
        return {"status": "ok", "time": datetime.now().isoformat()}

    app.include_router(router)
    return app
