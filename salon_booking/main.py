# salon_booking/main.py
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from functools import partial
from typing import Callable, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from . import __version__
from .availability import AvailabilityService
from .booking import BookingService
from .config import Settings, settings as default_settings
from .database import SessionLocal, init_db
from .errors import BookingError, ErrorCode
from .notifications import EmailNotificationSender
from .repository import BookingRepository
from .scheduler import NotificationDispatcher
from .schemas import (
    AppointmentCreatedResponse,
    AvailabilityResponse,
    BookingRequest,
    ErrorResponse,
    SlotResponse,
)
from .timeutils import now_in

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    408: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    notifier: Optional[EmailNotificationSender] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or default_settings
    create_tables = session_factory is None
    session_factory = session_factory or SessionLocal
    clock = clock or partial(now_in, settings.business_timezone)
    dispatcher = dispatcher or NotificationDispatcher()

    repository = BookingRepository(
        session_factory,
        settings.business_hours,
        timeout_seconds=settings.transaction_timeout_seconds,
    )
    availability_service = AvailabilityService(
        repository,
        clock,
        interval_minutes=settings.slot_interval_minutes,
    )
    booking_service = BookingService(
        repository,
        notifier or EmailNotificationSender(settings),
        dispatcher,
        clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Starting Salon Booking API...")
        if create_tables:
            init_db()
        dispatcher.start()
        yield
        # Shutdown
        logger.info("Shutting down Salon Booking API...")
        dispatcher.shutdown()

    app = FastAPI(
        title="Salon Booking API",
        version=__version__,
        description="Appointment booking backend for a personal-services business",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.availability_service = availability_service
    app.state.booking_service = booking_service
    app.state.dispatcher = dispatcher

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)
    register_routes(app)
    return app


def register_exception_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query")),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        error = BookingError(ErrorCode.VALIDATION_ERROR, "Validation error", {"errors": errors})
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        details = {"original_message": str(exc)} if settings.is_development else {}
        error = BookingError(ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error", details)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_routes(app: FastAPI):
    # REST endpoints
    @app.get("/")
    async def root():
        return {"message": "Salon Booking API", "version": __version__}

    @app.get("/api/health")
    async def health_check(request: Request):
        dispatcher = request.app.state.dispatcher
        return {
            "status": "healthy",
            "timestamp": datetime.utcnow(),
            "service": "Salon Booking",
            "dispatcher": "running" if dispatcher.is_running else "stopped",
            "pending_notifications": len(dispatcher.pending_notifications()),
        }

    @app.get(
        "/api/appointments/availability",
        response_model=AvailabilityResponse,
        responses=ERROR_RESPONSES,
    )
    def get_availability(
        request: Request,
        day: date = Query(..., alias="date", description="YYYY-MM-DD"),
        staff_id: str = Query(..., min_length=1),
        service_ids: List[str] = Query(...),
    ):
        result = request.app.state.availability_service.compute_availability(day, staff_id, service_ids)
        return AvailabilityResponse(
            date=result.day,
            staff_id=result.staff_id,
            total_duration_minutes=result.total_duration_minutes,
            slots=[SlotResponse(start=slot.start, end=slot.end) for slot in result.slots],
        )

    @app.post(
        "/api/appointments",
        response_model=AppointmentCreatedResponse,
        status_code=201,
        responses=ERROR_RESPONSES,
    )
    def create_appointment(payload: BookingRequest, request: Request):
        return request.app.state.booking_service.book_appointment(payload)


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("salon_booking.main:app", host="0.0.0.0", port=8000, reload=True)
