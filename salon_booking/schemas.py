# salon_booking/schemas.py
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

PHONE_PATTERN = r"^\+?\d{8,15}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# Booking schemas
class BookingRequest(BaseModel):
    client_name: str = Field(..., min_length=3, max_length=100)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None
    staff_id: str = Field(..., min_length=1, max_length=36)
    date: str = Field(..., pattern=DATE_PATTERN, description="YYYY-MM-DD")
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    service_ids: List[str] = Field(..., min_length=1, max_length=10)

    @field_validator("client_name", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_missing(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value

    @field_validator("date")
    @classmethod
    def real_calendar_date(cls, value: str) -> str:
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            raise ValueError("Invalid date")
        return value

    @field_validator("service_ids")
    @classmethod
    def distinct_services(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("Each service can only be selected once")
        return value


class ClientSummary(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None


class StaffSummary(BaseModel):
    id: str
    name: str


class ServiceSummary(BaseModel):
    id: str
    name: str
    duration_minutes: int
    price: float


class AppointmentCreatedResponse(BaseModel):
    id: str
    confirmation_code: str
    client: ClientSummary
    staff: StaffSummary
    services: List[ServiceSummary]
    start_at: datetime
    end_at: datetime
    total_duration_minutes: int
    total_price: float
    status: str
    cancellation_token: str
    instructions: str


# Availability schemas
class SlotResponse(BaseModel):
    start: datetime
    end: datetime


class AvailabilityResponse(BaseModel):
    date: date
    staff_id: str
    total_duration_minutes: int
    slots: List[SlotResponse]


# Error schema
class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    details: Dict[str, Any] = {}
    retryable: bool = False
