# salon_booking/config.py
import os
from dataclasses import dataclass, field
from datetime import time
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _parse_clock(value: str) -> time:
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@dataclass(frozen=True)
class BusinessHours:
    """Opening window of the salon and the longest single appointment allowed."""

    opening: time = time(9, 0)
    closing: time = time(19, 0)
    max_duration_minutes: int = 180


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"
    database_url: str = "sqlite:///./salon_booking.db"
    business_timezone: str = "America/Santiago"
    opening_time: time = time(9, 0)
    closing_time: time = time(19, 0)
    max_appointment_minutes: int = 180
    slot_interval_minutes: int = 15
    transaction_timeout_seconds: float = 10.0
    frontend_url: str = "http://localhost:3001"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: Optional[str] = None
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:4200", "http://localhost:3000"]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        smtp_user = os.getenv("SMTP_USER") or None
        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./salon_booking.db"),
            business_timezone=os.getenv("BUSINESS_TIMEZONE", "America/Santiago"),
            opening_time=_parse_clock(os.getenv("BUSINESS_OPENING_TIME", "09:00")),
            closing_time=_parse_clock(os.getenv("BUSINESS_CLOSING_TIME", "19:00")),
            max_appointment_minutes=int(os.getenv("MAX_APPOINTMENT_MINUTES", "180")),
            slot_interval_minutes=int(os.getenv("SLOT_INTERVAL_MINUTES", "15")),
            transaction_timeout_seconds=float(os.getenv("TRANSACTION_TIMEOUT_SECONDS", "10")),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3001").rstrip("/"),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=smtp_user,
            smtp_password=os.getenv("SMTP_PASS") or None,
            mail_from=os.getenv("MAIL_FROM") or (f"Salon Bookings <{smtp_user}>" if smtp_user else None),
            cors_origins=_split_csv(
                os.getenv("CORS_ORIGINS", "http://localhost:4200,http://localhost:3000")
            ),
        )

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @property
    def business_hours(self) -> BusinessHours:
        return BusinessHours(
            opening=self.opening_time,
            closing=self.closing_time,
            max_duration_minutes=self.max_appointment_minutes,
        )


settings = Settings.from_env()
