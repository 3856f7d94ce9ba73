# tests/test_config.py
from datetime import time

from salon_booking.config import BusinessHours, Settings


def test_defaults(monkeypatch):
    for name in ("APP_ENV", "BUSINESS_OPENING_TIME", "BUSINESS_CLOSING_TIME", "MAX_APPOINTMENT_MINUTES",
                 "SMTP_HOST", "SMTP_USER", "SMTP_PASS", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.is_development
    assert not settings.smtp_configured
    assert settings.business_hours == BusinessHours(time(9, 0), time(19, 0), 180)
    assert settings.cors_origins == ["http://localhost:4200", "http://localhost:3000"]


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("BUSINESS_OPENING_TIME", "10:30")
    monkeypatch.setenv("BUSINESS_CLOSING_TIME", "20:00")
    monkeypatch.setenv("MAX_APPOINTMENT_MINUTES", "240")
    monkeypatch.setenv("SMTP_HOST", "smtp.mail.com")
    monkeypatch.setenv("SMTP_USER", "bookings@mail.com")
    monkeypatch.setenv("SMTP_PASS", "secret")
    monkeypatch.delenv("MAIL_FROM", raising=False)
    monkeypatch.setenv("CORS_ORIGINS", "https://salon.example.org, https://admin.example.org")
    monkeypatch.setenv("FRONTEND_URL", "https://salon.example.org/")

    settings = Settings.from_env()

    assert not settings.is_development
    assert settings.smtp_configured
    assert settings.mail_from == "Salon Bookings <bookings@mail.com>"
    assert settings.business_hours == BusinessHours(time(10, 30), time(20, 0), 240)
    assert settings.cors_origins == ["https://salon.example.org", "https://admin.example.org"]
    assert settings.frontend_url == "https://salon.example.org"
