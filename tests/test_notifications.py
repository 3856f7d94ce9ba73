# tests/test_notifications.py
import smtplib
from datetime import datetime
from unittest.mock import patch

import pytest

from salon_booking.config import Settings
from salon_booking.notifications import (
    AppointmentNotification,
    EmailNotificationSender,
    ServiceLine,
    cancellation_link,
    format_duration,
    format_full_date,
    format_price,
    is_valid_email,
)

SMTP_SETTINGS = Settings(
    smtp_host="smtp.mail.com",
    smtp_port=587,
    smtp_user="bookings@mail.com",
    smtp_password="secret",
    mail_from="Salon Bookings <bookings@mail.com>",
    frontend_url="https://salon.example.org",
)


def make_details(**overrides):
    data = dict(
        recipient="carla.rojas@mail.com",
        recipient_name="Carla Rojas",
        confirmation_code="20300304-4821",
        staff_name="Maria Garcia",
        start_at=datetime(2030, 3, 5, 10, 0),
        services=[ServiceLine("Haircut", 60, 15000), ServiceLine("Beard trim", 30, 8000)],
        total_duration_minutes=90,
        total_price=23000,
        cancellation_token="tok_abc",
    )
    data.update(overrides)
    return AppointmentNotification(**data)


def test_formatting_helpers():
    assert format_price(23000) == "$23,000"
    assert format_duration(45) == "45 minutes"
    assert format_duration(60) == "1 hour"
    assert format_duration(90) == "1 hour 30 minutes"
    assert format_duration(150) == "2 hours 30 minutes"
    assert format_full_date(datetime(2030, 3, 5, 10, 0)) == "Tuesday, 5 March 2030"
    assert cancellation_link("tok", "https://salon.example.org/") == "https://salon.example.org/cancel?token=tok"


@pytest.mark.parametrize(
    "address,valid",
    [
        ("a@b.co", True),
        ("carla.rojas+salon@mail.com", True),
        ("no-at-sign", False),
        ("carla@mail..com", False),
        ("carla@@mail.com", False),
        ("carla rojas@mail.com", False),
        ("carla@mail", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_email(address, valid):
    assert is_valid_email(address) is valid


def test_disabled_sender_reports_failure():
    sender = EmailNotificationSender(Settings())

    result = sender.send_appointment_created(make_details())

    assert not sender.enabled
    assert result.success is False
    assert "disabled" in result.error


def test_invalid_recipient_is_not_sent():
    sender = EmailNotificationSender(SMTP_SETTINGS)

    with patch("salon_booking.notifications.smtplib.SMTP") as smtp:
        result = sender.send_appointment_created(make_details(recipient="not-an-email"))

    assert result.success is False
    smtp.assert_not_called()


def test_sends_through_smtp():
    sender = EmailNotificationSender(SMTP_SETTINGS)

    with patch("salon_booking.notifications.smtplib.SMTP") as smtp:
        result = sender.send_appointment_created(make_details())

    assert result.success is True
    assert result.message_id
    smtp.assert_called_once_with("smtp.mail.com", 587, timeout=30)
    server = smtp.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bookings@mail.com", "secret")
    from_addr, to_addrs, message = server.sendmail.call_args[0]
    assert to_addrs == ["carla.rojas@mail.com"]
    assert "20300304-4821" in message
    assert "https://salon.example.org/cancel?token=tok_abc" in message


def test_smtp_failure_is_returned_not_raised():
    sender = EmailNotificationSender(SMTP_SETTINGS)

    with patch("salon_booking.notifications.smtplib.SMTP") as smtp:
        smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad")
        result = sender.send_appointment_created(make_details())

    assert result.success is False
    assert result.error


def test_html_body_escapes_client_text():
    sender = EmailNotificationSender(SMTP_SETTINGS)
    details = make_details(recipient_name="<script>alert(1)</script>")

    body = sender._render_created_html(details, "https://salon.example.org/cancel?token=t")

    assert "<script>" not in body
    assert "&lt;script&gt;" in body
