# salon_booking/notifications.py
"""
Email notifications sent to clients.

The sender never raises: every outcome, including SMTP failures and an
unconfigured mail server, comes back as a NotificationResult.
"""
import html
import logging
import smtplib
import ssl
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ServiceLine:
    name: str
    duration_minutes: int
    price: float


@dataclass
class AppointmentNotification:
    recipient: str
    recipient_name: str
    confirmation_code: str
    staff_name: str
    start_at: datetime
    services: List[ServiceLine]
    total_duration_minutes: int
    total_price: float
    cancellation_token: str


@dataclass
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)


# Formatting helpers

def format_full_date(moment: datetime) -> str:
    """``Sunday, 15 February 2026``"""
    return f"{moment:%A}, {moment.day} {moment:%B %Y}"


def format_clock(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def format_price(price: float) -> str:
    return f"${price:,.0f}"


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours, rest = divmod(minutes, 60)
    text = f"{hours} hour{'s' if hours != 1 else ''}"
    if rest:
        text += f" {rest} minute{'s' if rest != 1 else ''}"
    return text


def cancellation_link(token: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/cancel?token={token}"


def is_valid_email(address: Optional[str]) -> bool:
    if not address:
        return False
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class EmailNotificationSender:
    """Sends appointment emails through SMTP"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.enabled = settings.smtp_configured
        if not self.enabled:
            logger.warning("SMTP not configured. Email notifications are disabled.")

    def send_appointment_created(self, details: AppointmentNotification) -> NotificationResult:
        if not is_valid_email(details.recipient):
            return self._failed("Recipient email address is not valid")

        subject = f"Appointment booked - confirmation {details.confirmation_code}"
        link = cancellation_link(details.cancellation_token, self.settings.frontend_url)
        text_body = self._render_created_text(details, link)
        html_body = self._render_created_html(details, link)

        return self._send(details.recipient, subject, text_body, html_body, "APPOINTMENT_CREATED")

    def _send(self, recipient: str, subject: str, text_body: str, html_body: str, kind: str) -> NotificationResult:
        if not self.enabled:
            logger.info(f"[SIMULATED] Email {kind} to {recipient} - subject: {subject}")
            return NotificationResult(success=False, error="Notification service is disabled")

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.settings.mail_from or self.settings.smtp_user
            msg["To"] = recipient
            msg["Message-ID"] = make_msgid(idstring=uuid.uuid4().hex[:12])
            msg.attach(MIMEText(text_body, "plain"))
            msg.attach(MIMEText(html_body, "html"))

            context = ssl.create_default_context()
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
                if self.settings.smtp_port == 587:
                    server.starttls(context=context)
                server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(self.settings.smtp_user, [recipient], msg.as_string())

            logger.info(f"Email {kind} sent to {recipient} (id {msg['Message-ID']})")
            return NotificationResult(success=True, message_id=msg["Message-ID"])

        except Exception as e:
            logger.error(f"Error sending email {kind} to {recipient}: {e}")
            return NotificationResult(success=False, error=str(e) or "Unknown error while sending email")

    def _failed(self, error: str) -> NotificationResult:
        logger.warning(error)
        return NotificationResult(success=False, error=error)

    def _render_created_text(self, details: AppointmentNotification, link: str) -> str:
        service_lines = "\n".join(
            f"• {s.name} ({s.duration_minutes} min) - {format_price(s.price)}" for s in details.services
        )
        return f"""
Hi {details.recipient_name},

Your appointment has been booked.

Confirmation code: {details.confirmation_code}
Date: {format_full_date(details.start_at)}
Time: {format_clock(details.start_at)}
Staff: {details.staff_name}

Services:
{service_lines}

Duration: {format_duration(details.total_duration_minutes)}
Total: {format_price(details.total_price)}

To cancel, open {link}
Please cancel at least 24 hours in advance.
        """.strip()

    def _render_created_html(self, details: AppointmentNotification, link: str) -> str:
        service_items = "".join(
            f"<li><strong>{html.escape(s.name)}</strong> "
            f"<span style=\"color: #666;\">({s.duration_minutes} min)</span> - "
            f"<strong>{format_price(s.price)}</strong></li>"
            for s in details.services
        )
        return f"""
<h2>Your appointment has been booked</h2>
<p>Hi {html.escape(details.recipient_name)},</p>
<p><strong>Confirmation code:</strong> {html.escape(details.confirmation_code)}</p>
<p><strong>Date:</strong> {format_full_date(details.start_at)}</p>
<p><strong>Time:</strong> {format_clock(details.start_at)}</p>
<p><strong>Staff:</strong> {html.escape(details.staff_name)}</p>
<ul>{service_items}</ul>
<p><strong>Duration:</strong> {format_duration(details.total_duration_minutes)}</p>
<p><strong>Total:</strong> {format_price(details.total_price)}</p>
<p><a href="{html.escape(link)}">Cancel this appointment</a></p>
<p style="color: #666;">Please cancel at least 24 hours in advance.</p>
        """.strip()
