# salon_booking/booking.py
import logging
import secrets
from datetime import datetime
from typing import Callable, List

from .errors import BookingError
from .models import Appointment, Service
from .notifications import AppointmentNotification, EmailNotificationSender, ServiceLine
from .repository import BookingRepository
from .scheduler import NotificationDispatcher
from .schemas import (
    AppointmentCreatedResponse,
    BookingRequest,
    ClientSummary,
    ServiceSummary,
    StaffSummary,
)
from .timeutils import add_minutes, combine_date_time, within_hours

logger = logging.getLogger(__name__)


def generate_cancellation_token() -> str:
    return secrets.token_urlsafe(32)


def generate_confirmation_code(today: datetime) -> str:
    """Readable booking reference: ``YYYYMMDD-NNNN`` (creation day + 4 random digits)."""
    return f"{today:%Y%m%d}-{1000 + secrets.randbelow(9000)}"


def build_instructions(appointment: Appointment) -> str:
    return "\n".join([
        "Your appointment has been booked successfully.",
        f"Confirmation code: {appointment.confirmation_code}",
        f"Date: {appointment.start_at:%d/%m/%Y %H:%M}",
        f"Staff: {appointment.staff.name}",
        f"Duration: {appointment.total_duration_minutes} minutes",
        f"Total: ${appointment.total_price:,.0f}",
        "Use your cancellation token to cancel.",
        "Please cancel at least 24 hours in advance.",
    ])


class BookingService:
    """
    Creates appointments without ever double-booking a staff member.

    The whole check-then-insert sequence runs in one repository transaction.
    The staff row and any overlapping appointment rows are locked before the
    new appointment is written, so two requests for the same staff member and
    time cannot both commit.
    """

    def __init__(
        self,
        repository: BookingRepository,
        notifier: EmailNotificationSender,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime],
    ):
        self.repository = repository
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.clock = clock

    def book_appointment(self, request: BookingRequest) -> AppointmentCreatedResponse:
        service_ids = list(dict.fromkeys(request.service_ids))

        try:
            with self.repository.transaction() as session:
                # 1. Staff member, locked for the rest of the transaction
                staff = self.repository.find_active_staff(session, request.staff_id, lock=True)
                if staff is None:
                    raise BookingError.staff_unavailable(request.staff_id)

                # 2. Services
                services = self._resolve_services(session, service_ids)

                # 3. Schedule
                start_at = combine_date_time(request.date, request.start_time)
                duration = sum(service.duration_minutes for service in services)
                total_price = sum(service.price for service in services)
                end_at = add_minutes(start_at, duration)

                # 4. Temporal rules
                now = self.clock()
                if start_at <= now:
                    raise BookingError.past_date()

                if self.repository.is_blocked_day(session, start_at.date()):
                    raise BookingError.day_blocked(request.date)

                hours = self.repository.get_business_hours()
                if not within_hours(start_at, end_at, hours.opening, hours.closing):
                    raise BookingError.out_of_hours(hours.opening, hours.closing)

                if duration > hours.max_duration_minutes:
                    raise BookingError.invalid_duration(duration, hours.max_duration_minutes)

                # 5. Overlap check under lock
                if self.repository.lock_overlapping_appointments(session, staff.id, start_at, end_at):
                    raise BookingError.schedule_conflict()

                # 6. Client
                client = self.repository.upsert_client(
                    session,
                    name=request.client_name,
                    phone=request.phone,
                    email=request.email,
                )

                # 7-8. Persist
                appointment = self.repository.create_appointment_with_services(
                    session,
                    client_id=client.id,
                    staff_id=staff.id,
                    start_at=start_at,
                    end_at=end_at,
                    total_duration_minutes=duration,
                    total_price=total_price,
                    cancellation_token=generate_cancellation_token(),
                    confirmation_code=generate_confirmation_code(now),
                    services=services,
                )
                created = self._to_response(appointment)
        except BookingError as e:
            logger.info(f"Booking rejected for staff {request.staff_id} on {request.date} {request.start_time}: {e.code.value}")
            raise

        logger.info(
            f"Appointment {created.id} booked for staff {created.staff.id} "
            f"{created.start_at:%Y-%m-%d %H:%M}-{created.end_at:%H:%M} ({created.confirmation_code})"
        )

        # 10. After commit, never awaited
        self._notify_appointment_created(created)
        return created

    def _resolve_services(self, session, service_ids: List[str]) -> List[Service]:
        found = {service.id: service for service in self.repository.find_services(session, service_ids)}

        missing = [service_id for service_id in service_ids if service_id not in found]
        if missing:
            raise BookingError.services_not_found(missing)

        services = [found[service_id] for service_id in service_ids]
        for service in services:
            if not service.is_active:
                raise BookingError.service_unavailable(service.name, service.id)
        return services

    def _to_response(self, appointment: Appointment) -> AppointmentCreatedResponse:
        return AppointmentCreatedResponse(
            id=appointment.id,
            confirmation_code=appointment.confirmation_code,
            client=ClientSummary(
                name=appointment.client.name,
                phone=appointment.client.phone,
                email=appointment.client.email or None,
            ),
            staff=StaffSummary(id=appointment.staff.id, name=appointment.staff.name),
            services=[
                ServiceSummary(
                    id=link.service.id,
                    name=link.service.name,
                    duration_minutes=link.service.duration_minutes,
                    price=link.unit_price,
                )
                for link in appointment.service_links
            ],
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            total_duration_minutes=appointment.total_duration_minutes,
            total_price=appointment.total_price,
            status=appointment.status.value,
            cancellation_token=appointment.cancellation_token,
            instructions=build_instructions(appointment),
        )

    def _notify_appointment_created(self, created: AppointmentCreatedResponse):
        if not created.client.email:
            logger.info(f"Client {created.client.name} has no email. Notification skipped.")
            return

        details = AppointmentNotification(
            recipient=created.client.email,
            recipient_name=created.client.name,
            confirmation_code=created.confirmation_code,
            staff_name=created.staff.name,
            start_at=created.start_at,
            services=[
                ServiceLine(name=s.name, duration_minutes=s.duration_minutes, price=s.price)
                for s in created.services
            ],
            total_duration_minutes=created.total_duration_minutes,
            total_price=created.total_price,
            cancellation_token=created.cancellation_token,
        )

        try:
            self.dispatcher.dispatch(
                self._send_appointment_created,
                details,
                name=f"appointment-created-{created.id}",
            )
        except Exception as e:
            logger.error(f"Error dispatching notification for appointment {created.id}: {e}")

    def _send_appointment_created(self, details: AppointmentNotification) -> bool:
        try:
            result = self.notifier.send_appointment_created(details)
        except Exception as e:
            logger.error(f"Error sending appointment created notification to {details.recipient}: {e}")
            return False

        if result.success:
            logger.info(f"Appointment created notification sent to {details.recipient}")
        else:
            logger.error(f"Appointment created notification to {details.recipient} failed: {result.error}")
        return result.success
