# salon_booking/repository.py
import logging
import time as _time
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from .config import BusinessHours
from .database import READ_ONLY_OPTION
from .errors import BookingError, translate_storage_error
from .models import (
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentService,
    AppointmentStatus,
    BlockedDay,
    Client,
    Service,
    Staff,
    User,
)
from .timeutils import day_bounds

logger = logging.getLogger(__name__)


class BookingRepository:
    """
    Storage access for the scheduling core.

    Every method takes the session it must run in, so the booking flow can
    chain them inside a single transaction opened with ``transaction()``.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        business_hours: BusinessHours,
        timeout_seconds: float = 10.0,
    ):
        self.session_factory = session_factory
        self.business_hours = business_hours
        self.timeout_seconds = timeout_seconds

    # ── Transaction handling ─────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        All-or-nothing unit of work for a booking.

        Runs at SERIALIZABLE isolation where the database offers it, is
        bounded by ``timeout_seconds`` and rolls back on any exception.
        Storage concurrency failures surface as CONFLICT or TIMEOUT.
        """
        session = self.session_factory()
        started = _time.monotonic()
        try:
            self._configure_transaction(session)
            yield session
            if _time.monotonic() - started > self.timeout_seconds:
                raise BookingError.timeout()
            session.commit()
        except BookingError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            translated = translate_storage_error(e)
            if translated is None:
                raise
            logger.warning(f"Booking transaction aborted by the database ({translated.code.value}): {e}")
            raise translated from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """Session for lookups only. Takes no write lock and never commits."""
        session = self.session_factory()
        try:
            session.connection(execution_options={READ_ONLY_OPTION: True})
            yield session
        except SQLAlchemyError as e:
            translated = translate_storage_error(e)
            if translated is None:
                raise
            logger.warning(f"Read aborted by the database ({translated.code.value}): {e}")
            raise translated from e
        finally:
            session.close()

    def _configure_transaction(self, session: Session):
        dialect = session.get_bind().dialect.name
        if dialect == "sqlite":
            # BEGIN IMMEDIATE already serializes writers
            return
        session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
        if dialect == "postgresql":
            timeout_ms = int(self.timeout_seconds * 1000)
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))

    # ── Catalog lookup ───────────────────────────────────────────────────

    def get_business_hours(self) -> BusinessHours:
        return self.business_hours

    def find_staff(self, session: Session, staff_id: str) -> Optional[Staff]:
        return (
            session.query(Staff)
            .options(joinedload(Staff.user))
            .filter(Staff.id == staff_id)
            .first()
        )

    def find_active_staff(self, session: Session, staff_id: str, lock: bool = False) -> Optional[Staff]:
        """Staff member that is active and linked to an active user, or None."""
        query = (
            session.query(Staff)
            .join(User, Staff.user_id == User.id)
            .filter(Staff.id == staff_id, Staff.is_active.is_(True), User.is_active.is_(True))
        )
        if lock:
            # Serializes concurrent bookings for the same staff member
            query = query.with_for_update(of=Staff)
        return query.first()

    def find_services(self, session: Session, service_ids: Sequence[str]) -> List[Service]:
        """Services with the given ids, active or not."""
        if not service_ids:
            return []
        return session.query(Service).filter(Service.id.in_(list(service_ids))).all()

    def is_blocked_day(self, session: Session, day: date) -> bool:
        return session.query(BlockedDay.id).filter(BlockedDay.day == day).first() is not None

    # ── Appointments ─────────────────────────────────────────────────────

    def find_occupying_appointments(self, session: Session, staff_id: str, day: date) -> List[Appointment]:
        """Occupying appointments of ``staff_id`` that intersect ``day``, earliest first."""
        day_start, day_end = day_bounds(day)
        return (
            session.query(Appointment)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.status.in_(OCCUPYING_STATUSES),
                Appointment.start_at < day_end,
                Appointment.end_at > day_start,
            )
            .order_by(Appointment.start_at)
            .all()
        )

    def lock_overlapping_appointments(
        self,
        session: Session,
        staff_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Appointment]:
        """
        Occupying appointments of ``staff_id`` intersecting ``[start, end)``,
        read with a row lock held until the transaction ends.
        """
        return (
            session.query(Appointment)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.status.in_(OCCUPYING_STATUSES),
                Appointment.start_at < end,
                Appointment.end_at > start,
            )
            .with_for_update()
            .all()
        )

    def upsert_client(self, session: Session, name: str, phone: str, email: Optional[str] = None) -> Client:
        client = session.query(Client).filter(Client.phone == phone).first()
        if client is None:
            client = Client(name=name, phone=phone, email=email)
            session.add(client)
        else:
            client.name = name
            if email:
                client.email = email
        session.flush()
        return client

    def create_appointment_with_services(
        self,
        session: Session,
        *,
        client_id: str,
        staff_id: str,
        start_at: datetime,
        end_at: datetime,
        total_duration_minutes: int,
        total_price: float,
        cancellation_token: str,
        confirmation_code: str,
        services: Sequence[Service],
    ) -> Appointment:
        appointment = Appointment(
            client_id=client_id,
            staff_id=staff_id,
            start_at=start_at,
            end_at=end_at,
            total_duration_minutes=total_duration_minutes,
            total_price=total_price,
            status=AppointmentStatus.PENDING,
            cancellation_token=cancellation_token,
            confirmation_code=confirmation_code,
        )
        session.add(appointment)
        session.flush()

        # Unit price is frozen at booking time
        for position, service in enumerate(services):
            session.add(
                AppointmentService(
                    appointment_id=appointment.id,
                    service_id=service.id,
                    position=position,
                    unit_price=service.price,
                )
            )
        session.flush()

        return self.get_appointment(session, appointment.id)

    def get_appointment(self, session: Session, appointment_id: str) -> Optional[Appointment]:
        """Appointment with its client, staff and services loaded."""
        return (
            session.query(Appointment)
            .populate_existing()
            .options(
                joinedload(Appointment.client),
                joinedload(Appointment.staff),
                selectinload(Appointment.service_links).joinedload(AppointmentService.service),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )
