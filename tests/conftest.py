# tests/conftest.py
import uuid
from datetime import date, datetime
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

from salon_booking.availability import AvailabilityService
from salon_booking.booking import BookingService
from salon_booking.config import BusinessHours
from salon_booking.database import Base, create_db_engine
from salon_booking.models import (
    Appointment,
    AppointmentStatus,
    BlockedDay,
    Client,
    Service,
    Staff,
    User,
)
from salon_booking.notifications import NotificationResult
from salon_booking.repository import BookingRepository

# Monday, before opening
NOW = datetime(2030, 3, 4, 8, 0)
TOMORROW = date(2030, 3, 5)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingSender:
    """Stands in for the email sender and remembers every call"""

    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.fail = fail
        self.raise_error = raise_error
        self.sent = []

    def send_appointment_created(self, details):
        self.sent.append(details)
        if self.raise_error:
            raise RuntimeError("SMTP server unreachable")
        if self.fail:
            return NotificationResult(success=False, error="Mailbox unavailable")
        return NotificationResult(success=True, message_id="<test@salon>")


class InlineDispatcher:
    """Runs dispatched jobs immediately in the calling thread"""

    def __init__(self, raise_error: bool = False):
        self.raise_error = raise_error
        self.jobs = []
        self.is_running = False

    def start(self):
        self.is_running = True

    def shutdown(self, wait: bool = True):
        self.is_running = False

    def dispatch(self, func, *args, name=None):
        if self.raise_error:
            raise RuntimeError("dispatcher is gone")
        self.jobs.append(name)
        func(*args)
        return True

    def pending_notifications(self):
        return []


class Seeder:
    """Writes catalog rows and appointments straight to the test database"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, *rows):
        with self.session_factory() as session:
            session.add_all(rows)
            session.commit()

    def staff(self, name: str = "Maria Garcia", is_active: bool = True, user_active: bool = True) -> str:
        user_id, staff_id = str(uuid.uuid4()), str(uuid.uuid4())
        self._add(User(id=user_id, name=name, email=f"{user_id}@salon.test", is_active=user_active))
        self._add(Staff(id=staff_id, user_id=user_id, name=name, is_active=is_active))
        return staff_id

    def service(
        self,
        name: str = "Manicure",
        duration: int = 60,
        price: float = 15000.0,
        is_active: bool = True,
    ) -> str:
        service_id = str(uuid.uuid4())
        self._add(Service(id=service_id, name=name, duration_minutes=duration, price=price, is_active=is_active))
        return service_id

    def blocked_day(self, day: date, reason: str = "Holiday"):
        self._add(BlockedDay(day=day, reason=reason))

    def appointment(
        self,
        staff_id: str,
        start: datetime,
        end: datetime,
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        phone: Optional[str] = None,
    ) -> str:
        client_id, appointment_id = str(uuid.uuid4()), str(uuid.uuid4())
        self._add(Client(id=client_id, name="Existing Client", phone=phone or f"+569{uuid.uuid4().int % 10**8:08d}"))
        self._add(
            Appointment(
                id=appointment_id,
                client_id=client_id,
                staff_id=staff_id,
                start_at=start,
                end_at=end,
                total_duration_minutes=int((end - start).total_seconds() // 60),
                total_price=0.0,
                status=status,
                cancellation_token=uuid.uuid4().hex,
                confirmation_code="20300101-1000",
            )
        )
        return appointment_id

    def count(self, model) -> int:
        with self.session_factory() as session:
            return session.query(model).count()


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'salon_test.db'}", timeout_seconds=5)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def repository(session_factory):
    return BookingRepository(session_factory, BusinessHours(), timeout_seconds=5)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def dispatcher():
    return InlineDispatcher()


@pytest.fixture
def availability_service(repository, clock):
    return AvailabilityService(repository, clock, interval_minutes=15)


@pytest.fixture
def booking_service(repository, sender, dispatcher, clock):
    return BookingService(repository, sender, dispatcher, clock)
