# salon_booking/availability.py
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, NamedTuple, Sequence, Tuple

from .config import BusinessHours
from .errors import BookingError, ErrorCode
from .repository import BookingRepository
from .timeutils import add_minutes, iter_starts, overlaps_any, round_up

logger = logging.getLogger(__name__)

DEFAULT_SLOT_INTERVAL_MINUTES = 15


class Slot(NamedTuple):
    start: datetime
    end: datetime


@dataclass
class AvailabilityResult:
    day: date
    staff_id: str
    total_duration_minutes: int
    slots: List[Slot] = field(default_factory=list)


def search_window(
    day: date,
    duration_minutes: int,
    hours: BusinessHours,
    now: datetime,
    interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
) -> Tuple[datetime, datetime]:
    """
    First and last admissible slot start for ``day``.

    The last start leaves room for the whole duration before closing. On the
    current day the first start never lies in the past.
    """
    first = datetime.combine(day, hours.opening)
    last = add_minutes(datetime.combine(day, hours.closing), -duration_minutes)

    if day == now.date() and now > first:
        first = round_up(now, interval_minutes)

    return first, last


def generate_slots(
    first: datetime,
    last: datetime,
    duration_minutes: int,
    busy: Sequence[Tuple[datetime, datetime]],
    interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
) -> List[Slot]:
    """Candidate slots from ``first`` to ``last`` that overlap none of ``busy``."""
    slots = []
    for start in iter_starts(first, last, interval_minutes):
        end = add_minutes(start, duration_minutes)
        if not overlaps_any(start, end, busy):
            slots.append(Slot(start, end))
    return slots


class AvailabilityService:
    """Computes the bookable slots of one staff member on one day."""

    def __init__(
        self,
        repository: BookingRepository,
        clock: Callable[[], datetime],
        interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
    ):
        self.repository = repository
        self.clock = clock
        self.interval_minutes = interval_minutes

    def compute_availability(self, day: date, staff_id: str, service_ids: Sequence[str]) -> AvailabilityResult:
        now = self.clock()
        if day < now.date():
            raise BookingError(ErrorCode.PAST_DATE, "Availability cannot be queried for past dates")

        service_ids = list(dict.fromkeys(service_ids))

        with self.repository.read_session() as session:
            staff = self.repository.find_staff(session, staff_id)
            if staff is None:
                raise BookingError(ErrorCode.NOT_FOUND, "Staff member not found", {"staff_id": staff_id})
            if not staff.is_active or staff.user is None or not staff.user.is_active:
                raise BookingError(ErrorCode.INACTIVE, "Staff member is not active", {"staff_id": staff_id})

            if self.repository.is_blocked_day(session, day):
                logger.info(f"Availability requested for blocked day {day}")
                return AvailabilityResult(day=day, staff_id=staff_id, total_duration_minutes=0)

            services = self.repository.find_services(session, service_ids)
            active_ids = {service.id for service in services if service.is_active}
            unavailable = [service_id for service_id in service_ids if service_id not in active_ids]
            if unavailable:
                raise BookingError(
                    ErrorCode.NOT_FOUND,
                    "One or more services are not available",
                    {"missing_ids": unavailable},
                )

            duration = sum(service.duration_minutes for service in services)
            hours = self.repository.get_business_hours()
            if duration > hours.max_duration_minutes:
                raise BookingError.invalid_duration(duration, hours.max_duration_minutes)

            busy = [
                (appointment.start_at, appointment.end_at)
                for appointment in self.repository.find_occupying_appointments(session, staff_id, day)
            ]

        first, last = search_window(day, duration, hours, now, self.interval_minutes)
        slots = generate_slots(first, last, duration, busy, self.interval_minutes)

        return AvailabilityResult(
            day=day,
            staff_id=staff_id,
            total_duration_minutes=duration,
            slots=slots,
        )
