# salon_booking/timeutils.py
"""
Time helpers shared by availability and booking.

All datetimes handled here are naive wall-clock values in the business
timezone, which is how appointments are stored.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, Tuple
from zoneinfo import ZoneInfo


def now_in(timezone_name: str) -> datetime:
    """Current wall-clock time in ``timezone_name``, without tzinfo."""
    return datetime.now(ZoneInfo(timezone_name)).replace(tzinfo=None)


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_clock(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def combine_date_time(day: str, clock: str) -> datetime:
    """Combine ``YYYY-MM-DD`` and ``HH:MM`` into one datetime."""
    return datetime.combine(parse_date(day), parse_clock(clock))


def add_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    # Strict: ranges that only touch do not overlap
    return start1 < end2 and start2 < end1


def overlaps_any(start: datetime, end: datetime, ranges: Iterable[Tuple[datetime, datetime]]) -> bool:
    return any(overlaps(start, end, other_start, other_end) for other_start, other_end in ranges)


def round_up(moment: datetime, interval_minutes: int) -> datetime:
    """
    Round ``moment`` up to the next multiple of ``interval_minutes`` past the hour.

    A moment already on a boundary (with no seconds) is returned unchanged;
    any seconds push it to the following boundary.
    """
    floored = moment.replace(second=0, microsecond=0)
    floored -= timedelta(minutes=floored.minute % interval_minutes)
    if floored == moment:
        return moment
    return floored + timedelta(minutes=interval_minutes)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def iter_starts(first: datetime, last: datetime, step_minutes: int) -> Iterator[datetime]:
    """Yield ``first``, ``first + step`` ... up to and including ``last``."""
    step = timedelta(minutes=step_minutes)
    current = first
    while current <= last:
        yield current
        current += step


def within_hours(start: datetime, end: datetime, opening: time, closing: time) -> bool:
    """True when ``[start, end)`` lies inside the opening hours of ``start``'s day."""
    day_open = datetime.combine(start.date(), opening)
    day_close = datetime.combine(start.date(), closing)
    return day_open <= start and end <= day_close
