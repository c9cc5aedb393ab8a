from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from numbers import Real
from typing import Iterable

from .slots import DEFAULT_CATALOG, SlotCatalog, parse_slot_time

logger = logging.getLogger(__name__)

STATUS_CONFIRMED = "confirmed"
STATUS_RESCHEDULED = "rescheduled"
STATUS_CANCELLED = "cancelled"
BOOKING_STATUSES = (STATUS_CONFIRMED, STATUS_RESCHEDULED, STATUS_CANCELLED)


@dataclass(frozen=True)
class Booking:
    booking_id: str
    room_id: str
    user_id: str
    start: datetime
    end: datetime
    status: str = STATUS_CONFIRMED
    title: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Booking start time must be earlier than end time.")
        if self.status not in BOOKING_STATUSES:
            raise ValueError(f"Unknown booking status: {self.status!r}")

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_CANCELLED

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class SlotAvailability:
    start_time: str
    available: bool

    def to_dict(self) -> dict[str, object]:
        return {"start_time": self.start_time, "available": self.available}


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def normalize_day(day: date | datetime | str) -> date:
    """Return the local calendar day for ``day``.

    Aware datetimes are moved to local time before the day is taken, so an
    instant stored in UTC never lands on the neighbouring day.
    """
    if isinstance(day, datetime):
        return to_local_naive(day).date()
    if isinstance(day, date):
        return day
    return date.fromisoformat(str(day).strip())


def candidate_interval(
    day: date | datetime | str,
    start_time: str | time,
    duration_hours: float = 1,
) -> tuple[datetime, datetime]:
    if isinstance(duration_hours, bool) or not isinstance(duration_hours, Real):
        raise ValueError("duration_hours must be a number")
    if duration_hours <= 0:
        raise ValueError("duration_hours must be greater than zero")

    start = datetime.combine(normalize_day(day), parse_slot_time(start_time))
    return start, start + timedelta(hours=float(duration_hours))


def find_conflicts(
    start: datetime,
    end: datetime,
    room_id: str,
    all_bookings: Iterable[Booking],
    excluded_booking_id: str | None = None,
) -> list[Booking]:
    """Return the active bookings of ``room_id`` overlapping ``[start, end)``."""
    conflicts: list[Booking] = []
    for booking in all_bookings:
        if excluded_booking_id is not None and booking.booking_id == excluded_booking_id:
            continue
        if booking.room_id != room_id or not booking.is_active:
            continue

        if has_time_overlap(start, end, to_local_naive(booking.start), to_local_naive(booking.end)):
            conflicts.append(booking)
    return conflicts


def is_slot_booked(
    start_time: str | time | None,
    room_id: str | None,
    day: date | datetime | str | None,
    all_bookings: Iterable[Booking],
    duration_hours: float = 1,
    excluded_booking_id: str | None = None,
    catalog: SlotCatalog = DEFAULT_CATALOG,
) -> bool:
    """Return True when the slot cannot be booked.

    A slot counts as booked when any input is missing, when the booking would
    end after the catalog's closing boundary, or when it overlaps an active
    booking of the same room. Malformed input is treated as booked.
    """
    if not start_time or not room_id or not day:
        return True

    try:
        start, end = candidate_interval(day, start_time, duration_hours)
        if end > catalog.closing_instant(start.date()):
            return True
        return bool(find_conflicts(start, end, room_id, all_bookings, excluded_booking_id))
    except (TypeError, ValueError, AttributeError, OverflowError) as error:
        logger.warning(
            "Slot check failed for room=%s day=%s start=%s duration=%s (%s: %s)",
            room_id,
            day,
            start_time,
            duration_hours,
            type(error).__name__,
            error,
        )
        return True


def slot_availability(
    room_id: str,
    day: date | datetime | str,
    all_bookings: Iterable[Booking],
    duration_hours: float = 1,
    excluded_booking_id: str | None = None,
    catalog: SlotCatalog = DEFAULT_CATALOG,
) -> list[SlotAvailability]:
    snapshot = list(all_bookings)
    return [
        SlotAvailability(
            start_time=slot,
            available=not is_slot_booked(
                slot,
                room_id,
                day,
                snapshot,
                duration_hours,
                excluded_booking_id,
                catalog,
            ),
        )
        for slot in catalog.list_slots()
    ]


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
