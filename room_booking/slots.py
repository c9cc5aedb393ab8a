from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

TIME_SLOTS = ("09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00")
MIN_DURATION_HOURS = 1
MAX_DURATION_HOURS = 4


def parse_slot_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return datetime.strptime(str(value).strip(), "%H:%M").time()


@dataclass(frozen=True)
class SlotCatalog:
    """Fixed, ordered start times offered each day.

    The last slot plus ``slot_hours`` is the closing boundary: no booking may
    end after it.
    """

    slots: tuple[str, ...] = TIME_SLOTS
    slot_hours: int = 1

    def __post_init__(self) -> None:
        if not self.slots:
            raise ValueError("Slot catalog must contain at least one slot.")
        if self.slot_hours <= 0:
            raise ValueError("slot_hours must be greater than zero.")

        normalized: list[str] = []
        previous: time | None = None
        for raw in self.slots:
            try:
                current = parse_slot_time(raw)
            except ValueError as error:
                raise ValueError(f"Invalid slot time: {raw!r}. Expected HH:MM") from error
            if previous is not None and current <= previous:
                raise ValueError("Slot catalog must be strictly increasing.")
            normalized.append(current.strftime("%H:%M"))
            previous = current

        object.__setattr__(self, "slots", tuple(normalized))

    def list_slots(self) -> tuple[str, ...]:
        return self.slots

    def slot_times(self) -> tuple[time, ...]:
        return tuple(parse_slot_time(slot) for slot in self.slots)

    def closing_boundary(self) -> time:
        return self.closing_instant(date.min).time()

    def closing_instant(self, day: date) -> datetime:
        last = parse_slot_time(self.slots[-1])
        return datetime.combine(day, last) + timedelta(hours=self.slot_hours)

    def contains(self, start_time: str | time) -> bool:
        try:
            value = parse_slot_time(start_time)
        except ValueError:
            return False
        return value.strftime("%H:%M") in self.slots


DEFAULT_CATALOG = SlotCatalog()


def list_slots() -> tuple[str, ...]:
    return DEFAULT_CATALOG.list_slots()


def closing_boundary() -> time:
    return DEFAULT_CATALOG.closing_boundary()


def duration_options(
    min_hours: int = MIN_DURATION_HOURS,
    max_hours: int = MAX_DURATION_HOURS,
) -> list[int]:
    if min_hours <= 0:
        raise ValueError("min_hours must be greater than zero")
    if max_hours < min_hours:
        raise ValueError("max_hours must not be lower than min_hours")
    return list(range(min_hours, max_hours + 1))
