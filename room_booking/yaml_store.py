from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from numbers import Real
from pathlib import Path
from typing import Any, Iterable
from uuid import uuid4

import holidays as pyholidays
import yaml

from .booking import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_RESCHEDULED,
    Booking,
    candidate_interval,
    find_conflicts,
    is_slot_booked,
    to_local_naive,
)
from .config import Settings
from .slots import DEFAULT_CATALOG, MAX_DURATION_HOURS, MIN_DURATION_HOURS, SlotCatalog

logger = logging.getLogger(__name__)


class BookingError(ValueError):
    pass


class BookingValidationError(BookingError):
    pass


class BookingNotFoundError(BookingError):
    pass


class BookingConflictError(BookingError):
    def __init__(self, message: str, conflicts: Iterable[Booking] = ()) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts)


class BookingStorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    capacity: int
    level: int = 1
    amenities: tuple[str, ...] = ()
    is_active: bool = True
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Room name must not be empty.")
        if self.capacity <= 0:
            raise ValueError("Room capacity must be greater than zero.")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "room_id": self.room_id,
            "name": self.name,
            "capacity": self.capacity,
            "level": self.level,
            "amenities": list(self.amenities),
            "is_active": self.is_active,
        }
        if self.created_at is not None:
            payload["created_at"] = self.created_at.isoformat(timespec="seconds")
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Room":
        return Room(
            room_id=str(data["room_id"]),
            name=str(data["name"]),
            capacity=int(data["capacity"]),
            level=int(data.get("level", 1)),
            amenities=tuple(str(item) for item in data.get("amenities") or ()),
            is_active=bool(data.get("is_active", True)),
            created_at=(datetime.fromisoformat(str(data["created_at"])) if data.get("created_at") else None),
        )


def booking_to_dict(booking: Booking) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "booking_id": booking.booking_id,
        "room_id": booking.room_id,
        "user_id": booking.user_id,
        "title": booking.title,
        "start": booking.start.isoformat(timespec="minutes"),
        "end": booking.end.isoformat(timespec="minutes"),
        "status": booking.status,
    }
    if booking.created_at is not None:
        payload["created_at"] = booking.created_at.isoformat(timespec="seconds")
    if booking.updated_at is not None:
        payload["updated_at"] = booking.updated_at.isoformat(timespec="seconds")
    return payload


def booking_from_dict(data: dict[str, Any]) -> Booking:
    return Booking(
        booking_id=str(data["booking_id"]),
        room_id=str(data["room_id"]),
        user_id=str(data.get("user_id", "")),
        start=to_local_naive(datetime.fromisoformat(str(data["start"]))),
        end=to_local_naive(datetime.fromisoformat(str(data["end"]))),
        status=str(data.get("status", STATUS_CONFIRMED)),
        title=str(data.get("title") or ""),
        created_at=(datetime.fromisoformat(str(data["created_at"])) if data.get("created_at") else None),
        updated_at=(datetime.fromisoformat(str(data["updated_at"])) if data.get("updated_at") else None),
    )


TABLES = {
    "rooms": ("rooms.yaml", "room_id"),
    "bookings": ("bookings.yaml", "booking_id"),
}
_HOLIDAY_CACHE: dict[tuple[str, int], set[date]] = {}


class BookingYamlRepository:
    def __init__(
        self,
        base_dir: str | Path = "data",
        catalog: SlotCatalog = DEFAULT_CATALOG,
        min_duration_hours: int = MIN_DURATION_HOURS,
        max_duration_hours: int = MAX_DURATION_HOURS,
        holiday_country: str | None = None,
    ) -> None:
        if min_duration_hours <= 0 or max_duration_hours < min_duration_hours:
            raise ValueError("Duration bounds must satisfy 0 < min_duration_hours <= max_duration_hours.")
        if holiday_country is not None and holiday_country not in pyholidays.list_supported_countries():
            raise ValueError(f"Unsupported holiday country: {holiday_country}")

        self.base_dir = Path(base_dir)
        self.catalog = catalog
        self.min_duration_hours = min_duration_hours
        self.max_duration_hours = max_duration_hours
        self.holiday_country = holiday_country
        self.log_file = self.base_dir / "booking_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingYamlRepository":
        return cls(
            settings.data_dir,
            catalog=settings.catalog(),
            min_duration_hours=settings.min_duration_hours,
            max_duration_hours=settings.max_duration_hours,
            holiday_country=settings.holiday_country,
        )

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        paths = [self.base_dir / file_name for file_name, _ in TABLES.values()] + [self.log_file]
        for path in paths:
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _table(self, table: str) -> tuple[Path, str]:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        file_name, key_field = TABLES[table]
        return self.base_dir / file_name, key_field

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise BookingStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted YAML file %s", path, exc_info=True)

        logger.warning("Recovered corrupted YAML file %s (%s)", path.name, error)
        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    # Table-level query interface.

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        path, _ = self._table(table)
        with self._lock:
            rows = self._read_yaml_list(path)
        return [
            row
            for row in rows
            if all(value is None or str(row.get(field)) == str(value) for field, value in filters.items())
        ]

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        path, key_field = self._table(table)
        key = str(row.get(key_field) or "")
        if not key:
            raise ValueError(f"{key_field} is required for insert into {table}")

        with self._lock:
            rows = self._read_yaml_list(path)
            if any(str(existing.get(key_field)) == key for existing in rows):
                raise ValueError(f"Duplicate {key_field} in {table}: {key}")
            rows.append(dict(row))
            self._write_yaml_list(path, rows)
        return dict(row)

    def update(self, table: str, key: str, changes: dict[str, Any]) -> dict[str, Any]:
        path, key_field = self._table(table)
        with self._lock:
            rows = self._read_yaml_list(path)
            for index, row in enumerate(rows):
                if str(row.get(key_field)) == key:
                    merged = {**row, **{field: value for field, value in changes.items() if field != key_field}}
                    rows[index] = merged
                    self._write_yaml_list(path, rows)
                    return merged
        raise BookingNotFoundError(f"{key_field} not found in {table}: {key}")

    def delete(self, table: str, key: str) -> dict[str, Any]:
        path, key_field = self._table(table)
        with self._lock:
            rows = self._read_yaml_list(path)
            for index, row in enumerate(rows):
                if str(row.get(key_field)) == key:
                    removed = rows.pop(index)
                    self._write_yaml_list(path, rows)
                    return removed
        raise BookingNotFoundError(f"{key_field} not found in {table}: {key}")

    # Rooms.

    def get_rooms(self, active_only: bool = False) -> list[Room]:
        rooms = [Room.from_dict(row) for row in self.select("rooms")]
        if active_only:
            rooms = [room for room in rooms if room.is_active]
        return sorted(rooms, key=lambda room: (room.level, room.name))

    def get_room(self, room_id: str) -> Room | None:
        rows = self.select("rooms", room_id=room_id)
        return Room.from_dict(rows[0]) if rows else None

    def add_room(
        self,
        name: str,
        capacity: int,
        level: int = 1,
        amenities: Iterable[str] = (),
        now: datetime | None = None,
    ) -> Room:
        effective_now = now or datetime.now()
        try:
            room = Room(
                room_id=str(uuid4()),
                name=_normalize_text(name, "name"),
                capacity=int(capacity),
                level=int(level),
                amenities=tuple(_normalize_text(item, "amenity") for item in amenities),
                created_at=effective_now,
            )
        except (TypeError, ValueError) as error:
            raise BookingValidationError(str(error)) from error

        self.insert("rooms", room.to_dict())
        self._log_event("ROOM_CREATED", {"room_id": room.room_id, "name": room.name}, effective_now)
        return room

    def update_room(self, room_id: str, now: datetime | None = None, **changes: Any) -> Room:
        current = self._require_room(room_id)
        allowed = {"name", "capacity", "level", "amenities", "is_active"}
        unknown = set(changes) - allowed
        if unknown:
            raise BookingValidationError(f"Unknown room fields: {', '.join(sorted(unknown))}")

        amenities = changes.get("amenities", current.amenities)
        if not isinstance(amenities, (list, tuple)):
            raise BookingValidationError("amenities must be a list of names")
        is_active = changes.get("is_active", current.is_active)
        if not isinstance(is_active, bool):
            raise BookingValidationError("is_active must be true or false")

        try:
            updated = replace(
                current,
                name=_normalize_text(changes.get("name", current.name), "name"),
                capacity=int(changes.get("capacity", current.capacity)),
                level=int(changes.get("level", current.level)),
                amenities=tuple(_normalize_text(item, "amenity") for item in amenities),
                is_active=is_active,
            )
        except (TypeError, ValueError) as error:
            raise BookingValidationError(str(error)) from error

        self.update("rooms", room_id, updated.to_dict())
        self._log_event("ROOM_UPDATED", {"room_id": room_id, "changes": sorted(changes)}, now)
        return updated

    def delete_room(self, room_id: str, now: datetime | None = None) -> Room:
        effective_now = now or datetime.now()
        with self._lock:
            room = self._require_room(room_id)
            upcoming = [
                booking
                for booking in self.get_bookings(room_id=room_id)
                if booking.is_active and booking.end > effective_now
            ]
            if upcoming:
                raise BookingValidationError("Room has upcoming bookings and cannot be deleted.")
            self.delete("rooms", room_id)

        self._log_event("ROOM_DELETED", {"room_id": room_id, "name": room.name}, effective_now)
        return room

    def _require_room(self, room_id: str) -> Room:
        room = self.get_room(room_id)
        if room is None:
            raise BookingNotFoundError(f"Room not found: {room_id}")
        return room

    def _require_bookable_room(self, room_id: str) -> Room:
        room = self._require_room(room_id)
        if not room.is_active:
            raise BookingValidationError(f"Room is not open for booking: {room.name}")
        return room

    # Bookings.

    def get_bookings(
        self,
        room_id: str | None = None,
        user_id: str | None = None,
        status: str | None = None,
    ) -> list[Booking]:
        rows = self.select("bookings", room_id=room_id, user_id=user_id, status=status)
        bookings = [booking_from_dict(row) for row in rows]
        return sorted(bookings, key=lambda booking: (booking.start, booking.room_id))

    def get_booking(self, booking_id: str) -> Booking | None:
        rows = self.select("bookings", booking_id=booking_id)
        return booking_from_dict(rows[0]) if rows else None

    def create_booking(
        self,
        room_id: str,
        user_id: str,
        day: date | datetime | str,
        start_time: str | time,
        duration_hours: float = 1,
        title: str = "",
        now: datetime | None = None,
    ) -> Booking:
        effective_now = now or datetime.now()
        room_id = _normalize_text(room_id, "room_id")
        user_id = _normalize_text(user_id, "user_id")

        with self._lock:
            self._require_bookable_room(room_id)
            start, end = self._validate_request(day, start_time, duration_hours, effective_now)
            self._ensure_available(room_id, start, end, start_time, duration_hours)

            booking = Booking(
                booking_id=str(uuid4()),
                room_id=room_id,
                user_id=user_id,
                start=start,
                end=end,
                status=STATUS_CONFIRMED,
                title=(title or "").strip(),
                created_at=effective_now,
                updated_at=effective_now,
            )
            self.insert("bookings", booking_to_dict(booking))

        self._log_event(
            "BOOKING_CREATED",
            {
                "booking_id": booking.booking_id,
                "room_id": room_id,
                "user_id": user_id,
                "start": start.isoformat(timespec="minutes"),
                "end": end.isoformat(timespec="minutes"),
            },
            effective_now,
        )
        logger.info("Booking %s created for room %s (%s - %s)", booking.booking_id, room_id, start, end)
        return booking

    def reschedule_booking(
        self,
        booking_id: str,
        day: date | datetime | str,
        start_time: str | time,
        duration_hours: float | None = None,
        now: datetime | None = None,
    ) -> Booking:
        effective_now = now or datetime.now()

        with self._lock:
            current = self._require_changeable(booking_id, effective_now)
            self._require_bookable_room(current.room_id)
            hours = duration_hours if duration_hours is not None else current.duration_hours
            start, end = self._validate_request(day, start_time, hours, effective_now)
            self._ensure_available(current.room_id, start, end, start_time, hours, excluded_booking_id=booking_id)

            updated = replace(current, start=start, end=end, status=STATUS_RESCHEDULED, updated_at=effective_now)
            self.update("bookings", booking_id, booking_to_dict(updated))

        self._log_event(
            "BOOKING_RESCHEDULED",
            {
                "booking_id": booking_id,
                "room_id": updated.room_id,
                "previous_start": current.start.isoformat(timespec="minutes"),
                "start": start.isoformat(timespec="minutes"),
                "end": end.isoformat(timespec="minutes"),
            },
            effective_now,
        )
        logger.info("Booking %s rescheduled to %s - %s", booking_id, start, end)
        return updated

    def cancel_booking(self, booking_id: str, now: datetime | None = None) -> Booking:
        effective_now = now or datetime.now()

        with self._lock:
            current = self._require_changeable(booking_id, effective_now)
            cancelled = replace(current, status=STATUS_CANCELLED, updated_at=effective_now)
            self.update("bookings", booking_id, booking_to_dict(cancelled))

        self._log_event(
            "BOOKING_CANCELLED",
            {"booking_id": booking_id, "room_id": cancelled.room_id},
            effective_now,
        )
        logger.info("Booking %s cancelled", booking_id)
        return cancelled

    def _require_changeable(self, booking_id: str, now: datetime) -> Booking:
        current = self.get_booking(booking_id)
        if current is None:
            raise BookingNotFoundError(f"Booking not found: {booking_id}")
        if not current.is_active:
            raise BookingValidationError("Cancelled bookings cannot be changed.")
        if current.end <= now:
            raise BookingValidationError("Past bookings cannot be changed.")
        return current

    def _validate_request(
        self,
        day: date | datetime | str,
        start_time: str | time,
        duration_hours: float,
        now: datetime,
    ) -> tuple[datetime, datetime]:
        if not start_time or not self.catalog.contains(start_time):
            raise BookingValidationError(
                f"Start time must be one of the bookable slots: {', '.join(self.catalog.list_slots())}."
            )
        if isinstance(duration_hours, bool) or not isinstance(duration_hours, Real):
            raise BookingValidationError("Duration must be a number of hours.")
        if not self.min_duration_hours <= duration_hours <= self.max_duration_hours:
            raise BookingValidationError(
                f"Duration must be between {self.min_duration_hours} and {self.max_duration_hours} hours."
            )

        try:
            start, end = candidate_interval(day, start_time, duration_hours)
        except (TypeError, ValueError) as error:
            raise BookingValidationError(f"Invalid booking date or time: {error}") from error

        if start < now:
            raise BookingValidationError("Booking start time cannot be in the past.")
        closing = self.catalog.closing_instant(start.date())
        if end > closing:
            raise BookingValidationError(f"Booking must end by {closing.strftime('%H:%M')}.")
        if self.holiday_country and _is_public_holiday(self.holiday_country, start.date()):
            raise BookingValidationError("The facility is closed on public holidays.")
        return start, end

    def _ensure_available(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        start_time: str | time,
        duration_hours: float,
        excluded_booking_id: str | None = None,
    ) -> None:
        snapshot = self.get_bookings(room_id=room_id)
        if not is_slot_booked(
            start_time,
            room_id,
            start.date(),
            snapshot,
            duration_hours,
            excluded_booking_id,
            self.catalog,
        ):
            return

        conflicts = find_conflicts(start, end, room_id, snapshot, excluded_booking_id)
        raise BookingConflictError("Booking overlaps with an existing booking for this room.", conflicts)


def _normalize_text(value: str | None, field: str) -> str:
    if value is None:
        raise BookingValidationError(f"{field} must not be None")

    normalized = str(value).strip()
    if not normalized:
        raise BookingValidationError(f"{field} must not be empty")
    return normalized


def _is_public_holiday(country: str, target_date: date) -> bool:
    key = (country, target_date.year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[target_date.year])
        _HOLIDAY_CACHE[key] = set(holiday_map.keys())
    return target_date in _HOLIDAY_CACHE[key]
