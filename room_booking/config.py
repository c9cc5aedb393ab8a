from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .slots import MAX_DURATION_HOURS, MIN_DURATION_HOURS, TIME_SLOTS, SlotCatalog


def _parse_time_slots(raw: str) -> tuple[str, ...]:
    # ROOM_BOOKING_TIME_SLOTS is a comma-separated list, e.g. 08:00,09:00,10:00
    parts = tuple(p.strip() for p in raw.split(",") if p.strip())
    if not parts:
        raise RuntimeError("ROOM_BOOKING_TIME_SLOTS is empty. Provide at least one HH:MM slot.")

    try:
        SlotCatalog(parts)
    except ValueError as e:
        raise RuntimeError(f"Invalid ROOM_BOOKING_TIME_SLOTS value: {raw!r} ({e})") from e
    return parts


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e


@dataclass(frozen=True)
class Settings:
    data_dir: str = "data"
    time_slots: tuple[str, ...] = TIME_SLOTS

    # Duration bounds in hours for create/reschedule.
    min_duration_hours: int = MIN_DURATION_HOURS
    max_duration_hours: int = MAX_DURATION_HOURS

    # ISO country code; public holidays of that country are closed days.
    holiday_country: str | None = None

    host: str = "127.0.0.1"
    port: int = 5000
    log_level: str = "INFO"

    def catalog(self) -> SlotCatalog:
        return SlotCatalog(self.time_slots)


def load_settings(dotenv_path: str | None = None) -> Settings:
    load_dotenv(dotenv_path=dotenv_path, override=False)

    time_slots = _parse_time_slots(os.getenv("ROOM_BOOKING_TIME_SLOTS", ",".join(TIME_SLOTS)))

    min_duration_hours = _int_env("ROOM_BOOKING_MIN_DURATION_HOURS", MIN_DURATION_HOURS)
    if min_duration_hours < 1:
        raise RuntimeError("ROOM_BOOKING_MIN_DURATION_HOURS must be >= 1")

    max_duration_hours = _int_env("ROOM_BOOKING_MAX_DURATION_HOURS", MAX_DURATION_HOURS)
    if max_duration_hours < min_duration_hours:
        raise RuntimeError("ROOM_BOOKING_MAX_DURATION_HOURS must be >= ROOM_BOOKING_MIN_DURATION_HOURS")

    holiday_country = os.getenv("ROOM_BOOKING_HOLIDAY_COUNTRY", "").strip().upper() or None

    port = _int_env("ROOM_BOOKING_PORT", 5000)
    if not 0 < port < 65536:
        raise RuntimeError("ROOM_BOOKING_PORT must be between 1 and 65535")

    return Settings(
        data_dir=os.getenv("ROOM_BOOKING_DATA_DIR", "data"),
        time_slots=time_slots,
        min_duration_hours=min_duration_hours,
        max_duration_hours=max_duration_hours,
        holiday_country=holiday_country,
        host=os.getenv("ROOM_BOOKING_HOST", "127.0.0.1"),
        port=port,
        log_level=os.getenv("ROOM_BOOKING_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
