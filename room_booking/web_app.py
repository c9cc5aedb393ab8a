from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .booking import Booking, slot_availability
from .config import Settings, load_settings
from .slots import duration_options
from .yaml_store import (
    BookingConflictError,
    BookingError,
    BookingNotFoundError,
    BookingStorageError,
    BookingYamlRepository,
)

logger = logging.getLogger(__name__)


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: Settings | None = None,
) -> Flask:
    app = Flask(__name__)
    effective_settings = settings or Settings()
    if data_dir is not None:
        effective_settings = replace(effective_settings, data_dir=str(data_dir))

    repository = BookingYamlRepository.from_settings(effective_settings)
    clock: Callable[[], datetime] = now_provider or datetime.now
    app.config["REPOSITORY"] = repository

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        status = 400
        payload: dict[str, Any] = {"ok": False, "message": str(error)}
        if isinstance(error, BookingNotFoundError):
            status = 404
        elif isinstance(error, BookingConflictError):
            status = 409
            payload["conflicts"] = [serialize_booking(booking, clock()) for booking in error.conflicts]
        return jsonify(payload), status

    @app.errorhandler(BookingStorageError)
    def handle_storage_error(error: BookingStorageError) -> Any:
        logger.error("Booking storage failure: %s", error, exc_info=error)
        return jsonify({"ok": False, "message": "The booking could not be saved. Please try again."}), 500

    @app.get("/api/slots")
    def get_slots() -> Any:
        catalog = repository.catalog
        return jsonify(
            {
                "ok": True,
                "slots": list(catalog.list_slots()),
                "closing_time": catalog.closing_boundary().strftime("%H:%M"),
                "durations": duration_options(repository.min_duration_hours, repository.max_duration_hours),
            }
        )

    @app.get("/api/rooms")
    def get_rooms() -> Any:
        active_only = request.args.get("active", "").strip().lower() in {"1", "true", "yes"}
        rooms = repository.get_rooms(active_only=active_only)
        return jsonify({"ok": True, "rooms": [room.to_dict() for room in rooms]})

    @app.post("/api/rooms")
    def add_room() -> Any:
        payload = request.get_json(silent=True) or {}
        amenities = payload.get("amenities") or []
        if not isinstance(amenities, list):
            return jsonify({"ok": False, "message": "amenities must be a list."}), 400

        room = repository.add_room(
            name=str(payload.get("name", "")),
            capacity=payload.get("capacity", 0),
            level=payload.get("level", 1),
            amenities=[str(item) for item in amenities],
            now=clock(),
        )
        return jsonify({"ok": True, "room": room.to_dict()}), 201

    @app.post("/api/rooms/update")
    def update_room() -> Any:
        payload = dict(request.get_json(silent=True) or {})
        room_id = str(payload.pop("room_id", "")).strip()
        if not room_id:
            return jsonify({"ok": False, "message": "room_id is required."}), 400
        if "now" in payload:
            return jsonify({"ok": False, "message": "Unknown room fields: now"}), 400

        room = repository.update_room(room_id, now=clock(), **payload)
        return jsonify({"ok": True, "room": room.to_dict()})

    @app.post("/api/rooms/delete")
    def delete_room() -> Any:
        payload = request.get_json(silent=True) or {}
        room_id = str(payload.get("room_id", "")).strip()
        if not room_id:
            return jsonify({"ok": False, "message": "room_id is required."}), 400

        room = repository.delete_room(room_id, now=clock())
        return jsonify({"ok": True, "room": room.to_dict()})

    @app.get("/api/availability")
    def get_availability() -> Any:
        room_id = str(request.args.get("room_id", "")).strip()
        day_text = str(request.args.get("date", "")).strip()
        excluded = str(request.args.get("exclude", "")).strip() or None
        if not room_id or not day_text:
            return jsonify({"ok": False, "message": "room_id and date are required."}), 400

        try:
            day = date.fromisoformat(day_text)
        except ValueError:
            return jsonify({"ok": False, "message": "date must be YYYY-MM-DD."}), 400
        duration = _read_duration(request.args.get("duration", "1"))
        if duration is None:
            return jsonify({"ok": False, "message": "duration must be a finite number of hours."}), 400

        if repository.get_room(room_id) is None:
            return jsonify({"ok": False, "message": "Room not found."}), 404

        availability = slot_availability(
            room_id,
            day,
            repository.get_bookings(room_id=room_id),
            duration_hours=duration,
            excluded_booking_id=excluded,
            catalog=repository.catalog,
        )
        return jsonify(
            {
                "ok": True,
                "room_id": room_id,
                "date": day.isoformat(),
                "duration_hours": duration,
                "slots": [item.to_dict() for item in availability],
            }
        )

    @app.get("/api/bookings")
    def get_bookings() -> Any:
        now = clock()
        bookings = repository.get_bookings(
            room_id=request.args.get("room_id") or None,
            user_id=request.args.get("user_id") or None,
            status=request.args.get("status") or None,
        )
        return jsonify({"ok": True, "bookings": [serialize_booking(booking, now) for booking in bookings]})

    @app.post("/api/bookings")
    def create_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        duration = _read_duration(payload.get("duration_hours", 1))
        if duration is None:
            return jsonify({"ok": False, "message": "duration_hours must be a finite number."}), 400

        now = clock()
        created = repository.create_booking(
            room_id=str(payload.get("room_id", "")),
            user_id=str(payload.get("user_id", "")),
            day=str(payload.get("date", "")),
            start_time=str(payload.get("start_time", "")),
            duration_hours=duration,
            title=str(payload.get("title", "")),
            now=now,
        )
        return jsonify({"ok": True, "booking": serialize_booking(created, now)}), 201

    @app.post("/api/bookings/reschedule")
    def reschedule_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        booking_id = str(payload.get("booking_id", "")).strip()
        if not booking_id:
            return jsonify({"ok": False, "message": "booking_id is required."}), 400

        duration = None
        if payload.get("duration_hours") is not None:
            duration = _read_duration(payload["duration_hours"])
            if duration is None:
                return jsonify({"ok": False, "message": "duration_hours must be a finite number."}), 400

        now = clock()
        updated = repository.reschedule_booking(
            booking_id,
            day=str(payload.get("date", "")),
            start_time=str(payload.get("start_time", "")),
            duration_hours=duration,
            now=now,
        )
        return jsonify({"ok": True, "booking": serialize_booking(updated, now)})

    @app.post("/api/bookings/cancel")
    def cancel_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        booking_id = str(payload.get("booking_id", "")).strip()
        if not booking_id:
            return jsonify({"ok": False, "message": "booking_id is required."}), 400

        now = clock()
        cancelled = repository.cancel_booking(booking_id, now=now)
        return jsonify({"ok": True, "booking": serialize_booking(cancelled, now)})

    return app


def _read_duration(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    return duration if math.isfinite(duration) else None


def serialize_booking(booking: Booking, now: datetime) -> dict[str, Any]:
    is_past = booking.end <= now
    return {
        "booking_id": booking.booking_id,
        "room_id": booking.room_id,
        "user_id": booking.user_id,
        "title": booking.title,
        "date": booking.start.date().isoformat(),
        "start_time": booking.start.strftime("%H:%M"),
        "end_time": booking.end.strftime("%H:%M"),
        "start": booking.start.isoformat(timespec="minutes"),
        "end": booking.end.isoformat(timespec="minutes"),
        "status": booking.status,
        "is_past": is_past,
        "can_change": booking.is_active and not is_past,
    }


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = create_app(settings=settings)
    app.run(host=settings.host, port=settings.port, debug=False)


if __name__ == "__main__":
    main()
