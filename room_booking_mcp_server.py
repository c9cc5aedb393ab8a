from __future__ import annotations

from datetime import date
from typing import Any

from mcp.server.fastmcp import FastMCP

from room_booking import BookingError, BookingYamlRepository, load_settings, slot_availability
from room_booking.web_app import serialize_booking

mcp = FastMCP(
    "Room Booking MCP Server",
    instructions="Expose rooms, slot availability and bookings from the room_booking project.",
    json_response=True,
)

SETTINGS = load_settings()
REPOSITORY = BookingYamlRepository.from_settings(SETTINGS)


@mcp.resource("booking://slots")
async def list_time_slots() -> list[str]:
    """List the bookable start times of a day."""
    return list(REPOSITORY.catalog.list_slots())


@mcp.tool()
def list_rooms() -> list[dict[str, Any]]:
    """Return the rooms open for booking with capacity, level and amenities."""
    return [room.to_dict() for room in REPOSITORY.get_rooms(active_only=True)]


@mcp.tool()
def check_availability(room_id: str, day: str, duration_hours: float = 1, exclude_booking_id: str | None = None) -> list[dict[str, object]]:
    """Return each slot of the day with whether it can be booked for the given duration."""
    availability = slot_availability(
        room_id,
        date.fromisoformat(day),
        REPOSITORY.get_bookings(room_id=room_id),
        duration_hours=duration_hours,
        excluded_booking_id=exclude_booking_id,
        catalog=REPOSITORY.catalog,
    )
    return [item.to_dict() for item in availability]


@mcp.tool()
def book_room(room_id: str, user_id: str, day: str, start_time: str, duration_hours: float = 1, title: str = "MCP booking") -> dict[str, Any]:
    """Create a booking, or report why the slot cannot be booked."""
    try:
        created = REPOSITORY.create_booking(room_id, user_id, day, start_time, duration_hours, title=title)
    except BookingError as error:
        return {"ok": False, "message": str(error)}
    return {"ok": True, "booking": serialize_booking(created, created.created_at or created.start)}


@mcp.tool()
def reschedule_booking(booking_id: str, day: str, start_time: str, duration_hours: float | None = None) -> dict[str, Any]:
    """Move a booking to another slot; the booking never conflicts with itself."""
    try:
        updated = REPOSITORY.reschedule_booking(booking_id, day, start_time, duration_hours)
    except BookingError as error:
        return {"ok": False, "message": str(error)}
    return {"ok": True, "booking": serialize_booking(updated, updated.updated_at or updated.start)}


@mcp.tool()
def cancel_booking(booking_id: str) -> dict[str, Any]:
    """Cancel a booking. Cancelled bookings no longer block their slot."""
    try:
        cancelled = REPOSITORY.cancel_booking(booking_id)
    except BookingError as error:
        return {"ok": False, "message": str(error)}
    return {"ok": True, "booking": serialize_booking(cancelled, cancelled.updated_at or cancelled.start)}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
