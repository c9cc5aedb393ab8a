from .booking import (
	Booking,
	SlotAvailability,
	find_conflicts,
	has_time_overlap,
	is_slot_booked,
	slot_availability,
)
from .config import Settings, load_settings
from .slots import DEFAULT_CATALOG, TIME_SLOTS, SlotCatalog, closing_boundary, list_slots
from .yaml_store import (
	BookingConflictError,
	BookingError,
	BookingNotFoundError,
	BookingStorageError,
	BookingValidationError,
	BookingYamlRepository,
	Room,
)

__all__ = [
	"Booking",
	"SlotAvailability",
	"find_conflicts",
	"has_time_overlap",
	"is_slot_booked",
	"slot_availability",
	"Settings",
	"load_settings",
	"DEFAULT_CATALOG",
	"TIME_SLOTS",
	"SlotCatalog",
	"closing_boundary",
	"list_slots",
	"BookingConflictError",
	"BookingError",
	"BookingNotFoundError",
	"BookingStorageError",
	"BookingValidationError",
	"BookingYamlRepository",
	"Room",
]
