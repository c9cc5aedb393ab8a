import unittest
from datetime import date, datetime, time

from room_booking import DEFAULT_CATALOG, TIME_SLOTS, SlotCatalog, closing_boundary, list_slots
from room_booking.slots import duration_options


class TestSlotCatalog(unittest.TestCase):
    def test_default_catalog_is_hourly_from_nine_to_five(self) -> None:
        self.assertEqual(list_slots(), TIME_SLOTS)
        self.assertEqual(list_slots()[0], "09:00")
        self.assertEqual(list_slots()[-1], "17:00")
        self.assertEqual(len(list_slots()), 9)

    def test_closing_boundary_is_last_slot_plus_one_hour(self) -> None:
        self.assertEqual(closing_boundary(), time(18, 0))
        self.assertEqual(DEFAULT_CATALOG.closing_instant(date(2024, 6, 1)), datetime(2024, 6, 1, 18, 0))

    def test_list_slots_is_restartable(self) -> None:
        self.assertEqual(DEFAULT_CATALOG.list_slots(), DEFAULT_CATALOG.list_slots())
        self.assertEqual(DEFAULT_CATALOG.slot_times()[0], time(9, 0))

    def test_custom_catalog_normalizes_entries(self) -> None:
        catalog = SlotCatalog(("8:00", "08:30", time(9, 0)), slot_hours=2)

        self.assertEqual(catalog.list_slots(), ("08:00", "08:30", "09:00"))
        self.assertEqual(catalog.closing_boundary(), time(11, 0))

    def test_rejects_unordered_or_malformed_catalog(self) -> None:
        with self.assertRaises(ValueError):
            SlotCatalog(("10:00", "09:00"))

        with self.assertRaises(ValueError):
            SlotCatalog(("09:00", "09:00"))

        with self.assertRaises(ValueError):
            SlotCatalog(("nine",))

        with self.assertRaises(ValueError):
            SlotCatalog(())

    def test_contains_matches_catalog_entries_only(self) -> None:
        self.assertTrue(DEFAULT_CATALOG.contains("10:00"))
        self.assertTrue(DEFAULT_CATALOG.contains(time(10, 0)))
        self.assertFalse(DEFAULT_CATALOG.contains("10:30"))
        self.assertFalse(DEFAULT_CATALOG.contains("not a time"))


class TestDurationOptions(unittest.TestCase):
    def test_default_bounds(self) -> None:
        self.assertEqual(duration_options(), [1, 2, 3, 4])

    def test_invalid_bounds_raise(self) -> None:
        with self.assertRaises(ValueError):
            duration_options(0, 4)

        with self.assertRaises(ValueError):
            duration_options(3, 2)


if __name__ == "__main__":
    unittest.main()
