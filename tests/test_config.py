import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from room_booking import TIME_SLOTS, load_settings


class TestLoadSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings(dotenv_path=None)

        self.assertEqual(settings.data_dir, "data")
        self.assertEqual(settings.time_slots, TIME_SLOTS)
        self.assertEqual((settings.min_duration_hours, settings.max_duration_hours), (1, 4))
        self.assertIsNone(settings.holiday_country)
        self.assertEqual(settings.catalog().closing_boundary().strftime("%H:%M"), "18:00")

    def test_parses_environment(self) -> None:
        env = {
            "ROOM_BOOKING_DATA_DIR": "/tmp/bookings",
            "ROOM_BOOKING_TIME_SLOTS": "08:00, 09:00,10:00",
            "ROOM_BOOKING_MAX_DURATION_HOURS": "2",
            "ROOM_BOOKING_HOLIDAY_COUNTRY": "us",
            "ROOM_BOOKING_PORT": "8080",
            "ROOM_BOOKING_LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = load_settings(dotenv_path=None)

        self.assertEqual(settings.data_dir, "/tmp/bookings")
        self.assertEqual(settings.time_slots, ("08:00", "09:00", "10:00"))
        self.assertEqual(settings.max_duration_hours, 2)
        self.assertEqual(settings.holiday_country, "US")
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_reads_dotenv_file_without_overriding(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            dotenv_path = Path(temp_dir) / ".env"
            dotenv_path.write_text("ROOM_BOOKING_DATA_DIR=from-dotenv\nROOM_BOOKING_PORT=9000\n", encoding="utf-8")

            with mock.patch.dict(os.environ, {"ROOM_BOOKING_PORT": "7000"}, clear=True):
                settings = load_settings(dotenv_path=str(dotenv_path))

        self.assertEqual(settings.data_dir, "from-dotenv")
        self.assertEqual(settings.port, 7000)

    def test_rejects_invalid_values(self) -> None:
        invalid = [
            {"ROOM_BOOKING_TIME_SLOTS": "10:00,09:00"},
            {"ROOM_BOOKING_TIME_SLOTS": " , "},
            {"ROOM_BOOKING_MIN_DURATION_HOURS": "0"},
            {"ROOM_BOOKING_MIN_DURATION_HOURS": "3", "ROOM_BOOKING_MAX_DURATION_HOURS": "2"},
            {"ROOM_BOOKING_MAX_DURATION_HOURS": "four"},
            {"ROOM_BOOKING_PORT": "70000"},
        ]
        for env in invalid:
            with self.subTest(env=env), mock.patch.dict(os.environ, env, clear=True):
                with self.assertRaises(RuntimeError):
                    load_settings(dotenv_path=None)


if __name__ == "__main__":
    unittest.main()
