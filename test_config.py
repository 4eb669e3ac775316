# test_config.py

import unittest
from datetime import timedelta

from config import COOLDOWN_MINUTES, MATCH_THRESHOLD, AttendanceSettings


class TestAttendanceSettings(unittest.TestCase):
    def test_defaults(self):
        settings = AttendanceSettings()

        self.assertEqual(settings.match_threshold, MATCH_THRESHOLD)
        self.assertEqual(settings.cooldown_window, timedelta(minutes=COOLDOWN_MINUTES))
        self.assertIsNone(settings.company_id)

    def test_sub_minute_cooldown_rejected(self):
        """A cooldown in seconds is almost certainly a unit mistake."""
        with self.assertRaises(ValueError):
            AttendanceSettings(cooldown_window=timedelta(seconds=20))

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValueError):
            AttendanceSettings(match_threshold=0)
        with self.assertRaises(ValueError):
            AttendanceSettings(poll_interval=0)
        with self.assertRaises(ValueError):
            AttendanceSettings(extract_timeout=-1)


if __name__ == "__main__":
    unittest.main()
