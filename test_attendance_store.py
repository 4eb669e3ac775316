# test_attendance_store.py
"""Tests for the SQLite attendance log."""

import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from attendance_store import AttendanceStore, new_record_id
from errors import DuplicateSuppressed, StorageError
from models import AttendanceRecord

T0 = datetime(2026, 3, 2, 8, 0, 0, tzinfo=timezone.utc)
W = timedelta(minutes=20)


class TestAttendanceStore(unittest.TestCase):
    def setUp(self):
        """Create a database in a temporary directory."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = AttendanceStore(db_path=os.path.join(self.temp_dir, "attendance.db"))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _record(self, employee_id="emp_000001", at=T0, company_id="company_000001", confidence=0.3):
        return AttendanceRecord(
            id=new_record_id(),
            company_id=company_id,
            employee_id=employee_id,
            attended_at=at,
            confidence=confidence,
        )

    def test_latest_attendance_none(self):
        """No records yet."""
        self.assertIsNone(self.store.latest_attendance("emp_000001"))

    def test_insert_and_read_back(self):
        """An inserted record comes back unchanged as the latest one."""
        record = self._record()
        self.store.insert_attendance(record, W)

        latest = self.store.latest_attendance("emp_000001")

        self.assertEqual(latest, record)
        self.assertEqual(latest.attended_at.tzinfo, timezone.utc)

    def test_insert_inside_window_is_refused(self):
        """A second record 5 seconds later is refused with DuplicateSuppressed."""
        self.store.insert_attendance(self._record(at=T0), W)

        with self.assertRaises(DuplicateSuppressed):
            self.store.insert_attendance(self._record(at=T0 + timedelta(seconds=5)), W)

        self.assertEqual(len(self.store.list_attendance()), 1)

    def test_insert_after_window_is_accepted(self):
        """A record a full window later is accepted, including across slot boundaries."""
        self.store.insert_attendance(self._record(at=T0 + timedelta(minutes=19)), W)
        self.store.insert_attendance(self._record(at=T0 + timedelta(minutes=39, seconds=1)), W)

        self.assertEqual(len(self.store.list_attendance(employee_id="emp_000001")), 2)

    def test_exactly_one_window_apart_is_refused(self):
        """A previous record exactly W ago still counts as recent."""
        self.store.insert_attendance(self._record(at=T0), W)

        with self.assertRaises(DuplicateSuppressed):
            self.store.insert_attendance(self._record(at=T0 + W), W)

    def test_other_employee_unaffected(self):
        """The window is per employee."""
        self.store.insert_attendance(self._record(employee_id="emp_000001"), W)
        self.store.insert_attendance(self._record(employee_id="emp_000002"), W)

        self.assertEqual(len(self.store.list_attendance()), 2)

    def test_list_filters_and_order(self):
        """History is newest first and can be filtered by company and employee."""
        self.store.insert_attendance(self._record("emp_000001", T0, "company_000001"), W)
        self.store.insert_attendance(self._record("emp_000001", T0 + timedelta(hours=1), "company_000001"), W)
        self.store.insert_attendance(self._record("emp_000009", T0, "company_000002"), W)

        company_rows = self.store.list_attendance(company_id="company_000001")
        self.assertEqual(len(company_rows), 2)
        self.assertGreater(company_rows[0].attended_at, company_rows[1].attended_at)

        self.assertEqual(len(self.store.list_attendance(employee_id="emp_000009")), 1)
        self.assertEqual(len(self.store.list_attendance(limit=1)), 1)

    def test_naive_timestamp_rejected(self):
        """Naive datetimes are a programming error."""
        with self.assertRaises(ValueError):
            self.store.insert_attendance(self._record(at=datetime(2026, 3, 2, 8, 0)), W)

    def test_second_store_on_same_file_sees_records(self):
        """Two stores on one database share the duplicate rule."""
        other = AttendanceStore(db_path=self.store.db_path)
        self.store.insert_attendance(self._record(at=T0), W)

        with self.assertRaises(DuplicateSuppressed):
            other.insert_attendance(self._record(at=T0 + timedelta(minutes=1)), W)

    def test_constraint_violation_is_storage_error(self):
        """A missing company id is a storage failure, not a cooldown suppression."""
        with self.assertRaises(StorageError):
            self.store.insert_attendance(self._record(company_id=None), W)

        self.assertEqual(self.store.list_attendance(), [])

    def test_reused_record_id_is_storage_error(self):
        """A clashing primary key for another employee is not reported as a duplicate attendance."""
        first = self._record(employee_id="emp_000001")
        self.store.insert_attendance(first, W)
        clash = AttendanceRecord(
            id=first.id,
            company_id="company_000001",
            employee_id="emp_000002",
            attended_at=T0,
            confidence=0.3,
        )

        with self.assertRaises(StorageError):
            self.store.insert_attendance(clash, W)

        self.assertEqual(len(self.store.list_attendance()), 1)


if __name__ == "__main__":
    unittest.main()
