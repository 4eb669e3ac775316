# attendance_recorder.py

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict

from attendance_store import AttendanceStore, new_record_id
from errors import DuplicateSuppressed, ValidationError
from models import AttendanceRecord, RecordOutcome

logger = logging.getLogger(__name__)


class AttendanceRecorder:
    """
    Decides whether a recognised employee gets a new attendance record.

    An employee is eligible when their latest record is older than
    now - cooldown_window. The read and the write happen under a lock per
    employee, and the store's insert is conditional on the same rule, so two
    overlapping calls (in this process or from another writer of the same
    database) produce one record and one suppression.
    """

    def __init__(self, store: AttendanceStore, cooldown_window: timedelta):
        if cooldown_window <= timedelta(0):
            raise ValueError("cooldown_window must be positive")
        self._store = store
        self.cooldown_window = cooldown_window
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, employee_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(employee_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[employee_id] = lock
            return lock

    def try_record(
        self,
        employee_id: str,
        company_id: str,
        now: datetime,
        confidence: float,
    ) -> RecordOutcome:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        if not employee_id or not company_id:
            raise ValidationError("employee_id and company_id are required")

        with self._lock_for(employee_id):
            last = self._store.latest_attendance(employee_id)
            if last is not None and last.attended_at >= now - self.cooldown_window:
                logger.debug(
                    f"AttendanceRecorder: {employee_id} already recorded at "
                    f"{last.attended_at.isoformat()}, suppressing"
                )
                return RecordOutcome.SUPPRESSED

            record = AttendanceRecord(
                id=new_record_id(),
                company_id=company_id,
                employee_id=employee_id,
                attended_at=now,
                confidence=float(confidence),
            )
            try:
                self._store.insert_attendance(record, self.cooldown_window)
            except DuplicateSuppressed:
                logger.info(f"AttendanceRecorder: {employee_id} recorded concurrently elsewhere, suppressing")
                return RecordOutcome.SUPPRESSED

        logger.info(
            f"AttendanceRecorder: recorded {employee_id} at {now.isoformat()} (dist={confidence:.3f})"
        )
        return RecordOutcome.RECORDED
