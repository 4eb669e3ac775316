# attendance_store.py

import logging
import os
import sqlite3
import uuid
from contextlib import closing
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from errors import DuplicateSuppressed, StorageError
from models import AttendanceRecord
from ResourcePath import resource_path

logger = logging.getLogger(__name__)

_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS attendances (
        id TEXT PRIMARY KEY,
        company_id TEXT NOT NULL,
        employee_id TEXT NOT NULL,
        attended_at REAL NOT NULL,
        confidence REAL NOT NULL,
        window_seconds INTEGER NOT NULL,
        window_slot INTEGER NOT NULL,
        UNIQUE(employee_id, window_seconds, window_slot)
    )
'''

_INDEXES = (
    'CREATE INDEX IF NOT EXISTS idx_attendances_employee ON attendances (employee_id, attended_at)',
    'CREATE INDEX IF NOT EXISTS idx_attendances_company ON attendances (company_id, attended_at)',
)


def new_record_id() -> str:
    return uuid.uuid4().hex


def _to_epoch(ts: datetime) -> float:
    if ts.tzinfo is None:
        raise ValueError("attendance timestamps must be timezone-aware")
    return ts.timestamp()


def _from_epoch(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class AttendanceStore:
    """
    Append-only attendance log in SQLite.

    Inserts are conditional: a record is refused when the same employee
    already has one at or after (attended_at - cooldown), and the
    (employee_id, window_seconds, floor(attended_at / window_seconds))
    uniqueness constraint backs that up for writers sharing the database file.
    """

    def __init__(self, db_path: str = "attendance_data/attendance.db", timeout: float = 5.0):
        self.db_path = resource_path(db_path)
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self.timeout = timeout
        self.init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self.timeout)

    def init_database(self):
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(_SCHEMA)
                for statement in _INDEXES:
                    conn.execute(statement)
        except sqlite3.Error as e:
            raise StorageError(f"cannot initialise attendance database: {e}") from e
        logger.info(f"Attendance database ready at {self.db_path}")

    # ---------- Read side ----------

    def latest_attendance(self, employee_id: str) -> Optional[AttendanceRecord]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    '''
                    SELECT id, company_id, employee_id, attended_at, confidence
                    FROM attendances
                    WHERE employee_id = ?
                    ORDER BY attended_at DESC
                    LIMIT 1
                    ''',
                    (employee_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"cannot read latest attendance of {employee_id}: {e}") from e
        return self._row_to_record(row) if row else None

    def list_attendance(
        self,
        company_id: Optional[str] = None,
        employee_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[AttendanceRecord]:
        """Newest first, optionally filtered by company and/or employee."""
        query = 'SELECT id, company_id, employee_id, attended_at, confidence FROM attendances'
        clauses, params = [], []
        if company_id is not None:
            clauses.append('company_id = ?')
            params.append(company_id)
        if employee_id is not None:
            clauses.append('employee_id = ?')
            params.append(employee_id)
        if clauses:
            query += ' WHERE ' + ' AND '.join(clauses)
        query += ' ORDER BY attended_at DESC LIMIT ?'
        params.append(int(limit))
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"cannot list attendance: {e}") from e
        return [self._row_to_record(row) for row in rows]

    # ---------- Write side ----------

    def insert_attendance(self, record: AttendanceRecord, cooldown: timedelta) -> AttendanceRecord:
        """
        Insert record unless the employee already has one within cooldown of
        record.attended_at. Raises DuplicateSuppressed when refused.
        """
        window_seconds = int(cooldown.total_seconds())
        if window_seconds <= 0:
            raise ValueError("cooldown must be positive")
        attended_at = _to_epoch(record.attended_at)
        window_slot = int(attended_at // window_seconds)

        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute(
                    '''
                    INSERT INTO attendances
                        (id, company_id, employee_id, attended_at, confidence, window_seconds, window_slot)
                    SELECT ?, ?, ?, ?, ?, ?, ?
                    WHERE NOT EXISTS (
                        SELECT 1 FROM attendances
                        WHERE employee_id = ? AND attended_at >= ?
                    )
                    ''',
                    (
                        record.id,
                        record.company_id,
                        record.employee_id,
                        attended_at,
                        float(record.confidence),
                        window_seconds,
                        window_slot,
                        record.employee_id,
                        attended_at - cooldown.total_seconds(),
                    ),
                )
                inserted = cursor.rowcount
        except sqlite3.IntegrityError as e:
            # Only the window slot constraint means "already recorded"
            if "window_slot" in str(e):
                raise DuplicateSuppressed(
                    f"{record.employee_id} already has attendance in this window"
                ) from e
            raise StorageError(f"cannot insert attendance of {record.employee_id}: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"cannot insert attendance of {record.employee_id}: {e}") from e

        if inserted != 1:
            raise DuplicateSuppressed(
                f"{record.employee_id} already has attendance within {cooldown}"
            )
        return record

    @staticmethod
    def _row_to_record(row) -> AttendanceRecord:
        return AttendanceRecord(
            id=row[0],
            company_id=row[1],
            employee_id=row[2],
            attended_at=_from_epoch(row[3]),
            confidence=float(row[4]),
        )
