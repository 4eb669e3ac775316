# export.py
# Attendance history -> spreadsheet

import logging
from typing import Iterable, Mapping, Optional

import pandas as pd

from models import AttendanceRecord, Employee

logger = logging.getLogger(__name__)

COLUMNS = ["id", "employee", "attended_at", "confidence"]


def attendance_dataframe(
    records: Iterable[AttendanceRecord],
    employees: Optional[Mapping[str, Employee]] = None,
) -> pd.DataFrame:
    employees = employees or {}
    rows = []
    for r in records:
        employee = employees.get(r.employee_id)
        rows.append({
            "id": r.id,
            "employee": employee.name if employee else r.employee_id,
            # Excel cannot store timezone-aware datetimes
            "attended_at": r.attended_at.replace(tzinfo=None),
            "confidence": round(float(r.confidence), 4),
        })
    df = pd.DataFrame(rows, columns=COLUMNS)
    if not df.empty:
        df = df.sort_values("attended_at", ascending=False).reset_index(drop=True)
    return df


def export_attendance(
    records: Iterable[AttendanceRecord],
    employees: Optional[Mapping[str, Employee]],
    output_file: str,
    sheet_name: str = "Attendance",
) -> str:
    """Write records to an XLSX file. Raises ValueError when there is nothing to export."""
    df = attendance_dataframe(records, employees)
    if df.empty:
        raise ValueError("no attendance records to export")

    with pd.ExcelWriter(output_file, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)

    logger.info(f"Attendance report exported: {output_file} ({len(df)} rows)")
    return output_file
