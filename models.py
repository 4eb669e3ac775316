# models.py
# Data model shared by the stores, the matcher and the attendance loop.

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import numpy as np


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Company:
    id: str
    name: str


@dataclass(frozen=True)
class EmployeeDraft:
    company_id: Optional[str]
    name: str
    role: str = ""


@dataclass(eq=False)
class Employee:
    id: str
    company_id: str
    name: str
    role: str
    # (n, d) float32, one row per captured sample, in capture order
    embeddings: np.ndarray
    capture_sessions: List[int] = field(default_factory=list)
    created_at: Optional[str] = None

    @property
    def num_embeddings(self) -> int:
        if self.embeddings.size == 0:
            return 0
        return int(self.embeddings.shape[0])


@dataclass(frozen=True)
class AttendanceRecord:
    id: str
    company_id: str
    employee_id: str
    attended_at: datetime
    confidence: float


@dataclass(frozen=True)
class Match:
    employee_id: str
    distance: float

    is_known = True


@dataclass(frozen=True)
class Unknown:
    # Nearest distance seen, None when the roster was empty.
    distance: Optional[float] = None

    is_known = False


UNKNOWN = Unknown()


class RecordOutcome(enum.Enum):
    RECORDED = "recorded"
    SUPPRESSED = "suppressed"


class StatusKind(enum.Enum):
    RECORDED = "recorded"
    SUPPRESSED = "suppressed"
    ERROR = "error"
    DEVICE_ERROR = "device_error"


@dataclass(frozen=True)
class AttendanceStatus:
    kind: StatusKind
    company_id: str
    employee_id: Optional[str] = None
    distance: Optional[float] = None
    message: str = ""
    at: datetime = field(default_factory=utc_now)
