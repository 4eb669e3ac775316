# config.py
# Configuration constants for the attendance engine.

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

# Recognition thresholds
# Euclidean distance in face_recognition's 128-d space; accept strictly below.
MATCH_THRESHOLD = 0.55

# Attendance cooldown (minutes)
COOLDOWN_MINUTES = 20

# Polling cadence (seconds)
POLL_INTERVAL = 3.0
EXTRACT_TIMEOUT = 2.0

# Detection settings
DETECT_SCALE = 0.5
DETECT_MODEL = "hog"

# Camera settings
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
DEFAULT_FACING = "environment"
FACING_CAMERA_INDEX = {
    "user": 0,
    "environment": 1,
}

# Storage
DATA_DIR = "attendance_data"
ATTENDANCE_DB = "attendance.db"
HISTORY_LIMIT = 1000


@dataclass(frozen=True)
class AttendanceSettings:
    match_threshold: float = MATCH_THRESHOLD
    cooldown_window: timedelta = field(
        default_factory=lambda: timedelta(minutes=COOLDOWN_MINUTES)
    )
    poll_interval: float = POLL_INTERVAL
    extract_timeout: float = EXTRACT_TIMEOUT
    company_id: Optional[str] = None

    def __post_init__(self):
        if not 0.0 < self.match_threshold <= 2.0:
            raise ValueError("match_threshold must be in (0, 2]")
        # Anything shorter than a minute is below any realistic polling cadence.
        if self.cooldown_window < timedelta(minutes=1):
            raise ValueError("cooldown_window must be at least one minute")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.extract_timeout <= 0:
            raise ValueError("extract_timeout must be positive")
