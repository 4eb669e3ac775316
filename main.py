import logging
import os
import sys
import time

from attendance_loop import AttendanceController
from attendance_recorder import AttendanceRecorder
from attendance_store import AttendanceStore
from config import ATTENDANCE_DB, DATA_DIR, DEFAULT_FACING, AttendanceSettings
from embedding import FaceEmbeddingProvider
from errors import DeviceError, ValidationError
from roster_store import RosterStore
from timed_extractor import TimedExtractor
from video_source import CameraSource, list_available_cameras


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if len(sys.argv) < 2:
        print("usage: python main.py <company_id> [user|environment]")
        sys.exit(2)
    settings = AttendanceSettings(company_id=sys.argv[1])
    facing = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_FACING

    roster = RosterStore(root_dir=DATA_DIR)
    attendance = AttendanceStore(db_path=os.path.join(DATA_DIR, ATTENDANCE_DB))
    recorder = AttendanceRecorder(attendance, settings.cooldown_window)
    extractor = TimedExtractor(FaceEmbeddingProvider(), settings.extract_timeout)

    controller = AttendanceController(
        roster_store=roster,
        recorder=recorder,
        extractor=extractor,
        camera=CameraSource(),
        settings=settings,
    )

    try:
        loop = controller.start(facing=facing)
    except ValidationError as e:
        print(f"Cannot start attendance: {e}")
        sys.exit(1)
    except DeviceError as e:
        print(f"Cannot start attendance: {e}")
        print(f"Cameras that can be opened: {list_available_cameras() or 'none'}")
        sys.exit(1)

    try:
        while loop.is_alive():
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        controller.stop(loop)
        extractor.close()


if __name__ == "__main__":
    main()
