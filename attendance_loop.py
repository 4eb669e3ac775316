# attendance_loop.py

import logging
import threading
import time
from typing import Callable, Optional

from attendance_recorder import AttendanceRecorder
from config import DEFAULT_FACING, AttendanceSettings
from errors import AttendanceError, DeviceError, ValidationError
from models import AttendanceStatus, Employee, RecordOutcome, StatusKind, utc_now
from roster_index import RosterIndex
from roster_store import RosterStore
from video_source import CameraHandle

logger = logging.getLogger(__name__)

StatusCallback = Callable[[AttendanceStatus], None]


class AttendanceLoop(threading.Thread):
    """
    One polling loop over one camera for one company. The object itself is
    the handle returned by AttendanceController.start().

    Ticks run one after another on this thread: the next tick is scheduled
    only after the previous one has finished, so a slow extraction or store
    round trip delays the cadence instead of overlapping it.
    """

    def __init__(
        self,
        company_id: str,
        index: RosterIndex,
        extractor,
        recorder: AttendanceRecorder,
        camera,
        facing: str = DEFAULT_FACING,
        poll_interval: float = 3.0,
        on_status: Optional[StatusCallback] = None,
        clock: Callable = utc_now,
    ):
        super().__init__(daemon=True, name=f"attendance-{company_id}")
        self.company_id = company_id
        self.index = index
        self._extractor = extractor
        self._recorder = recorder
        self._camera = camera
        self._facing = facing
        self._poll_interval = poll_interval
        self._on_status = on_status
        self._clock = clock

        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._camera_lock = threading.Lock()
        self._camera_handle: Optional[CameraHandle] = None
        self.ticks = 0

    @property
    def facing(self) -> str:
        return self._facing

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    # ---------- Lifecycle ----------

    def open_camera(self):
        """Acquire the camera; raises DeviceError so start() can fail fast."""
        with self._camera_lock:
            if self._camera_handle is None or not self._camera_handle.is_open:
                self._camera_handle = self._camera.open(self._facing)

    def run(self):
        logger.info(f"AttendanceLoop: started for company {self.company_id}")
        try:
            while not self._stop_event.is_set():
                started = time.monotonic()
                self.run_tick()
                elapsed = time.monotonic() - started
                self._stop_event.wait(max(0.0, self._poll_interval - elapsed))
        finally:
            self._release_camera()
            logger.info(f"AttendanceLoop: stopped for company {self.company_id}")

    def stop(self, timeout: Optional[float] = None):
        """
        Stop the loop. Once this returns (from any thread other than the loop
        itself) no further tick runs and the camera is released. Calling it
        again is a no-op.
        """
        self._stop_event.set()
        if threading.current_thread() is self:
            return
        if self.is_alive():
            self.join(timeout)
        else:
            self._release_camera()

    def switch_facing(self, facing: str):
        """Release the current camera, then open the one with the other facing."""
        with self._camera_lock:
            self._close_handle()
            self._facing = facing
            self._camera_handle = self._camera.open(facing)

    def _close_handle(self):
        if self._camera_handle is not None:
            self._camera.close(self._camera_handle)
            self._camera_handle = None

    def _release_camera(self):
        with self._camera_lock:
            self._close_handle()

    # ---------- Ticks ----------

    def run_tick(self) -> Optional[AttendanceStatus]:
        """
        Run one tick synchronously. Returns the status that was reported, or
        None when the tick was skipped (no face, unknown face, stopped, or
        another tick still running).
        """
        if self._stop_event.is_set():
            return None
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("AttendanceLoop: previous tick still running, skipping")
            return None
        try:
            self.ticks += 1
            status = self._tick()
        except DeviceError as e:
            logger.warning(f"AttendanceLoop: camera problem: {e}")
            status = AttendanceStatus(StatusKind.DEVICE_ERROR, self.company_id, message=str(e))
        except (AttendanceError, ValueError) as e:
            logger.error(f"AttendanceLoop: tick failed: {e}")
            status = AttendanceStatus(StatusKind.ERROR, self.company_id, message=str(e))
        except Exception as e:
            logger.exception("AttendanceLoop: unexpected error during tick")
            status = AttendanceStatus(StatusKind.ERROR, self.company_id, message=repr(e))
        finally:
            self._tick_lock.release()

        if status is not None:
            self._notify(status)
        return status

    def _tick(self) -> Optional[AttendanceStatus]:
        frame = self._read_frame()
        if self._stop_event.is_set():
            return None

        embedding = self._extractor.extract(frame)
        if embedding is None:
            logger.debug("AttendanceLoop: no face in frame")
            return None
        if self._stop_event.is_set():
            return None

        state = self.index.snapshot()
        result = state.match(embedding)
        if not result.is_known:
            logger.debug(f"AttendanceLoop: unknown face (min_dist={result.distance})")
            return None
        if self._stop_event.is_set():
            return None

        employee_id = result.employee_id
        name = self.index.display_name(employee_id) or employee_id
        outcome = self._recorder.try_record(
            employee_id=employee_id,
            company_id=self.company_id,
            now=self._clock(),
            confidence=result.distance,
        )
        if outcome is RecordOutcome.RECORDED:
            return AttendanceStatus(
                StatusKind.RECORDED,
                self.company_id,
                employee_id=employee_id,
                distance=result.distance,
                message=f"Attendance recorded: {name} (dist {result.distance:.2f})",
            )
        return AttendanceStatus(
            StatusKind.SUPPRESSED,
            self.company_id,
            employee_id=employee_id,
            distance=result.distance,
            message=f"{name} already recorded recently",
        )

    def _read_frame(self):
        with self._camera_lock:
            if self._camera_handle is None or not self._camera_handle.is_open:
                # Try reopening in case the camera was temporarily unavailable
                self._camera_handle = self._camera.open(self._facing)
            try:
                return self._camera.current_frame(self._camera_handle)
            except DeviceError:
                self._close_handle()
                raise

    def _notify(self, status: AttendanceStatus):
        logger.info(f"AttendanceLoop: [{status.kind.value}] {status.message}")
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception:
            logger.exception("AttendanceLoop: status callback failed")


class AttendanceController:
    """
    Starts and stops attendance loops, keeping at most one active at a time.
    on_status is called on the loop thread. It may read active or call
    roster_changed and stop(), but must not call start().
    """

    def __init__(
        self,
        roster_store: RosterStore,
        recorder: AttendanceRecorder,
        extractor,
        camera,
        settings: AttendanceSettings,
        on_status: Optional[StatusCallback] = None,
        clock: Callable = utc_now,
    ):
        self._roster_store = roster_store
        self._recorder = recorder
        self._extractor = extractor
        self._camera = camera
        self.settings = settings
        self._on_status = on_status
        self._clock = clock
        self._lock = threading.Lock()
        # Serialises start() calls; held while the previous loop is joined
        self._start_lock = threading.Lock()
        self._active: Optional[AttendanceLoop] = None

    @property
    def active(self) -> Optional[AttendanceLoop]:
        with self._lock:
            return self._active

    def start(self, company_id: Optional[str] = None, facing: str = DEFAULT_FACING) -> AttendanceLoop:
        company_id = company_id or self.settings.company_id
        if not company_id:
            raise ValidationError("select a company first")

        with self._start_lock:
            # Never two loops on the same camera. The previous loop is joined
            # outside _lock so its callbacks can still read active.
            with self._lock:
                previous, self._active = self._active, None
            if previous is not None:
                previous.stop()

            if self._roster_store.get_company(company_id) is None:
                raise ValidationError(f"unknown company {company_id!r}")

            index = RosterIndex(self._roster_store, company_id, self.settings.match_threshold)
            if index.rebuild().size == 0:
                raise ValidationError(f"company {company_id!r} has no enrolled employees")

            loop = AttendanceLoop(
                company_id=company_id,
                index=index,
                extractor=self._extractor,
                recorder=self._recorder,
                camera=self._camera,
                facing=facing,
                poll_interval=self.settings.poll_interval,
                on_status=self._on_status,
                clock=self._clock,
            )
            loop.open_camera()
            loop.start()
            with self._lock:
                self._active = loop
        return loop

    def stop(self, loop: Optional[AttendanceLoop] = None):
        """Stop loop (default: the active one). A no-op when nothing runs."""
        with self._lock:
            target = loop or self._active
            if target is self._active:
                self._active = None
        if target is not None:
            target.stop()

    def roster_changed(self, employee: Employee):
        """Enrollment callback: refresh the active loop's roster snapshot."""
        loop = self.active
        if loop is not None and not loop.stopped:
            loop.index.on_employee_committed(employee)
