# errors.py
# Exceptions raised by the attendance engine.


class AttendanceError(Exception):
    """Base class for every error raised by the engine."""


class NoFaceDetected(AttendanceError):
    """No face (or no embedding) was found in the frame."""


class ValidationError(AttendanceError):
    """Input rejected before anything was written."""


class StorageError(AttendanceError):
    """A read or write against the roster or attendance store failed."""


class DuplicateSuppressed(AttendanceError):
    """
    The attendance log refused an insert because the employee already has a
    record inside the cooldown window. Not a failure: callers report it as a
    suppressed outcome.
    """


class DeviceError(AttendanceError):
    """The camera could not be opened or read."""
