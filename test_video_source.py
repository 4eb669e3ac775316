# test_video_source.py
"""Tests for camera access, with cv2.VideoCapture replaced by a fake."""

import unittest
from unittest import mock

import numpy as np

from errors import DeviceError
from video_source import CameraSource, list_available_cameras


class FakeVideoCapture:
    """Only the indices in `working` open; every instance is remembered."""

    working = set()
    created = []

    def __init__(self, index):
        self.index = index
        self.opened = index in self.working
        self.released = False
        self.props = {}
        self.frame = np.zeros((48, 64, 3), dtype=np.uint8)
        FakeVideoCapture.created.append(self)

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if self.frame is None:
            return False, None
        return True, self.frame

    def release(self):
        self.released = True


class _CaptureTestBase(unittest.TestCase):
    def setUp(self):
        FakeVideoCapture.working = {0, 2}
        FakeVideoCapture.created = []
        patcher = mock.patch("video_source.cv2.VideoCapture", FakeVideoCapture)
        patcher.start()
        self.addCleanup(patcher.stop)


class TestListAvailableCameras(_CaptureTestBase):
    def test_reports_only_openable_indices(self):
        self.assertEqual(list_available_cameras(max_index=3), [0, 2])

    def test_every_capture_is_released(self):
        list_available_cameras(max_index=3)

        self.assertEqual([c.index for c in FakeVideoCapture.created], [0, 1, 2, 3])
        self.assertTrue(all(c.released for c in FakeVideoCapture.created))

    def test_no_cameras(self):
        FakeVideoCapture.working = set()

        self.assertEqual(list_available_cameras(), [])


class TestCameraSource(_CaptureTestBase):
    def setUp(self):
        super().setUp()
        self.source = CameraSource(facing_index={"user": 2, "environment": 1})

    def test_open_maps_facing_to_index(self):
        handle = self.source.open("user")

        self.assertEqual(handle.index, 2)
        self.assertEqual(handle.facing, "user")
        self.assertTrue(handle.is_open)
        self.assertEqual(self.source.current_frame(handle).shape, (48, 64, 3))

    def test_unknown_facing_is_device_error(self):
        with self.assertRaises(DeviceError):
            self.source.open("sideways")
        self.assertEqual(FakeVideoCapture.created, [])

    def test_unopenable_camera_is_device_error_and_released(self):
        """Index 1 does not open: the capture is released and DeviceError raised."""
        with self.assertRaises(DeviceError):
            self.source.open("environment")

        self.assertTrue(FakeVideoCapture.created[0].released)

    def test_close_is_idempotent(self):
        handle = self.source.open("user")

        self.source.close(handle)
        self.source.close(handle)
        self.source.close(None)

        self.assertFalse(handle.is_open)
        with self.assertRaises(DeviceError):
            self.source.current_frame(handle)

    def test_failed_read_is_device_error(self):
        handle = self.source.open("user")
        handle.capture.frame = None

        with self.assertRaises(DeviceError):
            self.source.current_frame(handle)


if __name__ == "__main__":
    unittest.main()
