# video_source.py
# Camera access

import logging
from typing import Dict, List, Optional

import cv2
import numpy as np

from config import FACING_CAMERA_INDEX, FRAME_HEIGHT, FRAME_WIDTH
from errors import DeviceError

logger = logging.getLogger(__name__)


def list_available_cameras(max_index: int = 5) -> List[int]:
    """
    Camera indices 0..max_index that open right now, so a failed facing can
    be remapped in FACING_CAMERA_INDEX. Every capture is released again.
    """
    indices = []
    for index in range(max_index + 1):
        cap = cv2.VideoCapture(index)
        try:
            if cap.isOpened():
                indices.append(index)
        finally:
            cap.release()
    logger.debug(f"CameraSource: cameras available at indices {indices}")
    return indices


class CameraHandle:
    def __init__(self, facing: str, index: int, capture):
        self.facing = facing
        self.index = index
        self.capture = capture

    @property
    def is_open(self) -> bool:
        return self.capture is not None and self.capture.isOpened()


class CameraSource:
    """Opens cameras by facing ("user" / "environment")."""

    def __init__(self, facing_index: Optional[Dict[str, int]] = None,
                 width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT):
        self.facing_index = dict(facing_index or FACING_CAMERA_INDEX)
        self.width = width
        self.height = height

    def open(self, facing: str) -> CameraHandle:
        if facing not in self.facing_index:
            raise DeviceError(f"unknown camera facing {facing!r}")
        index = self.facing_index[facing]

        cap = cv2.VideoCapture(index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        if not cap.isOpened():
            cap.release()
            raise DeviceError(f"could not open camera index {index} ({facing})")

        logger.info(f"CameraSource: opened camera {index} ({facing})")
        return CameraHandle(facing, index, cap)

    def close(self, handle: Optional[CameraHandle]):
        if handle is None or handle.capture is None:
            return
        handle.capture.release()
        handle.capture = None
        logger.info(f"CameraSource: released camera {handle.index} ({handle.facing})")

    def current_frame(self, handle: CameraHandle) -> np.ndarray:
        if not handle.is_open:
            raise DeviceError(f"camera {handle.index} is not open")
        success, frame = handle.capture.read()
        if not success or frame is None:
            raise DeviceError(f"could not read a frame from camera {handle.index}")
        return frame
