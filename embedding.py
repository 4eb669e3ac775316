# embedding.py
# Face embedding extraction backed by face_recognition (dlib, 128-d).

import logging
from typing import Optional

import cv2
import face_recognition
import numpy as np

from config import DETECT_MODEL, DETECT_SCALE

logger = logging.getLogger(__name__)


def _box_area(box) -> int:
    top, right, bottom, left = box
    return max(0, right - left) * max(0, bottom - top)


class FaceEmbeddingProvider:
    """Frame (BGR) -> embedding of the dominant face, or None."""

    def __init__(self, scale: float = DETECT_SCALE, model: str = DETECT_MODEL, upsample: int = 1):
        self.scale = scale
        self.model = model
        self.upsample = upsample

    def extract(self, frame: np.ndarray) -> Optional[np.ndarray]:
        if frame is None or frame.size == 0:
            return None

        img = frame
        if self.scale != 1.0:
            img = cv2.resize(frame, (0, 0), fx=self.scale, fy=self.scale)
        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

        boxes = face_recognition.face_locations(
            img_rgb,
            number_of_times_to_upsample=self.upsample,
            model=self.model,
        )
        if not boxes:
            return None

        # Single dominant face: the largest box
        box = max(boxes, key=_box_area)
        encodings = face_recognition.face_encodings(img_rgb, [box])
        if not encodings:
            return None

        logger.debug(f"FaceEmbeddingProvider: {len(boxes)} face(s), using box {box}")
        return np.array(encodings[0], dtype="float32")
