# timed_extractor.py
# Runs an embedding provider with an upper bound on how long a call may take.

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class TimedExtractor:
    """
    extract(frame) returns the provider's embedding, or None when the provider
    found no face or did not answer within timeout. A call that timed out
    keeps running in the background; until it finishes, new frames are
    skipped instead of queued behind it. Safe to call from several threads:
    at most one provider call is in flight at a time.
    """

    def __init__(self, provider, timeout: float):
        self._provider = provider
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="embedding")
        self._lock = threading.Lock()
        self._pending = None

    def extract(self, frame: np.ndarray) -> Optional[np.ndarray]:
        with self._lock:
            if self._pending is not None and not self._pending.done():
                logger.debug("TimedExtractor: previous extraction still running, skipping frame")
                return None
            future = self._executor.submit(self._provider.extract, frame)
            self._pending = future

        try:
            embedding = future.result(timeout=self._timeout)
        except FutureTimeout:
            logger.warning(f"TimedExtractor: extraction exceeded {self._timeout:.1f}s, treating as no face")
            return None
        if embedding is None:
            return None
        return np.asarray(embedding, dtype="float32").ravel()

    def close(self):
        self._executor.shutdown(wait=False)
