# test_timed_extractor.py
"""Tests for the bounded embedding extraction."""

import threading
import time
import unittest
import numpy as np

from timed_extractor import TimedExtractor


class BlockingProvider:
    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def extract(self, frame):
        self.calls += 1
        self.release.wait(timeout=5)
        return np.ones(128)


class InstantProvider:
    def __init__(self, result):
        self.result = result

    def extract(self, frame):
        return self.result


class TestTimedExtractor(unittest.TestCase):
    def setUp(self):
        self.frame = np.zeros((10, 10, 3), dtype=np.uint8)

    def test_returns_flat_float32_embedding(self):
        extractor = TimedExtractor(InstantProvider(np.ones((1, 128), dtype=np.float64)), timeout=1.0)
        try:
            emb = extractor.extract(self.frame)
        finally:
            extractor.close()

        self.assertEqual(emb.shape, (128,))
        self.assertEqual(emb.dtype, np.float32)

    def test_no_face_is_none(self):
        extractor = TimedExtractor(InstantProvider(None), timeout=1.0)
        try:
            self.assertIsNone(extractor.extract(self.frame))
        finally:
            extractor.close()

    def test_timeout_is_treated_as_no_face(self):
        """A hung provider yields None, and further frames are skipped until it returns."""
        provider = BlockingProvider()
        extractor = TimedExtractor(provider, timeout=0.05)
        try:
            self.assertIsNone(extractor.extract(self.frame))
            self.assertIsNone(extractor.extract(self.frame))
            self.assertEqual(provider.calls, 1)
        finally:
            provider.release.set()
            extractor.close()

    def test_concurrent_callers_share_one_provider_call(self):
        provider = BlockingProvider()
        extractor = TimedExtractor(provider, timeout=5.0)
        barrier = threading.Barrier(2)
        results = []

        def worker():
            barrier.wait()
            results.append(extractor.extract(self.frame))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        try:
            for t in threads:
                t.start()
            # The caller that lost the race returns at once while the provider is blocked
            deadline = time.monotonic() + 5
            while not results and time.monotonic() < deadline:
                time.sleep(0.01)
            self.assertEqual(results, [None])
        finally:
            provider.release.set()
            for t in threads:
                t.join(timeout=5)
            extractor.close()

        self.assertEqual(provider.calls, 1)
        self.assertEqual(sum(r is None for r in results), 1)
        self.assertEqual(sum(r is not None for r in results), 1)


if __name__ == "__main__":
    unittest.main()
