"""
Per-stage latency and frame-rate tracking for the worker loop.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

STAGES = ("preprocess", "hand", "face", "fusion", "total")


class PerformanceMonitor:
    """Rolling-window FPS and stage latency, readable from any thread."""

    def __init__(self, window_size=100):
        self._window_size = window_size
        self._lock = threading.Lock()
        self._frame_intervals = deque(maxlen=window_size)
        self._last_tick = None
        self._stage_times = {name: deque(maxlen=window_size) for name in STAGES}
        self._frame_count = 0
        self._failed_frames = 0

    @contextmanager
    def measure(self, stage_name: str):
        """Time the enclosed block as `stage_name`."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                if stage_name not in self._stage_times:
                    self._stage_times[stage_name] = deque(maxlen=self._window_size)
                self._stage_times[stage_name].append(elapsed_ms)

    def tick(self):
        """Mark the end of one frame."""
        now = time.perf_counter()
        with self._lock:
            if self._last_tick is not None:
                self._frame_intervals.append(now - self._last_tick)
            self._last_tick = now
            self._frame_count += 1

    def record_failure(self):
        with self._lock:
            self._failed_frames += 1

    @property
    def fps(self) -> float:
        with self._lock:
            if not self._frame_intervals:
                return 0.0
            avg = sum(self._frame_intervals) / len(self._frame_intervals)
            return 1.0 / avg if avg > 0 else 0.0

    @property
    def frame_count(self) -> int:
        with self._lock:
            return self._frame_count

    def stage_latency_ms(self, stage_name: str) -> float:
        with self._lock:
            times = self._stage_times.get(stage_name)
            if not times:
                return 0.0
            return sum(times) / len(times)

    @property
    def total_latency_ms(self) -> float:
        return self.stage_latency_ms("total")

    def get_report(self) -> dict:
        with self._lock:
            stages = list(self._stage_times)
            frames = self._frame_count
            failed = self._failed_frames
        return {
            "fps": round(self.fps, 1),
            "total_frames": frames,
            "failed_frames": failed,
            "latencies_ms": {name: round(self.stage_latency_ms(name), 2) for name in stages},
        }

    def print_report(self):
        report = self.get_report()
        logger.info("=" * 60)
        logger.info("PERFORMANCE REPORT")
        logger.info("=" * 60)
        logger.info("FPS:            %.1f", report["fps"])
        logger.info("Total Frames:   %d", report["total_frames"])
        logger.info("Failed Frames:  %d", report["failed_frames"])
        logger.info("-" * 40)
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-12s %7.2f ms", stage, latency)
        logger.info("=" * 60)

    def reset(self):
        with self._lock:
            self._frame_intervals.clear()
            self._last_tick = None
            for times in self._stage_times.values():
                times.clear()
            self._frame_count = 0
            self._failed_frames = 0
