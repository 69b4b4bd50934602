"""
Frame-rate and per-stage latency tracking with rolling windows.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

STAGES = ("capture", "detection", "assessment", "visualization", "total")


class PerformanceMonitor:
    """Tracks FPS and average latency per pipeline stage."""

    def __init__(self, window_size=100):
        self._window_size = window_size
        self._lock = threading.Lock()
        self._frame_times = deque(maxlen=window_size)
        self._last_frame_time = None
        self._stage_times = {name: deque(maxlen=window_size) for name in STAGES}
        self._frame_count = 0
        self._no_pose_frames = 0
        self._start_time = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Context manager to measure a pipeline stage's duration."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                times = self._stage_times.setdefault(stage_name, deque(maxlen=self._window_size))
                times.append(elapsed_ms)

    def tick(self, pose_detected: bool = True):
        """Call once per processed frame."""
        now = time.perf_counter()
        with self._lock:
            if self._last_frame_time is not None:
                self._frame_times.append(now - self._last_frame_time)
            self._last_frame_time = now
            self._frame_count += 1
            if not pose_detected:
                self._no_pose_frames += 1

    @property
    def fps(self) -> float:
        """Current frames per second (rolling average)."""
        with self._lock:
            if len(self._frame_times) < 2:
                return 0.0
            avg_interval = sum(self._frame_times) / len(self._frame_times)
            return 1.0 / avg_interval if avg_interval > 0 else 0.0

    @property
    def total_latency_ms(self) -> float:
        return self.get_stage_latency("total")

    def get_stage_latency(self, stage_name: str) -> float:
        """Average latency for a stage in ms."""
        with self._lock:
            times = self._stage_times.get(stage_name)
            if not times:
                return 0.0
            return sum(times) / len(times)

    def get_report(self) -> dict:
        with self._lock:
            latencies = {
                name: (sum(times) / len(times) if times else 0.0)
                for name, times in self._stage_times.items()
            }
            frames = self._frame_count
            no_pose = self._no_pose_frames
        return {
            "fps": round(self.fps, 1),
            "total_frames": frames,
            "pose_detection_rate": round((frames - no_pose) / max(frames, 1) * 100, 1),
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "latencies_ms": {k: round(v, 2) for k, v in latencies.items()},
        }

    def print_report(self):
        report = self.get_report()
        logger.info("=" * 50)
        logger.info("PERFORMANCE REPORT")
        logger.info("FPS:            %.1f", report["fps"])
        logger.info("Total Frames:   %d", report["total_frames"])
        logger.info("Pose detected:  %.1f%% of frames", report["pose_detection_rate"])
        logger.info("Uptime:         %.1fs", report["uptime_seconds"])
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-14s %7.2f ms", stage, latency)
        logger.info("=" * 50)
