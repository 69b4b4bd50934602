"""
Core pipeline for the assessment loop.
Encapsulates the capture -> detect -> assess cycle that runs once per frame.

Architecture:
    CameraManager -> BGR->RGB -> PoseDetector -> TaskController

Drawing is left to the caller so the same pipeline serves the live window
and headless runs over a video file.
"""

import time
import logging
from typing import List, Optional

import cv2

from core.types import Landmark, RuleResult, TaskStatus
from core.events import EventBus

logger = logging.getLogger(__name__)


class PipelineResult:
    """Result of a single pipeline iteration."""

    __slots__ = (
        "frame", "landmarks", "pose_detected", "status",
        "rule_result", "latency_ms", "frame_id", "timestamp",
    )

    def __init__(self):
        self.frame = None
        self.landmarks: Optional[List[Landmark]] = None
        self.pose_detected = False
        self.status: Optional[TaskStatus] = None
        self.rule_result: Optional[RuleResult] = None
        self.latency_ms = 0.0
        self.frame_id = 0
        self.timestamp = 0.0


class Pipeline:
    """Per-frame assessment pipeline.

    Owns no resources: camera and detector are started and stopped by the
    application.
    """

    def __init__(self, camera, detector, controller, performance_monitor,
                 event_bus=None):
        self._camera = camera
        self._detector = detector
        self._controller = controller
        self._perf = performance_monitor
        self._bus = event_bus or EventBus()

        self._frame_count = 0
        self._last_landmarks: Optional[List[Landmark]] = None
        self._start = time.monotonic()

    @property
    def controller(self):
        return self._controller

    def set_controller(self, controller):
        """Swap the active task (e.g. switching from one-leg stance to hand raise)."""
        self._controller = controller
        logger.info("Pipeline task set to: %s", controller.task_type.value)

    def tick(self, now: Optional[float] = None) -> PipelineResult:
        """Execute one full pipeline iteration.

        Args:
            now: monotonic time in seconds; defaults to time.monotonic().
                Ignored for video files, which run on their playback position.

        Returns:
            PipelineResult with the frame, landmarks and task status
        """
        now = time.monotonic() if now is None else now
        result = PipelineResult()

        with self._perf.measure("total"):
            # --- 1. Frame Capture ---
            with self._perf.measure("capture"):
                frame_id, frame = self._camera.read()

            if self._camera.is_file:
                now = self._camera.position_sec
            result.timestamp = now

            if frame is None:
                # Keep the countdown moving even when the camera stalls
                result.status = self._controller.tick(now)
                return result

            result.frame = frame
            result.frame_id = frame_id
            self._frame_count += 1

            # --- 2. Pose Detection ---
            with self._perf.measure("detection"):
                rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                landmarks = self._detector.detect(rgb, self._detector_timestamp_ms(now))

            result.landmarks = landmarks
            result.pose_detected = landmarks is not None
            self._last_landmarks = landmarks

            # --- 3. Assessment ---
            with self._perf.measure("assessment"):
                result.status = self._controller.update(landmarks, now)
                result.rule_result = self._controller.last_result

        self._perf.tick(result.pose_detected)
        result.latency_ms = self._perf.total_latency_ms
        return result

    def _detector_timestamp_ms(self, now: float) -> int:
        if self._camera.is_file:
            return int(now * 1000)
        return int((now - self._start) * 1000)

    def build_state(self) -> dict:
        """Build state dict for dashboard rendering."""
        controller = self._controller
        rule_result = controller.last_result
        return {
            "fps": self._perf.fps,
            "latency_ms": self._perf.total_latency_ms,
            "task_type": controller.task_type.value,
            "task_label": controller.task_type.label,
            "status": controller.status.value,
            "time_remaining": controller.time_remaining,
            "progress": controller.progress,
            "frames_recorded": len(controller.recorded_frames),
            "pose_detected": self._last_landmarks is not None,
            "landmarks": self._last_landmarks,
            "key_landmarks": rule_result.key_landmarks if rule_result else (),
            "metrics": dict(rule_result.metrics) if rule_result else {},
        }

    @property
    def frame_count(self) -> int:
        return self._frame_count
