"""
Transient on-screen messages for task and backend events.
A message shows for a short time, then fades out.
"""

import time
import logging
import cv2
import numpy as np

from core.events import EventBus, Events

logger = logging.getLogger(__name__)


class FeedbackManager:
    """Shows a fading confirmation box when something happens."""

    def __init__(self, config: dict = None, event_bus: EventBus = None):
        config = config or {}
        self._active_feedback = None
        self._feedback_duration = config.get("feedback_duration_sec", 1.5)
        self._fade_duration = config.get("fade_duration_sec", 0.3)

        self._message_display = {
            "task_started": {"icon": "GO", "label": "Hold the pose!", "color": (0, 255, 255)},
            "pose_lost": {"icon": "X", "label": "Pose lost", "color": (0, 0, 255)},
            "landmarks_not_visible": {"icon": "X", "label": "Step into view", "color": (0, 0, 255)},
            "task_complete": {"icon": "OK", "label": "Task complete", "color": (0, 255, 0)},
            "analyzing": {"icon": "...", "label": "Analyzing", "color": (255, 200, 0)},
            "analysis_complete": {"icon": "OK", "label": "Analysis complete", "color": (0, 255, 0)},
            "backend_error": {"icon": "!", "label": "Backend error", "color": (0, 0, 255)},
            "exported": {"icon": "JSON", "label": "Pose data saved", "color": (255, 200, 0)},
            "report_saved": {"icon": "PDF", "label": "Report saved", "color": (255, 200, 0)},
        }

        self._bus = event_bus
        if event_bus is not None:
            event_bus.subscribe(Events.TASK_STARTED, self._on_task_started)
            event_bus.subscribe(Events.TASK_FAILED, self._on_task_failed)
            event_bus.subscribe(Events.TASK_SUCCEEDED, self._on_task_succeeded)
            event_bus.subscribe(Events.SUBMISSION_STARTED, self._on_submission_started)
            event_bus.subscribe(Events.RESULTS_READY, self._on_results_ready)
            event_bus.subscribe(Events.BACKEND_ERROR, self._on_backend_error)

    def _on_task_started(self, **kwargs):
        self.trigger("task_started")

    def _on_task_failed(self, reason="pose_lost", **kwargs):
        self.trigger(reason)

    def _on_task_succeeded(self, **kwargs):
        self.trigger("task_complete")

    def _on_submission_started(self, **kwargs):
        self.trigger("analyzing")

    def _on_results_ready(self, **kwargs):
        self.trigger("analysis_complete")

    def _on_backend_error(self, **kwargs):
        self.trigger("backend_error")

    def trigger(self, message: str, now: float = None):
        """Show feedback for a named message."""
        display = self._message_display.get(message, {
            "icon": "i", "label": message, "color": (255, 255, 255)
        })
        self._active_feedback = {
            "message": message,
            "icon": display["icon"],
            "label": display["label"],
            "color": display["color"],
            "start_time": time.time() if now is None else now,
        }
        logger.debug("Feedback: %s", message)

    def opacity(self, now: float = None) -> float:
        """Current opacity of the active message (0 when none)."""
        if self._active_feedback is None:
            return 0.0
        now = time.time() if now is None else now
        elapsed = now - self._active_feedback["start_time"]
        if elapsed > self._feedback_duration:
            return 0.0
        if elapsed > self._feedback_duration - self._fade_duration:
            fade_progress = (elapsed - (self._feedback_duration - self._fade_duration)) / self._fade_duration
            return 1.0 - fade_progress
        return 1.0

    def render(self, frame: np.ndarray, now: float = None) -> np.ndarray:
        """Render the active message on frame.

        Args:
            frame: BGR frame to draw on

        Returns:
            Frame with feedback overlay
        """
        if self._active_feedback is None:
            return frame

        opacity = self.opacity(now)
        if opacity <= 0.0:
            self._active_feedback = None
            return frame

        h, w = frame.shape[:2]
        fb = self._active_feedback

        box_w, box_h = 300, 70
        x1 = (w - box_w) // 2
        y1 = h - box_h - 110

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x1 + box_w, y1 + box_h), (40, 40, 40), -1)
        cv2.rectangle(overlay, (x1, y1), (x1 + box_w, y1 + box_h), fb["color"], 2)
        cv2.addWeighted(overlay, opacity * 0.8, frame, 1 - opacity * 0.8, 0, frame)

        if opacity > 0.3:
            cv2.putText(
                frame, fb["icon"],
                (x1 + 15, y1 + 45),
                cv2.FONT_HERSHEY_SIMPLEX, 1.0, fb["color"], 3,
            )
            cv2.putText(
                frame, fb["label"],
                (x1 + 95, y1 + 45),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2,
            )

        return frame

    @property
    def active_message(self):
        return self._active_feedback["message"] if self._active_feedback else None

    @property
    def is_active(self) -> bool:
        return self.opacity() > 0.0
