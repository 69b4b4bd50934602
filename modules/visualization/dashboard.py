"""
Real-time assessment overlay: pose skeleton, task status, countdown,
outcome banners, backend results and rule debug metrics.
"""

import logging
import cv2
import numpy as np

from core.types import POSE_CONNECTIONS, RiskLevel

logger = logging.getLogger(__name__)

# BGR
RISK_COLORS = {
    RiskLevel.HIGH: (54, 67, 244),
    RiskLevel.MEDIUM: (0, 152, 255),
    RiskLevel.LOW: (80, 175, 76),
    RiskLevel.NORMAL: (80, 175, 76),
}
_RISK_DEFAULT_COLOR = (158, 158, 158)

STATUS_LABELS = {
    "idle": "Press B to begin",
    "ready": "Waiting for pose",
    "detecting": "Hold it!",
    "success": "Task complete",
    "failed": "Task failed",
}


def risk_color(level) -> tuple:
    """Overlay color for a risk level (enum or string)."""
    if not isinstance(level, RiskLevel):
        level = RiskLevel.from_string(level)
    return RISK_COLORS.get(level, _RISK_DEFAULT_COLOR)


class Dashboard:
    """Renders the assessment overlay for the live window."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._show_skeleton = config.get("show_skeleton", True)
        self._show_fps = config.get("show_fps", True)
        self._show_debug = config.get("show_debug", True)
        self._show_key_hints = config.get("show_key_hints", True)
        self._min_visibility = config.get("skeleton_min_visibility", 0.3)

        colors = config.get("colors", {})
        self._color_text = tuple(colors.get("text", [255, 255, 255]))
        self._color_skeleton = tuple(colors.get("skeleton", [0, 255, 0]))
        self._color_joint = tuple(colors.get("joint", [0, 255, 0]))
        self._color_key = tuple(colors.get("key_landmark", [0, 0, 255]))
        self._color_ok = tuple(colors.get("ok", [0, 255, 0]))
        self._color_warn = tuple(colors.get("warn", [0, 255, 255]))
        self._color_bad = tuple(colors.get("bad", [0, 0, 255]))
        self._color_countdown = tuple(colors.get("countdown", [210, 118, 25]))

        dash_cfg = config.get("dashboard", {})
        self._dash_opacity = dash_cfg.get("opacity", 0.7)
        self._dash_height = dash_cfg.get("height", 70)

        self._key_hints = [
            ("B", "Begin"),
            ("R", "Retry"),
            ("D", "Report"),
            ("E", "Export"),
            ("Q", "Quit"),
        ]

    def render(self, frame: np.ndarray, state: dict) -> np.ndarray:
        """Render full overlay.

        Args:
            frame: BGR frame to draw on
            state: dict with current system state:
                - fps, latency_ms: float
                - task_label, status: str
                - time_remaining: int, progress: float
                - landmarks: list of Landmark or None
                - key_landmarks: indices to highlight
                - metrics: rule debug values
                - instruction: str
                - api_online: bool or None
                - processing: bool
                - results: SessionResponse or None
                - error: str or None
                - failure_reason: str or None

        Returns:
            Frame with overlay
        """
        h, w = frame.shape[:2]
        status = state.get("status", "idle")

        if self._show_skeleton and state.get("landmarks"):
            self._draw_skeleton(frame, state["landmarks"], state.get("key_landmarks", ()))

        self._draw_status_bar(frame, w, state)

        if status == "ready" and state.get("instruction"):
            self._draw_instruction(frame, w, state["instruction"])
        elif status == "detecting":
            self._draw_countdown(frame, w, h, state.get("time_remaining", 0), state.get("progress", 0.0))
        elif status == "success":
            self._draw_banner(frame, w, h, "Success!", self._color_ok)
        elif status == "failed":
            self._draw_banner(frame, w, h, "Task Failed", self._color_bad,
                              subtitle=self._failure_text(state.get("failure_reason")))

        if state.get("processing"):
            self._draw_centered(frame, w, h - 90, "Analyzing movement...", self._color_warn, 0.7)
        if state.get("results") is not None:
            self._draw_results(frame, w, state["results"])
        if state.get("error"):
            self._draw_error(frame, w, h, state["error"])

        if self._show_debug and state.get("metrics"):
            self._draw_debug(frame, state["metrics"])

        if status in ("ready", "detecting") and not state.get("pose_detected", True):
            self._draw_centered(frame, w, h - 60, "No pose detected - step into view",
                                (0, 150, 255), 0.7)

        if self._show_key_hints:
            self._draw_key_hints(frame, h)

        return frame

    def _draw_skeleton(self, frame, landmarks, key_landmarks):
        """Draw pose connections and joints; key joints are enlarged."""
        h, w = frame.shape[:2]
        for a, b in POSE_CONNECTIONS:
            if a >= len(landmarks) or b >= len(landmarks):
                continue
            la, lb = landmarks[a], landmarks[b]
            if la.visibility > self._min_visibility and lb.visibility > self._min_visibility:
                cv2.line(frame, la.to_pixel(w, h), lb.to_pixel(w, h), self._color_skeleton, 2)

        for lm in landmarks:
            if lm.visibility > self._min_visibility:
                cv2.circle(frame, lm.to_pixel(w, h), 4, self._color_joint, -1)

        for idx in key_landmarks:
            if idx < len(landmarks) and landmarks[idx].visibility > self._min_visibility:
                cv2.circle(frame, landmarks[idx].to_pixel(w, h), 9, self._color_key, -1)

    def _draw_status_bar(self, frame, w, state):
        """Draw top bar: task, status, FPS and backend connectivity."""
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w, self._dash_height), (20, 20, 20), -1)
        cv2.addWeighted(overlay, self._dash_opacity, frame, 1 - self._dash_opacity, 0, frame)

        status = state.get("status", "idle")
        cv2.putText(
            frame, state.get("task_label", ""),
            (15, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, self._color_text, 2,
        )
        cv2.putText(
            frame, STATUS_LABELS.get(status, status),
            (15, 58), cv2.FONT_HERSHEY_SIMPLEX, 0.6, self._status_color(status), 1,
        )

        if self._show_fps:
            fps = state.get("fps", 0)
            if fps >= 25:
                fps_color = self._color_ok
            elif fps >= 15:
                fps_color = self._color_warn
            else:
                fps_color = self._color_bad
            cv2.putText(
                frame, f"FPS: {fps:.1f}",
                (w - 200, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, fps_color, 2,
            )

        api_online = state.get("api_online")
        if api_online is None:
            api_text, api_color = "API: ?", self._color_warn
        elif api_online:
            api_text, api_color = "API: online", self._color_ok
        else:
            api_text, api_color = "API: offline", self._color_bad
        cv2.putText(
            frame, api_text,
            (w - 200, 58), cv2.FONT_HERSHEY_SIMPLEX, 0.6, api_color, 1,
        )

    def _status_color(self, status):
        if status == "success":
            return self._color_ok
        if status == "failed":
            return self._color_bad
        if status == "detecting":
            return self._color_warn
        return self._color_text

    def _draw_instruction(self, frame, w, instruction):
        self._draw_centered(frame, w, self._dash_height + 45, instruction, self._color_text, 1.0, 2)

    def _draw_countdown(self, frame, w, h, remaining, progress):
        """Large countdown number with a progress bar underneath."""
        text = str(remaining)
        text_size = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 4.0, 8)[0]
        x = (w - text_size[0]) // 2
        y = self._dash_height + 30 + text_size[1]
        cv2.putText(frame, text, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 4.0, self._color_countdown, 8)

        bar_w, bar_h = 300, 16
        bx = (w - bar_w) // 2
        by = y + 20
        cv2.rectangle(frame, (bx, by), (bx + bar_w, by + bar_h), (60, 60, 60), -1)
        cv2.rectangle(frame, (bx, by), (bx + int(progress * bar_w), by + bar_h), self._color_countdown, -1)
        cv2.rectangle(frame, (bx, by), (bx + bar_w, by + bar_h), (255, 255, 255), 1)

    def _draw_banner(self, frame, w, h, title, color, subtitle=None):
        """Full-width outcome banner across the middle of the frame."""
        y1 = h // 2 - 50
        y2 = h // 2 + (50 if subtitle else 30)
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, y1), (w, y2), (40, 40, 40), -1)
        cv2.addWeighted(overlay, 0.75, frame, 0.25, 0, frame)
        cv2.rectangle(frame, (0, y1), (w, y2), color, 2)

        self._draw_centered(frame, w, h // 2, title, color, 1.4, 3)
        if subtitle:
            self._draw_centered(frame, w, h // 2 + 35, subtitle, self._color_text, 0.6)

    def _draw_results(self, frame, w, results):
        """Risk panel on the right side under the status bar."""
        level = results.risk
        color = risk_color(level)
        x = w - 270
        y = self._dash_height + 15

        overlay = frame.copy()
        cv2.rectangle(overlay, (x, y), (w - 10, y + 125), (30, 30, 30), -1)
        cv2.addWeighted(overlay, 0.8, frame, 0.2, 0, frame)
        cv2.rectangle(frame, (x, y), (w - 10, y + 125), color, 2)

        score = results.risk_score
        lines = [
            (f"Session #{results.id}", self._color_text, 0.55),
            (f"Risk score: {score:.0f}/100" if score is not None else "Risk score: N/A", self._color_text, 0.6),
            (f"Risk level: {level.value.upper()}", color, 0.7),
            ("D: download PDF report", (200, 200, 200), 0.45),
        ]
        for i, (text, text_color, scale) in enumerate(lines):
            cv2.putText(frame, text, (x + 10, y + 25 + i * 28),
                        cv2.FONT_HERSHEY_SIMPLEX, scale, text_color, 1 if scale < 0.6 else 2)

    def _draw_error(self, frame, w, h, error):
        text = error if len(error) <= 70 else error[:67] + "..."
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, h - 75), (w, h - 40), (0, 0, 120), -1)
        cv2.addWeighted(overlay, 0.7, frame, 0.3, 0, frame)
        cv2.putText(frame, text, (15, h - 50), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (255, 255, 255), 1)

    def _draw_debug(self, frame, metrics):
        """Rule metrics, one per line, on the left side."""
        y = self._dash_height + 25
        for name, value in metrics.items():
            if isinstance(value, bool):
                text = f"{name}: {'yes' if value else 'no'}"
            elif isinstance(value, float):
                text = f"{name}: {value:.3f}"
            else:
                text = f"{name}: {value}"
            cv2.putText(frame, text, (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.45, (200, 200, 200), 1)
            y += 20

    def _draw_key_hints(self, frame, h):
        y = h - 15
        x = 15
        for key, action in self._key_hints:
            cv2.putText(
                frame, f"{key}={action}", (x, y),
                cv2.FONT_HERSHEY_SIMPLEX, 0.4, (180, 180, 180), 1,
            )
            x += 100

    def _draw_centered(self, frame, w, y, text, color, scale, thickness=2):
        text_size = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, thickness)[0]
        x = max(0, (w - text_size[0]) // 2)
        cv2.putText(frame, text, (x, y), cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness)

    @staticmethod
    def _failure_text(reason):
        if reason == "landmarks_not_visible":
            return "Body not fully visible. Press R to try again."
        return "Pose not maintained. Press R to try again."
