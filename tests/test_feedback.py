"""
Tests for On-screen Feedback
=============================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import Events
from modules.control.feedback_manager import FeedbackManager


class TestFeedbackManager:
    """Test suite for fading messages."""

    def test_opacity_fades(self):
        feedback = FeedbackManager({"feedback_duration_sec": 1.0, "fade_duration_sec": 0.5})
        feedback.trigger("task_complete", now=0.0)

        assert feedback.opacity(now=0.2) == 1.0
        assert feedback.opacity(now=0.75) == pytest.approx(0.5)
        assert feedback.opacity(now=1.5) == 0.0

    def test_render_draws_then_expires(self):
        feedback = FeedbackManager()
        feedback.trigger("pose_lost", now=0.0)
        frame = np.zeros((480, 640, 3), dtype=np.uint8)

        assert feedback.render(frame, now=0.1).any()
        feedback.render(np.zeros_like(frame), now=10.0)
        assert feedback.active_message is None

    def test_unknown_message(self):
        feedback = FeedbackManager()
        feedback.trigger("custom", now=0.0)

        assert feedback.active_message == "custom"

    def test_task_events(self, event_bus):
        feedback = FeedbackManager(event_bus=event_bus)

        event_bus.emit(Events.TASK_STARTED, task_type="raise_hand", duration=10.0)
        assert feedback.active_message == "task_started"

        event_bus.emit(Events.TASK_FAILED, task_type="raise_hand", reason="landmarks_not_visible", elapsed=1.0)
        assert feedback.active_message == "landmarks_not_visible"

        event_bus.emit(Events.TASK_SUCCEEDED, task_type="raise_hand", frames=[], duration=10.0)
        assert feedback.active_message == "task_complete"

        event_bus.emit(Events.RESULTS_READY, session=None)
        assert feedback.active_message == "analysis_complete"

        event_bus.emit(Events.BACKEND_ERROR, error="boom", status_code=None)
        assert feedback.active_message == "backend_error"
