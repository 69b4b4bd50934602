"""
Tests for the Assessment Overlay
=================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import RiskLevel, SessionResponse
from modules.visualization.dashboard import Dashboard, risk_color

from conftest import one_leg_pose


@pytest.fixture
def frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


class TestRiskColor:
    """Test suite for risk level colors."""

    def test_levels(self):
        assert risk_color(RiskLevel.HIGH) == (54, 67, 244)
        assert risk_color("medium") == (0, 152, 255)
        assert risk_color("LOW") == risk_color("normal")

    def test_unknown_is_gray(self):
        assert risk_color(None) == (158, 158, 158)
        assert risk_color("extreme") == (158, 158, 158)


class TestDashboard:
    """Test suite for overlay rendering in each task state."""

    @pytest.mark.parametrize("status", ["idle", "ready", "detecting", "success", "failed"])
    def test_renders_every_status(self, frame, status):
        state = {
            "status": status,
            "task_label": "One Leg Stance",
            "instruction": "Stand on one leg!",
            "time_remaining": 7,
            "progress": 0.3,
            "landmarks": one_leg_pose(),
            "key_landmarks": (27, 28, 23, 24),
            "metrics": {"height_diff": 0.15, "lifted_foot": "left", "ok": True},
            "fps": 29.5,
            "api_online": True,
            "failure_reason": "pose_lost",
        }

        out = Dashboard().render(frame, state)

        assert out.shape == (480, 640, 3)
        assert out.any()

    def test_results_and_error(self, frame):
        results = SessionResponse(id=4, task_type="raise_hand", status="completed",
                                  risk_score=None, risk_level="high")
        state = {"status": "success", "results": results, "error": "Failed to x: " + "e" * 100,
                 "processing": True, "api_online": False}

        out = Dashboard().render(frame, state)

        assert out.any()

    def test_empty_state(self, frame):
        assert Dashboard().render(frame, {}).shape == frame.shape
