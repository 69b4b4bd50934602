"""
Tests for Background Submission
================================
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import Events
from core.types import PoseFrame, ProcessPoseDataResponse, SessionResponse
from modules.api.client import ApiError, SessionClient
from modules.api.submission import AssessmentSubmitter

from conftest import one_leg_pose


def make_frames(n=3):
    return [PoseFrame(i, i * 0.1, one_leg_pose()) for i in range(n)]


@pytest.fixture
def client():
    client = MagicMock(spec=SessionClient)
    client.create_session.return_value = SessionResponse(id=11, task_type="raise_hand", status="pending")
    client.process_pose_data.return_value = ProcessPoseDataResponse(
        message="ok", session_id=11, frames_processed=3, duration=10.0,
    )
    client.get_session_results.return_value = SessionResponse(
        id=11, task_type="raise_hand", status="completed", risk_score=12.0, risk_level="low",
    )
    return client


class TestAssessmentSubmitter:
    """Test suite for the create -> process -> results chain."""

    def test_successful_submission(self, client, event_bus):
        ready = []
        event_bus.subscribe(Events.RESULTS_READY, lambda **kw: ready.append(kw["session"]))
        submitter = AssessmentSubmitter(client, event_bus)
        frames = make_frames()

        assert submitter.submit("raise_hand", frames, 10.0, wait=True) is True

        client.create_session.assert_called_once_with("raise_hand")
        client.process_pose_data.assert_called_once_with(11, frames, 10.0)
        client.get_session_results.assert_called_once_with(11)
        assert submitter.session_id == 11
        assert submitter.results.risk_level == "low"
        assert submitter.error is None
        assert not submitter.is_processing
        assert ready[0].id == 11

    def test_background_thread(self, client, event_bus):
        submitter = AssessmentSubmitter(client, event_bus)

        submitter.submit("raise_hand", make_frames(), 10.0)
        submitter.join(timeout=5.0)

        assert submitter.results is not None
        assert not submitter.is_processing

    def test_empty_frames_not_sent(self, client, event_bus):
        submitter = AssessmentSubmitter(client, event_bus)

        assert submitter.submit("raise_hand", [], 10.0, wait=True) is False
        client.create_session.assert_not_called()

    def test_backend_error(self, client, event_bus):
        errors = []
        event_bus.subscribe(Events.BACKEND_ERROR, lambda **kw: errors.append(kw))
        client.process_pose_data.side_effect = ApiError("Failed to process pose data: boom", 500)
        submitter = AssessmentSubmitter(client, event_bus)

        submitter.submit("one_leg_stance", make_frames(), 10.0, wait=True)

        assert submitter.error == "Failed to process pose data: boom"
        assert submitter.results is None
        assert submitter.session_id == 11
        assert not submitter.is_processing
        assert errors == [{"error": "Failed to process pose data: boom", "status_code": 500}]
        client.get_session_results.assert_not_called()

    def test_submission_started_event(self, client, event_bus):
        started = []
        event_bus.subscribe(Events.SUBMISSION_STARTED, lambda **kw: started.append(kw))

        AssessmentSubmitter(client, event_bus).submit("raise_hand", make_frames(4), 10.0, wait=True)

        assert started == [{"task_type": "raise_hand", "frame_count": 4}]

    def test_reset(self, client, event_bus):
        submitter = AssessmentSubmitter(client, event_bus)
        submitter.submit("raise_hand", make_frames(), 10.0, wait=True)
        submitter.reset()

        assert submitter.session_id is None
        assert submitter.results is None
        assert submitter.error is None
