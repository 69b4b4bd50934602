"""
Tests for the Task State Machine
=================================
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import Events
from core.types import TaskStatus, TaskType
from modules.assessment.rules import HandRaiseRule, OneLegStanceRule
from modules.assessment.task_controller import TaskController

from conftest import hand_raised_pose, one_leg_pose, standing_pose


@pytest.fixture
def controller(event_bus):
    return TaskController(TaskType.ONE_LEG_STANCE, OneLegStanceRule(),
                          duration=10.0, event_bus=event_bus)


def record_events(bus, *names):
    """Subscribe to events and collect (name, kwargs) pairs."""
    seen = []
    for name in names:
        bus.subscribe(name, lambda _n=name, **kw: seen.append((_n, kw)))
    return seen


class TestTransitions:
    """Test suite for lifecycle transitions."""

    def test_initial_state(self, controller):
        assert controller.status is TaskStatus.IDLE
        assert controller.time_remaining == 10
        assert controller.recorded_frames == []

    def test_begin_moves_to_ready(self, controller):
        assert controller.begin() is True
        assert controller.status is TaskStatus.READY

    def test_begin_ignored_outside_idle(self, controller):
        controller.begin()

        assert controller.begin() is False
        assert controller.status is TaskStatus.READY

    def test_update_in_idle_is_noop(self, controller):
        assert controller.update(one_leg_pose(), now=0.0) is TaskStatus.IDLE

    def test_ready_waits_for_pose(self, controller):
        """Standing on both feet keeps the task in ready."""
        controller.begin()

        assert controller.update(standing_pose(), now=0.0) is TaskStatus.READY
        assert controller.update(None, now=0.1) is TaskStatus.READY

    def test_pose_starts_detecting(self, controller, event_bus):
        seen = record_events(event_bus, Events.TASK_STARTED)
        controller.begin()

        assert controller.update(one_leg_pose(), now=5.0) is TaskStatus.DETECTING
        assert seen == [(Events.TASK_STARTED, {"task_type": "one_leg_stance", "duration": 10.0})]

    def test_hold_to_success(self, controller, event_bus):
        """Holding the pose for the full duration succeeds with the recording."""
        seen = record_events(event_bus, Events.TASK_SUCCEEDED)
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)

        for i in range(1, 10):
            assert controller.update(one_leg_pose(), now=float(i)) is TaskStatus.DETECTING

        assert controller.update(one_leg_pose(), now=10.0) is TaskStatus.SUCCESS
        assert len(seen) == 1
        payload = seen[0][1]
        assert payload["task_type"] == "one_leg_stance"
        assert payload["duration"] == 10.0
        assert len(payload["frames"]) == 9

    def test_timer_checked_before_rule(self, controller):
        """A frame arriving after the deadline completes the task even without a pose."""
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)

        assert controller.update(None, now=10.5) is TaskStatus.SUCCESS

    def test_pose_lost_fails(self, controller, event_bus):
        seen = record_events(event_bus, Events.TASK_FAILED)
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(one_leg_pose(), now=1.0)

        assert controller.update(standing_pose(), now=2.5) is TaskStatus.FAILED
        assert seen[0][1]["reason"] == "pose_lost"
        assert seen[0][1]["elapsed"] == pytest.approx(2.5)

    def test_missing_landmarks_reason(self, controller, event_bus):
        seen = record_events(event_bus, Events.TASK_FAILED)
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(None, now=0.5)

        assert controller.status is TaskStatus.FAILED
        assert seen[0][1]["reason"] == "landmarks_not_visible"

    def test_grace_frames(self, event_bus):
        """With grace frames a brief dropout is tolerated."""
        controller = TaskController(TaskType.ONE_LEG_STANCE, OneLegStanceRule(),
                                    duration=10.0, grace_frames=2, event_bus=event_bus)
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(standing_pose(), now=0.1)
        controller.update(standing_pose(), now=0.2)
        controller.update(one_leg_pose(), now=0.3)

        assert controller.status is TaskStatus.DETECTING

        controller.update(standing_pose(), now=0.4)
        controller.update(standing_pose(), now=0.5)
        controller.update(standing_pose(), now=0.6)

        assert controller.status is TaskStatus.FAILED

    def test_terminal_states_ignore_updates(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(standing_pose(), now=1.0)

        assert controller.update(one_leg_pose(), now=2.0) is TaskStatus.FAILED

    def test_reset_from_any_state(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(one_leg_pose(), now=3.0)
        controller.reset()

        assert controller.status is TaskStatus.IDLE
        assert controller.recorded_frames == []
        assert controller.elapsed == 0.0
        assert controller.begin() is True

    def test_status_changes_emitted(self, controller, event_bus):
        seen = record_events(event_bus, Events.TASK_STATUS_CHANGED)
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(None, now=0.1)

        transitions = [(kw["old"], kw["new"]) for _, kw in seen]
        assert transitions == [
            ("idle", "ready"), ("ready", "detecting"), ("detecting", "failed"),
        ]


class TestRecording:
    """Test suite for frame recording while detecting."""

    def test_frames_numbered_and_timestamped(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=100.0)
        controller.update(one_leg_pose(), now=100.5)
        controller.update(one_leg_pose(), now=101.25)

        frames = controller.recorded_frames
        assert [f.frame_number for f in frames] == [0, 1]
        assert [f.timestamp for f in frames] == pytest.approx([0.5, 1.25])
        assert len(frames[0].landmarks) == 33

    def test_recorded_frames_is_a_copy(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(one_leg_pose(), now=0.5)
        controller.recorded_frames.clear()

        assert len(controller.recorded_frames) == 1

    def test_begin_clears_previous_recording(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(one_leg_pose(), now=0.5)
        controller.update(standing_pose(), now=0.6)
        controller.reset()
        controller.begin()

        assert controller.recorded_frames == []


class TestCountdown:
    """Test suite for timer properties."""

    def test_time_remaining_rounds_up(self, controller):
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)
        controller.update(one_leg_pose(), now=0.2)

        assert controller.time_remaining == 10
        controller.update(one_leg_pose(), now=9.1)
        assert controller.time_remaining == 1
        assert controller.progress == pytest.approx(0.91)

    def test_tick_completes_without_frames(self, controller):
        """The countdown finishes even when the detector returns nothing."""
        controller.begin()
        controller.update(one_leg_pose(), now=0.0)

        assert controller.tick(now=5.0) is TaskStatus.DETECTING
        assert controller.time_remaining == 5
        assert controller.tick(now=10.0) is TaskStatus.SUCCESS
        assert controller.time_remaining == 0
        assert controller.progress == 1.0

    def test_tick_outside_detecting(self, controller):
        assert controller.tick(now=100.0) is TaskStatus.IDLE

    def test_last_result_exposed(self, event_bus):
        controller = TaskController(TaskType.RAISE_HAND, HandRaiseRule(), event_bus=event_bus)
        controller.begin()
        controller.update(hand_raised_pose(), now=0.0)

        assert controller.last_result.passed
        assert controller.last_result.metrics["right_raised"] is True


class TestValidation:

    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            TaskController(TaskType.RAISE_HAND, HandRaiseRule(), duration=0)

    def test_grace_frames_non_negative(self):
        with pytest.raises(ValueError):
            TaskController(TaskType.RAISE_HAND, HandRaiseRule(), grace_frames=-1)
