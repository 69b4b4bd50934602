"""
Tests for Pose Replay
======================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import PoseFrame
from modules.visualization.replay import SPEEDS, PoseReplay

from conftest import one_leg_pose


def make_frames(timestamps):
    return [PoseFrame(i, ts, one_leg_pose()) for i, ts in enumerate(timestamps)]


@pytest.fixture
def replay():
    # 11 frames, 0.25s apart
    return PoseReplay(make_frames([i * 0.25 for i in range(11)]))


class TestFrameSelection:
    """Test suite for timestamp-driven frame selection."""

    def test_frame_index_at(self, replay):
        assert replay.frame_index_at(0.0) == 0
        assert replay.frame_index_at(0.6) == 2
        assert replay.frame_index_at(5.0) == 10

    def test_speed_scales_elapsed(self, replay):
        replay.cycle_speed()  # 1.0 -> 1.5
        replay.cycle_speed()  # 1.5 -> 2.0

        assert replay.frame_index_at(0.6) == 4

    def test_relative_to_first_timestamp(self):
        """Recordings need not start at 0."""
        replay = PoseReplay(make_frames([5.0, 5.5, 6.0]))

        assert replay.frame_index_at(0.6) == 1

    def test_irregular_spacing(self):
        replay = PoseReplay(make_frames([0.0, 0.05, 0.5, 0.55]))

        assert replay.frame_index_at(0.3) == 1


class TestPlayback:
    """Test suite for play/pause/seek controls."""

    def test_play_and_update(self, replay):
        replay.play(now=100.0)

        assert replay.update(now=100.6) == 2
        assert replay.is_playing

    def test_stops_at_last_frame(self, replay):
        replay.play(now=0.0)

        assert replay.update(now=3.0) == 10
        assert not replay.is_playing
        assert replay.progress == 100.0

    def test_pause_keeps_position(self, replay):
        replay.play(now=0.0)
        replay.pause(now=1.1)

        assert replay.current_index == 4
        assert replay.update(now=5.0) == 4

    def test_resume_from_paused_frame(self, replay):
        replay.play(now=0.0)
        replay.pause(now=0.75)
        replay.play(now=10.0)

        assert replay.update(now=10.5) == 5

    def test_toggle(self, replay):
        replay.toggle(now=0.0)
        assert replay.is_playing
        replay.toggle(now=0.1)
        assert not replay.is_playing

    def test_stop_rewinds(self, replay):
        replay.play(now=0.0)
        replay.update(now=0.5)
        replay.stop()

        assert replay.current_index == 0
        assert not replay.is_playing

    def test_play_at_end_restarts(self, replay):
        replay.seek(100)
        replay.play(now=0.0)

        assert replay.current_index == 0

    def test_restart(self, replay):
        replay.seek(50)
        replay.restart(now=0.0)

        assert replay.current_index == 0
        assert replay.is_playing

    @pytest.mark.parametrize("percent,index", [
        (0, 0), (25, 2), (50, 5), (99, 9), (100, 10), (150, 10), (-5, 0),
    ])
    def test_seek(self, replay, percent, index):
        replay.seek(percent)

        assert replay.current_index == index

    def test_progress(self, replay):
        replay.seek(30)

        assert replay.progress == pytest.approx(30.0)

    def test_speed_cycle(self, replay):
        speeds = [replay.cycle_speed() for _ in range(4)]

        assert speeds == [1.5, 2.0, 0.5, 1.0]
        assert SPEEDS == (0.5, 1.0, 1.5, 2.0)

    def test_speed_change_while_playing(self, replay):
        """Changing speed keeps the current frame and re-anchors."""
        replay.play(now=0.0)
        replay.cycle_speed(now=0.5)  # at frame 2, now 1.5x

        assert replay.current_index == 2
        assert replay.update(now=1.0) == 5


class TestReplayMisc:

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            PoseReplay([])

    def test_invalid_speed(self):
        with pytest.raises(ValueError):
            PoseReplay(make_frames([0.0]), speed=3.0)

    def test_single_frame(self):
        replay = PoseReplay(make_frames([0.0]))
        replay.play(now=0.0)

        assert replay.update(now=1.0) == 0
        assert replay.progress == 100.0

    def test_duration(self, replay):
        assert replay.duration == pytest.approx(2.5)

    def test_render_draws(self, replay):
        canvas = np.zeros((240, 320, 3), dtype=np.uint8)

        out = replay.render(canvas)

        assert out.shape == (240, 320, 3)
        assert out.any()
