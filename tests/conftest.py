"""
Shared fixtures: synthetic BlazePose landmark sets and a clean event bus.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventBus
from core.types import Landmark, NUM_POSE_LANDMARKS, PoseLandmarkIndex as P


def make_pose(overrides=None, visibility=0.9):
    """
    Create a standing pose with every landmark visible.

    Args:
        overrides: Dict of landmark index -> (y,) or (x, y) or Landmark

    Returns:
        List of 33 Landmarks
    """
    landmarks = [Landmark(x=0.5, y=0.5, z=0.0, visibility=visibility)] * NUM_POSE_LANDMARKS
    landmarks = list(landmarks)

    # Shoulders high, wrists at the hips, hips mid-frame, both feet down
    landmarks[P.LEFT_SHOULDER] = Landmark(0.45, 0.30, 0.0, visibility)
    landmarks[P.RIGHT_SHOULDER] = Landmark(0.55, 0.30, 0.0, visibility)
    landmarks[P.LEFT_WRIST] = Landmark(0.40, 0.55, 0.0, visibility)
    landmarks[P.RIGHT_WRIST] = Landmark(0.60, 0.55, 0.0, visibility)
    landmarks[P.LEFT_HIP] = Landmark(0.47, 0.55, 0.0, visibility)
    landmarks[P.RIGHT_HIP] = Landmark(0.53, 0.55, 0.0, visibility)
    landmarks[P.LEFT_ANKLE] = Landmark(0.47, 0.90, 0.0, visibility)
    landmarks[P.RIGHT_ANKLE] = Landmark(0.53, 0.90, 0.0, visibility)

    for idx, value in (overrides or {}).items():
        if isinstance(value, Landmark):
            landmarks[idx] = value
        else:
            old = landmarks[idx]
            if len(value) == 1:
                landmarks[idx] = old._replace(y=value[0])
            else:
                landmarks[idx] = old._replace(x=value[0], y=value[1])
    return landmarks


def standing_pose():
    return make_pose()


def one_leg_pose(lift=0.15):
    """Left foot raised by `lift` (normalized units)."""
    return make_pose({P.LEFT_ANKLE: (0.90 - lift,)})


def hand_raised_pose():
    """Right wrist above the right shoulder."""
    return make_pose({P.RIGHT_WRIST: (0.60, 0.15)})


@pytest.fixture
def event_bus():
    """The singleton bus, emptied before and after each test."""
    bus = EventBus()
    bus.reset()
    yield bus
    bus.reset()
