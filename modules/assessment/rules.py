"""
Threshold rules that decide whether the user is holding a task pose.

Each rule looks at a single frame of BlazePose landmarks and answers one
question with a plain inequality on normalized image coordinates. Image y
grows downward, so "higher on screen" means a smaller y.
"""

import logging
from typing import Optional, Sequence

from core.types import Landmark, PoseLandmarkIndex, RuleResult, TaskType

logger = logging.getLogger(__name__)


def _visible(landmarks: Optional[Sequence[Landmark]], indices, min_visibility: float):
    """Return the requested landmarks, or None if any is missing or occluded."""
    if not landmarks:
        return None
    picked = []
    for idx in indices:
        if idx >= len(landmarks) or landmarks[idx] is None:
            return None
        lm = landmarks[idx]
        if lm.visibility < min_visibility:
            return None
        picked.append(lm)
    return picked


class OneLegStanceRule:
    """One foot is off the ground when the ankles differ in height.

    Ankle heights are measured against the mean hip height so the metric
    reads as "how far below the hips" for each foot.
    """

    KEY_LANDMARKS = (
        PoseLandmarkIndex.LEFT_ANKLE,
        PoseLandmarkIndex.RIGHT_ANKLE,
        PoseLandmarkIndex.LEFT_HIP,
        PoseLandmarkIndex.RIGHT_HIP,
    )

    def __init__(self, ankle_height_threshold: float = 0.05, min_visibility: float = 0.5):
        if ankle_height_threshold < 0:
            raise ValueError("ankle_height_threshold must be non-negative")
        self.ankle_height_threshold = ankle_height_threshold
        self.min_visibility = min_visibility

    def evaluate(self, landmarks: Optional[Sequence[Landmark]]) -> RuleResult:
        picked = _visible(landmarks, self.KEY_LANDMARKS, self.min_visibility)
        if picked is None:
            return RuleResult(passed=False, key_landmarks=self.KEY_LANDMARKS,
                              reason="landmarks_not_visible")

        left_ankle, right_ankle, left_hip, right_hip = picked
        avg_hip_y = (left_hip.y + right_hip.y) / 2
        left_height = avg_hip_y - left_ankle.y
        right_height = avg_hip_y - right_ankle.y
        height_diff = abs(left_height - right_height)

        return RuleResult(
            passed=height_diff > self.ankle_height_threshold,
            metrics={
                "left_ankle_height": left_height,
                "right_ankle_height": right_height,
                "height_diff": height_diff,
                "lifted_foot": "left" if left_height > right_height else "right",
            },
            key_landmarks=self.KEY_LANDMARKS,
        )


class HandRaiseRule:
    """Either wrist above its shoulder (wrist y < shoulder y)."""

    KEY_LANDMARKS = (
        PoseLandmarkIndex.LEFT_WRIST,
        PoseLandmarkIndex.RIGHT_WRIST,
        PoseLandmarkIndex.LEFT_SHOULDER,
        PoseLandmarkIndex.RIGHT_SHOULDER,
    )

    def __init__(self, min_visibility: float = 0.3):
        self.min_visibility = min_visibility

    def evaluate(self, landmarks: Optional[Sequence[Landmark]]) -> RuleResult:
        picked = _visible(landmarks, self.KEY_LANDMARKS, self.min_visibility)
        if picked is None:
            return RuleResult(passed=False, key_landmarks=self.KEY_LANDMARKS,
                              reason="landmarks_not_visible")

        left_wrist, right_wrist, left_shoulder, right_shoulder = picked
        left_raised = left_wrist.y < left_shoulder.y
        right_raised = right_wrist.y < right_shoulder.y

        return RuleResult(
            passed=left_raised or right_raised,
            metrics={
                "left_wrist_y": left_wrist.y,
                "right_wrist_y": right_wrist.y,
                "left_shoulder_y": left_shoulder.y,
                "right_shoulder_y": right_shoulder.y,
                "left_raised": left_raised,
                "right_raised": right_raised,
            },
            key_landmarks=self.KEY_LANDMARKS,
        )


def build_rule(task_type: TaskType, params: Optional[dict] = None):
    """Create the rule for a task from its tasks.yaml section."""
    params = params or {}
    if task_type is TaskType.ONE_LEG_STANCE:
        rule = OneLegStanceRule(
            ankle_height_threshold=params.get("ankle_height_threshold", 0.05),
            min_visibility=params.get("min_visibility", 0.5),
        )
    elif task_type is TaskType.RAISE_HAND:
        rule = HandRaiseRule(min_visibility=params.get("min_visibility", 0.3))
    else:
        raise ValueError(f"No rule for task type: {task_type}")

    logger.debug("Built %s for %s", type(rule).__name__, task_type.value)
    return rule
