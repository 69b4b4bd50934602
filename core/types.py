"""
Shared domain types for the Virtual Mirror assessment client.

Centralizes enums, data classes, and landmark definitions used across
modules to eliminate circular imports and keep the wire format in one place.
"""

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Dict, List, NamedTuple, Optional, Tuple


# =============================================================================
# Task Types
# =============================================================================

class TaskType(Enum):
    """Gesture-hold assessments supported by the client."""
    ONE_LEG_STANCE = "one_leg_stance"
    RAISE_HAND = "raise_hand"

    @classmethod
    def from_string(cls, name: str) -> 'TaskType':
        """Parse a task name, accepting dashes and any case."""
        normalized = name.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown task type {name!r} (expected one of: {valid})")

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class TaskStatus(Enum):
    """Five-value task lifecycle."""
    IDLE = "idle"
    READY = "ready"
    DETECTING = "detecting"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCESS, TaskStatus.FAILED)


class RiskLevel(Enum):
    """Risk levels reported by the scoring backend."""
    LOW = "low"
    NORMAL = "normal"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, name: Optional[str]) -> 'RiskLevel':
        """Convert a backend risk string to RiskLevel, safely."""
        if not name:
            return cls.UNKNOWN
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.UNKNOWN


# =============================================================================
# Pose Landmarks (BlazePose topology)
# =============================================================================

class PoseLandmarkIndex(IntEnum):
    """Pose landmark indices following the MediaPipe BlazePose convention."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_POSE_LANDMARKS = len(PoseLandmarkIndex)

POSE_CONNECTIONS: List[Tuple[int, int]] = [
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8),
    (9, 10), (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21),
    (17, 19), (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24), (23, 25), (24, 26), (25, 27), (26, 28),
    (27, 29), (28, 30), (29, 31), (30, 32), (27, 31), (28, 32),
]


class Landmark(NamedTuple):
    """A single body joint with normalized coordinates."""
    x: float  # 0.0 to 1.0, normalized by image width
    y: float  # 0.0 to 1.0, normalized by image height (grows downward)
    z: float = 0.0
    visibility: float = 1.0

    def to_pixel(self, width: int, height: int) -> Tuple[int, int]:
        """Convert normalized coordinates to pixel coordinates."""
        return (int(self.x * width), int(self.y * height))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}

    @classmethod
    def from_dict(cls, d: dict) -> 'Landmark':
        z = d.get("z")
        visibility = d.get("visibility")
        return cls(
            x=float(d["x"]),
            y=float(d["y"]),
            z=float(z) if z is not None else 0.0,
            visibility=float(visibility) if visibility is not None else 1.0,
        )


# =============================================================================
# Wire DTOs
# =============================================================================

@dataclass
class PoseFrame:
    """One recorded pose; timestamp is seconds since the hold started."""
    frame_number: int
    timestamp: float
    landmarks: List[Landmark]

    def to_dict(self) -> dict:
        return {
            "frame_number": self.frame_number,
            "timestamp": self.timestamp,
            "landmarks": [lm.to_dict() for lm in self.landmarks],
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'PoseFrame':
        return cls(
            frame_number=int(d["frame_number"]),
            timestamp=float(d["timestamp"]),
            landmarks=[Landmark.from_dict(lm) for lm in d["landmarks"]],
        )


def _known_fields(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class SessionScores:
    stability_score: float = 0.0
    balance_score: float = 0.0
    symmetry_score: float = 0.0
    rom_score: float = 0.0
    risk_score: float = 0.0

    @classmethod
    def from_dict(cls, d: dict) -> 'SessionScores':
        return cls(**_known_fields(cls, d))


@dataclass
class SessionResponse:
    """Assessment session as returned by the scoring backend."""
    id: int
    task_type: str
    status: str
    created_at: str = ""
    updated_at: str = ""
    duration_seconds: Optional[float] = None
    stability_score: Optional[float] = None
    balance_score: Optional[float] = None
    symmetry_score: Optional[float] = None
    rom_score: Optional[float] = None
    risk_score: Optional[float] = None
    risk_level: Optional[str] = None
    scores: Optional[SessionScores] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'SessionResponse':
        data = _known_fields(cls, d)
        if isinstance(data.get("scores"), dict):
            data["scores"] = SessionScores.from_dict(data["scores"])
        return cls(**data)

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.from_string(self.risk_level)


@dataclass
class ProcessPoseDataResponse:
    message: str
    session_id: int
    frames_processed: int
    duration: float
    stability_score: float = 0.0
    balance_score: float = 0.0
    risk_score: float = 0.0
    risk_level: str = RiskLevel.UNKNOWN.value

    @classmethod
    def from_dict(cls, d: dict) -> 'ProcessPoseDataResponse':
        return cls(**_known_fields(cls, d))


@dataclass
class RuleResult:
    """Outcome of evaluating a threshold rule on one pose."""
    passed: bool
    metrics: dict = field(default_factory=dict)
    key_landmarks: Tuple[int, ...] = ()
    reason: Optional[str] = None
