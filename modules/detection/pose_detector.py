"""
Pose detection with the MediaPipe Tasks PoseLandmarker (BlazePose).
====================================================================

Uses the lite BlazePose model in VIDEO running mode, one person, and
converts the first detected pose to a list of 33 `Landmark` tuples.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from core.types import Landmark

logger = logging.getLogger(__name__)

POSE_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
)
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent / "models" / "pose_landmarker_lite.task"


@dataclass
class PoseDetectorConfig:
    """Configuration for the pose landmarker."""
    model_path: str = ""
    model_url: str = POSE_LANDMARKER_MODEL_URL
    num_poses: int = 1
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "PoseDetectorConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            model_path=d.get("model_path", ""),
            model_url=d.get("model_url", POSE_LANDMARKER_MODEL_URL),
            num_poses=d.get("num_poses", 1),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
        )


def download_model(url: str, save_path: Path) -> bool:
    """Download the pose landmarker model if not present."""
    if save_path.exists():
        return True
    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading pose landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except OSError as e:
        logger.error("Failed to download model: %s", e)
        return False


class PoseDetector:
    """
    MediaPipe PoseLandmarker wrapper.

    Example:
        >>> detector = PoseDetector(PoseDetectorConfig())
        >>> detector.start()
        >>> landmarks = detector.detect(rgb_image, timestamp_ms)
        >>> detector.stop()
    """

    def __init__(self, config: Optional[PoseDetectorConfig] = None):
        self.config = config or PoseDetectorConfig()
        self._landmarker: Optional[vision.PoseLandmarker] = None
        self._last_timestamp_ms = -1

    def start(self) -> bool:
        """Load the model; returns False when it cannot be loaded."""
        model_path = Path(self.config.model_path or DEFAULT_MODEL_PATH)
        if not model_path.exists() and not download_model(self.config.model_url, model_path):
            logger.error("Pose detection model unavailable")
            return False

        options = vision.PoseLandmarkerOptions(
            base_options=python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=self.config.num_poses,
            min_pose_detection_confidence=self.config.min_detection_confidence,
            min_pose_presence_confidence=self.config.min_presence_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
            output_segmentation_masks=False,
        )
        try:
            self._landmarker = vision.PoseLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            logger.error("Failed to initialize PoseLandmarker: %s", e)
            return False

        logger.info("PoseLandmarker initialized with model: %s", model_path)
        return True

    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[List[Landmark]]:
        """
        Detect the pose in an RGB image.

        Args:
            image: RGB image as numpy array (H, W, 3)
            timestamp_ms: Frame timestamp in milliseconds

        Returns:
            33 landmarks of the first person, or None if no pose was found
        """
        if self._landmarker is None:
            logger.warning("PoseLandmarker not initialized. Call start() first.")
            return None

        # VIDEO mode rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(image))
        result = self._landmarker.detect_for_video(mp_image, timestamp_ms)
        return self.to_landmarks(result)

    @staticmethod
    def to_landmarks(result) -> Optional[List[Landmark]]:
        """Convert a PoseLandmarkerResult to Landmarks (first pose only)."""
        if result is None or not result.pose_landmarks:
            return None
        return [
            Landmark(
                x=lm.x,
                y=lm.y,
                z=lm.z or 0.0,
                visibility=lm.visibility if lm.visibility is not None else 1.0,
            )
            for lm in result.pose_landmarks[0]
        ]

    def stop(self) -> None:
        """Release resources."""
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
            logger.info("PoseLandmarker stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
