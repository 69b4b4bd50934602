"""
Tests for Pose Detection
=========================
"""

import pytest
import numpy as np
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import Landmark
from modules.detection import pose_detector
from modules.detection.pose_detector import PoseDetector, PoseDetectorConfig


def model_landmark(x, y, z=0.1, visibility=0.8):
    return SimpleNamespace(x=x, y=y, z=z, visibility=visibility)


class TestPoseDetectorConfig:
    """Test suite for PoseDetectorConfig."""

    def test_defaults(self):
        config = PoseDetectorConfig()

        assert config.num_poses == 1
        assert config.min_detection_confidence == 0.5
        assert "pose_landmarker_lite" in config.model_url

    def test_from_dict_partial(self):
        config = PoseDetectorConfig.from_dict({"min_tracking_confidence": 0.7})

        assert config.min_tracking_confidence == 0.7
        assert config.min_presence_confidence == 0.5


class TestConversion:
    """Test suite for result conversion."""

    def test_first_pose_only(self):
        result = SimpleNamespace(pose_landmarks=[
            [model_landmark(0.1, 0.2)] * 33,
            [model_landmark(0.9, 0.9)] * 33,
        ])

        landmarks = PoseDetector.to_landmarks(result)

        assert len(landmarks) == 33
        assert landmarks[0] == Landmark(0.1, 0.2, 0.1, 0.8)

    def test_missing_visibility_defaults(self):
        result = SimpleNamespace(pose_landmarks=[[model_landmark(0.5, 0.5, None, None)]])

        assert PoseDetector.to_landmarks(result)[0] == Landmark(0.5, 0.5, 0.0, 1.0)

    def test_no_pose(self):
        assert PoseDetector.to_landmarks(SimpleNamespace(pose_landmarks=[])) is None
        assert PoseDetector.to_landmarks(None) is None


class TestDetect:
    """Test suite for the landmarker wrapper."""

    def test_detect_before_start(self):
        assert PoseDetector().detect(MagicMock(), 0) is None

    def test_timestamps_strictly_increase(self):
        detector = PoseDetector()
        landmarker = MagicMock()
        landmarker.detect_for_video.return_value = SimpleNamespace(pose_landmarks=[])
        detector._landmarker = landmarker

        image = np.zeros((4, 4, 3), dtype=np.uint8)
        detector.detect(image, 100)
        detector.detect(image, 100)
        detector.detect(image, 50)

        stamps = [call.args[1] for call in landmarker.detect_for_video.call_args_list]
        assert stamps == [100, 101, 102]

    def test_start_fails_without_model(self, tmp_path):
        config = PoseDetectorConfig(model_path=str(tmp_path / "missing.task"))
        with patch.object(pose_detector, "download_model", return_value=False):
            assert PoseDetector(config).start() is False

    def test_download_skipped_when_present(self, tmp_path):
        model = tmp_path / "model.task"
        model.write_bytes(b"x")
        with patch.object(pose_detector.urllib.request, "urlretrieve") as fetch:
            assert pose_detector.download_model("http://example/model.task", model)

        fetch.assert_not_called()

    def test_stop_closes(self):
        detector = PoseDetector()
        landmarker = MagicMock()
        detector._landmarker = landmarker

        detector.stop()

        landmarker.close.assert_called_once()
