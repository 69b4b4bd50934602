"""
JSON import/export of recorded pose sequences.

The file format is exactly the `pose_data` array uploaded to the backend:

    [{"frame_number": 0, "timestamp": 0.0,
      "landmarks": [{"x": .., "y": .., "z": .., "visibility": ..}, ... 33]}, ...]

Exported recordings can be replayed offline with `main.py --mode replay`.
"""

import json
import logging
from datetime import datetime
from numbers import Real
from pathlib import Path
from typing import Iterable, List, Optional

from core.types import NUM_POSE_LANDMARKS, PoseFrame, TaskType

logger = logging.getLogger(__name__)


class PoseDataError(ValueError):
    """Raised when a pose recording does not have the expected structure."""


def save_pose_frames(path: Path, frames: Iterable[PoseFrame], *, overwrite: bool = True) -> Path:
    """Write pose frames to a JSON file.

    Args:
        path: Destination path for the JSON file.
        frames: Iterable of PoseFrame instances.
        overwrite: Whether to overwrite an existing file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise FileExistsError(f"Recording already exists: {path}")

    payload = [frame.to_dict() for frame in frames]
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh)
    logger.info("Saved %d pose frames to %s", len(payload), path)
    return path


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def parse_pose_frames(data) -> List[PoseFrame]:
    """Validate a decoded JSON document and convert it to PoseFrames.

    Only the first frame is checked field by field; the rest are converted
    and any structural problem surfaces as a PoseDataError.
    """
    if not isinstance(data, list):
        raise PoseDataError("JSON must be an array of pose frames")
    if not data:
        raise PoseDataError("JSON array is empty")

    first = data[0]
    if not isinstance(first, dict):
        raise PoseDataError("Each frame must be an object")
    if first.get("frame_number") is None:
        raise PoseDataError("Each frame must have a frame_number field")
    if first.get("timestamp") is None:
        raise PoseDataError("Each frame must have a timestamp field")
    if not isinstance(first.get("landmarks"), list):
        raise PoseDataError("Each frame must have a landmarks array")
    if len(first["landmarks"]) != NUM_POSE_LANDMARKS:
        raise PoseDataError(f"Each frame must have exactly {NUM_POSE_LANDMARKS} landmarks")

    lm = first["landmarks"][0]
    if not isinstance(lm, dict) or not all(_is_number(lm.get(k)) for k in ("x", "y", "z", "visibility")):
        raise PoseDataError("Each landmark must have x, y, z, and visibility as numbers")

    try:
        return [PoseFrame.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise PoseDataError(f"Malformed pose frame: {exc}") from exc


def load_pose_frames(path: Path) -> List[PoseFrame]:
    """Read and validate pose frames from a JSON file."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PoseDataError(f"Invalid JSON format: {exc}") from exc

    frames = parse_pose_frames(data)
    logger.info("Loaded %d pose frames from %s", len(frames), path)
    return frames


def default_export_name(task_type: TaskType, when: Optional[datetime] = None) -> str:
    """File name for an exported recording, e.g. pose_raise_hand_20250101_120000.json."""
    when = when or datetime.now()
    return f"pose_{task_type.value}_{when:%Y%m%d_%H%M%S}.json"
