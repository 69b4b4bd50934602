"""
Timestamp-driven playback of a recorded pose sequence.

Playback is anchored at the frame that was current when play started: after
`elapsed` wall-clock seconds the displayed frame is the last one whose
recorded offset from the anchor frame is <= elapsed * speed. Playback stops
on the final frame.
"""

import math
import time
import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np

from core.types import POSE_CONNECTIONS, PoseFrame

logger = logging.getLogger(__name__)

SPEEDS = (0.5, 1.0, 1.5, 2.0)

# BGR colors per body region
_HEAD_COLOR = (0, 0, 255)
_ARM_COLOR = (0, 255, 0)
_HAND_COLOR = (0, 255, 255)
_LEG_COLOR = (255, 0, 0)


def _joint_color(index: int):
    if index < 11:
        return _HEAD_COLOR
    if index < 17:
        return _ARM_COLOR
    if index < 23:
        return _HAND_COLOR
    return _LEG_COLOR


class PoseReplay:
    """Plays back a list of PoseFrames on a blank canvas.

    Example:
        >>> replay = PoseReplay(load_pose_frames("pose.json"))
        >>> replay.play()
        >>> while True:
        ...     replay.update()
        ...     cv2.imshow("Replay", replay.render(canvas))
    """

    def __init__(self, frames: Sequence[PoseFrame], speed: float = 1.0,
                 min_visibility: float = 0.5):
        if not frames:
            raise ValueError("Nothing to replay: no frames")
        if speed not in SPEEDS:
            raise ValueError(f"speed must be one of {SPEEDS}")
        self._frames: List[PoseFrame] = list(frames)
        self._speed = speed
        self._min_visibility = min_visibility

        self._index = 0
        self._playing = False
        self._anchor_index = 0
        self._anchor_time: Optional[float] = None

    # ------------------------------------------------------------------
    # Playback control
    # ------------------------------------------------------------------

    def play(self, now: Optional[float] = None):
        if self._index >= len(self._frames) - 1:
            self._index = 0
        self._playing = True
        self._anchor(now)
        logger.debug("Replay playing from frame %d at %.1fx", self._index, self._speed)

    def pause(self, now: Optional[float] = None):
        if self._playing:
            self.update(now)
        self._playing = False

    def toggle(self, now: Optional[float] = None):
        if self._playing:
            self.pause(now)
        else:
            self.play(now)

    def stop(self):
        """Pause and rewind to the first frame."""
        self._playing = False
        self._index = 0
        self._anchor_time = None

    def restart(self, now: Optional[float] = None):
        self.stop()
        self.play(now)

    def cycle_speed(self, now: Optional[float] = None) -> float:
        """Advance to the next playback speed: 0.5 -> 1 -> 1.5 -> 2 -> 0.5."""
        if self._playing:
            self.update(now)
        pos = SPEEDS.index(self._speed)
        self._speed = SPEEDS[(pos + 1) % len(SPEEDS)]
        if self._playing:
            self._anchor(now)
        logger.info("Replay speed: %sx", self._speed)
        return self._speed

    def seek(self, percent: float, now: Optional[float] = None):
        """Jump to a position given in percent of the recording."""
        percent = min(100.0, max(0.0, percent))
        self._index = int(math.floor(percent / 100.0 * (len(self._frames) - 1)))
        if self._playing:
            self._anchor(now)

    def _anchor(self, now: Optional[float]):
        self._anchor_index = self._index
        self._anchor_time = time.monotonic() if now is None else now

    # ------------------------------------------------------------------
    # Frame selection
    # ------------------------------------------------------------------

    def frame_index_at(self, elapsed: float) -> int:
        """Index of the frame to show `elapsed` seconds after the anchor."""
        target = elapsed * self._speed
        start_ts = self._frames[self._anchor_index].timestamp
        index = self._anchor_index
        for i in range(self._anchor_index, len(self._frames)):
            if self._frames[i].timestamp - start_ts <= target:
                index = i
            else:
                break
        return index

    def update(self, now: Optional[float] = None) -> int:
        """Advance playback to wall-clock time `now`; returns the frame index."""
        if not self._playing:
            return self._index
        now = time.monotonic() if now is None else now
        self._index = self.frame_index_at(now - self._anchor_time)
        if self._index >= len(self._frames) - 1:
            self._playing = False
            logger.info("Replay finished (%d frames)", len(self._frames))
        return self._index

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def render(self, canvas: np.ndarray) -> np.ndarray:
        """Draw the current frame's skeleton and playback info."""
        h, w = canvas.shape[:2]
        frame = self.current_frame
        landmarks = frame.landmarks
        min_vis = self._min_visibility

        for a, b in POSE_CONNECTIONS:
            if a >= len(landmarks) or b >= len(landmarks):
                continue
            la, lb = landmarks[a], landmarks[b]
            if la.visibility > min_vis and lb.visibility > min_vis:
                cv2.line(canvas, la.to_pixel(w, h), lb.to_pixel(w, h), (0, 255, 0), 2)

        for idx, lm in enumerate(landmarks):
            if lm.visibility > min_vis:
                center = lm.to_pixel(w, h)
                cv2.circle(canvas, center, 4, _joint_color(idx), -1)
                cv2.circle(canvas, center, 5, (255, 255, 255), 1)

        info = [
            f"Frame: {frame.frame_number}",
            f"Time: {frame.timestamp:.2f}s",
            f"Speed: {self._speed}x",
        ]
        for i, text in enumerate(info):
            cv2.putText(canvas, text, (10, 20 + i * 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)

        bar_y = h - 12
        cv2.rectangle(canvas, (10, bar_y), (w - 10, bar_y + 6), (60, 60, 60), -1)
        fill = int(self.progress / 100.0 * (w - 20))
        cv2.rectangle(canvas, (10, bar_y), (10 + fill, bar_y + 6), (210, 118, 25), -1)
        return canvas

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_frame(self) -> PoseFrame:
        return self._frames[self._index]

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def progress(self) -> float:
        """Position in percent (0-100)."""
        if len(self._frames) < 2:
            return 100.0
        return self._index / (len(self._frames) - 1) * 100.0

    @property
    def duration(self) -> float:
        """Recorded length in seconds."""
        return self._frames[-1].timestamp - self._frames[0].timestamp
