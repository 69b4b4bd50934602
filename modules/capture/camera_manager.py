"""
Webcam (or video file) capture with optional threaded buffering.

The preview is mirrored by default so the user sees themselves as in a
mirror; landmarks are computed on the mirrored image, which swaps the
model's left/right labels but leaves every y-coordinate rule unaffected.
"""

import time
import threading
import logging
from typing import Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CameraManager:
    """Frame source for the assessment loop."""

    def __init__(self, config: dict):
        self._source: Union[int, str] = config.get("device_id", 0)
        self._width = config.get("width", 1280)
        self._height = config.get("height", 720)
        self._fps = config.get("fps", 30)
        self._buffer_size = config.get("buffer_size", 1)
        self._flip_h = config.get("flip_horizontal", True)
        self._warmup_frames = config.get("warmup_frames", 5)
        self._threaded = config.get("threaded", True)

        self._cap: Optional[cv2.VideoCapture] = None
        self._frame: Optional[np.ndarray] = None
        self._frame_id = 0
        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._exhausted = False
        self._position_sec = 0.0

    @property
    def is_file(self) -> bool:
        return isinstance(self._source, str) and not self._source.isdigit()

    def open(self) -> bool:
        """Open the device or file and apply capture settings."""
        source = int(self._source) if isinstance(self._source, str) and self._source.isdigit() else self._source
        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            logger.error("Failed to open video source %r", self._source)
            self._cap = None
            return False

        if not self.is_file:
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
            self._cap.set(cv2.CAP_PROP_FPS, self._fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._buffer_size)

        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self._cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "Video source %r opened: %dx%d @ %.0f FPS (requested %dx%d @ %d)",
            self._source, actual_w, actual_h, actual_fps,
            self._width, self._height, self._fps,
        )
        if actual_w and actual_h:
            self._width, self._height = actual_w, actual_h

        if not self.is_file and self._warmup_frames > 0:
            logger.info("Camera warmup: discarding %d frames...", self._warmup_frames)
            for _ in range(self._warmup_frames):
                self._cap.read()

        self._exhausted = False
        self._position_sec = 0.0
        self._running = True
        if self._threaded and not self.is_file:
            self._thread = threading.Thread(target=self._capture_loop, daemon=True)
            self._thread.start()
            logger.info("Threaded capture started")
        return True

    def _grab(self) -> Optional[np.ndarray]:
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        if self._flip_h:
            frame = cv2.flip(frame, 1)
        return frame

    def _capture_loop(self):
        """Background thread: always holds the latest frame."""
        while self._running:
            frame = self._grab()
            if frame is None:
                time.sleep(0.001)
                continue
            with self._lock:
                self._frame = frame
                self._frame_id += 1

    def read(self) -> Tuple[Optional[int], Optional[np.ndarray]]:
        """Latest frame as (frame_id, BGR array), or (None, None)."""
        if self._cap is None or not self._running:
            return None, None

        if self._thread is not None:
            with self._lock:
                if self._frame is None:
                    return None, None
                return self._frame_id, self._frame.copy()

        frame = self._grab()
        if frame is None:
            if self.is_file and not self._exhausted:
                logger.info("End of video file reached")
                self._exhausted = True
            return None, None
        self._frame_id += 1
        if self.is_file:
            self._position_sec = self._cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
        return self._frame_id, frame

    @property
    def exhausted(self) -> bool:
        """True once a video file source has no more frames."""
        return self._exhausted

    @property
    def position_sec(self) -> float:
        """Playback position of the last frame read from a video file, in seconds."""
        return self._position_sec

    @property
    def resolution(self) -> Tuple[int, int]:
        return (self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        """Stop capture and release the device."""
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        logger.info("Camera stopped")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
