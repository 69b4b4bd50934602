"""
Background submission of a completed task to the scoring backend.

create session -> upload frames -> fetch results runs on a daemon thread so
the camera loop keeps drawing while the backend works.
"""

import logging
import threading
from typing import Optional, Sequence

from core.events import EventBus, Events
from core.types import PoseFrame, SessionResponse
from modules.api.client import ApiError, SessionClient

logger = logging.getLogger(__name__)


class AssessmentSubmitter:
    """Sends recorded frames for scoring and keeps the latest outcome."""

    def __init__(self, client: SessionClient, event_bus: Optional[EventBus] = None):
        self._client = client
        self._bus = event_bus or EventBus()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._processing = False
        self._session_id: Optional[int] = None
        self._results: Optional[SessionResponse] = None
        self._error: Optional[str] = None

    def submit(self, task_type: str, frames: Sequence[PoseFrame], duration: float,
               wait: bool = False) -> bool:
        """Start a submission. Returns False when there is nothing to send
        or a submission is already running."""
        if not frames:
            logger.warning("No pose data to send")
            return False

        with self._lock:
            if self._processing:
                logger.warning("Submission already in progress, ignoring")
                return False
            self._processing = True
            self._error = None
            self._results = None
            self._session_id = None

        frames = list(frames)
        self._bus.emit(Events.SUBMISSION_STARTED, task_type=task_type, frame_count=len(frames))

        if wait:
            self._run(task_type, frames, duration)
        else:
            self._thread = threading.Thread(
                target=self._run, args=(task_type, frames, duration), daemon=True,
            )
            self._thread.start()
        return True

    def _run(self, task_type: str, frames: Sequence[PoseFrame], duration: float):
        try:
            logger.info("Sending %d frames to backend...", len(frames))
            session = self._client.create_session(task_type)
            with self._lock:
                self._session_id = session.id

            self._client.process_pose_data(session.id, frames, duration)
            results = self._client.get_session_results(session.id)
        except ApiError as e:
            logger.error("Backend error: %s", e)
            with self._lock:
                self._error = str(e)
                self._processing = False
            self._bus.emit(Events.BACKEND_ERROR, error=str(e), status_code=e.status_code)
            return

        with self._lock:
            self._results = results
            self._processing = False
        logger.info("Results: risk=%s score=%s", results.risk_level, results.risk_score)
        self._bus.emit(Events.RESULTS_READY, session=results)

    def join(self, timeout: Optional[float] = None):
        """Wait for a running background submission."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def reset(self):
        with self._lock:
            self._session_id = None
            self._results = None
            self._error = None

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    @property
    def session_id(self) -> Optional[int]:
        with self._lock:
            return self._session_id

    @property
    def results(self) -> Optional[SessionResponse]:
        with self._lock:
            return self._results

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error
