"""
Hold-timer state machine for a single gesture-hold task.

Lifecycle:
    idle --begin()--> ready --pose detected--> detecting
    detecting --held for `duration`--> success
    detecting --pose lost--> failed
    any --reset()--> idle

While detecting, every frame with a pose is recorded as a PoseFrame with a
timestamp relative to the moment the pose was first detected.
"""

import math
import time
import logging
from typing import List, Optional, Sequence

from core.events import EventBus, Events
from core.types import Landmark, PoseFrame, RuleResult, TaskStatus, TaskType

logger = logging.getLogger(__name__)


class TaskController:
    """Drives one task through idle/ready/detecting/success/failed."""

    def __init__(self, task_type: TaskType, rule, duration: float = 10.0,
                 grace_frames: int = 0, event_bus: Optional[EventBus] = None):
        if duration <= 0:
            raise ValueError("duration must be positive")
        if grace_frames < 0:
            raise ValueError("grace_frames must be non-negative")

        self._task_type = task_type
        self._rule = rule
        self._duration = float(duration)
        self._grace_frames = grace_frames
        self._bus = event_bus or EventBus()

        self._status = TaskStatus.IDLE
        self._start_time: Optional[float] = None
        self._elapsed = 0.0
        self._frames: List[PoseFrame] = []
        self._miss_count = 0
        self._last_result: Optional[RuleResult] = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin(self) -> bool:
        """Arm the task: wait for the user to take the pose."""
        if self._status is not TaskStatus.IDLE:
            logger.warning("Cannot begin %s task from status '%s'",
                           self._task_type.value, self._status.value)
            return False
        self._clear()
        self._set_status(TaskStatus.READY)
        return True

    def reset(self):
        """Return to idle from any state (Try Again / Cancel)."""
        self._clear()
        if self._status is not TaskStatus.IDLE:
            self._set_status(TaskStatus.IDLE)

    def update(self, landmarks: Optional[Sequence[Landmark]],
               now: Optional[float] = None) -> TaskStatus:
        """Feed one processed frame. `landmarks` is None when no pose was found."""
        now = time.monotonic() if now is None else now

        if self._status is TaskStatus.READY:
            result = self._rule.evaluate(landmarks)
            self._last_result = result
            if result.passed:
                self._start(now)
            return self._status

        if self._status is not TaskStatus.DETECTING:
            if landmarks is not None:
                self._last_result = self._rule.evaluate(landmarks)
            return self._status

        if self._check_timer(now):
            return self._status

        if landmarks is not None:
            self._record(landmarks, now)

        result = self._rule.evaluate(landmarks)
        self._last_result = result
        if result.passed:
            self._miss_count = 0
        else:
            self._miss_count += 1
            if self._miss_count > self._grace_frames:
                self._fail(result.reason or "pose_lost")

        return self._status

    def tick(self, now: Optional[float] = None) -> TaskStatus:
        """Advance the countdown without a frame."""
        now = time.monotonic() if now is None else now
        if self._status is TaskStatus.DETECTING:
            self._check_timer(now)
        return self._status

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, now: float):
        self._start_time = now
        self._elapsed = 0.0
        self._frames = []
        self._miss_count = 0
        logger.info("%s pose detected, starting %.0fs timer",
                    self._task_type.label, self._duration)
        self._set_status(TaskStatus.DETECTING)
        self._bus.emit(Events.TASK_STARTED, task_type=self._task_type.value,
                       duration=self._duration)

    def _check_timer(self, now: float) -> bool:
        """Update elapsed time; complete the task when the hold is long enough."""
        self._elapsed = max(0.0, now - self._start_time)
        if self._elapsed < self._duration:
            return False

        self._elapsed = self._duration
        logger.info("%s completed: %d frames recorded",
                    self._task_type.label, len(self._frames))
        self._set_status(TaskStatus.SUCCESS)
        self._bus.emit(Events.TASK_SUCCEEDED, task_type=self._task_type.value,
                       frames=list(self._frames), duration=self._duration)
        return True

    def _record(self, landmarks: Sequence[Landmark], now: float):
        self._frames.append(PoseFrame(
            frame_number=len(self._frames),
            timestamp=now - self._start_time,
            landmarks=list(landmarks),
        ))

    def _fail(self, reason: str):
        logger.info("%s failed after %.1fs (%s)",
                    self._task_type.label, self._elapsed, reason)
        self._set_status(TaskStatus.FAILED)
        self._bus.emit(Events.TASK_FAILED, task_type=self._task_type.value,
                       reason=reason, elapsed=self._elapsed)

    def _clear(self):
        self._start_time = None
        self._elapsed = 0.0
        self._frames = []
        self._miss_count = 0
        self._last_result = None

    def _set_status(self, status: TaskStatus):
        old = self._status
        self._status = status
        logger.debug("Task status: %s -> %s", old.value, status.value)
        self._bus.emit(Events.TASK_STATUS_CHANGED, task_type=self._task_type.value,
                       old=old.value, new=status.value)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def task_type(self) -> TaskType:
        return self._task_type

    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def time_remaining(self) -> int:
        """Whole seconds left on the countdown, rounded up."""
        return max(0, math.ceil(self._duration - self._elapsed))

    @property
    def progress(self) -> float:
        return min(1.0, self._elapsed / self._duration)

    @property
    def recorded_frames(self) -> List[PoseFrame]:
        return list(self._frames)

    @property
    def last_result(self) -> Optional[RuleResult]:
        return self._last_result
