"""
Logging setup plus an in-memory log of assessment outcomes.
"""

import os
import time
import logging
import logging.handlers


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class AssessmentLogger:
    """Keeps a history of task attempts and backend results for the session."""

    def __init__(self):
        self.logger = logging.getLogger("assessment_events")
        self._history = []

    def log_attempt(self, task_type, outcome, elapsed=None, frames=0, reason=None):
        """Log a finished attempt (success or failed)."""
        entry = {
            "timestamp": time.time(),
            "task_type": task_type,
            "outcome": outcome,
            "elapsed": elapsed,
            "frames": frames,
            "reason": reason,
        }
        self._history.append(entry)
        self.logger.info(
            "Task: %-15s | Outcome: %-7s | Held: %s | Frames: %d%s",
            task_type,
            outcome,
            f"{elapsed:.1f}s" if elapsed is not None else "N/A",
            frames,
            f" | Reason: {reason}" if reason else "",
        )

    def log_result(self, session_id, risk_level, risk_score):
        """Log the backend risk assessment for a session."""
        self.logger.info(
            "Session: %-5s | Risk level: %-8s | Risk score: %s",
            session_id,
            risk_level or "unknown",
            f"{risk_score:.0f}" if risk_score is not None else "N/A",
        )

    def get_history(self, last_n=None):
        if last_n:
            return self._history[-last_n:]
        return self._history.copy()

    @property
    def success_count(self):
        return sum(1 for e in self._history if e["outcome"] == "success")

    @property
    def total_attempts(self):
        return len(self._history)
