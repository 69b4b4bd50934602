#!/usr/bin/env python3
"""
Virtual Mirror - camera-based physical assessment client
Main application entry point and orchestrator.

Architecture:
    - core.Pipeline handles the capture -> detect -> assess cycle
    - core.EventBus connects the task controller, submitter and overlay
    - A successful hold is scored by the backend in the background

Usage:
    python main.py                              # Live assessment (one-leg stance)
    python main.py --task raise_hand            # Live assessment, hand raise
    python main.py --camera clip.mp4            # Assess a recorded video
    python main.py --mode replay --file pose.json
    python main.py --mode sessions              # List past sessions
    python main.py --mode sessions --report 12  # Download a PDF report
"""

import sys
import os
import time
import signal
import argparse
import logging
from pathlib import Path

import cv2
import numpy as np

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from modules.utils.config import Config
from modules.utils.logger import setup_logging, AssessmentLogger
from modules.utils.performance_monitor import PerformanceMonitor
from modules.capture.camera_manager import CameraManager
from modules.detection.pose_detector import PoseDetector, PoseDetectorConfig
from modules.assessment.rules import build_rule
from modules.assessment.task_controller import TaskController
from modules.assessment.recording import (
    PoseDataError, default_export_name, load_pose_frames, save_pose_frames,
)
from modules.api.client import ApiError, SessionClient, report_filename
from modules.api.submission import AssessmentSubmitter
from modules.control.feedback_manager import FeedbackManager
from modules.sessions.browser import (
    ROWS_PER_PAGE_OPTIONS, filter_sessions, format_table, page_count, paginate, risk_summary,
)
from modules.visualization.dashboard import Dashboard
from modules.visualization.replay import PoseReplay

from core.events import EventBus, Events
from core.pipeline import Pipeline
from core.types import TaskType

logger = logging.getLogger(__name__)


def build_controller(config: Config, task_type: TaskType, event_bus: EventBus) -> TaskController:
    """Task controller for `task_type` with its tasks.yaml settings."""
    params = config.task(task_type.value)
    return TaskController(
        task_type=task_type,
        rule=build_rule(task_type, params),
        duration=params.get("duration_sec", 10),
        grace_frames=params.get("grace_frames", 0),
        event_bus=event_bus,
    )


class VirtualMirror:
    """Live assessment application.

    Delegates per-frame work to core.Pipeline and reacts to task events:
    a successful hold is submitted for scoring, failures are logged.
    """

    def __init__(self, config: Config, task_type: TaskType = TaskType.ONE_LEG_STANCE):
        self._config = config
        self._running = False

        # --- Event Bus ---
        self._bus = EventBus()

        # Capture / detection
        self._camera = CameraManager(config.camera)
        self._detector = PoseDetector(PoseDetectorConfig.from_dict(config.pose))

        # Assessment
        self._controller = build_controller(config, task_type, self._bus)

        # Backend
        self._client = SessionClient.from_config(config.api)
        self._submitter = AssessmentSubmitter(self._client, self._bus)
        self._api_online = None

        # Visualization
        self._dashboard = Dashboard(config.visualization)
        self._feedback = FeedbackManager(config.visualization, event_bus=self._bus)

        # Performance / logging
        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100)
        )
        self._assessment_logger = AssessmentLogger()

        self._pipeline = Pipeline(
            camera=self._camera,
            detector=self._detector,
            controller=self._controller,
            performance_monitor=self._perf,
            event_bus=self._bus,
        )

        self._last_recording = []
        self._failure_reason = None
        self._status_message = None

        # --- Wire Event Callbacks ---
        self._bus.subscribe(Events.TASK_SUCCEEDED, self._on_task_succeeded)
        self._bus.subscribe(Events.TASK_FAILED, self._on_task_failed)
        self._bus.subscribe(Events.RESULTS_READY, self._on_results_ready)
        self._bus.subscribe(Events.BACKEND_ERROR, self._on_backend_error)

        logger.info("VirtualMirror initialized (task=%s)", task_type.value)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_task_succeeded(self, **kwargs):
        frames = kwargs.get("frames", [])
        duration = kwargs.get("duration", self._controller.duration)
        task_type = kwargs.get("task_type", self._controller.task_type.value)
        self._last_recording = frames
        self._assessment_logger.log_attempt(task_type, "success", duration, len(frames))

        if self._config.get("api.auto_submit", True):
            self._submitter.submit(task_type, frames, duration)

    def _on_task_failed(self, **kwargs):
        self._failure_reason = kwargs.get("reason")
        self._assessment_logger.log_attempt(
            kwargs.get("task_type", self._controller.task_type.value), "failed",
            kwargs.get("elapsed"), len(self._controller.recorded_frames),
            self._failure_reason,
        )

    def _on_results_ready(self, **kwargs):
        session = kwargs.get("session")
        if session is not None:
            self._assessment_logger.log_result(session.id, session.risk_level, session.risk_score)
        self._api_online = True

    def _on_backend_error(self, **kwargs):
        # An HTTP status means the server answered
        self._api_online = kwargs.get("status_code") is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Open camera and model, then run the main loop."""
        if not self._camera.open():
            logger.error("Failed to open camera. Check connection and permissions.")
            self._bus.emit(Events.CAMERA_ERROR, source=self._config.get("camera.device_id"))
            return False

        if not self._detector.start():
            logger.error("Failed to load the pose model.")
            self._camera.stop()
            return False

        self._api_online = self._client.check_health()
        if not self._api_online:
            logger.warning("Backend not reachable at %s; results will be unavailable",
                           self._client.base_url)

        self._running = True
        self._bus.emit(Events.SYSTEM_STARTED, task_type=self._controller.task_type.value)
        logger.info("Starting main loop. Press B to begin, Q to quit.")
        self._run_main_loop()
        return True

    def _run_main_loop(self):
        window_name = self._config.get("visualization.window_name", "Virtual Mirror")
        show_window = self._config.get("visualization.enabled", True)
        instruction = self._config.task(self._controller.task_type.value).get("instruction", "")

        while self._running:
            result = self._pipeline.tick()

            if result.frame is None:
                if self._camera.exhausted:
                    logger.info("Video source exhausted")
                    self._running = False
                    break
                time.sleep(0.005)
                continue

            if show_window:
                with self._perf.measure("visualization"):
                    state = self._pipeline.build_state()
                    state.update({
                        "instruction": instruction,
                        "api_online": self._api_online,
                        "processing": self._submitter.is_processing,
                        "results": self._submitter.results,
                        "error": self._submitter.error or self._status_message,
                        "failure_reason": self._failure_reason,
                    })
                    frame = self._dashboard.render(result.frame, state)
                    frame = self._feedback.render(frame)
                    cv2.imshow(window_name, frame)

            key = cv2.waitKey(1) & 0xFF
            self._handle_key(key)

        self._shutdown()

    def _handle_key(self, key: int):
        if key == ord("q"):
            self._running = False
        elif key == ord("b"):
            self._begin()
        elif key == ord("r"):
            self._controller.reset()
            self._failure_reason = None
            self._status_message = None
        elif key == ord("d"):
            self._download_report()
        elif key == ord("e"):
            self._export_recording()
        elif key == ord("p"):
            self._perf.print_report()

    def _begin(self):
        if self._submitter.is_processing:
            logger.warning("Still analyzing the previous attempt")
            return
        if self._controller.status.is_terminal:
            self._controller.reset()
        self._failure_reason = None
        self._status_message = None
        self._submitter.reset()
        self._controller.begin()

    def _download_report(self):
        session_id = self._submitter.session_id
        if session_id is None or self._submitter.results is None:
            logger.warning("No analyzed session to download a report for")
            return
        dest = Path(self._config.get("output.reports_dir", "reports")) / report_filename(session_id)
        try:
            self._client.download_report(session_id, dest=dest)
        except ApiError as e:
            logger.error("Report download failed: %s", e)
            self._status_message = str(e)
            return
        self._feedback.trigger("report_saved")

    def _export_recording(self):
        frames = self._last_recording or self._controller.recorded_frames
        if not frames:
            logger.warning("No pose data recorded yet")
            return
        out_dir = Path(self._config.get("output.exports_dir", "exports"))
        path = out_dir / default_export_name(self._controller.task_type)
        try:
            save_pose_frames(path, frames)
        except OSError as e:
            logger.error("Export failed: %s", e)
            self._status_message = f"Export failed: {e}"
            return
        self._feedback.trigger("exported")

    def _shutdown(self):
        """Clean shutdown of all modules."""
        logger.info("Shutting down...")
        self._running = False
        if self._submitter.is_processing:
            logger.info("Waiting for the backend to finish...")
            self._submitter.join(timeout=self._config.get("api.timeout_sec", 10.0) * 3)
        self._camera.stop()
        self._detector.stop()
        self._client.close()
        cv2.destroyAllWindows()
        self._bus.emit(Events.SYSTEM_SHUTDOWN)

        self._perf.print_report()
        logger.info("Attempts: %d (%d successful)",
                    self._assessment_logger.total_attempts,
                    self._assessment_logger.success_count)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def run_replay(config: Config, path: str) -> int:
    """Play back a recorded pose JSON file in a window."""
    try:
        frames = load_pose_frames(Path(path))
    except (PoseDataError, OSError) as e:
        logger.error("Cannot load %s: %s", path, e)
        return 1

    replay = PoseReplay(frames, min_visibility=config.get("visualization.replay_min_visibility", 0.5))
    width = config.get("visualization.replay_width", 640)
    height = config.get("visualization.replay_height", 480)
    window_name = f"{config.get('visualization.window_name', 'Virtual Mirror')} - Replay"

    logger.info("Replaying %d frames (%.1fs). SPACE play/pause, S speed, R restart, Q quit.",
                replay.frame_count, replay.duration)
    replay.play()
    try:
        while True:
            replay.update()
            canvas = np.zeros((height, width, 3), dtype=np.uint8)
            cv2.imshow(window_name, replay.render(canvas))

            key = cv2.waitKey(15) & 0xFF
            if key == ord("q"):
                break
            elif key == ord(" "):
                replay.toggle()
            elif key == ord("s"):
                replay.cycle_speed()
            elif key == ord("r"):
                replay.restart()
    except KeyboardInterrupt:
        logger.info("Replay interrupted")
    finally:
        cv2.destroyAllWindows()
    return 0


def run_sessions(config: Config, args) -> int:
    """List, delete or download reports for past sessions."""
    client = SessionClient.from_config(config.api)
    try:
        if args.delete is not None:
            client.delete_session(args.delete)
            print(f"Session #{args.delete} deleted")
        elif args.report is not None:
            dest = Path(args.output or report_filename(args.report))
            client.download_report(args.report, regenerate=args.regenerate, dest=dest)
            print(f"Report saved to {dest}")
        else:
            all_sessions = client.list_sessions()
            matched = filter_sessions(all_sessions, args.search, args.risk)
            pages = page_count(len(matched), args.rows)
            page = min(max(args.page, 1), pages)
            print(format_table(paginate(matched, page - 1, args.rows)))
            print(f"Page {page} of {pages} ({len(matched)} matching)")

            # Summary covers every session, not just the filtered view
            summary = risk_summary(all_sessions)
            print(
                f"\nTotal: {summary['total']}  High: {summary['high']}  "
                f"Medium: {summary['medium']}  Normal: {summary['normal']}"
            )
    except ApiError as e:
        logger.error("%s", e)
        return 1
    finally:
        client.close()
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Virtual Mirror - camera-based physical assessment"
    )
    parser.add_argument(
        "--mode", choices=["assess", "replay", "sessions"],
        default="assess", help="Operating mode"
    )
    parser.add_argument(
        "--task", choices=[t.value for t in TaskType],
        default=TaskType.ONE_LEG_STANCE.value, help="Task to assess"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--tasks", type=str, default=None,
        help="Path to tasks.yaml"
    )
    parser.add_argument(
        "--camera", type=str, default=None,
        help="Camera device ID or video file path"
    )
    parser.add_argument(
        "--file", type=str, default=None,
        help="Pose JSON file to replay"
    )
    parser.add_argument(
        "--delete", type=int, default=None,
        help="Session ID to delete (sessions mode)"
    )
    parser.add_argument(
        "--report", type=int, default=None,
        help="Session ID whose PDF report to download (sessions mode)"
    )
    parser.add_argument(
        "--regenerate", action="store_true",
        help="Ask the backend to rebuild the report"
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Where to save the downloaded report"
    )
    parser.add_argument(
        "--search", type=str, default="",
        help="Filter sessions by id or task type"
    )
    parser.add_argument(
        "--risk", choices=["all", "low", "normal", "medium", "high"],
        default="all", help="Filter sessions by risk level"
    )
    parser.add_argument(
        "--page", type=int, default=1,
        help="Page of the session table to show (1-based)"
    )
    parser.add_argument(
        "--rows", type=int, choices=ROWS_PER_PAGE_OPTIONS, default=10,
        help="Rows per page in the session table"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    # Load configuration
    config = Config()
    config.load(config_path=args.config, tasks_path=args.tasks)

    if args.camera is not None:
        config.set("camera.device_id", args.camera)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  VIRTUAL MIRROR - Physical Assessment")
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 60)

    if args.mode == "replay":
        if not args.file:
            logger.error("--file is required in replay mode")
            return 2
        return run_replay(config, args.file)

    if args.mode == "sessions":
        return run_sessions(config, args)

    app = VirtualMirror(config, task_type=TaskType.from_string(args.task))

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    return 0 if app.start() else 1


if __name__ == "__main__":
    sys.exit(main())
