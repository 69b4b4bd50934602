"""
REST client for the assessment scoring backend.

The backend owns sessions, scoring and PDF reports; this client only speaks
its JSON contract:

    POST   /api/sessions/                 create a session
    POST   /api/sessions/{id}/process     upload recorded pose frames
    GET    /api/sessions/{id}/results     scores and risk level
    GET    /api/sessions/                 list sessions
    DELETE /api/sessions/{id}             delete a session
    GET    /api/sessions/{id}/report.pdf  PDF report
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from core.types import PoseFrame, ProcessPoseDataResponse, SessionResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000/api"


class ApiError(RuntimeError):
    """A backend call failed; status_code is None for transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def report_filename(session_id: int) -> str:
    return f"session_{session_id}_report.pdf"


class SessionClient:
    """Thin wrapper over requests.Session for the sessions API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict) -> "SessionClient":
        return cls(
            base_url=config.get("base_url", DEFAULT_BASE_URL),
            timeout=config.get("timeout_sec", 10.0),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def health_url(self) -> str:
        """Server root: the base URL without its path."""
        parts = urlsplit(self._base_url)
        return urlunsplit((parts.scheme, parts.netloc, "/", "", ""))

    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, action: str, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        kwargs.setdefault("timeout", self._timeout)
        try:
            response = self._http.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(f"Failed to {action}: {e}") from e

        if not response.ok:
            logger.error("%s %s -> HTTP %d", method, url, response.status_code)
            raise ApiError(f"Failed to {action}: {response.text}", response.status_code)
        return response

    def create_session(self, task_type: str = "one_leg_stance") -> SessionResponse:
        """Create a new assessment session."""
        response = self._request("POST", "/sessions/", "create session",
                                 json={"task_type": task_type})
        session = SessionResponse.from_dict(response.json())
        logger.info("Session created: %d (%s)", session.id, session.task_type)
        return session

    def process_pose_data(self, session_id: int, frames: Sequence[PoseFrame],
                          duration: float) -> ProcessPoseDataResponse:
        """Upload recorded frames for scoring."""
        payload = {
            "pose_data": [frame.to_dict() for frame in frames],
            "duration": duration,
        }
        response = self._request("POST", f"/sessions/{session_id}/process",
                                 "process pose data", json=payload)
        result = ProcessPoseDataResponse.from_dict(response.json())
        logger.info("Session %d processed: %d frames", session_id, result.frames_processed)
        return result

    def get_session_results(self, session_id: int) -> SessionResponse:
        """Get session results with risk assessment."""
        response = self._request("GET", f"/sessions/{session_id}/results",
                                 "get session results")
        return SessionResponse.from_dict(response.json())

    def list_sessions(self) -> List[SessionResponse]:
        response = self._request("GET", "/sessions/", "get sessions")
        return [SessionResponse.from_dict(item) for item in response.json()]

    def delete_session(self, session_id: int) -> None:
        self._request("DELETE", f"/sessions/{session_id}", "delete session")
        logger.info("Session %d deleted", session_id)

    def report_url(self, session_id: int, regenerate: bool = False) -> str:
        params = "?regenerate=true" if regenerate else ""
        return f"{self._base_url}/sessions/{session_id}/report.pdf{params}"

    def download_report(self, session_id: int, regenerate: bool = False,
                        dest: Optional[Path] = None) -> bytes:
        """Fetch the PDF report; also write it to `dest` when given."""
        response = self._request("GET", self.report_url(session_id, regenerate),
                                 "download report")
        content = response.content
        if dest is not None:
            dest = Path(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(content)
            logger.info("Report for session %d saved to %s", session_id, dest)
        return content

    def check_health(self) -> bool:
        """True when the backend answers on its root URL."""
        try:
            response = self._http.get(self.health_url, timeout=self._timeout)
        except requests.RequestException as e:
            logger.debug("Health check failed: %s", e)
            return False
        return response.ok

    def close(self):
        self._http.close()
