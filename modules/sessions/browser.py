"""
Admin-style listing of past assessment sessions: search, risk filter,
pagination and row formatting for the terminal table.
"""

import math
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from core.types import RiskLevel, SessionResponse

logger = logging.getLogger(__name__)

RISK_FILTER_ALL = "all"
ROWS_PER_PAGE_OPTIONS = (5, 10, 25, 50)

TABLE_COLUMNS = (
    ("ID", 6),
    ("Date", 22),
    ("Task Type", 16),
    ("Stability", 10),
    ("Balance", 10),
    ("Risk Score", 11),
    ("Risk Level", 11),
    ("Status", 11),
)


def filter_sessions(sessions: Sequence[SessionResponse], query: str = "",
                    risk_level: str = RISK_FILTER_ALL) -> List[SessionResponse]:
    """Keep sessions whose id or task type contains `query` (case-insensitive)
    and, unless `risk_level` is 'all', whose risk level matches."""
    query = (query or "").strip().lower()
    risk_level = (risk_level or RISK_FILTER_ALL).strip().lower()

    matched = []
    for session in sessions:
        if query and query not in str(session.id) and query not in session.task_type.lower():
            continue
        if risk_level != RISK_FILTER_ALL and (session.risk_level or "").lower() != risk_level:
            continue
        matched.append(session)
    return matched


def paginate(items: Sequence, page: int, rows_per_page: int = 10) -> list:
    """Zero-based page slice; out-of-range pages are empty."""
    if rows_per_page <= 0:
        raise ValueError("rows_per_page must be positive")
    if page < 0:
        return []
    start = page * rows_per_page
    return list(items[start:start + rows_per_page])


def page_count(total: int, rows_per_page: int = 10) -> int:
    return max(1, math.ceil(total / rows_per_page))


def risk_summary(sessions: Sequence[SessionResponse]) -> dict:
    """Totals for the summary line: all sessions and per risk level."""
    summary = {"total": len(sessions)}
    for level in RiskLevel:
        summary[level.value] = sum(1 for s in sessions if s.risk is level)
    return summary


def format_date(value: Optional[str]) -> str:
    """ISO-8601 timestamp -> 'Oct 19, 2026, 03:45 PM'; unparseable input is returned as-is."""
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%b %d, %Y, %I:%M %p")


def _percent(value: Optional[float]) -> str:
    return f"{value:.1f}%" if value is not None else "-"


def format_session_row(session: SessionResponse) -> List[str]:
    """Cells for one session, in TABLE_COLUMNS order."""
    stability = session.scores.stability_score if session.scores else session.stability_score
    balance = session.scores.balance_score if session.scores else session.balance_score
    return [
        f"#{session.id}",
        format_date(session.created_at),
        session.task_type.replace("_", " ").title(),
        _percent(stability),
        _percent(balance),
        f"{session.risk_score:.0f}" if session.risk_score is not None else "-",
        session.risk.value.upper(),
        session.status,
    ]


def format_table(sessions: Sequence[SessionResponse]) -> str:
    """Fixed-width text table with a header row."""
    header = "".join(name.ljust(width) for name, width in TABLE_COLUMNS)
    lines = [header, "-" * len(header)]
    for session in sessions:
        cells = format_session_row(session)
        lines.append("".join(cell.ljust(width) for cell, (_, width) in zip(cells, TABLE_COLUMNS)))
    if not sessions:
        lines.append("No sessions found")
    return "\n".join(lines)
