"""Status normalization into the fixed six-state taxonomy.

Every provider (Jira boards, Notion databases, spreadsheet imports) names
its workflow states differently. Rollups and burndowns only ever reason
about the six canonical states below.
"""

from enum import Enum
from typing import Optional


class NormalizedStatus(str, Enum):
    """Canonical workflow states."""

    TO_DO = "To Do"
    REOPEN = "Reopen"
    IN_PROGRESS = "In Progress"
    QA = "QA"
    BLOCKED = "Blocked"
    DONE = "Done"


# Histogram order used by every rollup
STATUS_ORDER = [
    NormalizedStatus.TO_DO,
    NormalizedStatus.REOPEN,
    NormalizedStatus.IN_PROGRESS,
    NormalizedStatus.QA,
    NormalizedStatus.BLOCKED,
    NormalizedStatus.DONE,
]

# Rollup column for each bucket
HISTOGRAM_KEYS = {
    NormalizedStatus.TO_DO: "ticketsToDo",
    NormalizedStatus.REOPEN: "ticketsReopen",
    NormalizedStatus.IN_PROGRESS: "ticketsInProgress",
    NormalizedStatus.QA: "ticketsQa",
    NormalizedStatus.BLOCKED: "ticketsBlocked",
    NormalizedStatus.DONE: "ticketsDone",
}

DONE_STATUSES = {"done", "development done", "resolved", "closed", "finished"}
BLOCKED_STATUSES = {"blocked", "impediment"}
IN_PROGRESS_EXACT = {"in development", "doing", "desarrollo"}
QA_MARKERS = ("qa", "test", "review", "staging", "testing", "compliance check")
TO_DO_EXACT = {"to do", "backlog"}

# Unknown or empty input means "needs verification", not "not started".
# Historical rollups were computed with this default; keep it.
DEFAULT_STATUS = NormalizedStatus.QA


def normalize_status(raw_status: Optional[str]) -> NormalizedStatus:
    """Map any provider status text to one of the six canonical states.

    Rules are checked in order; the first match wins. The function is
    total: None, empty and unrecognised strings all map to QA.
    """
    if raw_status is None:
        return DEFAULT_STATUS

    status = str(raw_status).strip().lower()
    if not status:
        return DEFAULT_STATUS

    if status in DONE_STATUSES:
        return NormalizedStatus.DONE
    if status in BLOCKED_STATUSES:
        return NormalizedStatus.BLOCKED
    if "in progress" in status or status in IN_PROGRESS_EXACT:
        return NormalizedStatus.IN_PROGRESS
    if "reopen" in status:
        return NormalizedStatus.REOPEN
    if any(marker in status for marker in QA_MARKERS):
        return NormalizedStatus.QA
    if status in TO_DO_EXACT or "pendiente" in status:
        return NormalizedStatus.TO_DO

    return DEFAULT_STATUS


def is_completed(raw_status: Optional[str]) -> bool:
    """Check if a raw status counts as completed work."""
    return normalize_status(raw_status) is NormalizedStatus.DONE


def empty_histogram() -> dict:
    """Zeroed six-way status histogram keyed by rollup column."""
    return {HISTOGRAM_KEYS[status]: 0 for status in STATUS_ORDER}
