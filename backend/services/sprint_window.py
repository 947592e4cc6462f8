"""Sprint window classification: active or closed, and the snapshot moment."""

from datetime import datetime
from typing import Optional

from services.dates import format_date, utc_now
from services.errors import InvalidSprintWindow


def validate_sprint_window(sprint: dict) -> None:
    """Raise ``InvalidSprintWindow`` if the sprint cannot be aggregated."""
    if sprint.get("start_date") is None:
        raise InvalidSprintWindow(
            f"Sprint {sprint.get('name') or sprint.get('id')} does not have a start date"
        )


def classify_sprint(sprint: dict, now: Optional[datetime] = None) -> dict:
    """Decide whether a sprint is closed and when it was frozen.

    Rules, first match wins:
    1. ``complete_date`` set -> closed at ``complete_date``;
    2. state ``closed`` with ``end_date`` -> closed at ``end_date``;
    3. ``end_date`` strictly in the past -> closed at ``end_date``;
    4. otherwise active, no snapshot moment.

    Returns:
        Dict with ``isClosed`` and ``snapshotMoment`` (None when active).
    """
    validate_sprint_window(sprint)
    now = now or utc_now()

    complete_date = sprint.get("complete_date")
    end_date = sprint.get("end_date")

    if complete_date is not None:
        return {"isClosed": True, "snapshotMoment": complete_date}
    if sprint.get("state") == "closed" and end_date is not None:
        return {"isClosed": True, "snapshotMoment": end_date}
    if end_date is not None and end_date < now:
        return {"isClosed": True, "snapshotMoment": end_date}
    return {"isClosed": False, "snapshotMoment": None}


def effective_sprint_end(classification: dict, now: Optional[datetime] = None) -> datetime:
    """Last moment to evaluate: the snapshot moment, never later than now."""
    now = now or utc_now()
    snapshot = classification["snapshotMoment"]
    if snapshot is None:
        return now
    return min(snapshot, now)


def sprint_summary(sprint: dict) -> dict:
    """JSON-ready view of a sprint record."""
    return {
        "id": sprint.get("id"),
        "name": sprint.get("name"),
        "squadId": sprint.get("squad_id"),
        "state": sprint.get("state"),
        "startDate": format_date(sprint.get("start_date")),
        "endDate": format_date(sprint.get("end_date")),
        "completeDate": format_date(sprint.get("complete_date")),
    }
