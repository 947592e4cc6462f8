"""Read-only checks on the frozen data of a closed sprint."""

import logging
from typing import Callable

from services.data_source import DataSource
from services.dates import utc_now
from services.sprint_window import classify_sprint

logger = logging.getLogger(__name__)


def audit_sprint_closure(data_source: DataSource, sprint_id, clock: Callable = utc_now) -> dict:
    """Report whether a closed sprint was frozen completely.

    Nothing is written back; fixing what the report finds is the job of the
    ingestion process.

    Returns:
        Dict with ``isValid`` plus ``issues`` (data gaps that degrade
        closed-sprint numbers), ``warnings`` and ``errors``.
    """
    sprint = data_source.fetch_sprint_window(sprint_id)
    name = sprint.get("name") or sprint["id"]
    result = {
        "sprintId": sprint["id"],
        "sprintName": sprint.get("name"),
        "isValid": False,
        "issues": [],
        "warnings": [],
        "errors": [],
    }

    if not classify_sprint(sprint, clock())["isClosed"]:
        result["warnings"].append(f"Sprint {name} is not closed (state: {sprint.get('state')})")
        return result

    if sprint.get("state") == "closed" and sprint.get("end_date") is None:
        result["errors"].append(f"Sprint {name} is closed but has no end date")
        return result

    rows = data_source.fetch_sprint_membership(sprint["id"])
    if not rows:
        result["warnings"].append(f"Sprint {name} has no membership rows")
        result["isValid"] = True
        return result

    without_status = [row for row in rows if not row.get("status_at_close")]
    if without_status:
        ids = [row["item_id"] for row in without_status]
        keys = [item["key"] for item in data_source.fetch_work_items(ids=ids) if item.get("key")]
        result["issues"].append({
            "type": "missing_status_at_close",
            "message": f"{len(without_status)} of {len(rows)} items have no status at close",
            "count": len(without_status),
            "total": len(rows),
            "itemKeys": sorted(keys),
        })

    if sprint.get("complete_date") is None:
        result["issues"].append({
            "type": "missing_complete_date",
            "message": f"Sprint {name} is closed but has no complete date",
        })

    result["isValid"] = not result["errors"]
    logger.info(
        f"Closure audit for sprint {name}: {'valid' if result['isValid'] else 'invalid'}, "
        f"{len(result['issues'])} issue(s), {len(result['warnings'])} warning(s)"
    )
    return result
