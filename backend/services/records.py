"""Normalization of raw store rows into engine records.

Engine records are plain dicts with fixed snake_case keys and naive UTC
datetimes:

- work item: ``id, key, current_status, current_story_points, assignee_id,
  initiative_id, squad_id, current_sprint, status_by_sprint, created_at,
  dev_start_at, dev_close_at, resolved_at``
- change record: ``item_id, field_name, from_value, to_value, changed_at``
- sprint: ``id, name, squad_id, start_date, end_date, complete_date, state``
- membership: ``item_id, sprint_id, status_at_close, story_points_at_close,
  story_points_at_start``
"""

from typing import Optional

from services.dates import parse_date
from services.field_aliases import flatten_properties, resolve_alias

SPRINT_STATES = {"active", "closed", "future"}


def parse_points(value) -> Optional[float]:
    """Coerce a story-point value to float; None when absent or invalid."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _identity(value):
    if value is None:
        return None
    return str(value)


def normalize_work_item(raw: dict) -> dict:
    """Build a work item record from a store row or provider payload."""
    row = flatten_properties(raw)
    status_by_sprint = resolve_alias(row, "status_by_sprint")

    return {
        "id": _identity(resolve_alias(row, "id")),
        "key": resolve_alias(row, "key"),
        "current_status": resolve_alias(row, "current_status"),
        "current_story_points": parse_points(resolve_alias(row, "current_story_points")),
        "assignee_id": _identity(resolve_alias(row, "assignee_id")),
        "initiative_id": _identity(resolve_alias(row, "initiative_id")),
        "squad_id": _identity(resolve_alias(row, "squad_id")),
        "current_sprint": resolve_alias(row, "current_sprint"),
        "status_by_sprint": status_by_sprint if isinstance(status_by_sprint, dict) else {},
        "created_at": parse_date(resolve_alias(row, "created_at")),
        "dev_start_at": parse_date(resolve_alias(row, "dev_start_at")),
        "dev_close_at": parse_date(resolve_alias(row, "dev_close_at")),
        "resolved_at": parse_date(resolve_alias(row, "resolved_at")),
    }


def normalize_change_record(raw: dict) -> dict:
    """Build a change record from an ``issue_history`` row.

    Assignee values are identities and are compared as strings, like
    ``assignee_id`` on work items.
    """
    field_name = raw.get("field_name")
    from_value = raw.get("from_value")
    to_value = raw.get("to_value")
    if field_name == "assignee":
        from_value = _identity(from_value)
        to_value = _identity(to_value)

    return {
        "item_id": _identity(raw.get("issue_id", raw.get("item_id"))),
        "field_name": field_name,
        "from_value": from_value,
        "to_value": to_value,
        "changed_at": parse_date(raw.get("changed_at")),
    }


def normalize_sprint(raw: dict) -> dict:
    """Build a sprint window record from a ``sprints`` row."""
    state = (raw.get("state") or "").strip().lower() or None
    if state not in SPRINT_STATES:
        state = None

    return {
        "id": _identity(raw.get("id")),
        "name": (raw.get("sprint_name") or raw.get("name") or "").strip() or None,
        "squad_id": _identity(raw.get("squad_id")),
        "start_date": parse_date(raw.get("start_date")),
        "end_date": parse_date(raw.get("end_date")),
        "complete_date": parse_date(raw.get("complete_date")),
        "state": state,
    }


def normalize_membership(raw: dict) -> dict:
    """Build a sprint membership record from an ``issue_sprints`` row."""
    return {
        "item_id": _identity(raw.get("issue_id", raw.get("item_id"))),
        "sprint_id": _identity(raw.get("sprint_id")),
        "status_at_close": raw.get("status_at_sprint_close", raw.get("status_at_close")),
        "story_points_at_close": parse_points(raw.get("story_points_at_close")),
        "story_points_at_start": parse_points(raw.get("story_points_at_start")),
    }
