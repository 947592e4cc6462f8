"""Field alias resolution for heterogeneous provider payloads.

Different sources spell the same semantic field differently: the store
uses ``current_story_points``, Jira exports carry ``customfield_10002``,
Notion databases name a property "Story Points". Each semantic field has
one ordered list of candidate names; the first non-empty candidate wins.
No other module guesses field names.
"""

from typing import Any, Optional

FIELD_ALIASES = {
    "id": ["id", "issue_id", "item_id", "itemId"],
    "key": ["issue_key", "key", "Key", "itemKey"],
    "current_status": ["current_status", "currentStatus", "status", "Status"],
    "current_story_points": [
        "current_story_points",
        "currentStoryPoints",
        "story_points",
        "storyPoints",
        "Story Points",
        "Story point estimate",
        "customfield_10002",
        "customfield_10016",
    ],
    "assignee_id": ["assignee_id", "currentAssigneeId", "assigneeId", "assignee", "Assignee"],
    "initiative_id": ["initiative_id", "initiativeId", "project_id", "Initiative"],
    "squad_id": ["squad_id", "squadId", "Squad"],
    "current_sprint": ["current_sprint", "currentSprint", "sprint", "Sprint"],
    "status_by_sprint": ["status_by_sprint", "statusBySprint"],
    "created_at": ["created_date", "created_at", "createdAt", "created", "Created"],
    "dev_start_at": ["dev_start_date", "dev_start_at", "devStartAt", "Dev Start"],
    "dev_close_at": ["dev_close_date", "dev_close_at", "devCloseAt", "Dev Close"],
    "resolved_at": ["resolved_date", "resolved_at", "resolvedAt", "resolutiondate"],
}


def resolve_alias(payload: dict, field: str) -> Optional[Any]:
    """Return the first non-empty value among the aliases of ``field``."""
    for alias in FIELD_ALIASES[field]:
        value = payload.get(alias)
        if value is None or value == "":
            continue
        return value
    return None


def _plain_text(fragments) -> str:
    return "".join(f.get("plain_text", "") for f in fragments or [])


def _extract_formula(formula: dict) -> Any:
    if not formula:
        return None
    return formula.get(formula.get("type"))


def _extract_date(date_value: Optional[dict]) -> Optional[str]:
    if not date_value:
        return None
    return date_value.get("start")


PROPERTY_EXTRACTORS = {
    "title": lambda prop: _plain_text(prop.get("title")),
    "rich_text": lambda prop: _plain_text(prop.get("rich_text")),
    "number": lambda prop: prop.get("number"),
    "select": lambda prop: (prop.get("select") or {}).get("name"),
    "status": lambda prop: (prop.get("status") or {}).get("name"),
    "checkbox": lambda prop: bool(prop.get("checkbox")),
    "date": lambda prop: _extract_date(prop.get("date")),
    "formula": lambda prop: _extract_formula(prop.get("formula")),
}


def extract_property_value(prop: dict) -> Any:
    """Extract the value of one tagged provider property.

    Raises:
        ValueError: if the ``type`` tag is not one of the known kinds.
    """
    kind = prop.get("type")
    extractor = PROPERTY_EXTRACTORS.get(kind)
    if extractor is None:
        raise ValueError(f"Unsupported property type: {kind!r}")
    return extractor(prop)


def flatten_properties(payload: dict) -> dict:
    """Flatten a provider page (``{"id", "properties": {...}}``) to a plain row.

    Payloads without a ``properties`` mapping are returned unchanged.
    """
    properties = payload.get("properties")
    if not isinstance(properties, dict):
        return payload

    row = {k: v for k, v in payload.items() if k != "properties"}
    for name, prop in properties.items():
        row[name] = extract_property_value(prop)
    return row
