"""Which work items belong to a sprint.

Closed sprints answer from the membership rows frozen at close; those rows
never change afterwards, so closed-sprint numbers never drift. Active
sprints have nothing frozen yet and are inferred from live data.
"""

import logging
from datetime import datetime
from typing import Optional

from services.data_source import DataSource
from services.dates import utc_now

logger = logging.getLogger(__name__)

CLOSED_SOURCE = "issue_sprints"
ACTIVE_SOURCE = "current_sprint"

FROZEN_FIELDS = ("status_at_close", "story_points_at_close", "story_points_at_start")


def _member(item: dict, membership: Optional[dict], reason: str) -> dict:
    member = dict(item)
    for field in FROZEN_FIELDS:
        member[field] = membership.get(field) if membership else None
    member["membership_reason"] = reason
    return member


def _passes_filters(item: dict, squad_id: Optional[str], initiative_id: Optional[str]) -> bool:
    if squad_id is not None and item.get("squad_id") != str(squad_id):
        return False
    if initiative_id is not None and item.get("initiative_id") != str(initiative_id):
        return False
    return True


class MembershipResolver:
    """Resolves sprint membership through the closed or the active path."""

    def __init__(self, data_source: DataSource):
        self.data_source = data_source

    def resolve(self, sprint: dict, is_closed: bool, squad_id: Optional[str] = None,
                initiative_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        """Resolve the candidate items of a sprint.

        Args:
            sprint: Normalized sprint record.
            is_closed: Outcome of ``classify_sprint``.
            squad_id: Optional squad filter.
            initiative_id: Optional initiative filter.
            now: Current moment; closes the creation window of an active
                sprint without an end date. Defaults to ``utc_now()``.

        Returns:
            Dict with ``items`` (work items enriched with the frozen
            membership fields and a ``membership_reason``) and
            ``dataSource`` naming the path taken.
        """
        if is_closed:
            items = self._closed_members(sprint, squad_id, initiative_id)
            source = CLOSED_SOURCE
        else:
            items = self._active_members(sprint, squad_id, initiative_id, now or utc_now())
            source = ACTIVE_SOURCE

        logger.info(
            f"Sprint {sprint['id']}: {len(items)} member item(s) via {source}"
        )
        return {"items": items, "dataSource": source}

    def _closed_members(self, sprint, squad_id, initiative_id) -> list:
        rows = self.data_source.fetch_sprint_membership(sprint["id"])
        if not rows:
            return []

        item_ids = [row["item_id"] for row in rows]
        items_by_id = {
            item["id"]: item
            for item in self.data_source.fetch_work_items(ids=item_ids)
        }

        members = []
        for row in rows:
            item = items_by_id.get(row["item_id"])
            if item is None:
                logger.warning(
                    f"Sprint {sprint['id']}: membership row for unknown item {row['item_id']}"
                )
                continue
            if _passes_filters(item, squad_id, initiative_id):
                members.append(_member(item, row, "linked"))
        return members

    def _active_members(self, sprint, squad_id, initiative_id, now) -> list:
        members = {}

        linked_rows = self.data_source.fetch_sprint_membership(sprint["id"])
        if linked_rows:
            rows_by_item = {row["item_id"]: row for row in linked_rows}
            for item in self.data_source.fetch_work_items(ids=list(rows_by_item)):
                members[item["id"]] = _member(item, rows_by_item[item["id"]], "linked")

        if sprint.get("name"):
            labelled = self.data_source.fetch_active_items_by_sprint_label(squad_id, sprint["name"])
            for item in labelled:
                if item["id"] not in members:
                    members[item["id"]] = _member(item, None, "sprint_label")

        window_start = sprint["start_date"]
        window_end = sprint.get("end_date") or now
        candidates = self.data_source.fetch_work_items(squad_id=squad_id or sprint.get("squad_id"))
        for item in candidates:
            if item["id"] in members:
                continue
            created_at = item.get("created_at")
            if created_at is not None and window_start <= created_at <= window_end:
                members[item["id"]] = _member(item, None, "created_in_window")

        return [
            item for item in members.values()
            if _passes_filters(item, squad_id, initiative_id)
        ]


def member_story_points(member: dict, is_closed: bool) -> float:
    """Story points of a member item for sprint aggregation.

    Closed sprints use the points frozen at close, or 0 when none were
    recorded. Active sprints use the live value.
    """
    if is_closed:
        return member.get("story_points_at_close") or 0
    return member.get("current_story_points") or 0


def member_status(member: dict, is_closed: bool, sprint_name: Optional[str] = None) -> Optional[str]:
    """Status of a member item for sprint aggregation.

    Closed sprints use the status frozen at close, then the status the
    ingestion recorded for that sprint name, and None when neither exists
    (which normalizes to QA). Live fields are never read for closed
    sprints. Active sprints use the live status.
    """
    if is_closed:
        if member.get("status_at_close"):
            return member["status_at_close"]
        by_sprint = member.get("status_by_sprint") or {}
        return by_sprint.get(sprint_name) if sprint_name else None
    return member.get("current_status")
