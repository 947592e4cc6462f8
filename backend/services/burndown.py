"""Per-day burndown reconstruction for a sprint.

For every calendar day of the sprint window the aggregator asks two
questions per candidate item: who was it assigned to at that moment, and
what was its status at that moment. Both are answered from the change log
through ``point_in_time.resolve``.
"""

import logging
from datetime import timedelta
from typing import Callable, Optional

from services.audit_trail import AuditTrailReader
from services.data_source import DataSource
from services.dates import utc_now
from services.membership import MembershipResolver, member_status, member_story_points
from services.sprint_window import classify_sprint, effective_sprint_end, sprint_summary
from services.status_normalizer import is_completed

logger = logging.getLogger(__name__)


class BurndownAggregator:
    """Builds planned/completed/remaining series for a developer or a squad."""

    def __init__(self, data_source: DataSource, clock: Callable = utc_now):
        self.data_source = data_source
        self.clock = clock
        self.membership = MembershipResolver(data_source)
        self.audit_trail = AuditTrailReader(data_source)

    def compute_burndown(self, sprint_id, developer_id: Optional[str] = None,
                         squad_id: Optional[str] = None,
                         initiative_id: Optional[str] = None) -> dict:
        """Compute the burndown of one sprint.

        Args:
            sprint_id: Sprint to reconstruct.
            developer_id: Only count items assigned to this developer on each
                day. None counts every candidate item (squad burndown).
            squad_id: Optional squad filter on candidate items.
            initiative_id: Optional initiative filter on candidate items.

        Returns:
            Dict with ``days`` (one row per calendar day), ``totalPlanned``,
            ``totalCompleted``, ``totalTickets`` and ``dataSource``.

        Raises:
            SprintNotFound, InvalidSprintWindow, DataSourceUnavailable
        """
        now = self.clock()
        sprint = self.data_source.fetch_sprint_window(sprint_id)
        classification = classify_sprint(sprint, now)
        is_closed = classification["isClosed"]
        sprint_start = sprint["start_date"]
        sprint_end = effective_sprint_end(classification, now)

        resolved = self.membership.resolve(sprint, is_closed, squad_id, initiative_id, now=now)
        items = resolved["items"]

        result = {
            "sprint": sprint_summary(sprint),
            "developerId": developer_id,
            "isClosed": is_closed,
            "days": [],
            "totalPlanned": 0,
            "totalCompleted": 0,
            "totalTickets": 0,
            "dataSource": resolved["dataSource"],
        }
        if not items:
            return result

        item_ids = [item["id"] for item in items]
        status_history = self.audit_trail.read_index(
            item_ids, "status", window=(sprint_start, sprint_end)
        )
        assignee_history = self.audit_trail.read_index(item_ids, "assignee")

        if developer_id is not None and not assignee_history.has_any():
            logger.warning(
                f"Sprint {sprint_id}: no assignee history; attributing items to their current assignee"
            )

        days = []
        moment = sprint_start
        while moment <= sprint_end:
            days.append(self._day_row(
                moment, items, developer_id, is_closed, sprint.get("name"),
                status_history, assignee_history
            ))
            moment += timedelta(days=1)

        result["days"] = days
        if days:
            result["totalPlanned"] = days[0]["planned"]
            result["totalCompleted"] = days[-1]["completed"]
            result["totalTickets"] = days[-1]["totalTickets"]
        return result

    def _day_row(self, moment, items, developer_id, is_closed, sprint_name,
                 status_history, assignee_history) -> dict:
        planned = 0
        completed = 0
        completed_tickets = 0
        total_tickets = 0

        for item in items:
            if developer_id is not None:
                assignee = assignee_history.value_at(item["id"], item.get("assignee_id"), moment)
                if assignee is None or str(assignee) != str(developer_id):
                    continue

            total_tickets += 1
            points = member_story_points(item, is_closed)
            planned += points

            fallback_status = member_status(item, is_closed, sprint_name)
            status = status_history.value_at(item["id"], fallback_status, moment)
            if is_completed(status):
                completed += points
                completed_tickets += 1

        return {
            "date": moment.date().isoformat(),
            "planned": planned,
            "completed": completed,
            "remaining": planned - completed,
            "completedTickets": completed_tickets,
            "totalTickets": total_tickets,
        }
