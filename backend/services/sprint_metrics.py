"""Sprint-level rollups: status histogram, story points, tickets and lead time."""

import logging
from typing import Callable, Optional

from services.data_source import DataSource
from services.dates import elapsed_days, format_date, utc_now
from services.membership import MembershipResolver, member_status, member_story_points
from services.rollup_store import RollupStore
from services.sprint_window import classify_sprint
from services.status_normalizer import (
    HISTOGRAM_KEYS,
    NormalizedStatus,
    empty_histogram,
    normalize_status,
)

logger = logging.getLogger(__name__)


def lead_time_days(item: dict) -> Optional[float]:
    """Days from development start to development close.

    None when either date is missing or the close precedes the start.
    """
    start = item.get("dev_start_at")
    close = item.get("dev_close_at")
    if start is None or close is None:
        return None
    days = elapsed_days(start, close)
    if days < 0:
        return None
    return days


def average(total: float, count: int) -> Optional[float]:
    if count == 0:
        return None
    return total / count


class SprintMetricsAggregator:
    """Computes and persists one rollup per sprint calculation run."""

    def __init__(self, data_source: DataSource, rollup_store: Optional[RollupStore] = None,
                 clock: Callable = utc_now):
        self.data_source = data_source
        self.rollup_store = rollup_store
        self.clock = clock
        self.membership = MembershipResolver(data_source)

    def compute_sprint_metrics(self, sprint_id, persist: bool = True) -> dict:
        """Compute the rollup of one sprint and append it to the history.

        Closed sprints read only frozen membership data, so repeated runs
        give identical numbers apart from ``calculatedAt``.

        Raises:
            SprintNotFound, InvalidSprintWindow, DataSourceUnavailable
        """
        now = self.clock()
        sprint = self.data_source.fetch_sprint_window(sprint_id)
        is_closed = classify_sprint(sprint, now)["isClosed"]
        resolved = self.membership.resolve(sprint, is_closed, now=now)

        histogram = empty_histogram()
        total_sp = 0
        completed_sp = 0
        completed_tickets = 0
        impediments = 0
        lead_time_sum = 0
        lead_time_count = 0
        with_sp = 0
        without_sp = 0

        items = resolved["items"]
        for item in items:
            status = normalize_status(member_status(item, is_closed, sprint.get("name")))
            histogram[HISTOGRAM_KEYS[status]] += 1

            points = member_story_points(item, is_closed)
            total_sp += points
            if points > 0:
                with_sp += 1
            else:
                without_sp += 1

            if status is NormalizedStatus.DONE:
                completed_sp += points
                completed_tickets += 1
            elif status is NormalizedStatus.BLOCKED:
                impediments += 1

            lead_time = lead_time_days(item)
            if lead_time is not None:
                lead_time_sum += lead_time
                lead_time_count += 1

        total_tickets = len(items)
        completion = completed_tickets / total_tickets * 100 if total_tickets else 0

        rollup = {
            "sprintId": sprint["id"],
            "sprintName": sprint.get("name"),
            "calculatedAt": format_date(now),
            "isClosed": is_closed,
            "dataSource": resolved["dataSource"],
            "totalStoryPoints": total_sp,
            "completedStoryPoints": completed_sp,
            "carryoverStoryPoints": total_sp - completed_sp,
            "totalTickets": total_tickets,
            "completedTickets": completed_tickets,
            "pendingTickets": total_tickets - completed_tickets,
            "impediments": impediments,
            "avgLeadTimeDays": average(lead_time_sum, lead_time_count),
            "completionPercentage": completion,
            "ticketsWithStoryPoints": with_sp,
            "ticketsWithoutStoryPoints": without_sp,
        }
        rollup.update(histogram)

        if persist and self.rollup_store is not None:
            self.rollup_store.upsert_sprint_rollup(rollup)
            logger.info(
                f"Sprint {sprint['id']}: stored rollup {rollup['calculatedAt']} "
                f"({completed_sp}/{total_sp} SP, {completed_tickets}/{total_tickets} tickets)"
            )
        return rollup

    def rollup_history(self, sprint_id) -> list:
        """Every stored rollup of a sprint, oldest first."""
        if self.rollup_store is None:
            return []
        return self.rollup_store.sprint_rollup_history(str(sprint_id))
