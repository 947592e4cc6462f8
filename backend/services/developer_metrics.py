"""Per-developer sprint rollups and allocation percentages."""

import logging
import math
from typing import Callable, Optional

from services.data_source import DataSource
from services.dates import format_date, utc_now
from services.errors import ConfigError
from services.membership import MembershipResolver, member_status
from services.rollup_store import RollupStore
from services.sprint_metrics import average, lead_time_days
from services.sprint_window import classify_sprint
from services.status_normalizer import (
    HISTOGRAM_KEYS,
    NormalizedStatus,
    empty_histogram,
    normalize_status,
)

logger = logging.getLogger(__name__)

DEFAULT_SPRINT_CAPACITY_SP = 17


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (58.5 -> 59)."""
    return int(math.floor(value + 0.5))


def initial_story_points(item: dict, sprint: dict) -> float:
    """Story points an item carried when the sprint started.

    Uses the value frozen at sprint start when there is one. Items created
    after the sprint started count as 0. Anything older falls back to the
    live story points, which overstates workload for items re-estimated
    since; kept as is so rollups stay comparable with earlier runs.
    """
    if item.get("story_points_at_start") is not None:
        return item["story_points_at_start"]

    created_at = item.get("created_at")
    start_date = sprint.get("start_date")
    if created_at is not None and start_date is not None and created_at > start_date:
        return 0

    return item.get("current_story_points") or 0


def allocation_percentage(story_points: float, capacity: float) -> int:
    return round_half_up(story_points / capacity * 100)


def total_allocation_by_developer(records: list) -> dict:
    """Sum allocation percentages per developer across records.

    Records for different squads or initiatives are added up as they are,
    without normalization, so a developer split across squads can exceed
    100%.
    """
    totals = {}
    for record in records:
        developer_id = record["developerId"]
        totals[developer_id] = totals.get(developer_id, 0) + record["percentage"]
    return totals


class DeveloperMetricsAggregator:
    """Groups a sprint's members by assignee and rolls each group up."""

    def __init__(self, data_source: DataSource, rollup_store: Optional[RollupStore] = None,
                 capacity: float = DEFAULT_SPRINT_CAPACITY_SP, clock: Callable = utc_now):
        if not capacity or capacity <= 0:
            raise ConfigError(f"Sprint capacity must be positive, got {capacity!r}")
        self.data_source = data_source
        self.rollup_store = rollup_store
        self.capacity = capacity
        self.clock = clock
        self.membership = MembershipResolver(data_source)

    def _resolve(self, sprint_id, now):
        sprint = self.data_source.fetch_sprint_window(sprint_id)
        is_closed = classify_sprint(sprint, now)["isClosed"]
        resolved = self.membership.resolve(sprint, is_closed, now=now)
        return sprint, is_closed, resolved["items"]

    def compute_developer_metrics(self, sprint_id, persist: bool = True) -> list:
        """Compute one rollup per developer (None for unassigned items).

        Raises:
            SprintNotFound, InvalidSprintWindow, DataSourceUnavailable
        """
        now = self.clock()
        sprint, is_closed, items = self._resolve(sprint_id, now)

        groups = {}
        for item in items:
            developer_id = item.get("assignee_id")
            group = groups.get(developer_id)
            if group is None:
                group = groups[developer_id] = {
                    "histogram": empty_histogram(),
                    "workload": 0,
                    "velocity": 0,
                    "assigned": 0,
                    "completed": 0,
                    "lead_time_sum": 0,
                    "lead_time_count": 0,
                }

            status = normalize_status(member_status(item, is_closed, sprint.get("name")))
            group["histogram"][HISTOGRAM_KEYS[status]] += 1
            group["assigned"] += 1
            group["workload"] += initial_story_points(item, sprint)

            if status is NormalizedStatus.DONE:
                group["velocity"] += item.get("current_story_points") or 0
                group["completed"] += 1
                lead_time = lead_time_days(item)
                if lead_time is not None:
                    group["lead_time_sum"] += lead_time
                    group["lead_time_count"] += 1

        calculated_at = format_date(now)
        rollups = []
        for developer_id, group in groups.items():
            rollup = {
                "developerId": developer_id,
                "sprintId": sprint["id"],
                "calculatedAt": calculated_at,
                "workloadSp": group["workload"],
                "velocitySp": group["velocity"],
                "carryoverSp": group["workload"] - group["velocity"],
                "ticketsAssigned": group["assigned"],
                "ticketsCompleted": group["completed"],
                "avgLeadTimeDays": average(group["lead_time_sum"], group["lead_time_count"]),
                "allocationPercentage": allocation_percentage(group["workload"], self.capacity),
            }
            rollup.update(group["histogram"])
            rollups.append(rollup)

        if persist and self.rollup_store is not None:
            self.rollup_store.upsert_developer_rollups(rollups)
            logger.info(f"Sprint {sprint['id']}: stored {len(rollups)} developer rollup(s)")
        return rollups

    def compute_allocations(self, sprint_ids: list) -> list:
        """Allocation records per (squad, initiative, developer) over several sprints.

        Each record is computed against the full sprint capacity on its own;
        nothing is normalized across squads or initiatives.
        """
        now = self.clock()
        totals = {}
        for sprint_id in sprint_ids:
            sprint, _, items = self._resolve(sprint_id, now)
            for item in items:
                key = (
                    item.get("squad_id") or sprint.get("squad_id"),
                    item.get("initiative_id"),
                    item.get("assignee_id"),
                )
                totals[key] = totals.get(key, 0) + initial_story_points(item, sprint)

        return [
            {
                "squadId": squad_id,
                "initiativeId": initiative_id,
                "developerId": developer_id,
                "totalStoryPoints": story_points,
                "percentage": allocation_percentage(story_points, self.capacity),
            }
            for (squad_id, initiative_id, developer_id), story_points in totals.items()
        ]

    def rollup_history(self, developer_id, sprint_id=None) -> list:
        if self.rollup_store is None:
            return []
        return self.rollup_store.developer_rollup_history(developer_id, sprint_id)
