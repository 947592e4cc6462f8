"""Append-only persistence of sprint and developer rollups.

Rollups are keyed by their ``calculatedAt`` timestamp: writing the same key
twice replaces that row, a new timestamp adds a row. Earlier calculation
runs are never touched, so trends across runs stay queryable.
"""

from abc import ABC, abstractmethod
from typing import Optional

from services.postgrest import PostgrestClient

HISTOGRAM_COLUMNS = (
    ("ticketsToDo", "tickets_to_do"),
    ("ticketsReopen", "tickets_reopen"),
    ("ticketsInProgress", "tickets_in_progress"),
    ("ticketsQa", "tickets_qa"),
    ("ticketsBlocked", "tickets_blocked"),
    ("ticketsDone", "tickets_done"),
)

SPRINT_COLUMNS = (
    ("sprintId", "sprint_id"),
    ("calculatedAt", "calculated_at"),
    ("totalStoryPoints", "total_story_points"),
    ("completedStoryPoints", "completed_story_points"),
    ("carryoverStoryPoints", "carryover_story_points"),
    ("totalTickets", "total_tickets"),
    ("completedTickets", "completed_tickets"),
    ("pendingTickets", "pending_tickets"),
    ("impediments", "impediments"),
    ("avgLeadTimeDays", "avg_lead_time_days"),
    ("completionPercentage", "completion_percentage"),
    ("ticketsWithStoryPoints", "tickets_with_sp"),
    ("ticketsWithoutStoryPoints", "tickets_no_sp"),
) + HISTOGRAM_COLUMNS

DEVELOPER_COLUMNS = (
    ("developerId", "developer_id"),
    ("sprintId", "sprint_id"),
    ("calculatedAt", "calculated_at"),
    ("workloadSp", "workload_sp"),
    ("velocitySp", "velocity_sp"),
    ("carryoverSp", "carryover_sp"),
    ("ticketsAssigned", "tickets_assigned"),
    ("ticketsCompleted", "tickets_completed"),
    ("avgLeadTimeDays", "avg_lead_time_days"),
) + HISTOGRAM_COLUMNS


def to_row(rollup: dict, columns: tuple) -> dict:
    return {column: rollup.get(key) for key, column in columns}


def from_row(row: dict, columns: tuple) -> dict:
    return {key: row.get(column) for key, column in columns}


class RollupStore(ABC):
    """Write/query interface for computed rollups."""

    @abstractmethod
    def upsert_sprint_rollup(self, rollup: dict) -> None:
        """Store a sprint rollup under ``(sprintId, calculatedAt)``."""

    @abstractmethod
    def upsert_developer_rollups(self, rollups: list) -> None:
        """Store developer rollups under ``(developerId, sprintId, calculatedAt)``."""

    @abstractmethod
    def sprint_rollup_history(self, sprint_id: str) -> list:
        """Stored rollups of one sprint, oldest first."""

    @abstractmethod
    def developer_rollup_history(self, developer_id: Optional[str],
                                 sprint_id: Optional[str] = None) -> list:
        """Stored rollups of one developer, optionally for one sprint, oldest first."""


class InMemoryRollupStore(RollupStore):
    def __init__(self):
        self.sprint_rollups = {}
        self.developer_rollups = {}

    def upsert_sprint_rollup(self, rollup):
        key = (str(rollup["sprintId"]), rollup["calculatedAt"])
        self.sprint_rollups[key] = dict(rollup)

    def upsert_developer_rollups(self, rollups):
        for rollup in rollups:
            key = (rollup["developerId"], str(rollup["sprintId"]), rollup["calculatedAt"])
            self.developer_rollups[key] = dict(rollup)

    def sprint_rollup_history(self, sprint_id):
        rows = [
            dict(rollup) for (sid, _), rollup in self.sprint_rollups.items()
            if sid == str(sprint_id)
        ]
        return sorted(rows, key=lambda r: r["calculatedAt"])

    def developer_rollup_history(self, developer_id, sprint_id=None):
        rows = [
            dict(rollup) for (did, sid, _), rollup in self.developer_rollups.items()
            if did == developer_id and (sprint_id is None or sid == str(sprint_id))
        ]
        return sorted(rows, key=lambda r: r["calculatedAt"])


class SupabaseRollupStore(RollupStore):
    """Rollups in the ``sprint_metrics`` and ``developer_sprint_metrics`` tables."""

    SPRINT_TABLE = "sprint_metrics"
    DEVELOPER_TABLE = "developer_sprint_metrics"

    def __init__(self, url: str, key: str, timeout: float = 30):
        self.client = PostgrestClient(url, key, timeout=timeout)

    def upsert_sprint_rollup(self, rollup):
        self.client.upsert(
            self.SPRINT_TABLE,
            [to_row(rollup, SPRINT_COLUMNS)],
            on_conflict="sprint_id,calculated_at",
        )

    def upsert_developer_rollups(self, rollups):
        if not rollups:
            return
        self.client.upsert(
            self.DEVELOPER_TABLE,
            [to_row(rollup, DEVELOPER_COLUMNS) for rollup in rollups],
            on_conflict="developer_id,sprint_id,calculated_at",
        )

    def sprint_rollup_history(self, sprint_id):
        rows = self.client.select(self.SPRINT_TABLE, [
            ("select", "*"),
            ("sprint_id", f"eq.{sprint_id}"),
            ("order", "calculated_at.asc"),
        ])
        return [from_row(row, SPRINT_COLUMNS) for row in rows]

    def developer_rollup_history(self, developer_id, sprint_id=None):
        params = [("select", "*"), ("order", "calculated_at.asc")]
        if developer_id is None:
            params.append(("developer_id", "is.null"))
        else:
            params.append(("developer_id", f"eq.{developer_id}"))
        if sprint_id is not None:
            params.append(("sprint_id", f"eq.{sprint_id}"))
        rows = self.client.select(self.DEVELOPER_TABLE, params)
        return [from_row(row, DEVELOPER_COLUMNS) for row in rows]
