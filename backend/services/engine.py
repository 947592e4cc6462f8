"""Single entry point wiring the aggregators to one data source and rollup store."""

from typing import Callable, Optional

from services.burndown import BurndownAggregator
from services.closure_audit import audit_sprint_closure
from services.data_source import DataSource
from services.dates import utc_now
from services.developer_metrics import (
    DEFAULT_SPRINT_CAPACITY_SP,
    DeveloperMetricsAggregator,
    total_allocation_by_developer,
)
from services.rollup_store import RollupStore
from services.sprint_metrics import SprintMetricsAggregator


class MetricsEngine:
    def __init__(self, data_source: DataSource, rollup_store: Optional[RollupStore] = None,
                 capacity: float = DEFAULT_SPRINT_CAPACITY_SP, clock: Callable = utc_now):
        self.data_source = data_source
        self.rollup_store = rollup_store
        self.clock = clock
        self.burndown = BurndownAggregator(data_source, clock=clock)
        self.sprint_metrics = SprintMetricsAggregator(data_source, rollup_store, clock=clock)
        self.developer_metrics = DeveloperMetricsAggregator(
            data_source, rollup_store, capacity=capacity, clock=clock
        )

    def compute_burndown(self, sprint_id, developer_id=None, squad_id=None, initiative_id=None) -> dict:
        return self.burndown.compute_burndown(sprint_id, developer_id, squad_id, initiative_id)

    def compute_sprint_metrics(self, sprint_id) -> dict:
        return self.sprint_metrics.compute_sprint_metrics(sprint_id)

    def sprint_metrics_history(self, sprint_id) -> list:
        return self.sprint_metrics.rollup_history(sprint_id)

    def compute_developer_metrics(self, sprint_id) -> list:
        return self.developer_metrics.compute_developer_metrics(sprint_id)

    def compute_allocations(self, sprint_ids: list) -> dict:
        """Allocation records plus the per-developer naive totals."""
        records = self.developer_metrics.compute_allocations(sprint_ids)
        totals = total_allocation_by_developer(records)
        return {
            "records": records,
            "totalsByDeveloper": [
                {"developerId": developer_id, "percentage": percentage}
                for developer_id, percentage in totals.items()
            ],
        }

    def audit_sprint_closure(self, sprint_id) -> dict:
        return audit_sprint_closure(self.data_source, sprint_id, clock=self.clock)

    def sprint_ids_for_squad(self, squad_id=None) -> list:
        return [sprint["id"] for sprint in self.data_source.fetch_sprints(squad_id)]
