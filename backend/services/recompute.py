"""Full recomputation passes over many sprints."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from services.dates import format_date
from services.errors import DataSourceUnavailable, InvalidSprintWindow, SprintNotFound

logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """Allows at most one recompute pass at a time; callers never wait."""

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()


@dataclass
class RecomputeRun:
    """Outcome of one recompute pass."""
    sprint_ids: List[str]
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    processed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "sprintIds": list(self.sprint_ids),
            "startedAt": format_date(self.started_at),
            "finishedAt": format_date(self.finished_at),
            "skipped": self.skipped,
            "processed": list(self.processed),
            "failed": dict(self.failed),
        }


def run_recompute(engine, sprint_ids: list, guard: SingleFlightGuard) -> RecomputeRun:
    """Recompute and store sprint and developer rollups, one sprint at a time.

    A pass started while another is running is skipped, not queued. A
    failing sprint is logged and recorded in the run; the loop then moves
    on to the next sprint. Nothing is rolled back.
    """
    run = RecomputeRun(sprint_ids=[str(s) for s in sprint_ids], started_at=engine.clock())

    if not guard.try_acquire():
        logger.warning("Recompute pass already running; skipping this one")
        run.skipped = True
        run.finished_at = engine.clock()
        return run

    try:
        for sprint_id in run.sprint_ids:
            try:
                engine.compute_sprint_metrics(sprint_id)
                engine.compute_developer_metrics(sprint_id)
            except DataSourceUnavailable as e:
                logger.error(f"Sprint {sprint_id}: data source unavailable: {e}")
                run.failed[sprint_id] = str(e)
                continue
            except (InvalidSprintWindow, SprintNotFound) as e:
                logger.warning(f"Sprint {sprint_id}: skipped: {e}")
                run.failed[sprint_id] = str(e)
                continue
            run.processed.append(sprint_id)
    finally:
        guard.release()

    run.finished_at = engine.clock()
    logger.info(
        f"Recompute pass finished: {len(run.processed)} processed, {len(run.failed)} failed"
    )
    return run
