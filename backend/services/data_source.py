"""Read-side collaborators: where work items, history and sprints come from.

The engine only talks to a ``DataSource``. Two implementations exist:
an in-memory one (tests, local runs without a store) and a Supabase one
that reads the tables written by the ingestion process.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Optional, Tuple

from services.dates import format_date
from services.errors import SprintNotFound
from services.postgrest import PostgrestClient, chunked, in_filter
from services.records import (
    normalize_change_record,
    normalize_membership,
    normalize_sprint,
    normalize_work_item,
)

Window = Tuple[Optional[datetime], Optional[datetime]]


def _in_window(changed_at: Optional[datetime], window: Optional[Window]) -> bool:
    if window is None:
        return True
    if changed_at is None:
        return False
    start, end = window
    if start is not None and changed_at < start:
        return False
    if end is not None and changed_at > end:
        return False
    return True


class DataSource(ABC):
    """Read interface consumed by the engine.

    All methods return normalized engine records (see ``services.records``).
    Any store failure surfaces as ``DataSourceUnavailable``.
    """

    @abstractmethod
    def fetch_work_items(self, ids: Optional[list] = None, squad_id: Optional[str] = None,
                         assignee_id: Optional[str] = None) -> list:
        """Work items matching every given filter."""

    @abstractmethod
    def fetch_field_history(self, item_ids: list, field_name: str,
                            window: Optional[Window] = None) -> dict:
        """Map item id -> change records for ``field_name``, ascending."""

    @abstractmethod
    def fetch_sprint_window(self, sprint_id: str) -> dict:
        """One sprint. Raises ``SprintNotFound`` if it does not exist."""

    @abstractmethod
    def fetch_sprint_membership(self, sprint_id: str) -> list:
        """Explicit membership rows linking items to the sprint."""

    @abstractmethod
    def fetch_active_items_by_sprint_label(self, squad_id: Optional[str], label: str) -> list:
        """Work items whose live sprint label equals ``label``."""

    @abstractmethod
    def fetch_sprints(self, squad_id: Optional[str] = None) -> list:
        """All sprints (optionally for one squad), most recent start first."""


class InMemoryDataSource(DataSource):
    """Data source over rows held in memory.

    Rows use the same shapes as the store tables and go through the same
    normalization as rows read over HTTP.
    """

    def __init__(self, work_items: Optional[list] = None, history: Optional[list] = None,
                 sprints: Optional[list] = None, memberships: Optional[list] = None):
        self._items = {}
        self._history = []
        self._sprints = {}
        self._memberships = []

        for raw in work_items or []:
            self.add_work_item(raw)
        for raw in history or []:
            self.add_change_record(raw)
        for raw in sprints or []:
            self.add_sprint(raw)
        for raw in memberships or []:
            self.add_membership(raw)

    def add_work_item(self, raw: dict) -> dict:
        item = normalize_work_item(raw)
        self._items[item["id"]] = item
        return item

    def add_change_record(self, raw: dict) -> dict:
        record = normalize_change_record(raw)
        self._history.append(record)
        return record

    def add_sprint(self, raw: dict) -> dict:
        sprint = normalize_sprint(raw)
        self._sprints[sprint["id"]] = sprint
        return sprint

    def add_membership(self, raw: dict) -> dict:
        membership = normalize_membership(raw)
        self._memberships.append(membership)
        return membership

    def fetch_work_items(self, ids=None, squad_id=None, assignee_id=None) -> list:
        wanted = {str(i) for i in ids} if ids is not None else None
        items = []
        for item in self._items.values():
            if wanted is not None and item["id"] not in wanted:
                continue
            if squad_id is not None and item["squad_id"] != str(squad_id):
                continue
            if assignee_id is not None and item["assignee_id"] != str(assignee_id):
                continue
            items.append(dict(item))
        return items

    def fetch_field_history(self, item_ids, field_name, window=None) -> dict:
        result = {str(i): [] for i in item_ids}
        for record in self._history:
            if record["field_name"] != field_name or record["item_id"] not in result:
                continue
            if _in_window(record["changed_at"], window):
                result[record["item_id"]].append(dict(record))
        for records in result.values():
            records.sort(key=lambda r: r["changed_at"] or datetime.min)
        return result

    def fetch_sprint_window(self, sprint_id) -> dict:
        sprint = self._sprints.get(str(sprint_id))
        if sprint is None:
            raise SprintNotFound(f"Sprint not found: {sprint_id}")
        return dict(sprint)

    def fetch_sprint_membership(self, sprint_id) -> list:
        return [dict(m) for m in self._memberships if m["sprint_id"] == str(sprint_id)]

    def fetch_active_items_by_sprint_label(self, squad_id, label) -> list:
        return [
            dict(item) for item in self._items.values()
            if item["current_sprint"] == label
            and (squad_id is None or item["squad_id"] == str(squad_id))
        ]

    def fetch_sprints(self, squad_id=None) -> list:
        sprints = [
            dict(s) for s in self._sprints.values()
            if squad_id is None or s["squad_id"] == str(squad_id)
        ]
        sprints.sort(key=lambda s: s["start_date"] or datetime.min, reverse=True)
        return sprints


class SupabaseDataSource(DataSource):
    """Data source reading the Supabase tables filled by the Jira sync."""

    ISSUE_COLUMNS = (
        "id,issue_key,current_status,current_story_points,assignee_id,initiative_id,"
        "squad_id,current_sprint,status_by_sprint,created_date,dev_start_date,"
        "dev_close_date,resolved_date"
    )
    SPRINT_COLUMNS = "id,sprint_name,squad_id,start_date,end_date,complete_date,state"
    MEMBERSHIP_COLUMNS = (
        "issue_id,sprint_id,status_at_sprint_close,story_points_at_close,story_points_at_start"
    )
    MAX_WORKERS = 4

    def __init__(self, url: str, key: str, timeout: float = 30):
        self.client = PostgrestClient(url, key, timeout=timeout)

    def fetch_work_items(self, ids=None, squad_id=None, assignee_id=None) -> list:
        base = [("select", self.ISSUE_COLUMNS)]
        if squad_id is not None:
            base.append(("squad_id", f"eq.{squad_id}"))
        if assignee_id is not None:
            base.append(("assignee_id", f"eq.{assignee_id}"))

        if ids is None:
            rows = self.client.select("issues", base)
        else:
            rows = []
            for chunk in chunked([str(i) for i in ids]):
                rows.extend(self.client.select("issues", base + [("id", in_filter(chunk))]))

        return [normalize_work_item(row) for row in rows]

    def fetch_field_history(self, item_ids, field_name, window=None) -> dict:
        ids = [str(i) for i in item_ids]
        result = {item_id: [] for item_id in ids}
        if not ids:
            return result

        base = [
            ("select", "issue_id,field_name,from_value,to_value,changed_at"),
            ("field_name", f"eq.{field_name}"),
            ("order", "changed_at.asc"),
        ]
        if window is not None:
            start, end = window
            if start is not None:
                base.append(("changed_at", f"gte.{format_date(start)}"))
            if end is not None:
                base.append(("changed_at", f"lte.{format_date(end)}"))

        def fetch_chunk(chunk):
            return self.client.select("issue_history", base + [("issue_id", in_filter(chunk))])

        # Each item falls in exactly one chunk, so per-item order survives
        with ThreadPoolExecutor(max_workers=self.MAX_WORKERS) as executor:
            futures = [executor.submit(fetch_chunk, chunk) for chunk in chunked(ids)]
            for future in as_completed(futures):
                for row in future.result():
                    record = normalize_change_record(row)
                    result.setdefault(record["item_id"], []).append(record)

        return result

    def fetch_sprint_window(self, sprint_id) -> dict:
        rows = self.client.select("sprints", {
            "select": self.SPRINT_COLUMNS,
            "id": f"eq.{sprint_id}",
        })
        if not rows:
            raise SprintNotFound(f"Sprint not found: {sprint_id}")
        return normalize_sprint(rows[0])

    def fetch_sprint_membership(self, sprint_id) -> list:
        rows = self.client.select("issue_sprints", {
            "select": self.MEMBERSHIP_COLUMNS,
            "sprint_id": f"eq.{sprint_id}",
        })
        return [normalize_membership(row) for row in rows]

    def fetch_active_items_by_sprint_label(self, squad_id, label) -> list:
        params = [
            ("select", self.ISSUE_COLUMNS),
            ("current_sprint", f"eq.{label}"),
        ]
        if squad_id is not None:
            params.append(("squad_id", f"eq.{squad_id}"))
        return [normalize_work_item(row) for row in self.client.select("issues", params)]

    def fetch_sprints(self, squad_id=None) -> list:
        params = [("select", self.SPRINT_COLUMNS), ("order", "start_date.desc")]
        if squad_id is not None:
            params.append(("squad_id", f"eq.{squad_id}"))
        return [normalize_sprint(row) for row in self.client.select("sprints", params)]
