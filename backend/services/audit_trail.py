"""Loading of field-change history for sets of work items."""

from typing import Optional

from services.data_source import DataSource, Window
from services.point_in_time import HistoryIndex, order_history

HISTORY_FIELDS = ("status", "assignee")


class AuditTrailReader:
    """Reads ordered change records for one field across many items.

    Guarantees, whatever the data source returns:
    - every requested item id is present in the result (empty list when
      the item has no matching records);
    - each list is ascending by ``changed_at``.

    Read failures propagate as ``DataSourceUnavailable``; nothing is retried.
    """

    def __init__(self, data_source: DataSource):
        self.data_source = data_source

    def read(self, item_ids: list, field_name: str, window: Optional[Window] = None) -> dict:
        """Map item id -> ordered change records for ``field_name``."""
        if field_name not in HISTORY_FIELDS:
            raise ValueError(f"Unsupported history field: {field_name!r}")

        ids = [str(i) for i in item_ids]
        if not ids:
            return {}

        fetched = self.data_source.fetch_field_history(ids, field_name, window)
        return {item_id: order_history(fetched.get(item_id) or []) for item_id in ids}

    def read_index(self, item_ids: list, field_name: str,
                   window: Optional[Window] = None) -> HistoryIndex:
        """Same as ``read`` wrapped for point-in-time lookups."""
        index = HistoryIndex(field_name, self.read(item_ids, field_name, window))
        index.report_chain_breaks()
        return index
