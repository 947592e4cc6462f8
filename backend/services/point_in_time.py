"""Point-in-time resolution of field values from a sparse change log.

Every "what was the value of field X at moment t" question in the engine
goes through ``resolve``. Aggregators must not re-implement the
history-or-current fallback themselves.
"""

import logging
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


def order_history(records: list) -> list:
    """Sort change records ascending by ``changed_at``.

    The sort is stable: records sharing a timestamp keep the order in which
    the store returned them, so the later-listed record wins at that
    instant. Records without a timestamp cannot be placed in time and are
    dropped.
    """
    dated = [r for r in records if r.get("changed_at") is not None]
    if len(dated) != len(records):
        logger.warning(
            f"Dropped {len(records) - len(dated)} change record(s) without changed_at"
        )
    return sorted(dated, key=lambda r: r["changed_at"])


def resolve(history: Optional[list], fallback: Any, at: datetime) -> Any:
    """Return the effective value of a field at moment ``at``.

    Args:
        history: Change records for one item and one field, ascending by
            ``changed_at`` (see ``order_history``). May be empty or None.
        fallback: The item's current live value for the field.
        at: Target timestamp (naive UTC).

    Returns:
        - ``fallback`` when there is no history at all;
        - ``to_value`` of the last record with ``changed_at <= at``;
        - ``from_value`` of the first record when ``at`` precedes it.
        A None picked from the log also resolves to ``fallback``, so the
        result is defined whenever the fallback is.
    """
    if not history:
        return fallback

    value = None
    matched = False
    for record in history:
        if record["changed_at"] <= at:
            value = record.get("to_value")
            matched = True
        else:
            break

    if not matched:
        value = history[0].get("from_value")

    return fallback if value is None else value


def find_chain_breaks(history: list) -> list:
    """Indices where a record does not continue its predecessor.

    A record ``n`` chains when ``history[n - 1].to_value == history[n].from_value``.
    Breaks are only reported; ``resolve`` still answers from whichever
    record is in effect at the requested moment.
    """
    breaks = []
    for index in range(1, len(history)):
        if history[index - 1].get("to_value") != history[index].get("from_value"):
            breaks.append(index)
    return breaks


class HistoryIndex:
    """Ordered change history for many items, one field.

    Wraps the mapping returned by the audit trail reader so aggregators can
    ask for a value at a moment without touching the records directly.
    """

    def __init__(self, field_name: str, histories: dict):
        self.field_name = field_name
        self._histories = {
            item_id: order_history(records or [])
            for item_id, records in histories.items()
        }

    def __contains__(self, item_id) -> bool:
        return bool(self._histories.get(item_id))

    def has_any(self) -> bool:
        """True if at least one item has a recorded change."""
        return any(self._histories.values())

    def value_at(self, item_id, fallback: Any, at: datetime) -> Any:
        """Resolve the field for one item at one moment."""
        return resolve(self._histories.get(item_id), fallback, at)

    def report_chain_breaks(self) -> dict:
        """Map item id -> break indices, logging each offending item."""
        broken = {}
        for item_id, records in self._histories.items():
            breaks = find_chain_breaks(records)
            if breaks:
                broken[item_id] = breaks
                logger.warning(
                    f"{self.field_name} history for item {item_id} does not chain "
                    f"at record(s) {breaks}; resolving as recorded"
                )
        return broken
