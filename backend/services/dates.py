"""Timestamp helpers shared by the engine.

All timestamps inside the engine are naive datetimes expressed in UTC.
Store values arrive as ISO strings with or without offsets and are
converted once, at the normalization boundary.
"""

from datetime import datetime, timezone
from typing import Optional

# Store formats: "2024-10-31T12:11:56.289+00:00", "2024-10-31T12:11:56Z",
# "2024-10-31T12:11:56.289-0400", "2024-10-31"
DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Current moment as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value) -> Optional[datetime]:
    """Parse a store timestamp into a naive UTC datetime.

    Accepts datetimes, ISO strings (with "Z" or numeric offsets) and plain
    dates. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+0000"

    for fmt in DATE_FORMATS:
        try:
            return to_naive_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    # Variants such as "2024-01-01T10:00+02:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_date(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as an ISO string for JSON payloads."""
    if value is None:
        return None
    return value.isoformat()


def elapsed_days(start: datetime, end: datetime) -> float:
    """Fractional days between two timestamps (negative if end < start)."""
    return (end - start).total_seconds() / SECONDS_PER_DAY
