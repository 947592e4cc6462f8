"""Minimal PostgREST (Supabase REST) client."""

from typing import Optional
import requests

from services.errors import DataSourceUnavailable

# PostgREST rejects very long URLs; keep ``in.(...)`` filters bounded
MAX_IDS_PER_REQUEST = 200


def in_filter(values) -> str:
    """Build an ``in.(...)`` filter with every value quoted."""
    quoted = ",".join('"{}"'.format(str(v).replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


def chunked(values: list, size: int = MAX_IDS_PER_REQUEST):
    for start in range(0, len(values), size):
        yield values[start:start + size]


class PostgrestClient:
    """Authenticated access to the tables of one Supabase project."""

    def __init__(self, url: str, key: str, timeout: float = 30):
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.key = key
        self.timeout = timeout

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def select(self, table: str, params) -> list:
        """GET rows from a table.

        ``params`` may be a dict or a list of pairs (needed when the same
        column carries two filters, e.g. a time window).
        """
        try:
            response = requests.get(
                f"{self.base_url}/{table}",
                headers=self._headers(),
                params=params,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise DataSourceUnavailable(f"Failed to read {table}: {e}") from e
        except ValueError as e:
            raise DataSourceUnavailable(f"Invalid JSON from {table}: {e}") from e

    def upsert(self, table: str, rows: list, on_conflict: str) -> None:
        """Insert rows, merging any row whose ``on_conflict`` key exists."""
        if not rows:
            return
        try:
            response = requests.post(
                f"{self.base_url}/{table}",
                headers=self._headers({
                    "Content-Type": "application/json",
                    "Prefer": "resolution=merge-duplicates,return=minimal",
                }),
                params={"on_conflict": on_conflict},
                json=rows,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DataSourceUnavailable(f"Failed to write {table}: {e}") from e
