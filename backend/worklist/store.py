"""
Record store interface consumed by the worklist service.

The Google Sheets implementation lives in sheets.google_sheets_manager; any
object with these methods works (tests use an in-memory one).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Hashable, List, Optional, Protocol, Sequence

from worklist.schemas import TableSchema


@dataclass
class StoredRow:
    """A record read from a table plus the identity needed to delete it later."""

    identity: Hashable
    record: Dict[str, Any]


class RecordStore(Protocol):
    def read_table(self, name: str, schema: TableSchema) -> List[StoredRow]:
        """Return the data rows of a table (header excluded), in table order."""
        ...

    def write_table(self, name: str, schema: TableSchema, records: Sequence[Dict[str, Any]]) -> None:
        """Overwrite every data row of a table with records."""
        ...

    def append_rows(self, name: str, schema: TableSchema, records: Sequence[Dict[str, Any]]) -> List[Hashable]:
        """Append records after the last data row; return their identities."""
        ...

    def delete_rows(self, name: str, identities: Sequence[Hashable]) -> None:
        """Delete rows by the identities handed out by read_table/append_rows."""
        ...

    def today(self, timezone: Optional[str] = None) -> date:
        """Today's date in the given zone, or the store's own configured zone."""
        ...

    def invalidate_caches(self) -> None:
        """Forget anything cached from earlier calls; tables may have been edited since."""
        ...
