"""
Date coercion for log cells.

Log dates come back from Sheets as serial numbers (unformatted reads), as
display strings when a tab was filled by hand, or as date objects from other
stores. Everything is bucketed to a calendar day.
"""
from datetime import date, datetime, timedelta
from typing import Any, Optional

# Day zero of the Sheets/Excel serial date system
SHEETS_EPOCH = date(1899, 12, 30)

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d-%b-%Y", "%b %d, %Y")


def coerce_date(value: Any) -> Optional[date]:
    """Return the calendar day for a cell value, or None when it is not a date."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if value != value or value <= 0:
            return None
        return SHEETS_EPOCH + timedelta(days=int(value))

    text = str(value).strip()
    if not text:
        return None
    candidates = [text]
    # Datetime strings: fall back to the day part only
    day_part = text.replace("T", " ").split(" ")[0]
    if day_part != text:
        candidates.append(day_part)
    for candidate in candidates:
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
    return None
