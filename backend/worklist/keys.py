"""
Composite key helpers for work-queue rows.

Sheets hand back trigger numbers as ints, floats or strings depending on
where the value came from, so every comparison goes through
normalize_key_part().
"""
from typing import Any, Tuple

RowKey = Tuple[str, str]


def normalize_key_part(value: Any) -> str:
    """Render a key component as a trimmed string; None becomes ''."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if value != value:  # NaN
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value).strip()


def row_key(login_id: Any, trigger_number: Any) -> RowKey:
    return normalize_key_part(login_id), normalize_key_part(trigger_number)
