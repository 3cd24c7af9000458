"""
Email helpers for roster and dashboard cells.
"""
import re
from typing import Iterable, Optional

import pandas as pd

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def validate_email(email: str) -> bool:
    """
    Validate email address format.

    Args:
        email: Cell value from a roster or dashboard row
    """
    if email is None or (not isinstance(email, str) and pd.isna(email)):
        return False
    if not str(email).strip():
        return False
    return bool(EMAIL_PATTERN.match(str(email).strip()))


def first_valid_email(cell: str) -> Optional[str]:
    """
    Return the first valid address in a cell.

    Roster exports sometimes hold two parent addresses separated by ';' or ','.
    """
    if not cell or (not isinstance(cell, str) and pd.isna(cell)):
        return None
    for part in re.split(r"[;,\s]+", str(cell)):
        if validate_email(part):
            return part.strip()
    return None
