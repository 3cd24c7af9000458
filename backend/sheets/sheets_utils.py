"""
Public facade for Google Sheets helper utilities.

This module re-exports functions from smaller, focused modules so callers
import cell and DataFrame helpers from one place.
"""

from sheets.sheets_dataframe import dataframe_to_rows, normalize_dataframe
from sheets.sheets_email import first_valid_email, validate_email

__all__ = [
    "dataframe_to_rows",
    "first_valid_email",
    "normalize_dataframe",
    "validate_email",
]
