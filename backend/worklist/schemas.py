"""
Named-field table schemas.

The reconciler only ever sees the canonical field names below. Mapping a
field to a physical column (by header text and aliases) is the store's job.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple


def normalize_header(text) -> str:
    """Lowercase and drop everything except letters, digits and '#'."""
    return re.sub(r"[^a-z0-9#]+", "", str(text or "").strip().lower())


@dataclass(frozen=True)
class Field:
    name: str
    header: str
    aliases: Tuple[str, ...] = ()
    required: bool = False
    # Also match any header containing this fragment (e.g. "Trigger # (Math)")
    contains: Optional[str] = None

    def matches_exactly(self, header_text) -> bool:
        norm = normalize_header(header_text)
        if not norm:
            return False
        return norm == normalize_header(self.header) or any(
            norm == normalize_header(alias) for alias in self.aliases
        )

    def matches_loosely(self, header_text) -> bool:
        norm = normalize_header(header_text)
        return bool(norm) and bool(self.contains) and normalize_header(self.contains) in norm


@dataclass(frozen=True)
class TableSchema:
    kind: str
    fields: Tuple[Field, ...]

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    @property
    def headers(self) -> Tuple[str, ...]:
        return tuple(f.header for f in self.fields)

    def resolve_columns(self, header_row: Sequence) -> dict:
        """
        Map field name -> 0-based column index for a header row.

        Exact header/alias matches win over "contains" matches, and the first
        matching column wins; fields with no column are absent from the result.
        """
        columns = {}
        for f in self.fields:
            fuzzy = None
            for idx, text in enumerate(header_row):
                if idx in columns.values():
                    continue
                if f.matches_exactly(text):
                    columns[f.name] = idx
                    break
                if fuzzy is None and f.matches_loosely(text):
                    fuzzy = idx
            else:
                if fuzzy is not None:
                    columns[f.name] = fuzzy
        return columns

    def missing(self, columns: dict) -> Tuple[str, ...]:
        return tuple(name for name in self.required if name not in columns)


LOGIN_ID = Field("loginId", "LoginID", ("Login ID", "Student ID", "StudentID"), required=True)
NAME = Field("name", "Name", ("Student Name", "Full Name", "FullName"))
EMAIL = Field("email", "Email", ("Email Address", "E-mail", "Student Email", "Parent Email"))
TRIGGER = Field("triggerNumber", "Trigger #", ("Trigger", "Trigger Number", "Trigger No"), contains="trigger")
DATE = Field("date", "Date", ("Logged", "Logged On", "Date Logged"), required=True)

DASHBOARD = TableSchema("dashboard", (
    LOGIN_ID,
    NAME,
    EMAIL,
    replace(TRIGGER, required=True),
    Field("actionFlag", "Action", ("Action Flag", "Next Action", "Flag"), required=True),
))

QUEUE = TableSchema("queue", (
    LOGIN_ID,
    NAME,
    EMAIL,
    replace(TRIGGER, required=True),
    Field("status", "Status", required=True),
    Field("note", "Notes", ("Note",)),
))

SENT_LOG = TableSchema("sent_log", (
    LOGIN_ID,
    NAME,
    TRIGGER,
    DATE,
))

ISSUE_LOG = TableSchema("issue_log", (
    Field("subject", "Subject", required=True),
    LOGIN_ID,
    NAME,
    TRIGGER,
    Field("note", "Note", ("Notes",)),
    DATE,
    Field("tag", "Tag", ("Issue Tag",)),
))

ROSTER = TableSchema("roster", (
    LOGIN_ID,
    replace(EMAIL, required=True),
))
