"""
Record types for the contact worklist.

Records travel to and from the store as plain dicts keyed by the field names
declared in worklist.schemas; from_record()/to_record() convert between the
two.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from worklist.dates import coerce_date
from worklist.keys import RowKey, normalize_key_part, row_key


class Status(str, Enum):
    NOT_SENT = "Not Sent"
    ISSUE = "Issue"
    SENT = "Sent"
    ISSUE_ARCHIVE = "Issue Archive"

    @classmethod
    def parse(cls, value: Any) -> Optional["Status"]:
        """
        Parse an operator-entered status cell.

        Returns None for a blank cell. Raises ValueError for text that is not
        a known status.
        """
        text = normalize_key_part(value)
        if not text:
            return None
        compact = "".join(text.lower().split())
        if compact not in _STATUS_ALIASES:
            raise ValueError(f"Unknown status {text!r}")
        return _STATUS_ALIASES[compact]


_STATUS_ALIASES = {
    "notsent": Status.NOT_SENT,
    "issue": Status.ISSUE,
    "sent": Status.SENT,
    "issuearchive": Status.ISSUE_ARCHIVE,
    "archive": Status.ISSUE_ARCHIVE,
    "archived": Status.ISSUE_ARCHIVE,
}


class Tag(str, Enum):
    ISSUE = "Issue"
    ISSUE_ARCHIVE = "Issue Archive"

    @classmethod
    def parse(cls, value: Any) -> "Tag":
        """Blank or unrecognized tags read as Issue; only archive spellings archive."""
        compact = "".join(normalize_key_part(value).lower().split())
        if compact in ("issuearchive", "archive", "archived"):
            return cls.ISSUE_ARCHIVE
        return cls.ISSUE


def _text(record: Dict[str, Any], name: str) -> str:
    value = record.get(name)
    if value is None:
        return ""
    return str(value).strip() if isinstance(value, str) else str(value)


def _raw(record: Dict[str, Any], name: str) -> Any:
    value = record.get(name)
    return "" if value is None else value


@dataclass
class WorkRow:
    """One pending-contact entry in a subject's work queue."""

    login_id: str
    name: str = ""
    email: str = ""
    trigger_number: Any = ""
    status: str = Status.NOT_SENT.value
    note: str = ""

    @property
    def key(self) -> RowKey:
        return row_key(self.login_id, self.trigger_number)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "WorkRow":
        # Status is kept as entered; Move decides what it means.
        return cls(
            login_id=normalize_key_part(record.get("loginId")),
            name=_text(record, "name"),
            email=_text(record, "email"),
            trigger_number=_raw(record, "triggerNumber"),
            status=_text(record, "status"),
            note=_text(record, "note"),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "loginId": self.login_id,
            "name": self.name,
            "email": self.email,
            "triggerNumber": self.trigger_number,
            "status": self.status,
            "note": self.note,
        }


@dataclass
class SourceRow:
    """A dashboard row; action_flag == SEND EMAIL marks it eligible."""

    login_id: str
    name: str = ""
    email: str = ""
    trigger_number: Any = ""
    action_flag: str = ""

    @property
    def key(self) -> RowKey:
        return row_key(self.login_id, self.trigger_number)

    def is_eligible(self, send_email_flag: str = "SEND EMAIL") -> bool:
        return self.action_flag.strip().lower() == send_email_flag.strip().lower()

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SourceRow":
        return cls(
            login_id=normalize_key_part(record.get("loginId")),
            name=_text(record, "name"),
            email=_text(record, "email"),
            trigger_number=_raw(record, "triggerNumber"),
            action_flag=_text(record, "actionFlag"),
        )


@dataclass
class SentLogEntry:
    subject: str
    login_id: str
    name: str = ""
    trigger_number: Any = ""
    date: Optional[date] = None

    @classmethod
    def from_record(cls, subject: str, record: Dict[str, Any]) -> "SentLogEntry":
        return cls(
            subject=subject,
            login_id=normalize_key_part(record.get("loginId")),
            name=_text(record, "name"),
            trigger_number=_raw(record, "triggerNumber"),
            date=coerce_date(record.get("date")),
        )

    def to_record(self) -> Dict[str, Any]:
        # Sent Log tabs are already per subject, so no subject column.
        return {
            "loginId": self.login_id,
            "name": self.name,
            "triggerNumber": self.trigger_number,
            "date": self.date,
        }


@dataclass
class IssueLogEntry:
    subject: str
    login_id: str
    name: str = ""
    trigger_number: Any = ""
    note: str = ""
    date: Optional[date] = None
    tag: Tag = Tag.ISSUE
    identity: Any = field(default=None, compare=False)

    @property
    def key(self) -> RowKey:
        return row_key(self.login_id, self.trigger_number)

    @property
    def archived(self) -> bool:
        return self.tag is Tag.ISSUE_ARCHIVE

    @classmethod
    def from_record(cls, record: Dict[str, Any], identity: Any = None) -> "IssueLogEntry":
        return cls(
            subject=_text(record, "subject"),
            login_id=normalize_key_part(record.get("loginId")),
            name=_text(record, "name"),
            trigger_number=_raw(record, "triggerNumber"),
            note=_text(record, "note"),
            date=coerce_date(record.get("date")),
            tag=Tag.parse(record.get("tag")),
            identity=identity,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "loginId": self.login_id,
            "name": self.name,
            "triggerNumber": self.trigger_number,
            "note": self.note,
            "date": self.date,
            "tag": self.tag.value,
        }
