"""
Errors raised by worklist Load/Move.

Every fatal error carries the operation name ("load"/"move"), the subject
and the counts processed so far, so the operator sees how far a run got.
"""
from typing import Dict, Iterable, Optional


class WorklistError(Exception):
    """Base error for worklist operations."""

    def __init__(self, message: str, operation: str = "", subject: str = "", counts: Optional[Dict[str, int]] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.subject = subject
        self.counts = dict(counts or {})

    def annotate(self, operation: str, subject: str, counts: Optional[Dict[str, int]] = None) -> "WorklistError":
        """Attach run context (first annotation wins for operation/subject)."""
        self.operation = self.operation or operation
        self.subject = self.subject or subject
        if counts:
            merged = dict(counts)
            merged.update(self.counts)
            self.counts = merged
        return self

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "operation": self.operation,
            "subject": self.subject,
            "counts": self.counts,
        }

    def __str__(self) -> str:
        prefix = " ".join(p for p in (self.operation.capitalize(), f"[{self.subject}]" if self.subject else "") if p)
        counts = ", ".join(f"{k}={v}" for k, v in self.counts.items())
        text = f"{prefix}: {self.message}" if prefix else self.message
        return f"{text} ({counts})" if counts else text


class MissingColumnsError(WorklistError):
    """Required fields are absent from a table's header row."""

    def __init__(self, table: str, missing: Iterable[str], **kwargs):
        self.table = table
        self.missing = tuple(missing)
        super().__init__(f"Table '{table}' is missing required columns: {', '.join(self.missing)}", **kwargs)


class StoreWriteError(WorklistError):
    """An append/write/delete against the record store failed."""

    def __init__(self, table: str, action: str, cause: Optional[BaseException] = None, **kwargs):
        self.table = table
        self.action = action
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {action} '{table}'{detail}", **kwargs)


class StoreReadError(WorklistError):
    """A table could not be read from the record store."""

    def __init__(self, table: str, cause: Optional[BaseException] = None, **kwargs):
        self.table = table
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to read '{table}'{detail}", **kwargs)
