"""
Worklist service: runs Load and Move for a subject against a record store.

The service owns every store call; the merge and classification rules live
in worklist.reconciler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, Union

from core.config import Settings, load_settings
from core.logger import logger
from sheets.sheets_utils import first_valid_email
from worklist import schemas
from worklist.errors import MissingColumnsError, StoreReadError, StoreWriteError, WorklistError
from worklist.keys import normalize_key_part
from worklist.models import IssueLogEntry, SentLogEntry, SourceRow, WorkRow
from worklist.reconciler import classify_queue, plan_load
from worklist.store import RecordStore, StoredRow


@dataclass
class LoadResult:
    subject: str
    rows: int
    counts: Dict[str, int] = field(default_factory=dict)
    deleted_issue_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "rows": self.rows,
            "counts": self.counts,
            "deletedIssueRows": self.deleted_issue_rows,
        }


@dataclass
class MoveResult:
    subject: str
    sent: int
    issues: int
    removed: int
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "sent": self.sent,
            "issues": self.issues,
            "removed": self.removed,
            "counts": self.counts,
        }


class WorklistService:
    """Load/Move orchestration for every configured subject."""

    def __init__(self, store: RecordStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or load_settings()

    @property
    def subjects(self) -> Tuple[str, ...]:
        return self.settings.subjects

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read(self, table: str, schema: schemas.TableSchema) -> List[StoredRow]:
        try:
            return self.store.read_table(table, schema)
        except WorklistError:
            raise
        except Exception as e:
            logger.error(f"Store failure while reading '{table}': {str(e)}", exc_info=True)
            raise StoreReadError(table, e) from e

    def read_queue(self, subject: str) -> List[Tuple[Hashable, WorkRow]]:
        """Current queue rows as (identity, row) pairs."""
        stored = self._read(self.settings.queue_name(subject), schemas.QUEUE)
        return [(row.identity, WorkRow.from_record(row.record)) for row in stored]

    def _read_sources(self, subject: str) -> List[SourceRow]:
        stored = self._read(self.settings.dashboard_name(subject), schemas.DASHBOARD)
        return [SourceRow.from_record(row.record) for row in stored]

    def _read_sent_log(self, subject: str) -> List[SentLogEntry]:
        stored = self._read(self.settings.sent_log_name(subject), schemas.SENT_LOG)
        return [SentLogEntry.from_record(subject, row.record) for row in stored]

    def _read_issue_log(self) -> List[IssueLogEntry]:
        stored = self._read(self.settings.issue_log_name(), schemas.ISSUE_LOG)
        return [IssueLogEntry.from_record(row.record, row.identity) for row in stored]

    def _roster_lookup(self, subject: str) -> Callable[[str], str]:
        """Lazy loginId -> email lookup against the subject's roster tab."""
        table = self.settings.roster_name(subject)
        emails: Dict[str, str] = {}
        loaded = False

        def lookup(login_id: str) -> str:
            nonlocal loaded
            if not loaded:
                loaded = True
                try:
                    rows = self._read(table, schemas.ROSTER)
                except MissingColumnsError as e:
                    logger.warning(f"Roster '{table}' cannot be used for email lookup: {e.message}")
                    rows = []
                for row in rows:
                    roster_id = normalize_key_part(row.record.get("loginId"))
                    email = first_valid_email(row.record.get("email"))
                    if roster_id and email:
                        emails.setdefault(roster_id, email)
                logger.debug(f"Roster '{table}' loaded with {len(emails)} emails")
            return emails.get(normalize_key_part(login_id), "")

        return lookup

    # ------------------------------------------------------------------
    # Store writes
    # ------------------------------------------------------------------

    def _write(self, action: str, table: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except WorklistError:
            raise
        except Exception as e:
            logger.error(f"Store failure while trying to {action} '{table}': {str(e)}", exc_info=True)
            raise StoreWriteError(table, action, e) from e

    def _compensate(self, appended: Sequence[Tuple[str, List[Hashable]]], error: WorklistError) -> None:
        """Remove log rows appended earlier in a failed Move."""
        for table, identities in reversed(appended):
            if not identities:
                continue
            try:
                self.store.delete_rows(table, identities)
                logger.warning(f"Rolled back {len(identities)} rows appended to '{table}'")
            except Exception as e:
                logger.error(f"Rollback of '{table}' failed, remove rows {identities} by hand: {str(e)}", exc_info=True)
                error.counts["rollback_failed"] = error.counts.get("rollback_failed", 0) + len(identities)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_subject(self, subject: str) -> LoadResult:
        """
        Rebuild one subject's work queue.

        The new queue is written first; Issue Log rows that now live in the
        queue are deleted afterwards, so a failed delete can only leave an
        Issue Log row that the next Load skips by key.
        """
        logger.info(f"Load [{subject}] start")
        counts: Dict[str, int] = {}
        try:
            self.store.invalidate_caches()
            queue = [row for _, row in self.read_queue(subject)]
            sources = self._read_sources(subject)
            sent_log = self._read_sent_log(subject)
            issue_log = self._read_issue_log()
            today = self.store.today()
            logger.debug(
                f"Load [{subject}] read queue={len(queue)} dashboard={len(sources)} "
                f"sent={len(sent_log)} issues={len(issue_log)} today={today.isoformat()}"
            )

            plan = plan_load(
                subject,
                queue,
                sources,
                sent_log,
                issue_log,
                today,
                roster_lookup=self._roster_lookup(subject),
                send_email_flag=self.settings.send_email_flag,
            )
            counts = dict(plan.counts)

            queue_table = self.settings.queue_name(subject)
            self._write(
                "write",
                queue_table,
                lambda: self.store.write_table(queue_table, schemas.QUEUE, [row.to_record() for row in plan.queue]),
            )
            counts["written"] = len(plan.queue)

            if plan.consumed_issue_identities:
                issue_table = self.settings.issue_log_name()
                self._write(
                    "delete rows from",
                    issue_table,
                    lambda: self.store.delete_rows(issue_table, plan.consumed_issue_identities),
                )
        except WorklistError as e:
            e.annotate("load", subject, counts)
            logger.error(str(e))
            raise

        result = LoadResult(
            subject=subject,
            rows=len(plan.queue),
            counts=counts,
            deleted_issue_rows=len(plan.consumed_issue_identities),
        )
        logger.info(f"Load [{subject}] complete: {result.rows} rows, counts={counts}")
        return result

    def load_all(self) -> Dict[str, Union[LoadResult, WorklistError]]:
        """Load every subject; a failing subject does not stop the others."""
        results: Dict[str, Union[LoadResult, WorklistError]] = {}
        for subject in self.subjects:
            try:
                results[subject] = self.load_subject(subject)
            except WorklistError as e:
                results[subject] = e
        return results

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    def move_subject(self, subject: str) -> MoveResult:
        """
        Log classified queue rows and remove them from the queue.

        All or nothing per subject: if any append or the queue delete fails,
        log rows appended by this call are deleted again and StoreWriteError
        is raised with the counts attempted so far.
        """
        logger.info(f"Move [{subject}] start")
        counts: Dict[str, int] = {}
        appended: List[Tuple[str, List[Hashable]]] = []
        try:
            self.store.invalidate_caches()
            rows = self.read_queue(subject)
            today = self.store.today()
            plan = classify_queue(subject, rows, today)
            counts = dict(plan.counts)

            if plan.sent:
                sent_table = self.settings.sent_log_name(subject)
                ids = self._write(
                    "append rows to",
                    sent_table,
                    lambda: self.store.append_rows(sent_table, schemas.SENT_LOG, [e.to_record() for e in plan.sent]),
                )
                appended.append((sent_table, list(ids or [])))

            if plan.issues:
                issue_table = self.settings.issue_log_name()
                ids = self._write(
                    "append rows to",
                    issue_table,
                    lambda: self.store.append_rows(issue_table, schemas.ISSUE_LOG, [e.to_record() for e in plan.issues]),
                )
                appended.append((issue_table, list(ids or [])))

            if plan.consumed_identities:
                queue_table = self.settings.queue_name(subject)
                self._write(
                    "delete rows from",
                    queue_table,
                    lambda: self.store.delete_rows(queue_table, plan.consumed_identities),
                )
        except WorklistError as e:
            self._compensate(appended, e)
            e.annotate("move", subject, counts)
            logger.error(str(e))
            raise

        result = MoveResult(
            subject=subject,
            sent=len(plan.sent),
            issues=len(plan.issues),
            removed=len(plan.consumed_identities),
            counts=counts,
        )
        logger.info(f"Move [{subject}] complete: sent={result.sent} issues={result.issues} removed={result.removed}")
        return result
