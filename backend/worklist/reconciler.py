"""
Work-queue reconciliation: the pure half of Load and Move.

Nothing here touches the store. The service reads tables, hands the rows to
plan_load()/classify_queue(), and applies the resulting plan.

Load merge order (first key seen wins):
1. rows already in the queue (operator edits in progress),
2. dashboard rows flagged SEND EMAIL, minus students already logged as Sent
   today and students with any archived issue,
3. open Issue log entries for students the dashboard still flags, whose key
   did not come through step 2.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Set, Tuple

from core.logger import logger
from worklist.keys import RowKey
from worklist.models import IssueLogEntry, SentLogEntry, SourceRow, Status, Tag, WorkRow

LOAD_COUNT_KEYS = (
    "leftover",
    "eligible",
    "suppressed_sent_today",
    "suppressed_archived",
    "candidates",
    "admitted",
    "duplicates_dropped",
    "resurfaced",
    "lookup_misses",
    "stale_issues_consumed",
)

MOVE_COUNT_KEYS = ("sent", "issues", "archived", "not_sent", "blank", "unrecognized")


@dataclass
class LoadPlan:
    queue: List[WorkRow]
    consumed_issue_identities: List[Hashable] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(LOAD_COUNT_KEYS, 0))


@dataclass
class MovePlan:
    sent: List[SentLogEntry] = field(default_factory=list)
    issues: List[IssueLogEntry] = field(default_factory=list)
    consumed_identities: List[Hashable] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(MOVE_COUNT_KEYS, 0))


def _same_subject(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def plan_load(
    subject: str,
    queue: Sequence[WorkRow],
    sources: Sequence[SourceRow],
    sent_log: Sequence[SentLogEntry],
    issue_log: Sequence[IssueLogEntry],
    today: date,
    roster_lookup: Optional[Callable[[str], str]] = None,
    send_email_flag: str = "SEND EMAIL",
) -> LoadPlan:
    """
    Build the new work queue for one subject.

    Args:
        subject: Subject whose queue is being rebuilt; issue log entries for
            other subjects are ignored.
        queue: Current queue contents.
        sources: Dashboard rows for the subject.
        sent_log: The subject's Sent Log entries.
        issue_log: Issue Log entries (any subject).
        today: Day bucket used for the "already sent today" check.
        roster_lookup: loginId -> email fallback for re-surfaced issues.
        send_email_flag: Action value that marks a dashboard row eligible.

    Returns:
        LoadPlan with the full replacement queue and the identities of the
        Issue Log rows that now live in the queue.
    """
    plan = LoadPlan(queue=[])
    counts = plan.counts
    present: Set[RowKey] = set()

    # 1. Preserve what the operator already has in the queue
    for row in queue:
        if not row.login_id:
            continue
        if row.key in present:
            logger.warning(f"{subject} queue already holds {row.key}; dropping the later copy")
            counts["duplicates_dropped"] += 1
            continue
        present.add(row.key)
        plan.queue.append(row)
        counts["leftover"] += 1

    sent_today = {e.login_id for e in sent_log if e.login_id and e.date == today}
    subject_issues = [e for e in issue_log if e.login_id and _same_subject(e.subject, subject)]
    archived_ids = {e.login_id for e in subject_issues if e.archived}
    open_issues = [e for e in subject_issues if not e.archived]

    # The first open issue per key supplies the note; every row for the key is consumed with it
    open_issue_by_key: Dict[RowKey, IssueLogEntry] = {}
    open_issue_rows: Dict[RowKey, List[Hashable]] = {}
    for entry in open_issues:
        open_issue_by_key.setdefault(entry.key, entry)
        if entry.identity is not None:
            open_issue_rows.setdefault(entry.key, []).append(entry.identity)

    def consume(key: RowKey) -> int:
        identities = open_issue_rows.pop(key, [])
        plan.consumed_issue_identities.extend(identities)
        return len(identities)

    # 2. Eligible dashboard rows become candidates
    eligible_by_id: Dict[str, SourceRow] = {}
    candidates: List[Tuple[WorkRow, Optional[IssueLogEntry]]] = []
    for source in sources:
        if not source.login_id or not source.is_eligible(send_email_flag):
            continue
        counts["eligible"] += 1
        eligible_by_id.setdefault(source.login_id, source)

        if source.login_id in sent_today:
            logger.debug(f"{subject}: {source.login_id} already sent today, skipping")
            counts["suppressed_sent_today"] += 1
            continue
        if source.login_id in archived_ids:
            logger.debug(f"{subject}: {source.login_id} has an archived issue, skipping")
            counts["suppressed_archived"] += 1
            continue

        issue = open_issue_by_key.get(source.key)
        candidates.append((
            WorkRow(
                login_id=source.login_id,
                name=source.name,
                email=source.email,
                trigger_number=source.trigger_number,
                status=Status.ISSUE.value if issue else Status.NOT_SENT.value,
                note=issue.note if issue else "",
            ),
            issue,
        ))
    counts["candidates"] = len(candidates)

    # 3. Merge candidates, first key wins
    for row, issue in candidates:
        if row.key in present:
            counts["duplicates_dropped"] += 1
            continue
        present.add(row.key)
        plan.queue.append(row)
        counts["admitted"] += 1
        if issue is not None:
            counts["stale_issues_consumed"] += max(consume(row.key) - 1, 0)

    # 4. Re-surface open issues the dashboard still flags
    for entry in open_issues:
        if entry.key in present:
            continue
        source = eligible_by_id.get(entry.login_id)
        if source is None:
            continue
        if entry.login_id in sent_today or entry.login_id in archived_ids:
            continue

        email = source.email
        if not email and roster_lookup is not None:
            email = roster_lookup(entry.login_id) or ""
        if not email:
            logger.warning(f"{subject}: no email found for {entry.login_id}; admitting without email")
            counts["lookup_misses"] += 1

        present.add(entry.key)
        plan.queue.append(WorkRow(
            login_id=entry.login_id,
            name=entry.name or source.name,
            email=email,
            trigger_number=entry.trigger_number,
            status=Status.ISSUE.value,
            note=entry.note,
        ))
        counts["resurfaced"] += 1
        counts["stale_issues_consumed"] += max(consume(entry.key) - 1, 0)

    return plan


def classify_queue(
    subject: str,
    rows: Sequence[Tuple[Hashable, WorkRow]],
    today: date,
) -> MovePlan:
    """
    Sort queue rows into Sent Log / Issue Log entries.

    Args:
        subject: Subject written onto Issue Log entries.
        rows: (identity, row) pairs in queue order.
        today: Date stamped on every log entry.

    Returns:
        MovePlan; consumed_identities lists the queue positions to remove
        once both log appends have succeeded.
    """
    plan = MovePlan()
    counts = plan.counts

    for identity, row in rows:
        if not row.login_id:
            counts["blank"] += 1
            continue
        try:
            status = Status.parse(row.status)
        except ValueError:
            logger.warning(f"{subject}: unrecognized status {row.status!r} for {row.login_id}, leaving row in queue")
            counts["unrecognized"] += 1
            continue

        if status is None or status is Status.NOT_SENT:
            counts["not_sent"] += 1
            continue

        if status is Status.SENT:
            plan.sent.append(SentLogEntry(
                subject=subject,
                login_id=row.login_id,
                name=row.name,
                trigger_number=row.trigger_number,
                date=today,
            ))
            counts["sent"] += 1
        else:
            tag = Tag.ISSUE_ARCHIVE if status is Status.ISSUE_ARCHIVE else Tag.ISSUE
            plan.issues.append(IssueLogEntry(
                subject=subject,
                login_id=row.login_id,
                name=row.name,
                trigger_number=row.trigger_number,
                note=row.note,
                date=today,
                tag=tag,
            ))
            counts["issues"] += 1
            if tag is Tag.ISSUE_ARCHIVE:
                counts["archived"] += 1
        plan.consumed_identities.append(identity)

    return plan
