from __future__ import annotations

import pytest

from worklist import LoadResult, MissingColumnsError, StoreReadError, StoreWriteError, WorklistService

DASHBOARD = "Math Dashboard"
QUEUE = "Math Queue"
SENT_LOG = "Math Sent Log"
ISSUE_LOG = "Issue Log"
ROSTER = "Math Data"


def dashboard_row(login_id, trigger=3, email="", flag="SEND EMAIL", name=None):
    return {
        "loginId": login_id,
        "name": name or f"Student {login_id}",
        "email": email,
        "triggerNumber": trigger,
        "actionFlag": flag,
    }


@pytest.fixture()
def service(store, settings):
    return WorklistService(store, settings)


def set_status(store, login_id, status, note=""):
    for record in store.rows(QUEUE):
        if record["loginId"] == login_id:
            record["status"] = status
            record["note"] = note


def test_s1_scenario_load_move_load(store, service, today):
    store.seed(DASHBOARD, [dashboard_row("S1", 3, "p@x.com", name="Ann")])

    result = service.load_subject("Math")
    assert isinstance(result, LoadResult)
    assert result.rows == 1
    assert store.rows(QUEUE) == [{
        "loginId": "S1", "name": "Ann", "email": "p@x.com",
        "triggerNumber": 3, "status": "Not Sent", "note": "",
    }]

    set_status(store, "S1", "Sent")
    moved = service.move_subject("Math")
    assert (moved.sent, moved.issues, moved.removed) == (1, 0, 1)
    assert store.rows(SENT_LOG) == [{"loginId": "S1", "name": "Ann", "triggerNumber": 3, "date": today}]
    assert store.rows(QUEUE) == []

    again = service.load_subject("Math")
    assert again.rows == 0
    assert again.counts["suppressed_sent_today"] == 1
    assert store.rows(QUEUE) == []


def test_issue_round_trip(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1", 3)])
    service.load_subject("Math")
    set_status(store, "S1", "Issue", "X")

    service.move_subject("Math")
    assert store.rows(QUEUE) == []
    assert [(r["subject"], r["loginId"], r["note"], r["tag"]) for r in store.rows(ISSUE_LOG)] == [
        ("Math", "S1", "X", "Issue"),
    ]

    result = service.load_subject("Math")
    assert [(r["loginId"], r["status"], r["note"]) for r in store.rows(QUEUE)] == [("S1", "Issue", "X")]
    assert result.deleted_issue_rows == 1
    assert store.rows(ISSUE_LOG) == []


def test_archived_issue_is_never_readmitted(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1", 3)])
    service.load_subject("Math")
    set_status(store, "S1", "Issue Archive", "moved away")
    service.move_subject("Math")

    for _ in range(2):
        result = service.load_subject("Math")
        assert result.rows == 0
    assert [r["tag"] for r in store.rows(ISSUE_LOG)] == ["Issue Archive"]


def test_load_preserves_operator_edits(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1"), dashboard_row("S2")])
    service.load_subject("Math")
    set_status(store, "S1", "Sent")

    service.load_subject("Math")
    assert [(r["loginId"], r["status"]) for r in store.rows(QUEUE)] == [("S1", "Sent"), ("S2", "Not Sent")]


def test_issues_for_other_subjects_are_left_alone(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")])
    store.seed(ISSUE_LOG, [
        {"subject": "Reading", "loginId": "S1", "triggerNumber": 3, "note": "reading", "date": "", "tag": "Issue"},
    ])
    service.load_subject("Math")
    assert store.rows(QUEUE)[0]["status"] == "Not Sent"
    assert len(store.rows(ISSUE_LOG)) == 1


def test_resurfaced_issue_email_comes_from_roster(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1", 3, email="")])
    store.seed(ISSUE_LOG, [
        {"subject": "Math", "loginId": "S1", "triggerNumber": 2, "note": "old", "date": "", "tag": "Issue"},
    ])
    store.seed(ROSTER, [
        {"loginId": "S1", "email": "not an email; mom@x.com"},
    ])

    result = service.load_subject("Math")
    resurfaced = store.rows(QUEUE)[1]
    assert (resurfaced["triggerNumber"], resurfaced["email"]) == (2, "mom@x.com")
    assert result.counts["lookup_misses"] == 0
    assert store.rows(ISSUE_LOG) == []


def test_unusable_roster_is_a_lookup_miss_not_a_failure(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1", 3)])
    store.seed(ISSUE_LOG, [
        {"subject": "Math", "loginId": "S1", "triggerNumber": 2, "note": "old", "date": "", "tag": "Issue"},
    ])
    store.seed(ROSTER, [{"loginId": "S1"}], columns=["LoginID"])

    result = service.load_subject("Math")
    assert result.counts["lookup_misses"] == 1
    assert store.rows(QUEUE)[1]["email"] == ""


def test_load_missing_columns_aborts_subject(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")], columns=["LoginID", "Name", "Trigger #"])
    store.seed(QUEUE, [{"loginId": "S9", "triggerNumber": 1, "status": "Sent"}])

    with pytest.raises(MissingColumnsError) as info:
        service.load_subject("Math")

    assert info.value.operation == "load"
    assert info.value.subject == "Math"
    assert info.value.missing == ("actionFlag",)
    assert ("write_table", QUEUE) not in store.calls
    assert store.rows(QUEUE)[0]["loginId"] == "S9"


def test_load_write_failure_keeps_issue_log(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")])
    store.seed(ISSUE_LOG, [
        {"subject": "Math", "loginId": "S1", "triggerNumber": 3, "note": "X", "date": "", "tag": "Issue"},
    ])
    store.fail("write_table", QUEUE)

    with pytest.raises(StoreWriteError) as info:
        service.load_subject("Math")

    assert info.value.operation == "load"
    assert info.value.counts["admitted"] == 1
    assert len(store.rows(ISSUE_LOG)) == 1


def test_load_all_isolates_subject_failures(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")], columns=["LoginID"])
    store.seed("Reading Dashboard", [dashboard_row("R1")])

    results = service.load_all()

    assert isinstance(results["Math"], MissingColumnsError)
    assert isinstance(results["Reading"], LoadResult)
    assert store.rows("Reading Queue")[0]["loginId"] == "R1"


def test_read_failure_is_reported_per_subject(store, service):
    store.seed("Reading Dashboard", [dashboard_row("R1")])
    store.fail("read_table", SENT_LOG)

    results = service.load_all()

    assert isinstance(results["Math"], StoreReadError)
    assert results["Math"].table == SENT_LOG
    assert results["Math"].operation == "load"
    assert isinstance(results["Reading"], LoadResult)


def _queue_ready_to_move(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1"), dashboard_row("S2"), dashboard_row("S3")])
    service.load_subject("Math")
    set_status(store, "S1", "Sent")
    set_status(store, "S2", "Issue", "no answer")
    store.seed(SENT_LOG, [{"loginId": "OLD", "name": "", "triggerNumber": 1, "date": "2026-01-02"}])


def test_move_rolls_back_logs_when_queue_delete_fails(store, service):
    _queue_ready_to_move(store, service)
    queue_before = [dict(r) for r in store.rows(QUEUE)]
    store.fail("delete_rows", QUEUE)

    with pytest.raises(StoreWriteError) as info:
        service.move_subject("Math")

    error = info.value
    assert error.operation == "move"
    assert error.subject == "Math"
    assert (error.counts["sent"], error.counts["issues"]) == (1, 1)
    assert "rollback_failed" not in error.counts
    assert store.rows(QUEUE) == queue_before
    assert [r["loginId"] for r in store.rows(SENT_LOG)] == ["OLD"]
    assert store.rows(ISSUE_LOG) == []


def test_move_rolls_back_sent_log_when_issue_append_fails(store, service):
    _queue_ready_to_move(store, service)
    store.fail("append_rows", ISSUE_LOG)

    with pytest.raises(StoreWriteError):
        service.move_subject("Math")

    assert [r["loginId"] for r in store.rows(SENT_LOG)] == ["OLD"]
    assert len(store.rows(QUEUE)) == 3
    assert ("delete_rows", QUEUE) not in store.calls


def test_move_reports_failed_rollback(store, service):
    _queue_ready_to_move(store, service)
    store.fail("append_rows", ISSUE_LOG)
    store.fail("delete_rows", SENT_LOG)

    with pytest.raises(StoreWriteError) as info:
        service.move_subject("Math")

    assert info.value.counts["rollback_failed"] == 1
    assert len(store.rows(QUEUE)) == 3


def test_move_with_nothing_classified_touches_no_log(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")])
    service.load_subject("Math")

    result = service.move_subject("Math")

    assert (result.sent, result.issues, result.removed) == (0, 0, 0)
    assert not any(action in ("append_rows", "delete_rows") for action, _ in store.calls)


def test_today_comes_from_store(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")])
    service.load_subject("Math")
    service.move_subject("Math")
    assert store.timezones == [None, None]


def test_load_and_move_start_from_fresh_store_caches(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1")])

    service.load_subject("Math")
    assert store.calls[0] == ("invalidate_caches", "")

    store.calls.clear()
    service.move_subject("Math")
    assert store.calls[0] == ("invalidate_caches", "")


def test_load_empties_every_issue_row_for_the_admitted_key(store, service):
    store.seed(DASHBOARD, [dashboard_row("S1", 3)])
    store.seed(ISSUE_LOG, [
        {"subject": "Math", "loginId": "S1", "triggerNumber": 3, "note": "first", "date": "", "tag": "Issue"},
        {"subject": "Math", "loginId": "S1", "triggerNumber": "3", "note": "second", "date": "", "tag": "Issue"},
    ])

    result = service.load_subject("Math")

    assert [(r["status"], r["note"]) for r in store.rows(QUEUE)] == [("Issue", "first")]
    assert result.deleted_issue_rows == 2
    assert store.rows(ISSUE_LOG) == []
