from __future__ import annotations

from datetime import date

import pytest

from worklist.models import IssueLogEntry, SentLogEntry, SourceRow, Status, Tag, WorkRow


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Not Sent", Status.NOT_SENT),
        ("NotSent", Status.NOT_SENT),
        ("not sent", Status.NOT_SENT),
        ("Sent", Status.SENT),
        (" SENT ", Status.SENT),
        ("Issue", Status.ISSUE),
        ("Issue Archive", Status.ISSUE_ARCHIVE),
        ("IssueArchive", Status.ISSUE_ARCHIVE),
        ("archived", Status.ISSUE_ARCHIVE),
    ],
)
def test_status_parse(text, expected):
    assert Status.parse(text) is expected


def test_status_parse_blank_is_none():
    assert Status.parse("") is None
    assert Status.parse(None) is None


def test_status_parse_unknown_raises():
    with pytest.raises(ValueError):
        Status.parse("Called")


def test_tag_parse_defaults_to_issue():
    assert Tag.parse("") is Tag.ISSUE
    assert Tag.parse("Issue") is Tag.ISSUE
    assert Tag.parse("Issue Archive") is Tag.ISSUE_ARCHIVE
    assert Tag.parse("archive") is Tag.ISSUE_ARCHIVE


def test_work_row_from_record_normalizes_login_id_and_keeps_trigger():
    row = WorkRow.from_record({"loginId": " S1 ", "name": "Ann", "triggerNumber": 3.0, "status": "Sent"})
    assert row.login_id == "S1"
    assert row.trigger_number == 3.0
    assert row.key == ("S1", "3")
    assert row.email == ""
    assert row.note == ""


def test_work_row_round_trips_record():
    row = WorkRow("S1", "Ann", "a@x.com", 3, Status.ISSUE.value, "call back")
    assert WorkRow.from_record(row.to_record()) == row


def test_source_row_eligibility_is_case_insensitive():
    assert SourceRow("S1", action_flag=" send email ").is_eligible()
    assert not SourceRow("S1", action_flag="WAIT").is_eligible()
    assert SourceRow("S1", action_flag="CONTACT").is_eligible("contact")


def test_sent_log_entry_coerces_serial_date():
    entry = SentLogEntry.from_record("Math", {"loginId": "S1", "name": "Ann", "triggerNumber": 3, "date": 46057})
    assert entry.date == date(2026, 2, 4)
    assert entry.to_record() == {"loginId": "S1", "name": "Ann", "triggerNumber": 3, "date": date(2026, 2, 4)}


def test_issue_log_entry_from_record_keeps_identity():
    entry = IssueLogEntry.from_record(
        {"subject": "Math", "loginId": "S1", "triggerNumber": "3", "note": "X", "date": "2026-02-01", "tag": ""},
        identity=7,
    )
    assert entry.identity == 7
    assert entry.tag is Tag.ISSUE
    assert not entry.archived
    assert entry.key == ("S1", "3")
    assert entry.to_record()["tag"] == "Issue"


def test_issue_log_entry_identity_not_part_of_equality():
    a = IssueLogEntry("Math", "S1", trigger_number=3, identity=2)
    b = IssueLogEntry("Math", "S1", trigger_number=3, identity=9)
    assert a == b
