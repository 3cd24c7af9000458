from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from classnavi.client import ClassNaviError, InstructorContext
from classnavi.lowest_pages import (
    LOWEST_PAGE_COLUMNS,
    collect_lowest_pages,
    compute_lowest_from_study_result,
    export_snapshot,
    match_students,
    parse_login_id_list,
    subject_name,
)


def test_compute_lowest_skips_finished_and_dated_units():
    data = {"StudyUnitInfoList": [
        {"WorksheetNOFrom": "1", "WorksheetNOTo": "10", "StudyStatus": "6", "StudyScheduleIndex": 1},
        {"WorksheetNOFrom": "11", "WorksheetNOTo": "20", "StudyDate": "2026-02-01", "StudyScheduleIndex": 2},
        {"WorksheetNOFrom": "41", "WorksheetNOTo": "50", "StudyScheduleIndex": 5},
        {"WorksheetNOFrom": "31", "WorksheetNOTo": "", "StudyScheduleIndex": 4},
        {"WorksheetNOFrom": "", "StudyScheduleIndex": 3},
        {"WorksheetNOFrom": "abc", "StudyScheduleIndex": 6},
        None,
    ]}
    lowest = compute_lowest_from_study_result(data)
    assert (lowest.min_from, lowest.min_to, lowest.min_row) == (31, None, 4)


def test_compute_lowest_without_plan():
    lowest = compute_lowest_from_study_result({})
    assert lowest.min_from is None


def test_parse_login_id_list():
    text = "LoginID\tName\r\nA1\tAnn\nB2, Bob\n\nC3 Cat Smith\nA1\tAgain\nloginid\n"
    assert parse_login_id_list(text) == ["A1", "B2", "C3"]
    assert parse_login_id_list("") == []


@pytest.mark.parametrize("code,name", [("010", "Math"), ("022", "Reading"), ("030", "Subject030"), ("", ""), (None, "")])
def test_subject_name(code, name):
    assert subject_name(code) == name


def test_match_students_by_login_or_student_id():
    api = [{"LoginID": "A1"}, {"StudentID": 22}, {"LoginID": "Z9"}]
    assert match_students(api, ["A1", "22"]) == [{"LoginID": "A1"}, {"StudentID": 22}]


STUDENT = {
    "StudentID": "A1",
    "FullName": "Ann",
    "StudentStudyInfoList": [
        {"SubjectCD": "010", "ClassID": "K1", "ClassStudentSeq": 1, "NextWorksheetCD": "C"},
        {"SubjectCD": "022", "ClassID": "K2", "ClassStudentSeq": 2, "NextWorksheetCD": "BII"},
        {"SubjectCD": "010", "ClassID": None, "ClassStudentSeq": 3},
    ],
}


def test_collect_lowest_pages_filters_subjects_and_builds_rows():
    client = MagicMock()
    client.get_study_result.return_value = {"StudyUnitInfoList": [{"WorksheetNOFrom": "71", "WorksheetNOTo": "80", "StudyScheduleIndex": 7}]}

    df = collect_lowest_pages(client, [STUDENT], "010", center_id="C1", delay=0)

    assert list(df.columns) == LOWEST_PAGE_COLUMNS
    assert df.to_dict("records") == [{
        "StudentID": "A1", "FullName": "Ann", "Subject": "Math", "Level": "C",
        "LowestPlannedFrom": 71, "LowestPlannedTo": 80, "LowestPlannedIndex": 7,
    }]
    client.get_study_result.assert_called_once_with("A1", "K1", 1, "010", "C1", "C")


def test_collect_lowest_pages_skips_failed_items():
    client = MagicMock()
    client.get_study_result.side_effect = [ClassNaviError("boom"), {"StudyUnitInfoList": []}]

    df = collect_lowest_pages(client, [STUDENT], "both", delay=0)

    assert df["Subject"].tolist() == ["Reading"]
    assert df.iloc[0]["LowestPlannedFrom"] == ""


def test_export_snapshot_fetches_only_requested_ids():
    client = MagicMock()
    client.get_study_result.return_value = {"units": []}
    client.get_progress_goal.side_effect = ClassNaviError("nope")
    instructor = InstructorContext("T1", "Dana Lee", "C1", "2")
    students = [{"LoginID": "A1", **STUDENT}, {"LoginID": "B2", "StudentID": "B2"}]

    snapshot = export_snapshot(client, instructor, students, ["A1", "missing"], ["A1"], delay=0)

    assert snapshot["instructor"] == {"loginID": "T1", "fullName": "Dana Lee", "centerID": "C1"}
    assert [s["LoginID"] for s in snapshot["students"]] == ["A1", "B2"]
    assert [r["subjectCD"] for r in snapshot["studyResults"]] == ["010", "022", "010"]
    assert snapshot["progressGoals"] == []


def test_export_snapshot_without_ids_has_only_students():
    snapshot = export_snapshot(MagicMock(), InstructorContext("T1", "", None, "2"), [], delay=0)
    assert "studyResults" not in snapshot and "progressGoals" not in snapshot
