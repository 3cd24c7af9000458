from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from app import create_app
from classnavi.client import ClassNaviAuthError, InstructorContext


@pytest.fixture()
def drive():
    drive = MagicMock()
    drive.ensure_import_folders.return_value = {"import": {"id": "folder-1"}, "archive": {"id": "archive-1"}}
    drive.folder_url.return_value = "https://drive.google.com/drive/folders/folder-1"
    drive.find_latest_csv.return_value = None
    return drive


@pytest.fixture()
def runner(store, drive, settings):
    app = create_app(store=store, drive=drive, settings=settings.with_overrides(classnavi_item_delay=0, classnavi_page_delay=0))
    return app.test_cli_runner()


def seed_math(store, flag="SEND EMAIL"):
    store.seed("Math Dashboard", [{
        "loginId": "S1", "name": "Ann", "email": "a@x.com", "triggerNumber": 3, "actionFlag": flag,
    }])


def test_worklist_load_all_subjects(runner, store):
    seed_math(store)

    result = runner.invoke(args=["worklist", "load"])

    assert result.exit_code == 0, result.output
    assert "Math: 1 rows in queue" in result.output
    assert "Reading: 0 rows in queue" in result.output
    assert [r["loginId"] for r in store.rows("Math Queue")] == ["S1"]


def test_worklist_load_reports_failed_subject(runner, store):
    store.seed("Math Dashboard", [], columns=["LoginID", "Name"])

    result = runner.invoke(args=["worklist", "load"])

    assert result.exit_code == 1
    assert "Math: FAILED" in result.output
    assert "Reading: 0 rows in queue" in result.output


def test_worklist_load_unknown_subject(runner):
    result = runner.invoke(args=["worklist", "load", "Science"])
    assert result.exit_code == 2
    assert "Unknown subject" in result.output


def test_worklist_move(runner, store):
    seed_math(store)
    runner.invoke(args=["worklist", "load", "math"])
    store.rows("Math Queue")[0]["status"] = "Sent"

    result = runner.invoke(args=["worklist", "move", "math"])

    assert result.exit_code == 0, result.output
    assert "Math: 1 sent, 0 issues logged, 1 rows removed" in result.output
    assert store.rows("Math Queue") == []


def test_worklist_move_store_failure(runner, store):
    seed_math(store)
    runner.invoke(args=["worklist", "load", "Math"])
    store.rows("Math Queue")[0]["status"] = "Sent"
    store.fail("append_rows", "Math Sent Log")

    result = runner.invoke(args=["worklist", "move", "Math"])

    assert result.exit_code == 1
    assert "Math Sent Log" in result.output
    assert len(store.rows("Math Queue")) == 1


def test_imports_folder(runner, drive):
    result = runner.invoke(args=["imports", "folder"])
    assert result.exit_code == 0
    assert "https://drive.google.com/drive/folders/folder-1" in result.output


def test_imports_drive_without_files(runner):
    result = runner.invoke(args=["imports", "drive"])
    assert result.exit_code == 0
    assert "Math: no CSV file found" in result.output


@pytest.fixture()
def classnavi(monkeypatch):
    client = MagicMock()
    client.get_instructor_context.return_value = InstructorContext("T1", "Dana Lee", "C1", "2")
    client.get_all_students.return_value = [
        {"LoginID": "A1", "StudentID": "A1", "FullName": "Ann", "StudentStudyInfoList": [
            {"SubjectCD": "010", "ClassID": "K1", "ClassStudentSeq": 1, "NextWorksheetCD": "C"},
        ]},
        {"LoginID": "B2", "StudentID": "B2", "FullName": "Bob", "StudentStudyInfoList": []},
    ]
    client.get_study_result.return_value = {"StudyUnitInfoList": [
        {"WorksheetNOFrom": "91", "WorksheetNOTo": "100", "StudyScheduleIndex": 2},
    ]}
    factory = MagicMock(return_value=client)
    monkeypatch.setattr("commands.ClassNaviClient", factory)
    return client


def test_classnavi_lowest_prints_table_and_writes_tab(runner, store, classnavi):
    result = runner.invoke(
        args=["classnavi", "lowest", "--list", "-", "--sheet", "Lowest Pages", "--username", "T1", "--password-hash", "h%3D"],
        input="LoginID\tName\nA1\tAnn\n",
    )

    assert result.exit_code == 0, result.output
    classnavi.login.assert_called_once_with("T1", "h%3D", is_hash=True)
    assert "A1\tAnn\tMath\tC\t91\t100\t2" in result.output
    assert store.rows("Lowest Pages") == [{
        "StudentID": "A1", "FullName": "Ann", "Subject": "Math", "Level": "C",
        "LowestPlannedFrom": 91, "LowestPlannedTo": 100, "LowestPlannedIndex": 2,
    }]


def test_classnavi_lowest_rejects_bad_filter(runner, classnavi):
    result = runner.invoke(
        args=["classnavi", "lowest", "--list", "-", "--subject", "science", "--username", "T1", "--password-hash", "h"],
        input="A1\n",
    )
    assert result.exit_code == 2
    classnavi.login.assert_not_called()


def test_classnavi_login_failure(runner, classnavi):
    classnavi.login.side_effect = ClassNaviAuthError("Login failed (status 400)")
    result = runner.invoke(
        args=["classnavi", "lowest", "--list", "-", "--username", "T1", "--password", "pw"],
        input="A1\n",
    )
    assert result.exit_code == 1
    assert "Login failed" in result.output


def test_classnavi_export_writes_json(runner, classnavi, tmp_path):
    output = tmp_path / "snapshot.json"

    result = runner.invoke(args=[
        "classnavi", "export", "--study-ids", "A1", "--output", str(output),
        "--username", "T1", "--password-hash", "h",
    ])

    assert result.exit_code == 0, result.output
    snapshot = json.loads(output.read_text())
    assert snapshot["instructor"]["centerID"] == "C1"
    assert len(snapshot["students"]) == 2
    assert snapshot["studyResults"][0]["loginID"] == "A1"
    assert "progressGoals" not in snapshot
