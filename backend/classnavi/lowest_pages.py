"""
Lowest planned worksheet per student and subject, plus JSON snapshots.

A study result lists the student's scheduled units; the "lowest planned
page" is the smallest WorksheetNOFrom among units that are still planned
(not finished, no study or finish date).
"""
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from classnavi.client import ClassNaviClient, ClassNaviError, InstructorContext
from core.logger import get_logger
from core.validators import validate_subject_filter

logger = get_logger('classnavi')

LOWEST_PAGE_COLUMNS = [
    'StudentID', 'FullName', 'Subject', 'Level',
    'LowestPlannedFrom', 'LowestPlannedTo', 'LowestPlannedIndex',
]

MATH_CD = '010'
READING_CD = '022'
FINISHED_STATUS = '6'


@dataclass
class LowestPlanned:
    min_from: Optional[int] = None
    min_to: Optional[int] = None
    min_row: Any = None


def _number(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if number != number:
        return None
    return int(number) if number.is_integer() else number


def compute_lowest_from_study_result(data: Optional[Dict[str, Any]]) -> LowestPlanned:
    """Smallest planned WorksheetNOFrom with its WorksheetNOTo and StudyScheduleIndex."""
    units = (data or {}).get('StudyUnitInfoList') or []
    lowest = LowestPlanned()
    for unit in units:
        if not unit or unit.get('StudyStatus') == FINISHED_STATUS:
            continue
        if unit.get('StudyDate') or unit.get('FinishDate'):
            continue
        from_number = _number(unit.get('WorksheetNOFrom'))
        if from_number is None:
            continue
        if lowest.min_from is None or from_number < lowest.min_from:
            lowest = LowestPlanned(
                min_from=from_number,
                min_to=_number(unit.get('WorksheetNOTo')),
                min_row=unit.get('StudyScheduleIndex'),
            )
    return lowest


def parse_login_id_list(text: str) -> List[str]:
    """
    LoginIDs from a pasted list, one student per line.

    The first tab/comma separated field (or first word) is the LoginID; a
    "LoginID / Name" header line is skipped, and duplicates are dropped
    keeping first-seen order.
    """
    if not text or not isinstance(text, str):
        return []
    ids: List[str] = []
    for i, line in enumerate(text.replace('\r', '').split('\n')):
        trimmed = line.strip()
        if not trimmed:
            continue
        lowered = trimmed.lower()
        if i == 0 and 'loginid' in lowered and 'name' in lowered:
            continue
        if '\t' in trimmed or ',' in trimmed:
            login_id = trimmed.replace('\t', ',').split(',')[0].strip()
        else:
            login_id = trimmed.split()[0].strip()
        if not login_id or login_id.lower() == 'loginid':
            continue
        if login_id not in ids:
            ids.append(login_id)
    return ids


def subject_name(subject_cd: Any) -> str:
    code = str(subject_cd or '')
    if code == MATH_CD:
        return 'Math'
    if code == READING_CD:
        return 'Reading'
    return f"Subject{code}" if code else code


def match_students(students: Iterable[Dict[str, Any]], login_ids: Sequence[str]) -> List[Dict[str, Any]]:
    """Students whose LoginID or StudentID is in login_ids, in API order."""
    wanted = set(login_ids)
    matched = [
        s for s in students
        if str(s.get('LoginID') or '') in wanted or str(s.get('StudentID') or '') in wanted
    ]
    if not matched and wanted:
        logger.warning(f"No students from the list matched ClassNavi; first list IDs: {list(login_ids)[:5]}")
    return matched


def collect_lowest_pages(
    client: ClassNaviClient,
    students: Sequence[Dict[str, Any]],
    subject_filter: str = 'both',
    center_id: Optional[str] = None,
    delay: float = 0.4,
) -> pd.DataFrame:
    """
    One row per (student, wanted subject) with the lowest planned page.

    Calls are made one at a time with a fixed delay; a failing call is logged
    and that student/subject is left out.
    """
    want_math, want_reading = validate_subject_filter(subject_filter)
    rows: List[Dict[str, Any]] = []

    for student in students:
        full_name = student.get('FullName') or student.get('StudentName') or ''
        student_id = student.get('StudentID') or student.get('LoginID')
        for study in student.get('StudentStudyInfoList') or []:
            subject_cd = study.get('SubjectCD')
            if not subject_cd or study.get('ClassID') is None or study.get('ClassStudentSeq') is None:
                continue
            if subject_cd == MATH_CD and not want_math:
                continue
            if subject_cd == READING_CD and not want_reading:
                continue
            try:
                result = client.get_study_result(
                    student_id,
                    study['ClassID'],
                    study['ClassStudentSeq'],
                    subject_cd,
                    center_id,
                    study.get('NextWorksheetCD'),
                )
                lowest = compute_lowest_from_study_result(result)
                rows.append({
                    'StudentID': student_id,
                    'FullName': full_name,
                    'Subject': subject_name(subject_cd),
                    'Level': str(study.get('NextWorksheetCD') or ''),
                    'LowestPlannedFrom': lowest.min_from if lowest.min_from is not None else '',
                    'LowestPlannedTo': lowest.min_to if lowest.min_to is not None else '',
                    'LowestPlannedIndex': lowest.min_row if lowest.min_row is not None else '',
                })
                logger.debug(f"{full_name or student_id} {subject_name(subject_cd)}: lowest {lowest.min_from}")
            except ClassNaviError as e:
                logger.warning(f"Skipping {student_id} {subject_name(subject_cd)}: {e.message}")
            time.sleep(delay)

    return pd.DataFrame(rows, columns=LOWEST_PAGE_COLUMNS)


def _student_summary(student: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'LoginID': student.get('LoginID'),
        'StudentID': student.get('StudentID'),
        'FullName': student.get('FullName'),
        'StudentName': student.get('StudentName'),
        'ClassID': student.get('ClassID'),
        'ClassStudentSeq': student.get('ClassStudentSeq'),
        'StudentStudyInfoList': student.get('StudentStudyInfoList') or [],
    }


def _find_student(students: Sequence[Dict[str, Any]], login_id: str) -> Optional[Dict[str, Any]]:
    for student in students:
        if str(student.get('LoginID') or student.get('StudentID') or '') == login_id:
            return student
    return None


def _per_study(client, students, login_ids, delay, fetch, result_key):
    collected = []
    for login_id in login_ids:
        student = _find_student(students, login_id)
        if student is None:
            logger.warning(f"Student {login_id} not found in ClassNavi list")
            continue
        student_id = student.get('StudentID') or student.get('LoginID')
        for study in student.get('StudentStudyInfoList') or []:
            try:
                result = fetch(student_id, study)
                collected.append({
                    'loginID': login_id,
                    'studentID': student_id,
                    'subjectCD': study.get('SubjectCD'),
                    result_key: result,
                })
            except ClassNaviError as e:
                logger.warning(f"{result_key} failed for {login_id} subject {study.get('SubjectCD')}: {e.message}")
            time.sleep(delay)
    return collected


def export_snapshot(
    client: ClassNaviClient,
    instructor: InstructorContext,
    students: Sequence[Dict[str, Any]],
    study_login_ids: Sequence[str] = (),
    goal_login_ids: Sequence[str] = (),
    delay: float = 0.5,
) -> Dict[str, Any]:
    """
    JSON-ready snapshot of the instructor's students.

    Study results and progress goals are only fetched for the LoginIDs given.
    """
    output: Dict[str, Any] = {
        'pulledAt': datetime.now(timezone.utc).isoformat(),
        'instructor': instructor.to_dict(),
        'students': [_student_summary(s) for s in students],
    }
    if study_login_ids:
        output['studyResults'] = _per_study(
            client, students, study_login_ids, delay,
            lambda student_id, study: client.get_study_result(
                student_id, study.get('ClassID'), study.get('ClassStudentSeq'),
                study.get('SubjectCD'), instructor.center_id,
            ),
            'studyResult',
        )
    if goal_login_ids:
        output['progressGoals'] = _per_study(
            client, students, goal_login_ids, delay,
            lambda student_id, study: client.get_progress_goal(
                student_id, study.get('ClassID'), study.get('ClassStudentSeq'), study.get('SubjectCD'),
            ),
            'progressGoal',
        )
    return output
