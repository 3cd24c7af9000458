"""
Operator CLI, registered on the Flask app (``flask --app app <group> ...``).

    flask worklist load [SUBJECT]
    flask worklist move SUBJECT
    flask imports drive
    flask imports folder
    flask classnavi lowest --list students.txt [--subject both|010|022] [--output FILE] [--sheet TAB]
    flask classnavi export [--study-ids IDS] [--goal-ids IDS] [--output FILE]
"""
import json
import time
from typing import List, Optional

import click
from flask import Flask, current_app
from flask.cli import AppGroup

from classnavi.client import ClassNaviClient, ClassNaviError
from classnavi.lowest_pages import collect_lowest_pages, export_snapshot, match_students, parse_login_id_list
from core.validators import ValidationError, validate_subject, validate_subject_filter
from imports.csv_import import import_from_drive
from sheets.sheets_utils import dataframe_to_rows
from worklist import WorklistError, WorklistService

worklist_cli = AppGroup("worklist", help="Load and Move the contact worklist.")
imports_cli = AppGroup("imports", help="Import CSV exports from Google Drive.")
classnavi_cli = AppGroup("classnavi", help="Pull study data from ClassNavi.")
OPERATOR_GROUPS = (worklist_cli.name, imports_cli.name, classnavi_cli.name)


def _context():
    return current_app.extensions["worklist"]


def _store():
    store = _context()["store"]
    if store is None:
        raise click.ClickException("Google Sheets store not configured (check GOOGLE_SHEETS_SPREADSHEET_ID and credentials)")
    return store


def _drive():
    drive = _context()["drive"]
    if drive is None:
        raise click.ClickException("Google Drive client not configured (check service account credentials)")
    return drive


def _service() -> WorklistService:
    return WorklistService(_store(), _context()["settings"])


def _echo_counts(counts):
    for key, value in counts.items():
        click.echo(f"    {key}: {value}")


# -------------------------------------------------------------------------
# Worklist
# -------------------------------------------------------------------------


@worklist_cli.command("load")
@click.argument("subject", required=False)
def worklist_load(subject: Optional[str]):
    """Rebuild the work queue for SUBJECT (default: every subject)."""
    service = _service()
    try:
        subjects = [validate_subject(subject, service.subjects)] if subject else list(service.subjects)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="SUBJECT")

    failed = False
    for name in subjects:
        try:
            result = service.load_subject(name)
        except WorklistError as e:
            failed = True
            click.echo(f"{name}: FAILED - {e}", err=True)
            continue
        click.echo(f"{name}: {result.rows} rows in queue, {result.deleted_issue_rows} issue rows taken from the log")
        _echo_counts(result.counts)
    if failed:
        raise click.exceptions.Exit(1)


@worklist_cli.command("move")
@click.argument("subject")
def worklist_move(subject: str):
    """Log classified rows of SUBJECT's queue and remove them from it."""
    service = _service()
    try:
        subject = validate_subject(subject, service.subjects)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="SUBJECT")

    try:
        result = service.move_subject(subject)
    except WorklistError as e:
        raise click.ClickException(str(e))
    click.echo(f"{subject}: {result.sent} sent, {result.issues} issues logged, {result.removed} rows removed")
    _echo_counts(result.counts)


# -------------------------------------------------------------------------
# Imports
# -------------------------------------------------------------------------


@imports_cli.command("drive")
def imports_drive():
    """Import the newest CSV per subject from the Drive import folder."""
    outcomes = import_from_drive(_drive(), _store(), _context()["settings"])
    for outcome in outcomes:
        click.echo(outcome.message, err=not outcome.ok)
    if not all(o.ok for o in outcomes):
        raise click.exceptions.Exit(1)


@imports_cli.command("folder")
def imports_folder():
    """Create the Drive import folder if needed and print its link."""
    settings = _context()["settings"]
    drive = _drive()
    folders = drive.ensure_import_folders(
        settings.import_parent_folder_id,
        settings.import_folder_name,
        settings.archive_folder_name,
    )
    click.echo("Drop your subject CSV files into this folder:")
    click.echo(drive.folder_url(folders["import"]))


# -------------------------------------------------------------------------
# ClassNavi
# -------------------------------------------------------------------------


def _classnavi_login(username: str, password: Optional[str], password_hash: Optional[str]) -> ClassNaviClient:
    settings = _context()["settings"]
    if not password and not password_hash:
        password_hash = click.prompt("Password hash (NaviPasswordHash cookie)", hide_input=True)
    client = ClassNaviClient(settings.classnavi_base_url, page_delay=settings.classnavi_page_delay)
    try:
        client.login(username, password_hash or password, is_hash=bool(password_hash))
    except ClassNaviError as e:
        raise click.ClickException(e.message)
    return client


def _split_ids(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


classnavi_credentials = [
    click.option("--username", envvar="CLASSNAVI_USERNAME", prompt="Username (LoginID)", help="Instructor LoginID."),
    click.option("--password", envvar="CLASSNAVI_PASSWORD", default=None, help="Plain password (often rejected)."),
    click.option("--password-hash", envvar="CLASSNAVI_PASSWORD_HASH", default=None, help="NaviPasswordHash cookie value."),
]


def with_classnavi_credentials(func):
    for option in reversed(classnavi_credentials):
        func = option(func)
    return func


@classnavi_cli.command("lowest")
@click.option("--list", "list_file", required=True, type=click.File("r"), help="LoginID list, one per line ('-' for stdin).")
@click.option("--subject", "subject_filter", default="both", show_default=True, help="both, 010 (Math) or 022 (Reading).")
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="Also save the table to this file.")
@click.option("--sheet", default=None, help="Also write the table to this spreadsheet tab.")
@with_classnavi_credentials
def classnavi_lowest(list_file, subject_filter, output, sheet, username, password, password_hash):
    """Lowest planned worksheet per listed student and subject."""
    try:
        validate_subject_filter(subject_filter)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--subject")

    login_ids = parse_login_id_list(list_file.read())
    if not login_ids:
        raise click.ClickException("No LoginIDs found in list.")

    settings = _context()["settings"]
    client = _classnavi_login(username, password, password_hash)
    try:
        instructor = client.get_instructor_context(username)
        click.echo(f"Instructor: {instructor.full_name} (center {instructor.center_id})", err=True)
        all_students = client.get_all_students(instructor.center_id, username, instructor.assistant_sec)
    except ClassNaviError as e:
        raise click.ClickException(e.message)

    students = match_students(all_students, login_ids)
    click.echo(f"Matched {len(students)} of {len(login_ids)} listed students.", err=True)

    df = collect_lowest_pages(client, students, subject_filter, instructor.center_id, settings.classnavi_item_delay)
    click.echo(df.to_csv(sep="\t", index=False), nl=False)

    if output:
        df.to_csv(output, sep="," if output.lower().endswith(".csv") else "\t", index=False)
        click.echo(f"Saved to {output}", err=True)
    if sheet:
        header, rows = dataframe_to_rows(df)
        _store().replace_table(sheet, header, rows)
        click.echo(f"Wrote {len(rows)} rows to tab '{sheet}'", err=True)


@classnavi_cli.command("export")
@click.option("--study-ids", default=None, help="Comma-separated LoginIDs to fetch study results for.")
@click.option("--goal-ids", default=None, help="Comma-separated LoginIDs to fetch progress goals for.")
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="JSON file (default classnavi-data-<ms>.json).")
@with_classnavi_credentials
def classnavi_export(study_ids, goal_ids, output, username, password, password_hash):
    """Save instructor, student list and optional study data as JSON."""
    settings = _context()["settings"]
    client = _classnavi_login(username, password, password_hash)
    try:
        instructor = client.get_instructor_context(username)
        students = client.get_all_students(instructor.center_id, username, instructor.assistant_sec)
    except ClassNaviError as e:
        raise click.ClickException(e.message)

    snapshot = export_snapshot(
        client,
        instructor,
        students,
        _split_ids(study_ids),
        _split_ids(goal_ids),
        delay=settings.classnavi_page_delay,
    )
    output = output or f"classnavi-data-{int(time.time() * 1000)}.json"
    with open(output, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2)
    click.echo(f"Data for {len(students)} students saved to {output}")


def register_commands(app: Flask) -> None:
    app.cli.add_command(worklist_cli)
    app.cli.add_command(imports_cli)
    app.cli.add_command(classnavi_cli)
