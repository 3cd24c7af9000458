"""
Drive CSV import into the per-subject Data tabs.

For each subject the newest CSV in the import folder whose name contains the
subject replaces that subject's Data tab, then the file is moved to the
archive folder so it is not imported twice.
"""
import io
from dataclasses import dataclass
from typing import Any, Dict, List

import pandas as pd

from core.config import Settings
from core.logger import get_logger
from sheets.sheets_utils import dataframe_to_rows, normalize_dataframe

logger = get_logger('imports')

IMPORTED = "imported"
MISSING = "missing"
EMPTY = "empty"
FAILED = "error"


@dataclass
class ImportOutcome:
    subject: str
    status: str
    file_name: str = ""
    table: str = ""
    rows: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status != FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "status": self.status,
            "fileName": self.file_name,
            "table": self.table,
            "rows": self.rows,
            "message": self.message,
        }


def parse_csv_text(text: str) -> pd.DataFrame:
    """
    Parse CSV text with every cell kept as text.

    Blank cells stay blank (no NaN guessing), and surrounding whitespace is
    stripped from headers and cells.
    """
    if not text or not text.strip():
        return pd.DataFrame()
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    return normalize_dataframe(df)


def import_subject(drive, store, settings: Settings, subject: str, folders: Dict[str, Dict[str, Any]]) -> ImportOutcome:
    """Import the newest CSV for one subject. Never raises."""
    table = settings.roster_name(subject)
    file = drive.find_latest_csv(folders["import"]["id"], subject)
    if file is None:
        logger.info(f"Import [{subject}]: no CSV file found in import folder")
        return ImportOutcome(subject, MISSING, table=table, message=f"{subject}: no CSV file found in import folder")

    name = file.get("name", "")
    try:
        df = parse_csv_text(drive.download_text(file["id"]))
        if df.columns.empty:
            outcome = ImportOutcome(subject, EMPTY, name, table, message=f'{subject}: "{name}" is empty, archived without importing')
        else:
            header, rows = dataframe_to_rows(df)
            written = store.replace_table(table, header, rows)
            outcome = ImportOutcome(
                subject, IMPORTED, name, table, written,
                message=f'{subject}: imported and archived "{name}"',
            )
        drive.move_to_folder(file["id"], folders["archive"]["id"])
    except Exception as e:
        logger.error(f"Import [{subject}] failed for '{name}': {str(e)}", exc_info=True)
        return ImportOutcome(subject, FAILED, name, table, message=f"{subject}: error - {str(e)}")

    logger.info(f"Import [{subject}]: {outcome.message} ({outcome.rows} rows into '{table}')")
    return outcome


def import_from_drive(drive, store, settings: Settings) -> List[ImportOutcome]:
    """Import every configured subject; one failing subject does not stop the others."""
    folders = drive.ensure_import_folders(
        settings.import_parent_folder_id,
        settings.import_folder_name,
        settings.archive_folder_name,
    )
    return [import_subject(drive, store, settings, subject, folders) for subject in settings.subjects]
