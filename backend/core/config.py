"""
Environment-driven settings for the worklist backend.

Values are read from the process environment (populated from .env by
app.py / commands.py via python-dotenv). Tab names are templates with a
``{subject}`` placeholder so each subject gets its own set of tabs.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Tuple


DEFAULT_SUBJECTS = ("Math", "Reading")


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Build with load_settings()."""

    spreadsheet_id: str = ""
    subjects: Tuple[str, ...] = DEFAULT_SUBJECTS

    dashboard_tab: str = "{subject} Dashboard"
    queue_tab: str = "{subject} Queue"
    sent_log_tab: str = "{subject} Sent Log"
    issue_log_tab: str = "Issue Log"
    roster_tab: str = "{subject} Data"

    send_email_flag: str = "SEND EMAIL"

    import_folder_name: str = "KNA Email Sender Import"
    archive_folder_name: str = "Archive"
    import_parent_folder_id: str = "root"

    classnavi_base_url: str = "https://instructor2.digital.kumon.com/USA"
    classnavi_page_delay: float = 0.5
    classnavi_item_delay: float = 0.4

    def tab(self, template: str, subject: str) -> str:
        return template.format(subject=subject)

    def dashboard_name(self, subject: str) -> str:
        return self.tab(self.dashboard_tab, subject)

    def queue_name(self, subject: str) -> str:
        return self.tab(self.queue_tab, subject)

    def sent_log_name(self, subject: str) -> str:
        return self.tab(self.sent_log_tab, subject)

    def issue_log_name(self) -> str:
        return self.issue_log_tab

    def roster_name(self, subject: str) -> str:
        return self.tab(self.roster_tab, subject)

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


def load_settings() -> Settings:
    """Read Settings from environment variables, falling back to defaults."""
    subjects_raw = _env("WORKLIST_SUBJECTS", ",".join(DEFAULT_SUBJECTS))
    subjects = tuple(s.strip() for s in subjects_raw.split(",") if s.strip())
    if not subjects:
        raise ValueError("WORKLIST_SUBJECTS must name at least one subject")

    return Settings(
        spreadsheet_id=_env("GOOGLE_SHEETS_SPREADSHEET_ID", ""),
        subjects=subjects,
        dashboard_tab=_env("DASHBOARD_TAB", Settings.dashboard_tab),
        queue_tab=_env("QUEUE_TAB", Settings.queue_tab),
        sent_log_tab=_env("SENT_LOG_TAB", Settings.sent_log_tab),
        issue_log_tab=_env("ISSUE_LOG_TAB", Settings.issue_log_tab),
        roster_tab=_env("ROSTER_TAB", Settings.roster_tab),
        send_email_flag=_env("SEND_EMAIL_FLAG", Settings.send_email_flag),
        import_folder_name=_env("IMPORT_FOLDER_NAME", Settings.import_folder_name),
        archive_folder_name=_env("ARCHIVE_FOLDER_NAME", Settings.archive_folder_name),
        import_parent_folder_id=_env("IMPORT_PARENT_FOLDER_ID", Settings.import_parent_folder_id),
        classnavi_base_url=_env("CLASSNAVI_BASE_URL", Settings.classnavi_base_url).rstrip("/"),
        classnavi_page_delay=_env_float("CLASSNAVI_PAGE_DELAY", Settings.classnavi_page_delay),
        classnavi_item_delay=_env_float("CLASSNAVI_ITEM_DELAY", Settings.classnavi_item_delay),
    )
