"""
Google Sheets record store for the contact worklist.

Every tab of the worklist spreadsheet (dashboards, queues, sent logs, the
issue log and the imported Data tabs) is read and written through
GoogleSheetsStore. Columns are located by header text, so operators can
reorder or add columns without breaking Load/Move.
"""
import base64
import json
import os
import time
from datetime import date, datetime, timezone as dt_timezone
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import gspread
import gspread.exceptions
from google.oauth2 import service_account
from gspread.utils import DateTimeOption, ValueInputOption, ValueRenderOption, a1_range_to_grid_range, rowcol_to_a1

from core.logger import get_logger
from worklist.errors import MissingColumnsError
from worklist.schemas import TableSchema
from worklist.store import StoredRow

logger = get_logger('sheets')

SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive'
]

# Header rows are searched for in the first few rows (title rows sit above them)
HEADER_SCAN_ROWS = 5


class TableLayout:
    """Where a table's header sits and which column holds each field."""

    def __init__(self, header_row: int, width: int, columns: Dict[str, int]):
        self.header_row = header_row  # 1-based sheet row
        self.width = width
        self.columns = columns

    @property
    def first_data_row(self) -> int:
        return self.header_row + 1

    def to_values(self, record: Dict[str, Any]) -> List[Any]:
        row = [''] * self.width
        for name, idx in self.columns.items():
            row[idx] = to_cell(record.get(name))
        return row


def to_cell(value: Any) -> Any:
    """Render a record value for a USER_ENTERED write."""
    if value is None:
        return ''
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    return value


def load_credentials() -> service_account.Credentials:
    """Service-account credentials from SERVICE_ACCOUNT_BASE64, SERVICE_ACCOUNT_JSON or a key file."""
    # 1. Try Base64 encoded JSON (Best for Render/Production)
    service_account_base64 = os.getenv('SERVICE_ACCOUNT_BASE64')
    # 2. Try Raw JSON string
    service_account_json = os.getenv('SERVICE_ACCOUNT_JSON')

    if service_account_base64:
        try:
            decoded_json = base64.b64decode(service_account_base64).decode('utf-8')
            return service_account.Credentials.from_service_account_info(json.loads(decoded_json), scopes=SCOPES)
        except Exception as e:
            raise ValueError(f"Invalid SERVICE_ACCOUNT_BASE64: {e}")
    if service_account_json:
        try:
            return service_account.Credentials.from_service_account_info(json.loads(service_account_json), scopes=SCOPES)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid SERVICE_ACCOUNT_JSON format: {e}")

    # Fall back to file path (for local development)
    service_account_path = os.getenv('GOOGLE_SERVICE_ACCOUNT_PATH', './service_account.json')
    if not os.path.exists(service_account_path):
        raise FileNotFoundError(
            f"Service account file not found: {service_account_path}. "
            "Either set SERVICE_ACCOUNT_JSON environment variable or provide a valid file path."
        )
    return service_account.Credentials.from_service_account_file(service_account_path, scopes=SCOPES)


class GoogleSheetsStore:
    """Record store backed by one Google Sheets spreadsheet."""

    def __init__(self, spreadsheet_id: Optional[str] = None, client: Optional[gspread.Client] = None):
        self.spreadsheet_id = spreadsheet_id or os.getenv('GOOGLE_SHEETS_SPREADSHEET_ID')
        if not self.spreadsheet_id:
            raise ValueError("GOOGLE_SHEETS_SPREADSHEET_ID environment variable is required")

        self.client = client or self._initialize_client()

        # Rate limiting: track last request time to throttle requests
        self._last_request_time = 0
        self._min_request_interval = 0.2

        # Spreadsheet/worksheet objects and header layouts, to avoid re-fetching metadata
        self._spreadsheet = None
        self._worksheets_cache: Dict[str, gspread.Worksheet] = {}
        self._layouts: Dict[str, TableLayout] = {}

    def _initialize_client(self) -> gspread.Client:
        """Initialize gspread client with service account credentials."""
        try:
            client = gspread.authorize(load_credentials())
            logger.info("Google Sheets client initialized successfully")
            return client
        except Exception as e:
            logger.error(f"Error initializing Google Sheets client: {str(e)}", exc_info=True)
            raise

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _throttle_request(self):
        """Throttle requests to avoid hitting rate limits."""
        current_time = time.time()
        time_since_last = current_time - self._last_request_time
        if time_since_last < self._min_request_interval:
            time.sleep(self._min_request_interval - time_since_last)
        self._last_request_time = time.time()

    @staticmethod
    def _is_rate_limit(error: Exception) -> bool:
        if getattr(error, 'code', None) == 429:
            return True
        text = str(error)
        return 'RESOURCE_EXHAUSTED' in text or '429' in text or 'quota' in text.lower()

    def _retry_with_backoff(self, func, max_retries=3, initial_delay=5):
        """
        Retry a function with exponential backoff on rate limit errors.

        Args:
            func: Function to retry
            max_retries: Maximum number of attempts
            initial_delay: Initial delay in seconds (doubles each retry)
        """
        for attempt in range(max_retries):
            try:
                self._throttle_request()
                return func()
            except gspread.exceptions.APIError as e:
                if self._is_rate_limit(e) and attempt < max_retries - 1:
                    delay = initial_delay * (2 ** attempt)
                    logger.warning(
                        f"Rate limit hit (429), retrying in {delay} seconds "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue
                raise

    def _open_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self._retry_with_backoff(lambda: self.client.open_by_key(self.spreadsheet_id))
            except gspread.exceptions.SpreadsheetNotFound:
                logger.error(f"Spreadsheet not found: {self.spreadsheet_id}")
                raise ValueError(f"Spreadsheet not found: {self.spreadsheet_id}")
        return self._spreadsheet

    def _get_worksheet(self, name: str) -> Optional[gspread.Worksheet]:
        """Get worksheet by title, or None when the tab does not exist."""
        if name in self._worksheets_cache:
            return self._worksheets_cache[name]
        spreadsheet = self._open_spreadsheet()
        try:
            worksheet = self._retry_with_backoff(lambda: spreadsheet.worksheet(name))
        except gspread.exceptions.WorksheetNotFound:
            return None
        self._worksheets_cache[name] = worksheet
        return worksheet

    def _get_or_create_worksheet(self, name: str, headers: Sequence[str]) -> gspread.Worksheet:
        """Get worksheet by title, or create it with a header row."""
        worksheet = self._get_worksheet(name)
        if worksheet is not None:
            return worksheet

        spreadsheet = self._open_spreadsheet()
        logger.info(f"Creating new worksheet '{name}' in spreadsheet {self.spreadsheet_id}")
        worksheet = self._retry_with_backoff(
            lambda: spreadsheet.add_worksheet(title=name, rows=100, cols=max(len(headers), 1))
        )
        if headers:
            self._retry_with_backoff(lambda: worksheet.append_row(list(headers)))
        self._worksheets_cache[name] = worksheet
        self._layouts.pop(name, None)
        return worksheet

    # ------------------------------------------------------------------
    # Header detection
    # ------------------------------------------------------------------

    def _detect_layout(self, name: str, top_rows: List[List[Any]], schema: TableSchema) -> Optional[TableLayout]:
        """
        Pick the header row among the first rows of a tab.

        Returns None for a tab with no header at all. Raises MissingColumnsError
        when a header is there but lacks required columns.
        """
        best_columns: Dict[str, int] = {}
        best_row = None
        for idx, row in enumerate(top_rows[:HEADER_SCAN_ROWS]):
            if not any(str(cell).strip() for cell in row):
                continue
            columns = schema.resolve_columns(row)
            if not schema.missing(columns):
                return TableLayout(idx + 1, len(row), columns)
            if best_row is None or len(columns) > len(best_columns):
                best_row, best_columns = idx, columns

        if best_row is None:
            return None
        missing = schema.missing(best_columns)
        logger.error(f"Worksheet '{name}' header row {best_row + 1} lacks columns: {', '.join(missing)}")
        raise MissingColumnsError(name, missing)

    def _layout_for_write(self, name: str, worksheet: gspread.Worksheet, schema: TableSchema) -> TableLayout:
        """
        Layout of an existing tab, completed with any schema columns it lacks.

        An empty tab gets the schema's headers. A header row missing optional
        columns (an Issue Log without "Tag") gets them appended on the right,
        so no field is dropped on write.
        """
        layout = self._layouts.get(name)
        if layout is None:
            top_rows = self._retry_with_backoff(lambda: worksheet.get_values(f"1:{HEADER_SCAN_ROWS}"))
            layout = self._detect_layout(name, top_rows, schema)
        if layout is None:
            headers = list(schema.headers)
            logger.info(f"Worksheet '{name}' has no header row, writing {headers}")
            self._retry_with_backoff(lambda: worksheet.update(range_name='A1', values=[headers]))
            layout = TableLayout(1, len(headers), {f.name: i for i, f in enumerate(schema.fields)})
        else:
            layout = self._add_missing_columns(name, worksheet, schema, layout)
        self._layouts[name] = layout
        return layout

    def _add_missing_columns(
        self, name: str, worksheet: gspread.Worksheet, schema: TableSchema, layout: TableLayout
    ) -> TableLayout:
        missing = [f for f in schema.fields if f.name not in layout.columns]
        if not missing:
            return layout

        headers = [f.header for f in missing]
        width = layout.width + len(missing)
        if width > worksheet.col_count:
            self._retry_with_backoff(lambda: worksheet.add_cols(width - worksheet.col_count))
        self._retry_with_backoff(lambda: worksheet.update(
            range_name=rowcol_to_a1(layout.header_row, layout.width + 1),
            values=[headers],
        ))
        logger.warning(f"Worksheet '{name}' lacked columns {headers}; added them to header row {layout.header_row}")

        columns = dict(layout.columns)
        for offset, f in enumerate(missing):
            columns[f.name] = layout.width + offset
        return TableLayout(layout.header_row, width, columns)

    # ------------------------------------------------------------------
    # RecordStore interface
    # ------------------------------------------------------------------

    def read_table(self, name: str, schema: TableSchema) -> List[StoredRow]:
        """
        Read the data rows of a tab.

        Values are read unformatted, so numbers stay numbers and dates arrive
        as serial numbers. Row identity is the 1-based sheet row. Fully blank
        rows are skipped.
        """
        worksheet = self._get_worksheet(name)
        if worksheet is None:
            logger.warning(f"Worksheet '{name}' not found, treating it as empty")
            return []

        try:
            values = self._retry_with_backoff(lambda: worksheet.get_values(
                value_render_option=ValueRenderOption.unformatted,
                date_time_render_option=DateTimeOption.serial_number,
            ))
        except gspread.exceptions.APIError as e:
            logger.error(f"Google Sheets API error reading '{name}': {str(e)}", exc_info=True)
            raise

        layout = self._detect_layout(name, values, schema)
        if layout is None:
            logger.warning(f"Worksheet '{name}' is empty")
            return []
        self._layouts[name] = layout

        rows: List[StoredRow] = []
        for offset, row in enumerate(values[layout.header_row:]):
            if not any(str(cell).strip() for cell in row):
                continue
            record = {
                field_name: (row[idx] if idx < len(row) else '')
                for field_name, idx in layout.columns.items()
            }
            rows.append(StoredRow(identity=layout.first_data_row + offset, record=record))

        logger.debug(f"Read {len(rows)} rows from '{name}'")
        return rows

    def write_table(self, name: str, schema: TableSchema, records: Sequence[Dict[str, Any]]) -> None:
        """Replace every data row below the header with records."""
        worksheet = self._get_or_create_worksheet(name, schema.headers)
        layout = self._layout_for_write(name, worksheet, schema)
        values = [layout.to_values(record) for record in records]

        start = layout.first_data_row
        needed_rows = start + len(values) - 1
        if needed_rows > worksheet.row_count:
            self._retry_with_backoff(lambda: worksheet.add_rows(needed_rows - worksheet.row_count))

        last_col = max(layout.width, worksheet.col_count)
        clear_range = f"{rowcol_to_a1(start, 1)}:{rowcol_to_a1(max(worksheet.row_count, start), last_col)}"
        self._retry_with_backoff(lambda: worksheet.batch_clear([clear_range]))
        if values:
            self._retry_with_backoff(lambda: worksheet.update(
                range_name=rowcol_to_a1(start, 1),
                values=values,
                value_input_option=ValueInputOption.user_entered,
            ))
        logger.info(f"Wrote {len(values)} rows to '{name}'")

    def append_rows(self, name: str, schema: TableSchema, records: Sequence[Dict[str, Any]]) -> List[Hashable]:
        """Append records after the table's last row and return their sheet rows."""
        if not records:
            return []
        worksheet = self._get_or_create_worksheet(name, schema.headers)
        layout = self._layout_for_write(name, worksheet, schema)
        values = [layout.to_values(record) for record in records]

        response = self._retry_with_backoff(lambda: worksheet.append_rows(
            values,
            value_input_option=ValueInputOption.user_entered,
            insert_data_option='INSERT_ROWS',
            table_range=rowcol_to_a1(layout.header_row, 1),
        ))
        identities = self._appended_rows(response, len(values))
        logger.info(f"Appended {len(values)} rows to '{name}' at {identities[:1]}..{identities[-1:]}")
        return identities

    @staticmethod
    def _appended_rows(response: Dict[str, Any], count: int) -> List[int]:
        updated_range = ((response or {}).get('updates') or {}).get('updatedRange', '')
        if not updated_range:
            raise ValueError("Append response did not report the updated range")
        grid = a1_range_to_grid_range(updated_range.rsplit('!', 1)[-1])
        start = grid.get('startRowIndex', 0) + 1
        return list(range(start, start + count))

    def delete_rows(self, name: str, identities: Sequence[Hashable]) -> None:
        """
        Delete sheet rows in one batchUpdate.

        Rows are deleted bottom-up inside the request so earlier deletions do
        not shift the later ones; the request is applied atomically.
        """
        rows = sorted({int(i) for i in identities}, reverse=True)
        if not rows:
            return
        worksheet = self._get_worksheet(name)
        if worksheet is None:
            raise ValueError(f"Worksheet '{name}' not found")

        requests = [
            {
                'deleteDimension': {
                    'range': {
                        'sheetId': worksheet.id,
                        'dimension': 'ROWS',
                        'startIndex': row - 1,
                        'endIndex': row,
                    }
                }
            }
            for row in rows
        ]
        spreadsheet = self._open_spreadsheet()
        self._retry_with_backoff(lambda: spreadsheet.batch_update({'requests': requests}))
        # row_count on the cached worksheet is stale after a dimension delete
        self._worksheets_cache.pop(name, None)
        logger.info(f"Deleted {len(rows)} rows from '{name}'")

    def today(self, timezone: Optional[str] = None) -> date:
        """Today's date in the given zone, defaulting to the spreadsheet's time zone."""
        zone_name = timezone or self._open_spreadsheet().timezone
        try:
            zone = ZoneInfo(zone_name)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            logger.warning(f"Unknown spreadsheet time zone {zone_name!r}, using UTC")
            zone = dt_timezone.utc
        return datetime.now(zone).date()

    # ------------------------------------------------------------------
    # Import support
    # ------------------------------------------------------------------

    def replace_table(self, name: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        """
        Clear a tab and write header + rows (the CSV import target).

        Returns the number of data rows written.
        """
        header = list(header)
        values = [header] + [[to_cell(v) for v in row] for row in rows]
        worksheet = self._get_or_create_worksheet(name, ())

        self._retry_with_backoff(lambda: worksheet.clear())
        self._retry_with_backoff(lambda: worksheet.resize(rows=max(len(values), 2), cols=max(len(header), 1)))
        self._retry_with_backoff(lambda: worksheet.update(
            range_name='A1',
            values=values,
            value_input_option=ValueInputOption.user_entered,
        ))
        self._layouts.pop(name, None)

        try:
            self._retry_with_backoff(lambda: worksheet.columns_auto_resize(0, len(header)))
        except gspread.exceptions.APIError as e:
            logger.warning(f"Could not auto-resize columns on '{name}': {str(e)}")

        logger.info(f"Replaced '{name}' with {len(rows)} rows")
        return len(rows)

    def invalidate_caches(self) -> None:
        """Forget cached worksheet objects and header layouts; called at the start of each Load and Move."""
        self._worksheets_cache.clear()
        self._layouts.clear()
        logger.debug("Worksheet caches invalidated")
