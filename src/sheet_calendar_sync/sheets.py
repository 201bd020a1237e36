"""
Row store contract and its gspread worksheet implementation.
"""

import logging
from collections.abc import Sequence
from typing import Protocol

import gspread
from gspread.exceptions import APIError
from gspread.utils import DateTimeOption
from gspread.utils import ValueRenderOption
from gspread.utils import rowcol_to_a1

from sheet_calendar_sync.models import CalendarSyncError
from sheet_calendar_sync.records import COLUMNS
from sheet_calendar_sync.records import FIRST_DATA_ROW
from sheet_calendar_sync.records import HEADER_ROW

logger = logging.getLogger(__name__)

# Leading characters Sheets would read as a formula (or strip, for the apostrophe).
_FORMULA_PREFIXES = ("=", "+", "-", "@", "'")


class RowStore(Protocol):
    """A grid of rows in the fixed column order, below a header row."""

    def read_rows(self) -> list[list]: ...

    def replace_rows(self, rows: Sequence[Sequence]) -> None: ...

    def clear(self) -> None: ...

    def write_header(self) -> None: ...


def open_worksheet(credentials, spreadsheet_id: str, title: str) -> gspread.Worksheet:
    """Open ``title`` in the spreadsheet, creating the worksheet if missing."""
    try:
        spreadsheet = gspread.authorize(credentials).open_by_key(spreadsheet_id)
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info(f"Creating worksheet {title!r}")
            return spreadsheet.add_worksheet(title=title, rows=1000, cols=len(COLUMNS))
    except gspread.SpreadsheetNotFound as e:
        raise CalendarSyncError(f"Spreadsheet not found: {spreadsheet_id}") from e
    except APIError as e:
        raise CalendarSyncError(f"Sheets API error: {e}") from e


def escape_cell(value):
    """Keep text literal when written with USER_ENTERED input."""
    if isinstance(value, str) and value.startswith(_FORMULA_PREFIXES):
        return "'" + value
    return value


class WorksheetRowStore:
    """RowStore backed by a gspread Worksheet."""

    def __init__(self, worksheet: gspread.Worksheet):
        self.worksheet = worksheet

    def _data_range(self, last_row: int) -> str:
        first = rowcol_to_a1(FIRST_DATA_ROW, 1)
        last = rowcol_to_a1(max(last_row, FIRST_DATA_ROW), len(COLUMNS))
        return f"{first}:{last}"

    def read_rows(self) -> list[list]:
        try:
            return self.worksheet.get_values(
                self._data_range(self.worksheet.row_count),
                value_render_option=ValueRenderOption.unformatted,
                date_time_render_option=DateTimeOption.serial_number,
            )
        except APIError as e:
            raise CalendarSyncError(f"Failed to read rows: {e}") from e

    def clear(self) -> None:
        try:
            self.worksheet.batch_clear([self._data_range(self.worksheet.row_count)])
        except APIError as e:
            raise CalendarSyncError(f"Failed to clear rows: {e}") from e

    def replace_rows(self, rows: Sequence[Sequence]) -> None:
        self.clear()
        if not rows:
            return
        needed = FIRST_DATA_ROW + len(rows) - 1
        try:
            if needed > self.worksheet.row_count:
                self.worksheet.add_rows(needed - self.worksheet.row_count)
            self.worksheet.update(
                values=[[escape_cell(value) for value in r] for r in rows],
                range_name=self._data_range(needed),
                value_input_option="USER_ENTERED",
            )
        except APIError as e:
            raise CalendarSyncError(f"Failed to write rows: {e}") from e
        logger.debug(f"Wrote {len(rows)} rows to {self.worksheet.title!r}")

    def write_header(self) -> None:
        try:
            self.worksheet.update(
                values=[list(COLUMNS)],
                range_name=f"{rowcol_to_a1(HEADER_ROW, 1)}:{rowcol_to_a1(HEADER_ROW, len(COLUMNS))}",
            )
        except APIError as e:
            raise CalendarSyncError(f"Failed to write header: {e}") from e
