"""Tracking spreadsheet access: the sheet interface and its Google Sheets backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from .utils import to_serial

log = logging.getLogger(__name__)


class Sheet(ABC):
    """A header row followed by data rows. Rows and columns are 1-based."""

    @abstractmethod
    def headers(self) -> list[str]:
        """Return the header row."""

    @abstractmethod
    def last_row(self) -> int:
        """Index of the last row holding data (1 when only headers exist)."""

    @abstractmethod
    def read_column(self, col_index: int, start_row: int, count: int) -> list[Any]:
        """Return exactly *count* cells, padding missing ones with ``None``."""

    @abstractmethod
    def write_column(self, col_index: int, start_row: int, values: list[Any]) -> None:
        """Overwrite ``len(values)`` cells starting at *start_row*."""

    @abstractmethod
    def read_rows(self) -> list[list[Any]]:
        """Return every row including the header row."""

    def column_index(self, header: str) -> Optional[int]:
        """1-based index of *header* (whitespace-insensitive), or ``None``."""
        for i, name in enumerate(self.headers(), start=1):
            if str(name).strip() == header:
                return i
        return None


def column_letter(col_index: int) -> str:
    """1 -> ``A``, 27 -> ``AA``."""
    if col_index < 1:
        raise ValueError(f"Column index must be >= 1: {col_index}")
    letters = ""
    while col_index:
        col_index, rem = divmod(col_index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _to_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return to_serial(value)
    return value


class GoogleSheet(Sheet):
    """:class:`Sheet` over a Sheets v4 service object.

    Reads use unformatted values with dates as serial numbers, so date cells
    can be told apart from text. Writes use ``RAW`` so cells read back are
    stored unchanged; datetimes are written as serial numbers and keep the
    column's date format.
    """

    def __init__(self, service: Any, spreadsheet_id: str, sheet_name: str):
        self._service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def _range(self, a1: Optional[str] = None) -> str:
        escaped = self.sheet_name.replace("'", "''")
        return f"'{escaped}'!{a1}" if a1 else f"'{escaped}'"

    def _get(self, a1: Optional[str] = None) -> list[list[Any]]:
        response = (
            self._service.spreadsheets()
            .values()
            .get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(a1),
                valueRenderOption="UNFORMATTED_VALUE",
                dateTimeRenderOption="SERIAL_NUMBER",
            )
            .execute()
        )
        return response.get("values", [])

    def headers(self) -> list[str]:
        rows = self._get("1:1")
        return [str(h) for h in rows[0]] if rows else []

    def read_rows(self) -> list[list[Any]]:
        return self._get()

    def last_row(self) -> int:
        return max(1, len(self._get()))

    def read_column(self, col_index: int, start_row: int, count: int) -> list[Any]:
        if count <= 0:
            return []
        letter = column_letter(col_index)
        rows = self._get(f"{letter}{start_row}:{letter}{start_row + count - 1}")
        cells = [row[0] if row else None for row in rows]
        cells.extend([None] * (count - len(cells)))
        return cells

    def write_column(self, col_index: int, start_row: int, values: list[Any]) -> None:
        if not values:
            return
        letter = column_letter(col_index)
        a1 = f"{letter}{start_row}:{letter}{start_row + len(values) - 1}"
        body = {"values": [[_to_cell(v)] for v in values]}
        (
            self._service.spreadsheets()
            .values()
            .update(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(a1),
                valueInputOption="RAW",
                body=body,
            )
            .execute()
        )
        log.debug("Wrote %s cell(s) to %s", len(values), a1)


def open_sheet(service: Any, spreadsheet_id: str, sheet_name: str) -> GoogleSheet:
    return GoogleSheet(service, spreadsheet_id, sheet_name)
