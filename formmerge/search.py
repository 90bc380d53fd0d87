"""Search past submissions for the "recreate forms" screen.

Only rows with a real timestamp and a non-empty "Generated At" value are
returned, newest first.
"""

from __future__ import annotations

import logging
from datetime import datetime, time as dtime
from typing import Any, Optional

from .config import Settings
from .models import SearchQuery, SearchRow
from .sheets import Sheet
from .utils import cell_text, coerce_datetime, format_short_date, is_blank

log = logging.getLogger(__name__)

TIMESTAMP_COLUMN = "Timestamp"
FIRST_NAME_COLUMN = "First Name"
LAST_NAME_COLUMN = "Last Name"
GENERATED_AT_COLUMN = "Generated At"


class SearchColumnError(LookupError):
    """The response sheet lacks a column the search needs."""


def _parse_day(value: Optional[str], at: dtime) -> Optional[datetime]:
    if not value:
        return None
    return datetime.combine(datetime.strptime(value.strip(), "%Y-%m-%d").date(), at)


def _header_map(header_row: list[Any], required: list[str]) -> dict[str, int]:
    positions = {str(h).strip(): i for i, h in enumerate(header_row)}
    missing = [name for name in required if name not in positions]
    if missing:
        raise SearchColumnError(f"Missing column(s) in sheet: {', '.join(missing)}")
    return positions


def _cell(row: list[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _display_name(first: str, last: str) -> str:
    return f"{first.capitalize()} {last.capitalize()}".strip()


def search_rows(
    rows: list[list[Any]],
    query: SearchQuery,
    settings: Settings,
) -> list[SearchRow]:
    """Filter sheet *rows* (header row first) by *query*."""
    if not rows:
        return []

    cols = _header_map(
        rows[0],
        [
            TIMESTAMP_COLUMN,
            FIRST_NAME_COLUMN,
            LAST_NAME_COLUMN,
            GENERATED_AT_COLUMN,
            settings.form_id_column,
        ],
    )
    col_ts = cols[TIMESTAMP_COLUMN]
    col_fn = cols[FIRST_NAME_COLUMN]
    col_ln = cols[LAST_NAME_COLUMN]
    col_gen = cols[GENERATED_AT_COLUMN]
    col_id = cols[settings.form_id_column]

    start = _parse_day(query.start, dtime.min)
    end = _parse_day(query.end, dtime(23, 59, 59))
    first = (query.first or "").strip().lower()
    last = (query.last or "").strip().lower()
    form_id = (query.form_id or "").strip()
    tz = settings.tz

    results: list[SearchRow] = []
    for row in rows[1:]:
        ts = coerce_datetime(_cell(row, col_ts), tz)
        if ts is None:
            continue

        if start and ts < start:
            continue
        if end and ts > end:
            continue

        fn = cell_text(_cell(row, col_fn)).lower()
        ln = cell_text(_cell(row, col_ln)).lower()
        if first and first not in fn:
            continue
        if last and last not in ln:
            continue

        fid = cell_text(_cell(row, col_id))
        if form_id and fid != form_id:
            continue

        gen_raw = _cell(row, col_gen)
        if is_blank(gen_raw):
            continue
        gen_at = coerce_datetime(gen_raw, tz)

        results.append(
            SearchRow(
                timestamp=format_short_date(ts),
                name=_display_name(fn, ln),
                generated_at=format_short_date(gen_at) if gen_at else cell_text(gen_raw),
                form_id=fid,
                sort_key=ts,
            )
        )

    results.sort(key=lambda r: r.sort_key, reverse=True)
    return results


def search_sheet(sheet: Sheet, query: SearchQuery, settings: Settings) -> list[SearchRow]:
    rows = sheet.read_rows()
    results = search_rows(rows, query, settings)
    log.info("Recreate search matched %s of %s row(s)", len(results), max(0, len(rows) - 1))
    return results
