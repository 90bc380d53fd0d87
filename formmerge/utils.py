"""Cross-cutting helpers: constants, form-id parsing, cell coercion."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PDF_MIME_TYPE = "application/pdf"
PDF_BASE64_SIGNATURE = "JVBERi0"  # base64 of b"%PDF-"
MERGE_ENDPOINT_PATH = "/merge"
OUTPUT_NAME_FORMAT = "Merged_%Y%m%d_%H%M%S.pdf"
LISTING_DATE_FORMAT = "%Y-%m-%d %H:%M"

# Sheets serial dates count days from 1899-12-30.
SHEETS_EPOCH = datetime(1899, 12, 30)

_FORM_ID_RE = re.compile(r"_(\d{12})_")


# ---------------------------------------------------------------------------
# Form identifiers
# ---------------------------------------------------------------------------


def extract_form_id(name: str) -> Optional[str]:
    """Return the 12-digit form id embedded in *name*, or ``None``.

    ``PetPantryForm_First_Last_100000000254_20251030_1819.pdf`` -> ``100000000254``
    """
    match = _FORM_ID_RE.search(name or "")
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def cell_text(value: Any) -> str:
    """Render a sheet cell as trimmed text (whole floats lose their ``.0``)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def coerce_datetime(value: Any, tz: tzinfo | None = None) -> Optional[datetime]:
    """Interpret a cell as a naive local datetime.

    Accepts ``datetime`` values and Sheets serial numbers. Anything else,
    including text that merely looks like a date, is not a date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None and tz is not None:
            value = value.astimezone(tz)
        return value.replace(tzinfo=None)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return SHEETS_EPOCH + timedelta(days=float(value))
    return None


def to_serial(value: datetime) -> float:
    """Sheets serial number for *value*, using its wall-clock time."""
    return (value.replace(tzinfo=None) - SHEETS_EPOCH) / timedelta(days=1)


def format_short_date(value: datetime) -> str:
    """``M/D/YYYY`` without zero padding."""
    return f"{value.month}/{value.day}/{value.year}"


def output_name_for(moment: datetime) -> str:
    return moment.strftime(OUTPUT_NAME_FORMAT)
