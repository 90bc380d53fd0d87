"""Public entry points returning plain ``{"ok": ...}`` dicts.

These are the seams a UI or the CLI calls. Unexpected exceptions are logged
and reported as ``{"ok": False, "message": ...}``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .config import Settings
from .eligibility import scan_candidates
from .models import SearchQuery
from .orchestrator import Merger, merge_and_archive
from .search import search_sheet
from .sheets import Sheet
from .sources import DocumentStore
from .utils import LISTING_DATE_FORMAT

log = logging.getLogger(__name__)


def _failure(exc: Exception) -> dict[str, Any]:
    return {"ok": False, "message": str(exc) or exc.__class__.__name__}


def list_new_forms(store: DocumentStore, settings: Settings) -> dict[str, Any]:
    """List PDFs waiting to be merged, oldest first."""
    try:
        candidates = scan_candidates(store, settings)
    except Exception as exc:
        log.exception("list_new_forms failed")
        return _failure(exc)

    tz = settings.tz
    files = [
        {
            "id": c.id,
            "name": c.name,
            "size": c.size,
            "created": c.created_at.astimezone(tz).strftime(LISTING_DATE_FORMAT),
        }
        for c in candidates
    ]
    return {"ok": True, "files": files, "count": len(files)}


def get_merged_pdf_and_archive(
    file_ids: Any,
    store: DocumentStore,
    sheet: Sheet,
    client: Merger,
    settings: Settings,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    progress: bool = False,
) -> dict[str, Any]:
    """Merge the selected PDFs and archive the originals."""
    try:
        outcome = merge_and_archive(
            file_ids,
            store,
            sheet,
            client,
            settings,
            clock=clock,
            progress=progress,
        )
    except Exception as exc:
        log.exception("get_merged_pdf_and_archive failed")
        return _failure(exc)
    return outcome.to_dict()


def search_forms_for_recreate(
    query: Optional[dict[str, Any]],
    sheet: Sheet,
    settings: Settings,
) -> dict[str, Any]:
    """Search generated submissions by date range, name or FormID."""
    try:
        rows = search_sheet(sheet, SearchQuery.from_dict(query), settings)
    except Exception as exc:
        log.error("search_forms_for_recreate failed: %s", exc)
        return _failure(exc)
    return {"ok": True, "rows": [r.to_dict() for r in rows]}
