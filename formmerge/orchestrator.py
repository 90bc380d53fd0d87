"""Merge selected forms, archive the originals and mark them printed.

The run has four phases:

1. stage   -- re-validate each requested file and read its bytes, bounded by
              ``max_files`` input positions and ``max_total_bytes``;
2. merge   -- one request to the merge service; a failure here ends the run
              before anything is moved;
3. archive -- move each staged file from the completed folder to the archive,
              one at a time, skipping failures;
4. track   -- set "Printed At" for every form id found in an archived name.

Archived files are not moved back if the tracking phase fails.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol

from tqdm import tqdm

from .config import Settings
from .eligibility import is_eligible
from .models import (
    ArchiveOutcome,
    ErrorKind,
    FileHandle,
    MergeOutcome,
    MergePayload,
    MergeResult,
)
from .sheets import Sheet
from .sources import DocumentStore
from .utils import cell_text, extract_form_id, is_blank

log = logging.getLogger(__name__)

NO_FILES_SELECTED = "No files selected."
MISSING_COLUMNS = "Missing FormID or Printed At column in sheet."
NO_ELIGIBLE_FILES = "No eligible files under size cap."


class Merger(Protocol):
    def merge(self, payload: MergePayload) -> MergeResult: ...


# ---------------------------------------------------------------------------
# Stage
# ---------------------------------------------------------------------------


def stage_files(
    file_ids: Iterable[Any],
    store: DocumentStore,
    settings: Settings,
    *,
    progress: bool = False,
) -> tuple[MergePayload, list[FileHandle]]:
    """Read eligible files into a payload.

    Only the first ``max_files`` input positions are considered. Staging stops
    at the first file that would push the running total past
    ``max_total_bytes``; files staged before it are kept.
    """
    payload = MergePayload()
    staged: list[FileHandle] = []
    total_bytes = 0

    requested = [str(file_id) for file_id in list(file_ids)[: settings.max_files]]
    for file_id in tqdm(requested, desc="Staging", disable=not progress):
        try:
            handle = store.get_file(file_id)
            if not is_eligible(store, handle, settings):
                log.debug("Skipping ineligible file: %s", file_id)
                continue
            content = store.read_bytes(handle)
        except Exception as exc:
            log.warning("Skipping file (read error): %s - %s", file_id, exc)
            continue

        total_bytes += len(content)
        if total_bytes > settings.max_total_bytes:
            log.warning(
                "Size cap reached at %s (%s > %s bytes); staged %s file(s)",
                handle.name,
                total_bytes,
                settings.max_total_bytes,
                len(staged),
            )
            break

        payload.add(handle.name, content)
        staged.append(handle)

    return payload, staged


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------


def archive_files(
    staged: list[FileHandle],
    store: DocumentStore,
    settings: Settings,
) -> list[ArchiveOutcome]:
    """Move staged files to the archive folder, isolating per-file failures."""
    outcomes: list[ArchiveOutcome] = []
    for handle in staged:
        outcome = ArchiveOutcome(file_id=handle.id, name=handle.name)
        try:
            current = store.get_file(handle.id)
            store.move_file(current, settings.completed_folder_id, settings.archive_folder_id)
        except Exception as exc:
            log.error("Archive move failed %s -> %s", handle.id, exc)
            outcome.error = str(exc)
            outcome.error_kind = ErrorKind.TRANSIENT_IO
            outcomes.append(outcome)
            continue

        outcome.archived = True
        outcome.name = current.name
        outcome.form_id = extract_form_id(current.name)
        if outcome.form_id is None:
            log.warning("No FormID found in file name: %s", current.name)
        outcomes.append(outcome)
    return outcomes


# ---------------------------------------------------------------------------
# Track
# ---------------------------------------------------------------------------


def mark_printed(
    sheet: Sheet,
    form_id_col: int,
    printed_col: int,
    form_ids: Iterable[str],
    moment: datetime,
) -> int:
    """Rewrite the Printed At column; return the number of rows stamped.

    Rows whose form id is not in *form_ids* are written back with their
    current value.
    """
    wanted = set(form_ids)
    count = sheet.last_row() - 1
    if count <= 0 or not wanted:
        return 0

    ids = sheet.read_column(form_id_col, 2, count)
    existing = sheet.read_column(printed_col, 2, count)

    updates: list[Any] = []
    stamped = 0
    for id_cell, current in zip(ids, existing):
        if cell_text(id_cell) in wanted:
            updates.append(moment)
            stamped += 1
        else:
            updates.append(None if is_blank(current) else current)

    sheet.write_column(printed_col, 2, updates)
    return stamped


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def merge_and_archive(
    file_ids: Any,
    store: DocumentStore,
    sheet: Sheet,
    client: Merger,
    settings: Settings,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    progress: bool = False,
) -> MergeOutcome:
    """Run stage, merge, archive and track for the selected file ids."""
    if not isinstance(file_ids, (list, tuple)) or not file_ids:
        return MergeOutcome.failure(NO_FILES_SELECTED, ErrorKind.INPUT)

    t0 = time.perf_counter()
    form_id_col = sheet.column_index(settings.form_id_column)
    printed_col = sheet.column_index(settings.printed_at_column)
    if form_id_col is None or printed_col is None:
        log.error(
            "Sheet %r lacks %r or %r column",
            settings.sheet_name,
            settings.form_id_column,
            settings.printed_at_column,
        )
        return MergeOutcome.failure(MISSING_COLUMNS, ErrorKind.CONFIGURATION)

    # --- Step 1: Stage ---
    payload, staged = stage_files(file_ids, store, settings, progress=progress)
    log.info(
        "Staged %s of %s requested file(s), %s bytes",
        len(staged),
        len(file_ids),
        payload.total_bytes,
    )
    if not staged:
        return MergeOutcome.failure(NO_ELIGIBLE_FILES, ErrorKind.INPUT)

    # --- Step 2: Merge ---
    result = client.merge(payload)
    if not result.ok:
        log.error("Merge failed, nothing archived: %s", result.message)
        return MergeOutcome.failure(result.message, result.error_kind or ErrorKind.SERVICE)

    # --- Step 3: Archive ---
    outcomes = archive_files(staged, store, settings)
    archived = [o for o in outcomes if o.archived]
    failed = [o for o in outcomes if not o.archived]
    printed_ids = sorted({o.form_id for o in archived if o.form_id})
    log.info("Archived %s file(s), %s failed", len(archived), len(failed))

    # --- Step 4: Track ---
    sheet_updated = False
    if printed_ids:
        now = clock() if clock is not None else settings.now()
        try:
            stamped = mark_printed(sheet, form_id_col, printed_col, printed_ids, now)
            sheet_updated = True
            log.info(
                "Updated Printed At for %s form(s) (%s row(s))",
                len(printed_ids),
                stamped,
            )
        except Exception:
            log.exception(
                "Printed At update failed after archiving; rows for %s need reconciling",
                ", ".join(printed_ids),
            )

    log.info("Merge-and-archive completed in %.2fs", time.perf_counter() - t0)
    return MergeOutcome(
        ok=True,
        base64=result.base64,
        archived_ids=[o.file_id for o in archived],
        count_merged=len(payload),
        printed_form_ids=printed_ids,
        sheet_updated=sheet_updated,
        outcomes=outcomes,
        output_name=result.output_name,
    )
