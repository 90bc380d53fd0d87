"""Decide which staged files may be merged."""

from __future__ import annotations

import logging

from .config import Settings
from .models import CandidateFile, FileHandle
from .sources import DocumentStore
from .utils import PDF_MIME_TYPE, extract_form_id

log = logging.getLogger(__name__)


def is_eligible(store: DocumentStore, handle: FileHandle, settings: Settings) -> bool:
    """A PDF inside the completed folder and not already in the archive."""
    if handle.mime_type != PDF_MIME_TYPE:
        return False
    return store.is_member_of(handle, settings.completed_folder_id) and not store.is_member_of(
        handle, settings.archive_folder_id
    )


def to_candidate(handle: FileHandle) -> CandidateFile:
    return CandidateFile(
        id=handle.id,
        name=handle.name,
        size=handle.size,
        created_at=handle.created_at,
        form_id=extract_form_id(handle.name),
    )


def scan_candidates(store: DocumentStore, settings: Settings) -> list[CandidateFile]:
    """List eligible PDFs in the completed folder, oldest first."""
    candidates: list[CandidateFile] = []
    skipped = 0
    for handle in store.list_files(settings.completed_folder_id):
        if not is_eligible(store, handle, settings):
            skipped += 1
            continue
        candidates.append(to_candidate(handle))

    candidates.sort(key=lambda c: c.created_at)
    log.info("Found %s eligible PDF(s), skipped %s other file(s)", len(candidates), skipped)
    return candidates
