"""Shared fixtures for the formmerge test suite.

The document store and sheet are in-memory fakes; the merge service is an
``httpx.MockTransport`` so no network or Google credentials are needed.
"""

from __future__ import annotations

import base64
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator

import httpx
import pytest

from formmerge import (
    DocumentStore,
    FileHandle,
    MergePayload,
    MergeResult,
    MergeServiceClient,
    Settings,
    Sheet,
)

# ---------------------------------------------------------------------------
# Configure verbose logging for test debugging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)

COMPLETED = "completed-folder"
ARCHIVE = "archive-folder"
PDF_BYTES = b"%PDF-1.7\n%fake pdf body\n"
MERGED_PDF = b"%PDF-1.7\n%merged\n"
MERGED_B64 = base64.b64encode(MERGED_PDF).decode("ascii")
BASE_TIME = datetime(2025, 10, 30, 18, 19, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryStore(DocumentStore):
    """Drive-like store keeping files, contents and every call made."""

    def __init__(self) -> None:
        self.files: dict[str, FileHandle] = {}
        self.contents: dict[str, bytes] = {}
        self.fail_reads: set[str] = set()
        self.fail_moves: set[str] = set()
        self.reads: list[str] = []
        self.moves: list[tuple[str, str, str]] = []
        self.get_calls: list[str] = []

    def add(
        self,
        file_id: str,
        name: str | None = None,
        *,
        parents: tuple[str, ...] = (COMPLETED,),
        content: bytes = PDF_BYTES,
        mime_type: str = "application/pdf",
        created_offset: int = 0,
    ) -> FileHandle:
        handle = FileHandle(
            id=file_id,
            name=name or f"{file_id}.pdf",
            mime_type=mime_type,
            size=len(content),
            created_at=BASE_TIME + timedelta(minutes=created_offset),
            parent_ids=parents,
        )
        self.files[file_id] = handle
        self.contents[file_id] = content
        return handle

    def list_files(self, folder_id: str) -> Iterator[FileHandle]:
        for handle in list(self.files.values()):
            if folder_id in handle.parent_ids:
                yield handle

    def get_file(self, file_id: str) -> FileHandle:
        self.get_calls.append(file_id)
        if file_id not in self.files:
            raise KeyError(f"File not found: {file_id}")
        return self.files[file_id]

    def read_bytes(self, handle: FileHandle) -> bytes:
        self.reads.append(handle.id)
        if handle.id in self.fail_reads:
            raise OSError(f"download failed for {handle.id}")
        return self.contents[handle.id]

    def move_file(self, handle: FileHandle, from_folder: str, to_folder: str) -> FileHandle:
        if handle.id in self.fail_moves:
            raise RuntimeError(f"move failed for {handle.id}")
        parents = [p for p in handle.parent_ids if p != from_folder]
        if to_folder not in parents:
            parents.append(to_folder)
        moved = FileHandle(
            id=handle.id,
            name=handle.name,
            mime_type=handle.mime_type,
            size=handle.size,
            created_at=handle.created_at,
            parent_ids=tuple(parents),
        )
        self.files[handle.id] = moved
        self.moves.append((handle.id, from_folder, to_folder))
        return moved

    def folder(self, folder_id: str) -> list[str]:
        return [f.id for f in self.files.values() if folder_id in f.parent_ids]


class InMemorySheet(Sheet):
    """Row-major sheet; ``rows[0]`` is the header row."""

    def __init__(self, rows: list[list[Any]]) -> None:
        self.rows = [list(r) for r in rows]
        self.writes: list[tuple[int, int, list[Any]]] = []
        self.fail_writes = False

    def headers(self) -> list[str]:
        return [str(h) for h in self.rows[0]] if self.rows else []

    def last_row(self) -> int:
        return max(1, len(self.rows))

    def read_column(self, col_index: int, start_row: int, count: int) -> list[Any]:
        cells = []
        for r in range(start_row - 1, start_row - 1 + count):
            row = self.rows[r] if r < len(self.rows) else []
            cells.append(row[col_index - 1] if col_index - 1 < len(row) else None)
        return cells

    def write_column(self, col_index: int, start_row: int, values: list[Any]) -> None:
        if self.fail_writes:
            raise RuntimeError("sheet is read-only")
        self.writes.append((col_index, start_row, list(values)))
        for offset, value in enumerate(values):
            row = self.rows[start_row - 1 + offset]
            while len(row) < col_index:
                row.append(None)
            row[col_index - 1] = value

    def read_rows(self) -> list[list[Any]]:
        return [list(r) for r in self.rows]

    def column(self, header: str) -> list[Any]:
        idx = self.headers().index(header)
        return [row[idx] if idx < len(row) else None for row in self.rows[1:]]


class StubMerger:
    """Merge client double returning a fixed result and recording payloads."""

    def __init__(self, result: MergeResult | None = None) -> None:
        self.result = result or MergeResult.success(MERGED_B64, "Merged_test.pdf")
        self.payloads: list[MergePayload] = []

    def merge(self, payload: MergePayload) -> MergeResult:
        self.payloads.append(payload)
        return self.result


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        completed_folder_id=COMPLETED,
        archive_folder_id=ARCHIVE,
        merge_service_url="https://merge.example.com/",
        source_sheet_id="sheet-id",
        timezone="UTC",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def tracking_sheet() -> InMemorySheet:
    return InMemorySheet(
        [
            ["Timestamp", "First Name", "Last Name", "FormID", "Generated At", "Printed At"],
            [45960.5, "ann", "lee", 100000000001, 45960.6, ""],
            [45961.5, "bob", "ray", "100000000002", 45961.6, "10/1/2025 9:00:00"],
            [45962.5, "cy", "oh", 100000000003, "", None],
        ]
    )


@pytest.fixture
def stub_merger() -> StubMerger:
    return StubMerger()


@pytest.fixture
def make_client(settings) -> Callable[..., MergeServiceClient]:
    """Build a client whose HTTP calls go to *handler*."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> MergeServiceClient:
        transport = httpx.MockTransport(handler)
        return MergeServiceClient.from_settings(
            settings, client=httpx.Client(transport=transport, follow_redirects=True)
        )

    return _make


def form_name(form_id: str, first: str = "Ann", last: str = "Lee") -> str:
    return f"PetPantryForm_{first}_{last}_{form_id}_20251030_1819.pdf"
