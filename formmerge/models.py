"""Shared data models for the merge-and-archive workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class ErrorKind(Enum):
    """Why an operation produced no usable result."""

    CONFIGURATION = "configuration"
    INPUT = "input"
    TRANSIENT_IO = "transient_io"
    SERVICE = "service"


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileHandle:
    """A file as reported by the document store."""

    id: str
    name: str
    mime_type: str
    size: int
    created_at: datetime
    parent_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class CandidateFile:
    """A PDF waiting in the staging folder."""

    id: str
    name: str
    size: int
    created_at: datetime
    form_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Merge service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayloadFile:
    name: str
    content: bytes


@dataclass
class MergePayload:
    """Ordered files staged for one merge request."""

    files: list[PayloadFile] = field(default_factory=list)

    def add(self, name: str, content: bytes) -> None:
        self.files.append(PayloadFile(name=name, content=content))

    @property
    def total_bytes(self) -> int:
        return sum(len(f.content) for f in self.files)

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class JsonDocument:
    content_base64: str


@dataclass(frozen=True)
class BinaryDocument:
    content: bytes


@dataclass(frozen=True)
class MergeError:
    message: str


MergeResponse = Union[JsonDocument, BinaryDocument, MergeError]


@dataclass(frozen=True)
class MergeResult:
    ok: bool
    base64: str = ""
    message: str = ""
    error_kind: Optional[ErrorKind] = None
    output_name: str = ""

    @classmethod
    def success(cls, base64: str, output_name: str = "") -> "MergeResult":
        return cls(ok=True, base64=base64, output_name=output_name)

    @classmethod
    def failure(
        cls,
        message: str,
        error_kind: ErrorKind = ErrorKind.SERVICE,
        output_name: str = "",
    ) -> "MergeResult":
        return cls(ok=False, message=message, error_kind=error_kind, output_name=output_name)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass
class ArchiveOutcome:
    """What happened to one staged file after the merge."""

    file_id: str
    name: str = ""
    archived: bool = False
    form_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


@dataclass
class MergeOutcome:
    ok: bool
    base64: str = ""
    archived_ids: list[str] = field(default_factory=list)
    count_merged: int = 0
    printed_form_ids: list[str] = field(default_factory=list)
    sheet_updated: bool = False
    outcomes: list[ArchiveOutcome] = field(default_factory=list)
    output_name: str = ""
    message: str = ""
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, message: str, error_kind: ErrorKind) -> "MergeOutcome":
        return cls(ok=False, message=message, error_kind=error_kind)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "message": self.message}
        return {
            "ok": True,
            "base64": self.base64,
            "archivedIds": list(self.archived_ids),
            "countMerged": self.count_merged,
            "printedFormIds": list(self.printed_form_ids),
            "sheetUpdated": self.sheet_updated,
            "outputName": self.output_name,
        }


# ---------------------------------------------------------------------------
# Recreate search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchQuery:
    start: Optional[str] = None
    end: Optional[str] = None
    first: Optional[str] = None
    last: Optional[str] = None
    form_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SearchQuery":
        data = data or {}
        return cls(
            start=data.get("start") or None,
            end=data.get("end") or None,
            first=data.get("first") or None,
            last=data.get("last") or None,
            form_id=data.get("formId") or data.get("form_id") or None,
        )


@dataclass(frozen=True)
class SearchRow:
    timestamp: str
    name: str
    generated_at: str
    form_id: str
    sort_key: Optional[datetime] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, str]:
        return {
            "timestamp": self.timestamp,
            "name": self.name,
            "generatedAt": self.generated_at,
            "formId": self.form_id,
        }
