"""List, merge and archive completed PDF forms.

Public API -- all symbols that tests and external code import live here.
Internally the code is split across focused submodules; this file
re-exports the stable public surface so ``from formmerge import X`` works.
"""

from .api import (
    get_merged_pdf_and_archive,
    list_new_forms,
    search_forms_for_recreate,
)
from .config import ConfigError, Settings, load_settings, settings_from_mapping
from .eligibility import is_eligible, scan_candidates
from .merge_client import (
    MergeServiceClient,
    classify_response,
    encode_payload,
    merge_url,
    resolve_response,
)
from .models import (
    ArchiveOutcome,
    BinaryDocument,
    CandidateFile,
    ErrorKind,
    FileHandle,
    JsonDocument,
    MergeError,
    MergeOutcome,
    MergePayload,
    MergeResult,
    SearchQuery,
    SearchRow,
)
from .orchestrator import archive_files, mark_printed, merge_and_archive, stage_files
from .search import SearchColumnError, search_rows, search_sheet
from .sheets import GoogleSheet, Sheet, column_letter, open_sheet
from .sources import DocumentStore, DriveDocumentStore, authenticate, build_services
from .utils import (
    PDF_BASE64_SIGNATURE,
    PDF_MIME_TYPE,
    coerce_datetime,
    extract_form_id,
    format_short_date,
)

__all__ = [
    # Models
    "ArchiveOutcome",
    "BinaryDocument",
    "CandidateFile",
    "ErrorKind",
    "FileHandle",
    "JsonDocument",
    "MergeError",
    "MergeOutcome",
    "MergePayload",
    "MergeResult",
    "SearchQuery",
    "SearchRow",
    # Constants
    "PDF_MIME_TYPE",
    "PDF_BASE64_SIGNATURE",
    # Config
    "ConfigError",
    "Settings",
    "load_settings",
    "settings_from_mapping",
    # Utils
    "extract_form_id",
    "coerce_datetime",
    "format_short_date",
    # Sources
    "DocumentStore",
    "DriveDocumentStore",
    "authenticate",
    "build_services",
    # Sheets
    "Sheet",
    "GoogleSheet",
    "open_sheet",
    "column_letter",
    # Merge service
    "MergeServiceClient",
    "merge_url",
    "encode_payload",
    "classify_response",
    "resolve_response",
    # Eligibility
    "is_eligible",
    "scan_candidates",
    # Orchestration
    "stage_files",
    "archive_files",
    "mark_printed",
    "merge_and_archive",
    # Search
    "SearchColumnError",
    "search_rows",
    "search_sheet",
    # Entry points
    "list_new_forms",
    "get_merged_pdf_and_archive",
    "search_forms_for_recreate",
]
