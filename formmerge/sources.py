"""Document store access: the store interface and its Google Drive backend."""

from __future__ import annotations

import io
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator

from dateutil import parser as date_parser

from .models import FileHandle

log = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
]
FILE_FIELDS = "id, name, mimeType, size, createdTime, parents"


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class DocumentStore(ABC):
    """Folder-based file storage as seen by the workflow."""

    @abstractmethod
    def list_files(self, folder_id: str) -> Iterator[FileHandle]:
        """Yield every file directly inside *folder_id*."""

    @abstractmethod
    def get_file(self, file_id: str) -> FileHandle:
        """Look up one file. Raises if it does not exist."""

    @abstractmethod
    def read_bytes(self, handle: FileHandle) -> bytes:
        """Download the file content."""

    @abstractmethod
    def move_file(self, handle: FileHandle, from_folder: str, to_folder: str) -> FileHandle:
        """Add *handle* to *to_folder* and remove it from *from_folder*.

        A file already in *to_folder* is not added again.
        """

    def is_member_of(self, handle: FileHandle, folder_id: str) -> bool:
        return folder_id in handle.parent_ids


# ---------------------------------------------------------------------------
# Google Drive API
# ---------------------------------------------------------------------------


def authenticate(credentials_file: Path, token_file: Path):
    """OAuth2 authentication with token caching."""
    from google.auth.transport.requests import Request
    from google.oauth2.credentials import Credentials
    from google_auth_oauthlib.flow import InstalledAppFlow

    creds = None
    if token_file.exists():
        creds = Credentials.from_authorized_user_file(str(token_file), SCOPES)
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            if not credentials_file.exists():
                log.error(
                    f"Credentials file not found: {credentials_file}\n"
                    "  1. Go to Google Cloud Console -> APIs & Services -> Credentials\n"
                    "  2. Create OAuth 2.0 Client ID (Desktop app)\n"
                    "  3. Enable the Drive and Sheets APIs for the project\n"
                    "  4. Download JSON and save as credentials.json in project root"
                )
                sys.exit(1)
            flow = InstalledAppFlow.from_client_secrets_file(
                str(credentials_file), SCOPES
            )
            creds = flow.run_local_server(port=0)
        token_file.write_text(creds.to_json())
    return creds


def build_services(creds) -> tuple[Any, Any]:
    """Return (drive_service, sheets_service) for *creds*."""
    from googleapiclient.discovery import build

    drive = build("drive", "v3", credentials=creds, cache_discovery=False)
    sheets = build("sheets", "v4", credentials=creds, cache_discovery=False)
    return drive, sheets


def _to_handle(item: dict[str, Any]) -> FileHandle:
    return FileHandle(
        id=item["id"],
        name=item.get("name", ""),
        mime_type=item.get("mimeType", ""),
        size=int(item.get("size") or 0),
        created_at=date_parser.isoparse(item["createdTime"]),
        parent_ids=tuple(item.get("parents") or ()),
    )


class DriveDocumentStore(DocumentStore):
    """:class:`DocumentStore` over a Drive v3 service object."""

    def __init__(self, service: Any, page_size: int = 100):
        self._service = service
        self._page_size = page_size

    def list_files(self, folder_id: str) -> Iterator[FileHandle]:
        page_token = None
        query = f"'{folder_id}' in parents and trashed=false"
        while True:
            response = (
                self._service.files()
                .list(
                    q=query,
                    spaces="drive",
                    fields=f"nextPageToken, files({FILE_FIELDS})",
                    pageToken=page_token,
                    pageSize=self._page_size,
                )
                .execute()
            )
            for item in response.get("files", []):
                yield _to_handle(item)
            page_token = response.get("nextPageToken")
            if not page_token:
                break

    def get_file(self, file_id: str) -> FileHandle:
        item = self._service.files().get(fileId=file_id, fields=FILE_FIELDS).execute()
        return _to_handle(item)

    def read_bytes(self, handle: FileHandle) -> bytes:
        from googleapiclient.http import MediaIoBaseDownload

        buffer = io.BytesIO()
        request = self._service.files().get_media(fileId=handle.id)
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        while not done:
            _status, done = downloader.next_chunk()
        log.debug("  Downloaded: %s (%s bytes)", handle.name, buffer.tell())
        return buffer.getvalue()

    def move_file(self, handle: FileHandle, from_folder: str, to_folder: str) -> FileHandle:
        params: dict[str, str] = {}
        if to_folder not in handle.parent_ids:
            params["addParents"] = to_folder
        if from_folder in handle.parent_ids:
            params["removeParents"] = from_folder
        if not params:
            log.debug("  Already moved: %s", handle.name)
            return handle
        item = (
            self._service.files()
            .update(fileId=handle.id, fields=FILE_FIELDS, **params)
            .execute()
        )
        return _to_handle(item)
