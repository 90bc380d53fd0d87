"""Client for the remote PDF merge service.

The service accepts ``POST {base_url}/merge`` with a JSON body::

    {"outputName": "Merged_20251030_181900.pdf",
     "files": [{"name": "...", "contentBase64": "..."}]}

and answers either with JSON ``{"contentBase64": "..."}`` or with the raw PDF.
Every outcome, including network failures, is returned as a
:class:`~formmerge.models.MergeResult`; nothing is raised to the caller.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, tzinfo
from typing import Any, Optional

import httpx

from .config import Settings
from .models import (
    BinaryDocument,
    JsonDocument,
    MergeError,
    MergePayload,
    MergeResponse,
    MergeResult,
)
from .utils import MERGE_ENDPOINT_PATH, PDF_BASE64_SIGNATURE, output_name_for

log = logging.getLogger(__name__)

ACCEPT_HEADER = "application/json, application/pdf"
NON_TEXT_PREVIEW = "<non-text response>"


def merge_url(base_url: str) -> str:
    return str(base_url or "").rstrip("/") + MERGE_ENDPOINT_PATH


def encode_payload(payload: MergePayload, output_name: str) -> dict[str, Any]:
    return {
        "outputName": output_name,
        "files": [
            {
                "name": f.name,
                "contentBase64": base64.b64encode(f.content).decode("ascii"),
            }
            for f in payload.files
        ],
    }


def _safe_text(response: httpx.Response) -> str:
    try:
        return response.content.decode(response.encoding or "utf-8")
    except (UnicodeDecodeError, LookupError):
        return NON_TEXT_PREVIEW


def classify_response(response: httpx.Response) -> MergeResponse:
    """Sort a 2xx response into JSON document, binary document or error.

    Raises ``ValueError`` when a JSON body cannot be decoded.
    """
    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        data = response.json()
        encoded = data.get("contentBase64") if isinstance(data, dict) else None
        if not encoded:
            return MergeError("Merge response missing contentBase64.")
        return JsonDocument(str(encoded))
    return BinaryDocument(response.content)


def resolve_response(classified: MergeResponse, output_name: str = "") -> MergeResult:
    """Turn a classified response into a result.

    Raw bodies are only accepted when their base64 form carries the PDF
    signature.
    """
    if isinstance(classified, JsonDocument):
        return MergeResult.success(classified.content_base64, output_name)
    if isinstance(classified, BinaryDocument):
        encoded = base64.b64encode(classified.content).decode("ascii")
        if encoded.startswith(PDF_BASE64_SIGNATURE):
            return MergeResult.success(encoded, output_name)
        return MergeResult.failure("Unexpected merge response type.", output_name=output_name)
    return MergeResult.failure(classified.message, output_name=output_name)


class MergeServiceClient:
    """Send staged files to the merge endpoint and normalize the answer."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        preview_length: int = 200,
        tz: tzinfo | None = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = merge_url(base_url)
        self.timeout = timeout
        self.preview_length = preview_length
        self._tz = tz
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: Optional[httpx.Client] = None
    ) -> "MergeServiceClient":
        return cls(
            settings.merge_service_url,
            timeout=settings.request_timeout,
            preview_length=settings.preview_length,
            tz=settings.tz,
            client=client,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "MergeServiceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def merge(self, payload: MergePayload, output_name: Optional[str] = None) -> MergeResult:
        output_name = output_name or output_name_for(datetime.now(self._tz))
        body = encode_payload(payload, output_name)
        log.info(
            "Posting %s file(s) (%s bytes) to %s as %s",
            len(payload),
            payload.total_bytes,
            self.url,
            output_name,
        )

        try:
            response = self._client.post(
                self.url,
                json=body,
                headers={"Accept": ACCEPT_HEADER},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            log.error("Merge service unreachable: %s", exc)
            return MergeResult.failure(
                f"Merge service unreachable: {exc}", output_name=output_name
            )

        code = response.status_code
        log.info("Merge response %s %s", code, response.headers.get("content-type", ""))
        if not 200 <= code < 300:
            preview = _safe_text(response)[: self.preview_length]
            return MergeResult.failure(f"Merge error {code}: {preview}", output_name=output_name)

        try:
            classified = classify_response(response)
        except ValueError as exc:
            log.error("Merge parse error: %s", exc)
            return MergeResult.failure(f"Merge parse error: {exc}", output_name=output_name)

        result = resolve_response(classified, output_name)
        if not result.ok:
            log.error("Merge rejected: %s", result.message)
        return result
