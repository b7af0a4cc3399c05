"""HTTP transfer backend speaking the resumable upload protocol.

Each backend call runs on a worker thread and is exposed to the upload task
as a TransferCall. Retrying a single request is handled here, through
StorageClient; the task never retries a failed call.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import httpx

from stowctl.core.client import StorageClient
from stowctl.core.exceptions import CallCanceledError, ServerResponseError
from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.services.base import API_PREFIX, BaseService
from stowctl.uploaders.backend import ProgressCallback, ResumableStatus
from stowctl.uploaders.calls import TransferCall
from stowctl.uploaders.constants import DEFAULT_BACKEND_WORKERS, STREAM_PIECE_SIZE
from stowctl.uploaders.payload import Payload

logger = logging.getLogger(__name__)

# =============================================================================
# Protocol Headers
# =============================================================================

HEADER_PROTOCOL = "X-Goog-Upload-Protocol"
HEADER_COMMAND = "X-Goog-Upload-Command"
HEADER_STATUS = "X-Goog-Upload-Status"
HEADER_UPLOAD_URL = "X-Goog-Upload-URL"
HEADER_OFFSET = "X-Goog-Upload-Offset"
HEADER_SIZE_RECEIVED = "X-Goog-Upload-Size-Received"
HEADER_CONTENT_LENGTH = "X-Goog-Upload-Header-Content-Length"
HEADER_CONTENT_TYPE = "X-Goog-Upload-Header-Content-Type"

STATUS_ACTIVE = "active"
STATUS_FINAL = "final"

DEFAULT_CONTENT_TYPE = "application/octet-stream"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def _content_type(metadata: Optional[ObjectMetadata], payload: Optional[Payload] = None) -> str:
    if metadata is not None and metadata.content_type:
        return metadata.content_type
    if payload is not None and payload.content_type:
        return payload.content_type
    return DEFAULT_CONTENT_TYPE


def _upload_status(resp: httpx.Response, url: str) -> str:
    status = resp.headers.get(HEADER_STATUS, "").lower()
    if status not in (STATUS_ACTIVE, STATUS_FINAL):
        raise ServerResponseError(url, resp.status_code, f"unexpected upload status {status!r}")
    return status


def _parse_metadata(resp: httpx.Response, url: str) -> ObjectMetadata:
    try:
        return ObjectMetadata.from_api(resp.json())
    except ValueError as e:
        raise ServerResponseError(url, resp.status_code, f"invalid metadata: {e}") from e


def build_multipart_body(
    metadata: dict[str, Any],
    data: bytes,
    content_type: str,
    boundary: str,
) -> bytes:
    """Assemble a multipart/related body: JSON metadata, then the object bytes."""
    head = (
        f"--{boundary}\r\n"
        f"Content-Type: {JSON_CONTENT_TYPE}\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--".encode("utf-8")
    return head + data + tail


# =============================================================================
# HttpTransferBackend
# =============================================================================


class HttpTransferBackend(BaseService):
    """TransferBackend implementation over the storage REST API."""

    def __init__(
        self,
        client: StorageClient,
        *,
        executor: ThreadPoolExecutor | None = None,
        workers: int = DEFAULT_BACKEND_WORKERS,
        api_prefix: str = API_PREFIX,
        piece_size: int = STREAM_PIECE_SIZE,
    ) -> None:
        super().__init__(client, api_prefix)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="stowctl-transfer"
        )
        self.piece_size = piece_size

    def close(self) -> None:
        """Stop the worker pool if this backend created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # =========================================================================
    # Resumable Session
    # =========================================================================

    def create_session(
        self,
        destination: Destination,
        total_bytes: int,
        metadata: Optional[ObjectMetadata],
        *,
        token: Optional[str],
    ) -> TransferCall[str]:
        def _run(call: TransferCall[str]) -> str:
            url = self._bucket_path(destination)
            body = (metadata or ObjectMetadata()).to_upload_dict(destination.full_path)
            resp = self.client.post(
                url,
                token=token,
                params={"name": destination.full_path},
                headers={
                    HEADER_PROTOCOL: "resumable",
                    HEADER_COMMAND: "start",
                    HEADER_CONTENT_LENGTH: str(total_bytes),
                    HEADER_CONTENT_TYPE: _content_type(metadata),
                    "Content-Type": JSON_CONTENT_TYPE,
                },
                content=json.dumps(body).encode("utf-8"),
                cancel_event=call.cancel_event,
            )
            _upload_status(resp, url)
            session_url = resp.headers.get(HEADER_UPLOAD_URL)
            if not session_url:
                raise ServerResponseError(url, resp.status_code, "missing upload URL")
            logger.debug("Created resumable session for %s", destination)
            return session_url

        return TransferCall.submit(self._executor, _run, "create session")

    def fetch_status(
        self,
        session_url: str,
        total_bytes: int,
        *,
        token: Optional[str],
    ) -> TransferCall[ResumableStatus]:
        def _run(call: TransferCall[ResumableStatus]) -> ResumableStatus:
            resp = self.client.post(
                session_url,
                token=token,
                headers={HEADER_PROTOCOL: "resumable", HEADER_COMMAND: "query"},
                cancel_event=call.cancel_event,
            )
            status = _upload_status(resp, session_url)
            try:
                received = int(resp.headers.get(HEADER_SIZE_RECEIVED, ""))
            except ValueError:
                raise ServerResponseError(session_url, resp.status_code, "missing size received")
            return ResumableStatus(received, total_bytes, finalized=status == STATUS_FINAL)

        return TransferCall.submit(self._executor, _run, "fetch status")

    def continue_upload(
        self,
        session_url: str,
        chunk: bytes,
        offset: int,
        total_bytes: int,
        *,
        token: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferCall[ResumableStatus]:
        end = offset + len(chunk)
        command = "upload, finalize" if end >= total_bytes else "upload"

        def _run(call: TransferCall[ResumableStatus]) -> ResumableStatus:
            def body() -> Iterator[bytes]:
                for start in range(0, len(chunk), self.piece_size):
                    if call.cancel_requested:
                        raise CallCanceledError("continue upload")
                    piece = chunk[start:start + self.piece_size]
                    yield piece
                    if on_progress is not None:
                        on_progress(start + len(piece))

            resp = self.client.post(
                session_url,
                token=token,
                headers={
                    HEADER_PROTOCOL: "resumable",
                    HEADER_COMMAND: command,
                    HEADER_OFFSET: str(offset),
                    "Content-Type": DEFAULT_CONTENT_TYPE,
                    "Content-Length": str(len(chunk)),
                },
                content_factory=body,
                cancel_event=call.cancel_event,
            )
            status = _upload_status(resp, session_url)
            received = end
            if HEADER_SIZE_RECEIVED in resp.headers:
                received = int(resp.headers[HEADER_SIZE_RECEIVED])
            if status == STATUS_FINAL:
                return ResumableStatus(
                    received,
                    total_bytes,
                    finalized=True,
                    metadata=_parse_metadata(resp, session_url),
                )
            return ResumableStatus(received, total_bytes)

        return TransferCall.submit(self._executor, _run, "continue upload")

    # =========================================================================
    # Single Requests
    # =========================================================================

    def one_shot(
        self,
        destination: Destination,
        payload: Payload,
        metadata: Optional[ObjectMetadata],
        *,
        token: Optional[str],
    ) -> TransferCall[ObjectMetadata]:
        def _run(call: TransferCall[ObjectMetadata]) -> ObjectMetadata:
            url = self._bucket_path(destination)
            boundary = uuid.uuid4().hex
            content_type = _content_type(metadata, payload)
            body_meta = (metadata or ObjectMetadata()).to_upload_dict(destination.full_path)
            body_meta.setdefault("contentType", content_type)
            resp = self.client.post(
                url,
                token=token,
                params={"name": destination.full_path},
                headers={
                    HEADER_PROTOCOL: "multipart",
                    "Content-Type": f"multipart/related; boundary={boundary}",
                },
                content=build_multipart_body(body_meta, payload.read_all(), content_type, boundary),
                cancel_event=call.cancel_event,
            )
            return _parse_metadata(resp, url)

        return TransferCall.submit(self._executor, _run, "one-shot upload")

    def fetch_metadata(
        self,
        destination: Destination,
        *,
        token: Optional[str],
    ) -> TransferCall[ObjectMetadata]:
        def _run(call: TransferCall[ObjectMetadata]) -> ObjectMetadata:
            url = self._object_path(destination)
            resp = self.client.get(url, token=token, cancel_event=call.cancel_event)
            return _parse_metadata(resp, url)

        return TransferCall.submit(self._executor, _run, "fetch metadata")
