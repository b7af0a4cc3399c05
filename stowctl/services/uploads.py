"""Upload service wiring configuration, credentials and the upload engine.

Provides UploadService, which creates UploadTask instances bound to the HTTP
transfer backend and keeps track of them so they can be canceled together.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Optional, Union

from stowctl.core.auth import CachedTokenProvider, TokenProvider
from stowctl.core.client import StorageClient
from stowctl.core.config import Profile
from stowctl.core.exceptions import StowCtlError
from stowctl.core.logging import get_audit_logger
from stowctl.core.validation import validate_chunk_size
from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.models.progress import TaskState, UploadSnapshot, UploadSummary
from stowctl.uploaders.backend import TransferBackend
from stowctl.uploaders.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_STATUS_REFETCHES,
    DEFAULT_MAX_UPLOAD_RETRY_TIME,
    MAX_CHUNK_SIZE,
)
from stowctl.uploaders.payload import Payload
from stowctl.uploaders.task import UploadTask

from .base import BaseService
from .transfer import HttpTransferBackend

logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike, bytes, bytearray, memoryview, Payload]


def make_payload(source: Source, content_type: Optional[str] = None) -> Payload:
    """Wrap a path, raw bytes or an existing payload.

    Raises:
        FileNotFoundError: If a path does not name a regular file.
    """
    if isinstance(source, Payload):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return Payload.from_bytes(source, content_type)
    return Payload.from_path(Path(source), content_type)


class UploadService(BaseService):
    """Starts and tracks uploads against one storage endpoint.

    Args:
        client: StorageClient for the endpoint.
        token_provider: Source of access tokens; defaults to STOW_TOKEN or the
            token cache.
        backend: Transfer backend; defaults to HttpTransferBackend over
            ``client``.
        default_bucket: Bucket used for destinations given as bare paths.
        chunk_size: Base chunk size for resumable uploads.
        max_chunk_size: Ceiling for chunk growth.
        max_status_refetches: Interrupted calls allowed in a row per task.
    """

    def __init__(
        self,
        client: StorageClient,
        *,
        token_provider: Optional[TokenProvider] = None,
        backend: Optional[TransferBackend] = None,
        default_bucket: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_chunk_size: int = MAX_CHUNK_SIZE,
        max_status_refetches: Optional[int] = DEFAULT_MAX_STATUS_REFETCHES,
    ) -> None:
        super().__init__(client)
        self.token_provider = token_provider or CachedTokenProvider(url=client.base_url)
        self._owns_backend = backend is None
        self.backend: TransferBackend = backend or HttpTransferBackend(client)
        self.default_bucket = default_bucket
        self.chunk_size = validate_chunk_size(chunk_size)
        self.max_chunk_size = max_chunk_size
        self.max_status_refetches = max_status_refetches
        self._tasks: list[UploadTask] = []
        self._tasks_lock = threading.Lock()

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        *,
        token_provider: Optional[TokenProvider] = None,
        client: Optional[StorageClient] = None,
    ) -> UploadService:
        """Build a service from a configuration profile."""
        client = client or StorageClient(
            base_url=profile.url,
            timeout=profile.timeout,
            max_retries=profile.max_retries,
            max_retry_time=DEFAULT_MAX_UPLOAD_RETRY_TIME,
            verify_ssl=profile.verify_ssl,
        )
        return cls(
            client,
            token_provider=token_provider,
            default_bucket=profile.bucket,
            chunk_size=profile.chunk_size,
            max_status_refetches=profile.max_status_refetches,
        )

    # =========================================================================
    # Task Tracking
    # =========================================================================

    @property
    def tasks(self) -> list[UploadTask]:
        """Tasks started by this service that have not finished yet."""
        with self._tasks_lock:
            return [t for t in self._tasks if not t.done()]

    def _register(self, task: UploadTask) -> None:
        with self._tasks_lock:
            self._tasks.append(task)
        task.add_done_callback(lambda _f: self._forget(task))

    def _forget(self, task: UploadTask) -> None:
        with self._tasks_lock:
            if task in self._tasks:
                self._tasks.remove(task)

    def cancel_all(self) -> int:
        """Cancel every task that is still running.

        Returns:
            Number of tasks that accepted the cancel.
        """
        canceled = 0
        for task in self.tasks:
            if task.cancel():
                canceled += 1
        if canceled:
            logger.info("Canceled %d upload(s)", canceled)
        return canceled

    def close(self) -> None:
        """Cancel outstanding tasks and release the HTTP resources."""
        self.cancel_all()
        if self._owns_backend and isinstance(self.backend, HttpTransferBackend):
            self.backend.close()
        self.client.close()

    def __enter__(self) -> UploadService:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # Uploads
    # =========================================================================

    def resolve_destination(self, destination: Union[str, Destination]) -> Destination:
        if isinstance(destination, Destination):
            return destination
        return Destination.from_url(destination, self.default_bucket)

    def start_upload(
        self,
        source: Source,
        destination: Union[str, Destination],
        *,
        metadata: Optional[ObjectMetadata] = None,
        content_type: Optional[str] = None,
        custom_metadata: Optional[Mapping[str, str]] = None,
        chunk_size: Optional[int] = None,
        autostart: bool = True,
    ) -> UploadTask:
        """Create an upload task and start it.

        Args:
            source: File path, bytes, or Payload to upload.
            destination: ``gs://bucket/path`` URL, a bare path in the default
                bucket, or a Destination.
            metadata: Base metadata for the object.
            content_type: Content type; overrides the one in ``metadata``.
            custom_metadata: User key/value pairs stored with the object.
            chunk_size: Base chunk size for this upload.
            autostart: Start driving the task immediately.

        Returns:
            The running UploadTask.

        Raises:
            InvalidDestinationError: If the destination cannot be parsed.
            InvalidChunkSizeError: If chunk_size is not a multiple of 256 KiB.
            FileNotFoundError: If ``source`` is a path that is not a file.
        """
        dest = self.resolve_destination(destination)
        payload = make_payload(source, content_type)
        base_chunk = validate_chunk_size(chunk_size) if chunk_size else self.chunk_size

        meta = metadata or ObjectMetadata()
        updates: dict[str, Any] = {}
        if content_type:
            updates["content_type"] = content_type
        if custom_metadata:
            updates["custom_metadata"] = {**(meta.custom_metadata or {}), **custom_metadata}
        if updates:
            meta = meta.model_copy(update=updates)
        meta = meta.with_defaults(content_type=payload.content_type)

        task = UploadTask(
            dest,
            payload,
            self.backend,
            self.token_provider,
            meta,
            base_chunk_size=base_chunk,
            max_chunk_size=max(self.max_chunk_size, base_chunk),
            max_status_refetches=self.max_status_refetches,
            autostart=False,
        )
        self._register(task)
        if autostart:
            task.start()
        return task

    def upload(
        self,
        source: Source,
        destination: Union[str, Destination],
        *,
        progress_callback: Optional[Callable[[UploadSnapshot], Any]] = None,
        timeout: Optional[float] = None,
        **options: Any,
    ) -> UploadSummary:
        """Upload and block until the task finishes.

        Args:
            source: File path, bytes, or Payload to upload.
            destination: Target object.
            progress_callback: Receives every progress snapshot.
            timeout: Seconds to wait before giving up on the result.
            **options: Passed to ``start_upload``.

        Returns:
            UploadSummary; failures are reported in ``errors`` rather than
            raised.
        """
        start = time.monotonic()
        task = self.start_upload(source, destination, autostart=False, **options)
        if progress_callback is not None:
            task.on("progress", progress_callback)
        task.start()

        errors: list[str] = []
        try:
            task.result(timeout)
        except StowCtlError as e:
            errors.append(str(e))

        return self.summarize(task, time.monotonic() - start, errors)

    def summarize(
        self,
        task: UploadTask,
        duration: float,
        errors: Optional[list[str]] = None,
    ) -> UploadSummary:
        """Build the summary for a finished task and record it in the audit log."""
        snapshot = task.snapshot
        success = not errors and snapshot.state is TaskState.SUCCESS
        summary = UploadSummary(
            success=success,
            destination=str(task.destination),
            state=snapshot.state.value,
            total_bytes=snapshot.total_bytes,
            transferred_bytes=snapshot.transferred_bytes,
            duration=duration,
            errors=list(errors or []),
            metadata=snapshot.metadata if success else None,
        )
        get_audit_logger().log_upload(
            summary.destination,
            state=summary.state,
            transferred_bytes=summary.transferred_bytes,
            total_bytes=summary.total_bytes,
            success=summary.success,
            details={"errors": summary.errors} if summary.errors else None,
        )
        return summary
