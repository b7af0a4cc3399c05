"""Pytest configuration and fixtures for stowctl tests."""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Optional

import pytest

from stowctl.core.auth import StaticTokenProvider
from stowctl.core.config import (
    ENV_BUCKET,
    ENV_PROFILE,
    ENV_TIMEOUT,
    ENV_TOKEN,
    ENV_URL,
    ENV_VERIFY_SSL,
)
from stowctl.core.exceptions import CallCanceledError
from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.uploaders.backend import ResumableStatus
from stowctl.uploaders.calls import TransferCall
from stowctl.uploaders.payload import BytesPayload

KIB = 1024
MIB = 1024 * 1024

SESSION_URL = "https://firebasestorage.googleapis.com/v0/b/demo-bucket/o?upload_id=abc123"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_yaml() -> str:
    """Sample config YAML content."""
    return """
default_profile: test
output_format: table

profiles:
  test:
    url: https://storage-test.example.org
    bucket: test-bucket
    verify_ssl: false
    timeout: 30
    chunk_size: 524288

  production:
    url: https://firebasestorage.googleapis.com
    bucket: prod-bucket
    verify_ssl: true
    timeout: 60
    max_status_refetches: 5
"""


# =============================================================================
# Fake Backends
# =============================================================================


class ManualCall(TransferCall[Any]):
    """Call settled by the test.

    With ``settle_on_cancel`` False, ``cancel()`` only records the request so
    the test decides when the call reports back.
    """

    def __init__(self, operation: str, settle_on_cancel: bool = True) -> None:
        super().__init__(operation)
        self.settle_on_cancel = settle_on_cancel
        self.cancel_count = 0

    def cancel(self) -> bool:
        self.cancel_count += 1
        if self.settle_on_cancel:
            return super().cancel()
        self.cancel_event.set()
        return not self.done()

    def report_canceled(self) -> bool:
        return self.set_exception(CallCanceledError(self.operation))


@dataclass
class Request:
    """One backend request seen by a fake backend."""

    operation: str
    args: dict[str, Any]
    call: TransferCall[Any]


class ManualBackend:
    """Records requests and leaves every call pending."""

    def __init__(self, settle_on_cancel: bool = True) -> None:
        self.settle_on_cancel = settle_on_cancel
        self.requests: list[Request] = []

    def _record(self, operation: str, **args: Any) -> ManualCall:
        call = ManualCall(operation, self.settle_on_cancel)
        self.requests.append(Request(operation, args, call))
        return call

    @property
    def operations(self) -> list[str]:
        return [r.operation for r in self.requests]

    @property
    def last(self) -> Request:
        return self.requests[-1]

    def create_session(self, destination, total_bytes, metadata, *, token):
        return self._record(
            "create_session",
            destination=destination,
            total_bytes=total_bytes,
            metadata=metadata,
            token=token,
        )

    def fetch_status(self, session_url, total_bytes, *, token):
        return self._record(
            "fetch_status", session_url=session_url, total_bytes=total_bytes, token=token
        )

    def continue_upload(
        self, session_url, chunk, offset, total_bytes, *, token, on_progress=None
    ):
        return self._record(
            "continue_upload",
            session_url=session_url,
            chunk=chunk,
            offset=offset,
            total_bytes=total_bytes,
            token=token,
            on_progress=on_progress,
        )

    def one_shot(self, destination, payload, metadata, *, token):
        return self._record(
            "one_shot", destination=destination, payload=payload, metadata=metadata, token=token
        )

    def fetch_metadata(self, destination, *, token):
        return self._record("fetch_metadata", destination=destination, token=token)


class FakeServer:
    """Synchronous in-memory storage server.

    Every call settles before it is returned. ``ack_limit`` caps how many
    bytes one continue request stores, and ``failures`` queues exceptions
    per operation name.
    """

    def __init__(self, ack_limit: Optional[int] = None) -> None:
        self.ack_limit = ack_limit
        self.received = 0
        self.finalized = False
        self.failures: dict[str, list[BaseException]] = {}
        self.calls: list[str] = []
        self.chunks: list[tuple[int, int]] = []
        self.tokens: list[Optional[str]] = []
        self.progress_reports: list[int] = []
        self.destination: Optional[Destination] = None
        self.metadata: Optional[ObjectMetadata] = None

    def fail_next(self, operation: str, error: BaseException) -> None:
        self.failures.setdefault(operation, []).append(error)

    def _begin(self, operation: str, token: Optional[str]) -> Optional[BaseException]:
        self.calls.append(operation)
        self.tokens.append(token)
        queued = self.failures.get(operation)
        return queued.pop(0) if queued else None

    def stored_metadata(self, total_bytes: int) -> ObjectMetadata:
        assert self.destination is not None
        base = self.metadata or ObjectMetadata()
        return base.model_copy(
            update={
                "bucket": self.destination.bucket,
                "full_path": self.destination.full_path,
                "size": total_bytes,
                "generation": "1",
            }
        )

    def create_session(self, destination, total_bytes, metadata, *, token):
        error = self._begin("create_session", token)
        if error is not None:
            return TransferCall.failed(error, "create session")
        self.destination = destination
        self.metadata = metadata
        return TransferCall.completed(SESSION_URL, "create session")

    def fetch_status(self, session_url, total_bytes, *, token):
        error = self._begin("fetch_status", token)
        if error is not None:
            return TransferCall.failed(error, "fetch status")
        status = ResumableStatus(self.received, total_bytes, finalized=self.finalized)
        return TransferCall.completed(status, "fetch status")

    def continue_upload(
        self, session_url, chunk, offset, total_bytes, *, token, on_progress=None
    ):
        error = self._begin("continue_upload", token)
        if error is not None:
            return TransferCall.failed(error, "continue upload")
        self.chunks.append((offset, len(chunk)))
        stored = len(chunk) if self.ack_limit is None else min(len(chunk), self.ack_limit)
        self.received = offset + stored
        self.progress_reports.append(stored)
        if on_progress is not None:
            on_progress(stored)
        if self.received >= total_bytes:
            self.finalized = True
            status = ResumableStatus(
                self.received, total_bytes, finalized=True, metadata=self.stored_metadata(total_bytes)
            )
        else:
            status = ResumableStatus(self.received, total_bytes)
        return TransferCall.completed(status, "continue upload")

    def one_shot(self, destination, payload, metadata, *, token):
        error = self._begin("one_shot", token)
        if error is not None:
            return TransferCall.failed(error, "one-shot upload")
        self.destination = destination
        self.metadata = metadata
        self.received = payload.size
        self.finalized = True
        return TransferCall.completed(self.stored_metadata(payload.size), "one-shot upload")

    def fetch_metadata(self, destination, *, token):
        error = self._begin("fetch_metadata", token)
        if error is not None:
            return TransferCall.failed(error, "fetch metadata")
        return TransferCall.completed(self.stored_metadata(self.received), "fetch metadata")


@dataclass
class EventLog:
    """Collects everything a task delivers to its observers."""

    progress: list[Any] = field(default_factory=list)
    complete: list[Any] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)

    def attach(self, task: Any) -> Callable[[], None]:
        return task.subscribe(
            next=self.progress.append,
            error=self.errors.append,
            complete=self.complete.append,
        )

    @property
    def transferred(self) -> list[int]:
        return [s.transferred_bytes for s in self.progress]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def destination() -> Destination:
    return Destination("demo-bucket", "uploads/data.bin")


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider("test-token")


@pytest.fixture
def manual_backend() -> ManualBackend:
    return ManualBackend()


@pytest.fixture
def holding_backend() -> ManualBackend:
    """Backend whose calls stay pending after cancel() until the test reports back."""
    return ManualBackend(settle_on_cancel=False)


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def make_payload() -> Callable[[int], BytesPayload]:
    """Build an in-memory payload of ``size`` bytes with a repeating pattern."""

    def _make(size: int) -> BytesPayload:
        pattern = bytes(range(256))
        data = (pattern * (size // 256 + 1))[:size]
        return BytesPayload(data, "application/octet-stream")

    return _make


@pytest.fixture
def server_factory() -> Callable[..., FakeServer]:
    """Build a FakeServer with custom options."""
    return FakeServer


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep STOW_* variables from the caller's shell out of the tests."""
    for name in (ENV_URL, ENV_BUCKET, ENV_TOKEN, ENV_PROFILE, ENV_VERIFY_SSL, ENV_TIMEOUT):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_package_log_level() -> Generator[None, None, None]:
    """Undo the level that CLI commands set on the package logger."""
    package = logging.getLogger("stowctl")
    level = package.level
    yield
    package.setLevel(level)
