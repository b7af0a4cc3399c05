"""Upload engine for stowctl.

This package provides the pieces an upload is made of:
- UploadTask, the state machine that drives one upload
- the TransferBackend contract and its cancellable TransferCall handles
- payloads, chunk sizing, observers and the completion cell

Use `UploadService` from `stowctl.services.uploads` to get tasks wired to
the HTTP backend and your configured credentials.
"""

from stowctl.uploaders.backend import ResumableStatus, TransferBackend
from stowctl.uploaders.calls import TransferCall
from stowctl.uploaders.chunking import ChunkSizer
from stowctl.uploaders.constants import (
    DEFAULT_CHUNK_SIZE,
    MAX_CHUNK_SIZE,
    RESUMABLE_THRESHOLD,
)
from stowctl.uploaders.observers import Observer, ObserverRegistry, UploadEvent
from stowctl.uploaders.payload import BytesPayload, FilePayload, Payload
from stowctl.uploaders.settlement import SettlementCell
from stowctl.uploaders.states import Effect, Event, InternalState, transition
from stowctl.uploaders.task import UploadTask

__all__ = [
    # Constants
    "DEFAULT_CHUNK_SIZE",
    "MAX_CHUNK_SIZE",
    "RESUMABLE_THRESHOLD",
    # Engine
    "UploadTask",
    "InternalState",
    "Event",
    "Effect",
    "transition",
    "ChunkSizer",
    # Events
    "UploadEvent",
    "Observer",
    "ObserverRegistry",
    "SettlementCell",
    # Backend contract
    "TransferBackend",
    "TransferCall",
    "ResumableStatus",
    # Payloads
    "Payload",
    "BytesPayload",
    "FilePayload",
]
