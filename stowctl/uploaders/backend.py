"""Contract between the upload task and the transfer backend."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Protocol

from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.uploaders.calls import TransferCall
from stowctl.uploaders.payload import Payload

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class ResumableStatus:
    """Server view of a resumable session."""

    transferred_bytes: int
    total_bytes: int
    finalized: bool = False
    metadata: Optional[ObjectMetadata] = None


class TransferBackend(Protocol):
    """Issues single upload requests.

    Every method returns at once with a TransferCall. Cancelling the call
    settles it with CallCanceledError; any other failure settles it with a
    StowCtlError (or any exception, which the task reports as a transport
    failure). Retrying inside one call is the backend's business.
    """

    def create_session(
        self,
        destination: Destination,
        total_bytes: int,
        metadata: Optional[ObjectMetadata],
        *,
        token: Optional[str],
    ) -> TransferCall[str]:
        """Start a resumable session; resolves to the session URL."""
        ...

    def fetch_status(
        self,
        session_url: str,
        total_bytes: int,
        *,
        token: Optional[str],
    ) -> TransferCall[ResumableStatus]:
        """Ask how many bytes the session holds."""
        ...

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
        """Send ``chunk`` at ``offset``; finalizes when it reaches ``total_bytes``.

        The status reports how many bytes the server acknowledged, which may
        be fewer than were sent.
        """
        ...

    def one_shot(
        self,
        destination: Destination,
        payload: Payload,
        metadata: Optional[ObjectMetadata],
        *,
        token: Optional[str],
    ) -> TransferCall[ObjectMetadata]:
        """Upload the whole payload and its metadata in one request."""
        ...

    def fetch_metadata(
        self,
        destination: Destination,
        *,
        token: Optional[str],
    ) -> TransferCall[ObjectMetadata]:
        """Read the metadata of a stored object."""
        ...
