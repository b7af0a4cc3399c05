"""Upload task engine.

An UploadTask drives one payload to a terminal outcome (success, canceled
or error). It picks a one-shot request for small payloads and a resumable
session for large ones, keeps at most one backend call in flight, grows the
chunk size while chunks keep landing, and lets callers pause, resume or
cancel at any time.

Callers observe the task two ways that share one event source: handlers
registered with ``on``/``subscribe``, and a future that settles once with
the final snapshot or error.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Future
from typing import Any, Optional

from stowctl.core.auth import TokenProvider
from stowctl.core.exceptions import (
    AuthFailure,
    CallCanceledError,
    RetryExhaustedError,
    StowCtlError,
    TransportFailure,
    UploadCanceledError,
)
from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.models.progress import TaskState, UploadSnapshot
from stowctl.uploaders.backend import ResumableStatus, TransferBackend
from stowctl.uploaders.calls import TransferCall
from stowctl.uploaders.chunking import ChunkSizer
from stowctl.uploaders.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_STATUS_REFETCHES,
    MAX_CHUNK_SIZE,
    RESUMABLE_THRESHOLD,
)
from stowctl.uploaders.observers import (
    Observer,
    ObserverRegistry,
    Unsubscribe,
    UploadEvent,
    deliver,
)
from stowctl.uploaders.payload import Payload
from stowctl.uploaders.settlement import SettlementCell
from stowctl.uploaders.states import Effect, Event, InternalState, transition

logger = logging.getLogger(__name__)

Step = Callable[[Optional[str]], None]


class UploadTask:
    """Uploads one payload and reports progress.

    Args:
        destination: Bucket and object path to write.
        payload: Bytes to upload.
        backend: Issues the individual requests.
        token_provider: Resolves the access token before every request.
        metadata: Metadata to set on the object.
        base_chunk_size: First chunk size of a resumable session.
        max_chunk_size: Ceiling for chunk growth.
        resumable_threshold: Payloads larger than this use a resumable session.
        max_status_refetches: Interrupted calls allowed in a row before the
            task gives up with RetryExhaustedError. None means no limit.
        autostart: Start driving the upload immediately.
    """

    def __init__(
        self,
        destination: Destination,
        payload: Payload,
        backend: TransferBackend,
        token_provider: TokenProvider,
        metadata: Optional[ObjectMetadata] = None,
        *,
        base_chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_chunk_size: int = MAX_CHUNK_SIZE,
        resumable_threshold: int = RESUMABLE_THRESHOLD,
        max_status_refetches: Optional[int] = DEFAULT_MAX_STATUS_REFETCHES,
        autostart: bool = True,
    ) -> None:
        self.destination = destination
        self.payload = payload
        self.backend = backend
        self.token_provider = token_provider
        self.max_status_refetches = max_status_refetches

        self._lock = threading.RLock()
        self._state = InternalState.RUNNING
        self._metadata = metadata
        self._total = payload.size
        self._transferred = 0
        self._resumable = self._total > resumable_threshold
        self._chunks = ChunkSizer(base_chunk_size, max_chunk_size)
        self._session_url: Optional[str] = None
        self._need_status = False
        self._need_metadata = False
        self._status_refetches = 0
        self._call: Optional[TransferCall[Any]] = None
        self._step_pending = False
        self._started = False
        self._driving = False
        self._drive_requested = False
        self._error: Optional[BaseException] = None

        self._observers: ObserverRegistry[UploadSnapshot] = ObserverRegistry()
        self._settlement: SettlementCell[UploadSnapshot] = SettlementCell()

        if autostart:
            self.start()

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def state(self) -> TaskState:
        return self._state.external

    @property
    def internal_state(self) -> InternalState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        """Stored error; set only once the task is CANCELED or ERROR."""
        return self._error

    @property
    def total_bytes(self) -> int:
        return self._total

    @property
    def transferred_bytes(self) -> int:
        return self._transferred

    @property
    def resumable(self) -> bool:
        return self._resumable

    @property
    def session_url(self) -> Optional[str]:
        return self._session_url

    @property
    def chunk_multiplier(self) -> int:
        return self._chunks.multiplier

    @property
    def metadata(self) -> Optional[ObjectMetadata]:
        return self._metadata

    @property
    def snapshot(self) -> UploadSnapshot:
        """Immutable view of the current progress."""
        with self._lock:
            metadata = self._metadata.model_copy(deep=True) if self._metadata else None
            return UploadSnapshot(
                transferred_bytes=self._transferred,
                total_bytes=self._total,
                state=self._state.external,
                metadata=metadata,
            )

    # =========================================================================
    # Control
    # =========================================================================

    def start(self) -> None:
        """Begin uploading. Calling it again has no effect."""
        with self._lock:
            if self._started:
                return
            self._started = True
            logger.debug(
                "Starting %s upload of %d bytes to %s",
                "resumable" if self._resumable else "one-shot",
                self._total,
                self.destination,
            )
            self._drive()

    def pause(self) -> bool:
        """Pause a running upload.

        Returns:
            True if the task was running and is now pausing.
        """
        return self._dispatch(Event.PAUSE)

    def resume(self) -> bool:
        """Resume a paused or pausing upload.

        Returns:
            True if the task is now running again.
        """
        return self._dispatch(Event.RESUME)

    def cancel(self) -> bool:
        """Cancel a running or pausing upload.

        Returns:
            True if the task is now canceling.
        """
        return self._dispatch(Event.CANCEL)

    # =========================================================================
    # Observers
    # =========================================================================

    def on(self, event: str | UploadEvent, handler: Callable[[Any], Any]) -> Unsubscribe:
        """Register a handler for one channel.

        ``progress`` and ``complete`` handlers receive an UploadSnapshot,
        ``error`` handlers the stored exception. The new handler is called
        right away with the current status.

        Returns:
            Callable that removes this registration.
        """
        channel = UploadEvent.from_string(event)
        return self._add_observer(Observer.for_event(channel, handler))

    def subscribe(
        self,
        next: Optional[Callable[[UploadSnapshot], Any]] = None,
        error: Optional[Callable[[BaseException], Any]] = None,
        complete: Optional[Callable[[UploadSnapshot], Any]] = None,
    ) -> Unsubscribe:
        """Register handlers for all three channels at once."""
        return self._add_observer(Observer(next=next, error=error, complete=complete))

    def _add_observer(self, observer: Observer[UploadSnapshot]) -> Unsubscribe:
        with self._lock:
            unsubscribe = self._observers.add(observer)
            self._notify_observer(observer, self.snapshot)
            return unsubscribe

    # =========================================================================
    # Future Interface
    # =========================================================================

    @property
    def future(self) -> Future[UploadSnapshot]:
        return self._settlement.future

    def then(
        self,
        on_fulfilled: Optional[Callable[[UploadSnapshot], Any]] = None,
        on_rejected: Optional[Callable[[BaseException], Any]] = None,
    ) -> Future[Any]:
        return self._settlement.then(on_fulfilled, on_rejected)

    def catch(self, on_rejected: Callable[[BaseException], Any]) -> Future[Any]:
        return self._settlement.catch(on_rejected)

    def result(self, timeout: Optional[float] = None) -> UploadSnapshot:
        """Block until the upload finishes.

        Raises:
            UploadCanceledError: If the upload was canceled.
            StowCtlError: If the upload failed.
        """
        return self.future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout)

    def done(self) -> bool:
        return self.future.done()

    def add_done_callback(self, fn: Callable[[Future[UploadSnapshot]], Any]) -> None:
        self.future.add_done_callback(fn)

    # =========================================================================
    # State Machine
    # =========================================================================

    def _dispatch(
        self,
        event: Event,
        *,
        error: Optional[BaseException] = None,
        metadata: Optional[ObjectMetadata] = None,
    ) -> bool:
        with self._lock:
            result = transition(self._state, event)
            if not result.accepted:
                logger.debug("Ignoring %s in state %s", event.value, self._state.value)
                return False

            previous, self._state = self._state, result.state
            if previous is not result.state:
                logger.debug(
                    "%s: %s -> %s on %s",
                    self.destination,
                    previous.value,
                    result.state.value,
                    event.value,
                )

            for effect in result.effects:
                if effect is Effect.CANCEL_CALL:
                    if self._call is not None:
                        self._call.cancel()
                    elif not self._step_pending:
                        # Nothing in flight will report back, so wind down now
                        self._dispatch(Event.CALL_CANCELED)
                elif effect is Effect.REFETCH_STATUS:
                    self._need_status = True
                elif effect is Effect.FETCH_METADATA:
                    self._need_metadata = True
                elif effect is Effect.SET_CANCELED_ERROR:
                    self._error = UploadCanceledError()
                elif effect is Effect.SET_ERROR:
                    self._error = error
                elif effect is Effect.STORE_METADATA:
                    self._metadata = metadata
                elif effect is Effect.NOTIFY:
                    self._notify_observers()
                elif effect is Effect.START:
                    self._drive()
            return True

    # =========================================================================
    # Step Orchestration
    # =========================================================================

    def _drive(self) -> None:
        # Calls that complete synchronously re-enter here; loop instead of recursing
        with self._lock:
            self._drive_requested = True
            if self._driving:
                return
            self._driving = True
            try:
                while self._drive_requested:
                    self._drive_requested = False
                    self._next_step()
            finally:
                self._driving = False

    def _next_step(self) -> None:
        if (
            not self._started
            or self._state is not InternalState.RUNNING
            or self._step_pending
        ):
            return

        step: Step
        if self._resumable:
            if self._session_url is None:
                step = self._create_session
            elif self._need_status:
                step = self._fetch_status
            elif self._need_metadata:
                # The session finalized but the response carrying metadata was lost
                step = self._fetch_metadata
            else:
                step = self._continue_upload
        else:
            step = self._one_shot

        self._step_pending = True
        self._resolve_token(step)

    def _resolve_token(self, step: Step) -> None:
        try:
            token_future = self.token_provider.get_token()
        except Exception as e:
            self._step_pending = False
            self._fail(_as_auth_failure(e))
            return
        token_future.add_done_callback(lambda f: self._on_token(f, step))

    def _on_token(self, token_future: Future[Optional[str]], step: Step) -> None:
        with self._lock:
            state = self._state
            if state is InternalState.RUNNING:
                error: Optional[BaseException]
                if token_future.cancelled():
                    error = CancelledError("token request was cancelled")
                else:
                    error = token_future.exception()
                if error is not None:
                    self._step_pending = False
                    self._fail(_as_auth_failure(error))
                    return
                self._issue(step, token_future.result())
                return

            self._step_pending = False
            if state in (InternalState.PAUSING, InternalState.CANCELING):
                # A control request arrived while the token was resolving
                self._dispatch(Event.CALL_CANCELED)

    def _issue(self, step: Step, token: Optional[str]) -> None:
        try:
            step(token)
        except Exception as e:
            logger.debug("Could not issue %s", getattr(step, "__name__", step), exc_info=True)
            self._call = None
            self._step_pending = False
            self._fail(_as_transport_failure(e))

    def _track(
        self,
        call: TransferCall[Any],
        on_done: Callable[[TransferCall[Any]], None],
    ) -> None:
        self._call = call
        call.add_done_callback(lambda c: self._finish_call(c, on_done))

    def _finish_call(
        self,
        call: TransferCall[Any],
        on_done: Callable[[TransferCall[Any]], None],
    ) -> None:
        with self._lock:
            if self._call is not call:
                return
            self._call = None
            self._step_pending = False
            on_done(call)

    def _create_session(self, token: Optional[str]) -> None:
        logger.debug("Creating resumable session for %s", self.destination)
        call = self.backend.create_session(
            self.destination, self._total, self._metadata, token=token
        )
        self._track(call, self._on_session_created)

    def _on_session_created(self, call: TransferCall[str]) -> None:
        error = call.exception()
        if error is not None:
            self._on_call_error(error)
            return
        self._session_url = call.result()
        self._need_status = False
        self._dispatch(Event.STEP_COMPLETED)

    def _fetch_status(self, token: Optional[str]) -> None:
        logger.debug("Fetching session status for %s", self.destination)
        assert self._session_url is not None
        call = self.backend.fetch_status(self._session_url, self._total, token=token)
        self._track(call, self._on_status)

    def _on_status(self, call: TransferCall[ResumableStatus]) -> None:
        error = call.exception()
        if error is not None:
            self._on_call_error(error)
            return
        status = call.result()
        self._need_status = False
        self._update_progress(status.transferred_bytes)
        if status.finalized:
            if self._dispatch(Event.EARLY_FINALIZE):
                return
            self._need_metadata = True
        self._dispatch(Event.STEP_COMPLETED)

    def _fetch_metadata(self, token: Optional[str]) -> None:
        logger.debug("Fetching metadata for finalized upload %s", self.destination)
        call = self.backend.fetch_metadata(self.destination, token=token)
        self._track(call, self._on_metadata)

    def _on_metadata(self, call: TransferCall[ObjectMetadata]) -> None:
        error = call.exception()
        if error is not None:
            self._on_call_error(error, interrupted=Event.METADATA_INTERRUPTED)
            return
        if self._dispatch(Event.METADATA_FETCHED, metadata=call.result()):
            self._need_metadata = False
        else:
            self._dispatch(Event.STEP_COMPLETED)

    def _continue_upload(self, token: Optional[str]) -> None:
        assert self._session_url is not None
        offset = self._transferred
        chunk = self.payload.slice(offset, offset + self._chunks.chunk_size)
        logger.debug(
            "Sending %d bytes at offset %d of %d to %s",
            len(chunk),
            offset,
            self._total,
            self.destination,
        )
        issued: list[TransferCall[ResumableStatus]] = []

        def on_progress(sent: int) -> None:
            with self._lock:
                if issued and self._call is issued[0]:
                    self._update_progress(min(offset + sent, self._total))

        call = self.backend.continue_upload(
            self._session_url,
            chunk,
            offset,
            self._total,
            token=token,
            on_progress=on_progress,
        )
        issued.append(call)
        self._track(call, self._on_chunk)

    def _on_chunk(self, call: TransferCall[ResumableStatus]) -> None:
        error = call.exception()
        if error is not None:
            self._on_call_error(error)
            return
        status = call.result()
        self._chunks.grow()
        self._status_refetches = 0
        self._update_progress(status.transferred_bytes)
        if not status.finalized:
            self._dispatch(Event.STEP_COMPLETED)
            return
        # A finalized status without a resource still needs a metadata fetch
        if status.metadata is None:
            accepted = self._dispatch(Event.EARLY_FINALIZE)
        else:
            accepted = self._dispatch(Event.FINALIZED, metadata=status.metadata)
        if not accepted:
            self._need_metadata = True
            self._dispatch(Event.STEP_COMPLETED)

    def _one_shot(self, token: Optional[str]) -> None:
        logger.debug("Uploading %d bytes in one request to %s", self._total, self.destination)
        call = self.backend.one_shot(self.destination, self.payload, self._metadata, token=token)
        self._track(call, self._on_one_shot)

    def _on_one_shot(self, call: TransferCall[ObjectMetadata]) -> None:
        error = call.exception()
        if error is not None:
            self._on_call_error(error)
            return
        self._update_progress(self._total)
        self._dispatch(Event.FINALIZED, metadata=call.result())

    def _on_call_error(
        self,
        error: BaseException,
        interrupted: Event = Event.CALL_CANCELED,
    ) -> None:
        self._chunks.reset()
        if not isinstance(error, CallCanceledError):
            self._fail(_as_transport_failure(error))
            return

        if self._state is InternalState.RUNNING and interrupted is Event.CALL_CANCELED:
            self._status_refetches += 1
            limit = self.max_status_refetches
            if limit is not None and self._status_refetches > limit:
                self._fail(RetryExhaustedError("status refetch", self._status_refetches, error))
                return
            logger.debug(
                "Call to %s interrupted while running; refetching status", self.destination
            )
        if interrupted is Event.CALL_CANCELED:
            # The server may hold part of the interrupted chunk
            self._need_status = True
        self._dispatch(interrupted)

    def _fail(self, error: BaseException) -> None:
        logger.warning("Upload to %s failed: %s", self.destination, error)
        self._dispatch(Event.CALL_FAILED, error=error)

    # =========================================================================
    # Notification
    # =========================================================================

    def _update_progress(self, transferred: int) -> None:
        # The server may report fewer bytes than before if it dropped a partial chunk
        previous, self._transferred = self._transferred, transferred
        if transferred != previous:
            self._notify_observers()

    def _notify_observers(self) -> None:
        snapshot = self.snapshot
        self._finish_future(snapshot)
        for observer in self._observers.snapshot():
            self._notify_observer(observer, snapshot)

    def _finish_future(self, snapshot: UploadSnapshot) -> None:
        if snapshot.state is TaskState.SUCCESS:
            self._settlement.resolve(snapshot)
        elif snapshot.state in (TaskState.CANCELED, TaskState.ERROR):
            assert self._error is not None
            self._settlement.reject(self._error)

    def _notify_observer(
        self,
        observer: Observer[UploadSnapshot],
        snapshot: UploadSnapshot,
    ) -> None:
        if snapshot.state in (TaskState.RUNNING, TaskState.PAUSED):
            deliver(observer.next, snapshot, "next")
        elif snapshot.state is TaskState.SUCCESS:
            deliver(observer.complete, snapshot, "complete")
        else:
            deliver(observer.error, self._error, "error")

    def __repr__(self) -> str:
        return (
            f"UploadTask(destination={str(self.destination)!r}, state={self._state.value}, "
            f"transferred={self._transferred}/{self._total})"
        )


def _as_auth_failure(error: BaseException) -> StowCtlError:
    if isinstance(error, AuthFailure):
        return error
    failure = AuthFailure(reason=f"token resolution failed: {error}")
    failure.__cause__ = error
    return failure


def _as_transport_failure(error: BaseException) -> BaseException:
    if isinstance(error, StowCtlError):
        return error
    failure = TransportFailure(f"{type(error).__name__}: {error}")
    failure.__cause__ = error
    return failure
