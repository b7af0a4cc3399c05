"""Cancellable handles for single backend calls."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, InvalidStateError
from typing import Any, Generic, Optional, TypeVar

from stowctl.core.exceptions import CallCanceledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransferCall(Generic[T]):
    """Handle for one in-flight backend request.

    Settles exactly once with a result or an exception. ``cancel()`` settles
    it immediately with CallCanceledError; a result delivered by the worker
    afterwards is discarded.
    """

    def __init__(self, operation: str = "request") -> None:
        self.operation = operation
        self._future: Future[T] = Future()
        self._cancel_requested = threading.Event()

    # =========================================================================
    # Construction Helpers
    # =========================================================================

    @classmethod
    def completed(cls, value: T, operation: str = "request") -> TransferCall[T]:
        call: TransferCall[T] = cls(operation)
        call.set_result(value)
        return call

    @classmethod
    def failed(cls, error: BaseException, operation: str = "request") -> TransferCall[T]:
        call: TransferCall[T] = cls(operation)
        call.set_exception(error)
        return call

    @classmethod
    def submit(
        cls,
        executor: Executor,
        fn: Callable[[TransferCall[T]], T],
        operation: str = "request",
    ) -> TransferCall[T]:
        """Run ``fn(call)`` on ``executor`` and settle the call with its outcome.

        ``fn`` receives the handle so it can poll ``cancel_requested`` while
        it works.
        """
        call: TransferCall[T] = cls(operation)

        def _run() -> None:
            if call.cancel_requested:
                return
            try:
                value = fn(call)
            except Exception as e:
                call.set_exception(e)
            else:
                call.set_result(value)

        executor.submit(_run)
        return call

    # =========================================================================
    # Settlement
    # =========================================================================

    def set_result(self, value: T) -> bool:
        """Settle with a value. Returns False if already settled."""
        try:
            self._future.set_result(value)
        except InvalidStateError:
            logger.debug("%s: discarding late result", self.operation)
            return False
        return True

    def set_exception(self, error: BaseException) -> bool:
        """Settle with an error. Returns False if already settled."""
        try:
            self._future.set_exception(error)
        except InvalidStateError:
            logger.debug("%s: discarding late error %r", self.operation, error)
            return False
        return True

    def cancel(self) -> bool:
        """Interrupt the call.

        Returns:
            True if the call was still pending and is now canceled.
        """
        self._cancel_requested.set()
        return self.set_exception(CallCanceledError(self.operation))

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def cancel_event(self) -> threading.Event:
        """Set once ``cancel()`` is called; workers may wait on it."""
        return self._cancel_requested

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> T:
        return self._future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout)

    def add_done_callback(self, fn: Callable[[TransferCall[T]], Any]) -> None:
        """Call ``fn(self)`` once settled, immediately if already settled."""
        self._future.add_done_callback(lambda _f: fn(self))

    def __repr__(self) -> str:
        status = "done" if self.done() else "pending"
        return f"TransferCall({self.operation!r}, {status})"
