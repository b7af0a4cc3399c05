"""Write-once completion cell with promise-style chaining."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SettlementCell(Generic[T]):
    """Holds the single outcome of an upload.

    The first call to ``resolve`` or ``reject`` wins; later calls are
    ignored and return False.
    """

    def __init__(self) -> None:
        self._future: Future[T] = Future()
        self._lock = threading.Lock()
        self._settled = False

    @property
    def future(self) -> Future[T]:
        return self._future

    @property
    def settled(self) -> bool:
        return self._settled

    def resolve(self, value: T) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._future.set_exception(error)
        return True

    def then(
        self,
        on_fulfilled: Optional[Callable[[T], Any]] = None,
        on_rejected: Optional[Callable[[BaseException], Any]] = None,
    ) -> Future[Any]:
        return chain(self._future, on_fulfilled, on_rejected)

    def catch(self, on_rejected: Callable[[BaseException], Any]) -> Future[Any]:
        return chain(self._future, None, on_rejected)


def chain(
    source: Future[Any],
    on_fulfilled: Optional[Callable[[Any], Any]] = None,
    on_rejected: Optional[Callable[[BaseException], Any]] = None,
) -> Future[Any]:
    """Derive a future from ``source`` through optional handlers.

    A missing handler passes the outcome through unchanged. A handler that
    raises rejects the derived future; one that returns a Future is
    followed until that future settles.
    """
    derived: Future[Any] = Future()

    def _adopt(value: Any) -> None:
        if isinstance(value, Future):
            value.add_done_callback(lambda f: _settle_from(f, derived))
        else:
            derived.set_result(value)

    def _on_done(f: Future[Any]) -> None:
        error = f.exception()
        handler = on_rejected if error is not None else on_fulfilled
        if handler is None:
            _settle_from(f, derived)
            return
        try:
            value = handler(error if error is not None else f.result())
        except Exception as e:
            derived.set_exception(e)
        else:
            _adopt(value)

    source.add_done_callback(_on_done)
    return derived


def _settle_from(source: Future[Any], target: Future[Any]) -> None:
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())
