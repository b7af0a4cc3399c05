"""Subscriber registry for upload events."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class UploadEvent(Enum):
    """Channels a handler can subscribe to."""

    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"

    @classmethod
    def from_string(cls, value: "str | UploadEvent") -> "UploadEvent":
        if isinstance(value, UploadEvent):
            return value
        try:
            return cls(value.lower())
        except ValueError:
            choices = ", ".join(e.value for e in cls)
            raise ValueError(f"Unknown event {value!r} (expected one of: {choices})")


@dataclass(eq=False)
class Observer(Generic[T]):
    """A subscriber with optional handlers for each channel.

    Compared by identity so the same handlers can be registered twice and
    removed independently.
    """

    next: Optional[Callable[[T], Any]] = None
    error: Optional[Callable[[BaseException], Any]] = None
    complete: Optional[Callable[[T], Any]] = None

    @classmethod
    def for_event(cls, event: UploadEvent, handler: Callable[[Any], Any]) -> "Observer[T]":
        if event is UploadEvent.PROGRESS:
            return cls(next=handler)
        if event is UploadEvent.COMPLETE:
            return cls(complete=handler)
        return cls(error=handler)


class ObserverRegistry(Generic[T]):
    """Ordered observer registrations.

    Delivery walks a copy of the list taken when the pass starts, so
    handlers may subscribe or unsubscribe while being notified.
    """

    def __init__(self) -> None:
        self._observers: list[Observer[T]] = []
        self._lock = threading.Lock()

    def add(self, observer: Observer[T]) -> Unsubscribe:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            self.remove(observer)

        return unsubscribe

    def remove(self, observer: Observer[T]) -> bool:
        with self._lock:
            for i, registered in enumerate(self._observers):
                if registered is observer:
                    del self._observers[i]
                    return True
        return False

    def snapshot(self) -> tuple[Observer[T], ...]:
        with self._lock:
            return tuple(self._observers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)


def deliver(handler: Optional[Callable[[Any], Any]], value: Any, channel: str) -> None:
    """Invoke one handler; a raising handler is logged and skipped."""
    if handler is None:
        return
    try:
        handler(value)
    except Exception:
        logger.exception("Upload %s handler %r raised", channel, handler)
