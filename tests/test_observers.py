"""Tests for the observer registry."""

from __future__ import annotations

import logging

import pytest

from stowctl.uploaders.observers import Observer, ObserverRegistry, UploadEvent, deliver


def _notify_next(registry: ObserverRegistry[int], value: int) -> None:
    for observer in registry.snapshot():
        deliver(observer.next, value, "next")


class TestUploadEvent:
    """Tests for UploadEvent parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("progress", UploadEvent.PROGRESS),
            ("COMPLETE", UploadEvent.COMPLETE),
            ("error", UploadEvent.ERROR),
            (UploadEvent.ERROR, UploadEvent.ERROR),
        ],
    )
    def test_from_string(self, value, expected):
        assert UploadEvent.from_string(value) is expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="progress, complete, error"):
            UploadEvent.from_string("state_changed")


class TestObserver:
    """Tests for Observer construction."""

    def test_for_event_sets_one_channel(self):
        handler = print

        assert Observer.for_event(UploadEvent.PROGRESS, handler).next is handler
        assert Observer.for_event(UploadEvent.COMPLETE, handler).complete is handler
        error_only = Observer.for_event(UploadEvent.ERROR, handler)
        assert error_only.error is handler
        assert error_only.next is None

    def test_compared_by_identity(self):
        assert Observer(next=print) != Observer(next=print)


class TestObserverRegistry:
    """Tests for ObserverRegistry."""

    def test_delivery_in_registration_order(self):
        registry: ObserverRegistry[int] = ObserverRegistry()
        order = []
        registry.add(Observer(next=lambda v: order.append(("a", v))))
        registry.add(Observer(next=lambda v: order.append(("b", v))))

        _notify_next(registry, 1)

        assert order == [("a", 1), ("b", 1)]

    def test_unsubscribe_removes_only_that_registration(self):
        registry: ObserverRegistry[int] = ObserverRegistry()
        seen = []
        first = registry.add(Observer(next=seen.append))
        registry.add(Observer(next=seen.append))

        first()
        _notify_next(registry, 7)

        assert seen == [7]
        assert len(registry) == 1

    def test_unsubscribe_twice_is_harmless(self):
        registry: ObserverRegistry[int] = ObserverRegistry()
        unsubscribe = registry.add(Observer())

        unsubscribe()
        unsubscribe()

        assert len(registry) == 0

    def test_observer_added_during_delivery_waits_for_next_pass(self):
        registry: ObserverRegistry[int] = ObserverRegistry()
        late = []

        def add_another(_value):
            registry.add(Observer(next=late.append))

        registry.add(Observer(next=add_another))
        _notify_next(registry, 1)
        assert late == []

        _notify_next(registry, 2)
        assert late == [2]


class TestDeliver:
    """Tests for deliver()."""

    def test_none_handler(self):
        deliver(None, 1, "next")

    def test_raising_handler_is_logged(self, caplog):
        def broken(_value):
            raise RuntimeError("observer bug")

        with caplog.at_level(logging.ERROR, logger="stowctl.uploaders.observers"):
            deliver(broken, 1, "next")

        assert "observer bug" in caplog.text
        assert "next handler" in caplog.text
