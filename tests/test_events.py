"""Tests for the notification bus."""

import logging
import threading

import pytest

from idle_contractor.engine.events import EventBus, GameEvent, emit
from idle_contractor.models.constants import EventKind


def test_emit_queues_until_drain():
    bus = EventBus()
    seen = []
    bus.subscribe(EventKind.LOOT, seen.append)
    bus.emit(GameEvent(EventKind.LOOT, 10, "run1", "Sword"))
    assert seen == []
    assert bus.pending_count == 1

    assert bus.drain() == 1
    assert [e.label for e in seen] == ["Sword"]
    assert bus.pending_count == 0


def test_delivery_is_in_order_and_per_kind():
    bus = EventBus()
    loot, levels = [], []
    bus.subscribe(EventKind.LOOT, loot.append)
    bus.subscribe(EventKind.LEVEL_UP, levels.append)
    for i in range(3):
        emit(bus, EventKind.LOOT, i)
    emit(bus, EventKind.LEVEL_UP, 2, "c1")
    bus.drain()
    assert [e.value for e in loot] == [0, 1, 2]
    assert [e.context_id for e in levels] == ["c1"]
    assert bus.stats == {EventKind.LOOT: 3, EventKind.LEVEL_UP: 1}


def test_events_emitted_by_handlers_are_delivered_in_same_drain():
    bus = EventBus()
    banners = []
    bus.subscribe(EventKind.BOSS_SPAWN, lambda e: emit(bus, EventKind.LOOT, 1, e.context_id))
    bus.subscribe(EventKind.LOOT, banners.append)
    emit(bus, EventKind.BOSS_SPAWN, 150.0, "run9")
    assert bus.drain() == 2
    assert banners[0].context_id == "run9"


def test_failing_handler_does_not_stop_delivery(caplog):
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(EventKind.DAMAGE, broken)
    bus.subscribe(EventKind.DAMAGE, seen.append)
    emit(bus, EventKind.DAMAGE, 3.0)
    with caplog.at_level(logging.ERROR, logger="idle_contractor.engine.events"):
        bus.drain()
    assert len(seen) == 1
    assert "event handler failed" in caplog.text


def test_unsubscribe_and_clear():
    bus = EventBus()
    seen = []
    bus.subscribe(EventKind.LOOT, seen.append)
    bus.unsubscribe(EventKind.LOOT, seen.append)
    bus.unsubscribe(EventKind.LOOT, seen.append)
    emit(bus, EventKind.LOOT, 5)
    bus.drain()
    assert seen == []

    emit(bus, EventKind.LOOT, 5)
    assert len(bus.pending()) == 1
    bus.clear()
    assert bus.drain() == 0


def test_emit_without_bus_is_a_no_op():
    emit(None, EventKind.LOOT, 1)


def test_full_queue_drops_oldest_events():
    bus = EventBus(max_pending=3)
    for i in range(5):
        emit(bus, EventKind.DAMAGE, i)
    assert bus.pending_count == 3
    assert bus.dropped == 2
    assert [e.value for e in bus.pending()] == [2, 3, 4]


def test_max_pending_must_be_positive():
    with pytest.raises(ValueError, match="max_pending"):
        EventBus(max_pending=0)


def test_concurrent_emit_and_drain_lose_nothing():
    bus = EventBus(max_pending=100_000)
    seen = []
    bus.subscribe(EventKind.LOOT, seen.append)

    def producer():
        for i in range(2000):
            emit(bus, EventKind.LOOT, i)

    threads = [threading.Thread(target=producer) for _ in range(4)]
    for t in threads:
        t.start()
    drained = 0
    while any(t.is_alive() for t in threads):
        drained += bus.drain()
    for t in threads:
        t.join()
    drained += bus.drain()

    assert drained == 8000
    assert len(seen) == 8000
    assert bus.dropped == 0


def test_event_kinds_are_the_ones_the_engine_emits():
    assert {kind.value for kind in EventKind} == {"DAMAGE", "LOOT", "BOSS_SPAWN", "LEVEL_UP"}
