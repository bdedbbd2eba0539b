"""Fire-and-forget notification bus.

The engine emits small GameEvent records (damage, loot, boss spawn,
level up) for a presentation layer to animate. Emitting only queues;
subscribers run when the owner calls drain(). Nothing the handlers do
feeds back into engine state.

The queue is bounded: when nobody drains it, the oldest events are
dropped so an unattended engine keeps constant memory.

    bus = EventBus()
    bus.subscribe(EventKind.BOSS_SPAWN, show_banner)
    new_state = tick(state, now, catalog, config, rng, bus=bus)
    bus.drain()
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable

from idle_contractor.models.constants import EventKind

logger = logging.getLogger(__name__)

MAX_DRAIN_PASSES = 100
DEFAULT_MAX_PENDING = 1000


@dataclass(slots=True)
class GameEvent:
    kind: EventKind
    value: float = 0.0
    context_id: str = ""     # run or character id
    label: str = ""


Handler = Callable[[GameEvent], None]


class EventBus:
    """Bounded FIFO queue of GameEvents with per-kind subscribers.

    emit() and drain() may be called from different threads. Handlers
    run outside the lock, so they can emit.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")
        self._queue: deque[GameEvent] = deque(maxlen=max_pending)
        self._subs: dict[EventKind, list[Handler]] = defaultdict(list)
        self._stats: dict[EventKind, int] = defaultdict(int)
        self._dropped = 0
        self._lock = threading.Lock()

    def emit(self, event: GameEvent) -> None:
        with self._lock:
            if len(self._queue) == self._queue.maxlen:
                self._dropped += 1
            self._queue.append(event)

    def subscribe(self, kind: EventKind, handler: Handler) -> None:
        with self._lock:
            self._subs[kind].append(handler)

    def unsubscribe(self, kind: EventKind, handler: Handler) -> None:
        with self._lock:
            handlers = self._subs.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

    def drain(self) -> int:
        """Deliver queued events in order. Returns how many were processed.

        Events emitted by handlers are delivered in the same call.
        """
        processed = 0
        for _ in range(MAX_DRAIN_PASSES):
            with self._lock:
                if not self._queue:
                    break
                batch = list(self._queue)
                self._queue.clear()
                for event in batch:
                    self._stats[event.kind] += 1
                subs = {kind: list(handlers) for kind, handlers in self._subs.items()}
            for event in batch:
                for handler in subs.get(event.kind, ()):
                    try:
                        handler(event)
                    except Exception:
                        logger.exception("event handler failed for %s", event.kind.value)
            processed += len(batch)
        return processed

    def pending(self) -> list[GameEvent]:
        with self._lock:
            return list(self._queue)

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    @property
    def max_pending(self) -> int:
        return self._queue.maxlen

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def dropped(self) -> int:
        """Events discarded because the queue was full."""
        with self._lock:
            return self._dropped

    @property
    def stats(self) -> dict[EventKind, int]:
        with self._lock:
            return dict(self._stats)


def emit(bus: EventBus | None, kind: EventKind, value: float = 0.0,
         context_id: str = "", label: str = "") -> None:
    """Emit on *bus* if there is one."""
    if bus is not None:
        bus.emit(GameEvent(kind, value, context_id, label))
