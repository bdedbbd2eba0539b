"""Background ticking for a GameEngine.

    engine = GameEngine.new_game()
    with IntervalDriver(engine):
        ...   # user actions on engine from this thread

Each beat calls engine.tick() and then drains the event bus, so event
handlers run on the driver thread.
"""

from __future__ import annotations

import logging
import threading

from idle_contractor.engine.game_engine import GameEngine

logger = logging.getLogger(__name__)


class IntervalDriver:
    """Calls engine.tick() every *interval* seconds on a daemon thread."""

    __slots__ = ("_engine", "_interval", "_stop", "_thread", "_ticks")

    def __init__(self, engine: GameEngine, interval: float | None = None) -> None:
        interval = engine.config.tick_interval if interval is None else interval
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._engine = engine
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def ticks(self) -> int:
        """Beats that changed the state."""
        return self._ticks

    def step(self) -> bool:
        """One beat: tick, then deliver events."""
        changed = self._engine.tick()
        if changed:
            self._ticks += 1
        self._engine.bus.drain()
        return changed

    def _run(self) -> None:
        logger.debug("interval driver started (%.3fs)", self._interval)
        while not self._stop.wait(self._interval):
            try:
                self.step()
            except Exception:
                logger.exception("tick failed; driver stopping")
                break
        logger.debug("interval driver stopped after %d state change(s)", self._ticks)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="idle-contractor-tick", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> IntervalDriver:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
