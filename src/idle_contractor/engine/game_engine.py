"""Game engine facade: one mutable handle over the pure transitions.

The transition functions never mutate the state they are given. This
class owns the current GameState, the catalog, config, RNG, event bus
and clock, and swaps in each transition's result under a lock so a
background IntervalDriver and user actions can share it.

Every action method returns True when the state changed and False when
the request was rejected.
"""

from __future__ import annotations

import copy
import logging
import random
import threading
import time
from typing import Callable

from idle_contractor.engine import actions, mastery, recruitment, scheduler
from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus
from idle_contractor.engine.mastery import MasteryBonus
from idle_contractor.engine.tick import tick
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import ItemType, MasteryTrack, Role
from idle_contractor.models.derived_stats import (
    CharacterStats,
    compute_stats,
    party_power,
)
from idle_contractor.models.game_state import GameState
from idle_contractor.persistence.save_state import dump_state, load_state

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class GameEngine:
    """Owns a GameState and applies transitions to it atomically."""

    __slots__ = ("_state", "_catalog", "_config", "_rng", "_bus", "_clock", "_lock")

    def __init__(
        self,
        state: GameState,
        catalog: Catalog | None = None,
        config: EngineConfig | None = None,
        *,
        rng: random.Random | None = None,
        bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._catalog = catalog or Catalog.defaults()
        self._config = (config or EngineConfig()).validate()
        self._rng = rng or random.Random()
        self._bus = bus or EventBus()
        self._clock = clock or time.time
        self._state = state
        self._lock = threading.RLock()

    # --- Factories ---------------------------------------------------------

    @classmethod
    def new_game(
        cls,
        catalog: Catalog | None = None,
        config: EngineConfig | None = None,
        *,
        seed: int | None = None,
        clock: Clock | None = None,
    ) -> GameEngine:
        """Fresh guild with the starter adventurer."""
        catalog = catalog or Catalog.defaults()
        config = config or EngineConfig()
        rng = random.Random(seed)
        state = recruitment.starting_state(catalog, config, rng)
        engine = cls(state, catalog, config, rng=rng, clock=clock)
        engine._state.last_tick = engine._clock()
        return engine

    @classmethod
    def from_state(
        cls,
        state: GameState,
        catalog: Catalog | None = None,
        config: EngineConfig | None = None,
        *,
        seed: int | None = None,
        clock: Clock | None = None,
    ) -> GameEngine:
        """Resume from a previously exported state."""
        return cls(copy.deepcopy(state), catalog, config, rng=random.Random(seed), clock=clock)

    # --- Properties --------------------------------------------------------

    @property
    def state(self) -> GameState:
        """Deep copy of the current state."""
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def bus(self) -> EventBus:
        return self._bus

    def now(self) -> float:
        return self._clock()

    # --- Core --------------------------------------------------------------

    def _apply(self, transition: Callable[..., GameState], *args, **kwargs) -> bool:
        with self._lock:
            new_state = transition(self._state, *args, **kwargs)
            if new_state is self._state:
                return False
            self._state = new_state
            return True

    def tick(self, now: float | None = None) -> bool:
        """Advance to *now* (default: the clock). True if anything resolved."""
        with self._lock:
            when = self._clock() if now is None else now
            return self._apply(
                tick, when, self._catalog, self._config, self._rng, bus=self._bus
            )

    # --- Runs --------------------------------------------------------------

    def start_run(
        self,
        actor_ids: list[str],
        contract_id: str,
        *,
        auto_repeat: bool = False,
        runs: int | None = None,
    ) -> bool:
        return self._apply(
            scheduler.start_run, actor_ids, contract_id, self._catalog, self._config,
            self._rng, now=self._clock(), auto_repeat=auto_repeat, runs=runs,
        )

    def cancel_run(self, run_id: str) -> bool:
        return self._apply(scheduler.cancel_run, run_id)

    def stop_repeat(self, run_id: str) -> bool:
        return self._apply(scheduler.stop_repeat, run_id)

    # --- Equipment and items -----------------------------------------------

    def equip_item(self, actor_id: str, item_id: str) -> bool:
        return self._apply(scheduler.equip_item, actor_id, item_id)

    def unequip_item(self, actor_id: str, slot: ItemType) -> bool:
        return self._apply(scheduler.unequip_item, actor_id, slot, self._config)

    def salvage_item(self, item_id: str) -> bool:
        return self._apply(actions.salvage_item, item_id)

    def salvage_items(self, item_ids: list[str]) -> bool:
        return self._apply(actions.salvage_items, item_ids)

    def enchant_item(self, item_id: str) -> bool:
        return self._apply(actions.enchant_item, item_id, self._rng)

    def reroll_item_stat(self, item_id: str, stat_index: int) -> bool:
        return self._apply(
            actions.reroll_item_stat, item_id, stat_index, self._catalog, self._config, self._rng
        )

    def update_loot_filter(self, changes: dict) -> bool:
        return self._apply(actions.update_loot_filter, changes)

    # --- Economy -----------------------------------------------------------

    def purchase_upgrade(self, upgrade_id: str) -> bool:
        return self._apply(actions.purchase_upgrade, upgrade_id, self._catalog)

    def purchase_permanent_upgrade(self, upgrade_id: str) -> bool:
        return self._apply(actions.purchase_permanent_upgrade, upgrade_id, self._catalog)

    def perform_reset(self) -> bool:
        return self._apply(actions.perform_reset, self._catalog, self._config, self._rng)

    def recruit_adventurer(self, role: Role | None = None) -> bool:
        return self._apply(
            recruitment.recruit_adventurer, self._catalog, self._config, self._rng, role
        )

    def use_consumable(self, consumable_id: str) -> bool:
        return self._apply(
            actions.use_consumable, consumable_id, self._catalog, now=self._clock()
        )

    def dismiss_report(self, report_id: str) -> bool:
        return self._apply(actions.dismiss_report, report_id)

    # --- Progression -------------------------------------------------------

    def unlock_skill_node(self, actor_id: str, node_id: str) -> bool:
        return self._apply(actions.unlock_skill_node, actor_id, node_id)

    def respec_actor(self, actor_id: str) -> bool:
        return self._apply(actions.respec_actor, actor_id, self._config)

    # --- Queries -----------------------------------------------------------

    def character_stats(self, actor_id: str) -> CharacterStats | None:
        with self._lock:
            character = self._state.adventurer(actor_id)
            if character is None:
                return None
            return compute_stats(character, self._state, self._catalog)

    def party_power(self, actor_ids: list[str]) -> int:
        with self._lock:
            return party_power(self._state, self._catalog, actor_ids)

    def reset_gain(self) -> int:
        with self._lock:
            return actions.reset_gain(self._state, self._config)

    def recruit_cost(self) -> int:
        with self._lock:
            return recruitment.recruit_cost(len(self._state.adventurers), self._config)

    def mastery_bonus(self, track: MasteryTrack) -> MasteryBonus:
        with self._lock:
            return mastery.mastery_bonus(self._state.mastery, track, self._config)

    def run_duration(self, contract_id: str, actor_ids: list[str]) -> float | None:
        """Seconds a run of *contract_id* would take if started now."""
        with self._lock:
            contract = self._catalog.contract(contract_id)
            if contract is None:
                return None
            return scheduler.run_duration(
                self._state, self._catalog, self._config, contract.duration, actor_ids, contract
            )

    # --- Persistence -------------------------------------------------------

    def export_save(self) -> str:
        with self._lock:
            return dump_state(self._state)

    def import_save(self, text: str) -> bool:
        """Replace the state with a parsed save. False leaves it untouched."""
        loaded = load_state(text)
        if loaded is None:
            return False
        with self._lock:
            self._state = loaded
        logger.info("save imported: %d adventurer(s), %d gold",
                    len(loaded.adventurers), loaded.gold)
        return True
