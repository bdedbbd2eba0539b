"""The periodic driver: resolve every due run and commit once.

One tick:
  1. expire consumables and advance pressure-model encounters to *now*;
  2. resolve every finished run, in list order, against one working
     copy, so gains from an earlier run are visible to the next;
  3. unlock contracts whose clear requirement is now met;
  4. rebuild the run list in one pass: unfinished runs pass through,
     finished one-shots are dropped, finished repeaters are replaced by
     a fresh run built from the post-reward roster.

A tick with nothing due returns the input state object untouched.
"""

from __future__ import annotations

import copy
import logging
import math
import random

from idle_contractor.engine.combat import advance_combat
from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus
from idle_contractor.engine.rewards import apply_run_rewards
from idle_contractor.engine.scheduler import build_run
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import CombatStatus
from idle_contractor.models.game_state import ActiveRun, GameState

logger = logging.getLogger(__name__)

MAX_COMBAT_STEPS = 10_000


def _combat_lag(run: ActiveRun, now: float) -> float:
    """Seconds of encounter time not yet simulated."""
    if run.combat is None or run.combat.status != CombatStatus.ONGOING:
        return 0.0
    return now - run.start_time - run.combat.elapsed


def is_finished(run: ActiveRun, now: float) -> bool:
    if run.combat is not None:
        return run.combat.status != CombatStatus.ONGOING
    return now >= run.end_time


def should_respawn(run: ActiveRun) -> bool:
    return run.auto_repeat and (run.runs_remaining is None or run.runs_remaining > 1)


def _has_work(state: GameState, now: float) -> bool:
    if any(c.expires_at <= now for c in state.active_consumables):
        return True
    return any(
        is_finished(run, now) or _combat_lag(run, now) > 0
        for run in state.active_runs
    )


def _advance_combats(
    work: GameState, now: float, config: EngineConfig, bus: EventBus | None
) -> None:
    for run in work.active_runs:
        lag = _combat_lag(run, now)
        if lag <= 0:
            continue
        steps = min(max(1, math.ceil(lag / config.tick_interval)), MAX_COMBAT_STEPS)
        dt = lag / steps
        combat = run.combat
        for _ in range(steps):
            combat = advance_combat(combat, dt, config, bus=bus, context_id=run.id)
            if combat.status != CombatStatus.ONGOING:
                break
        run.combat = combat


def refresh_unlocks(work: GameState, catalog: Catalog) -> list[str]:
    """Unlock contracts whose prerequisite has enough clears. Returns new ids."""
    unlocked: list[str] = []
    clears = work.statistics.contract_clears
    for contract in catalog.contracts.values():
        if contract.id in work.unlocked_contracts or contract.unlock_after is None:
            continue
        if clears.get(contract.unlock_after, 0) >= contract.unlock_clears:
            work.unlocked_contracts.append(contract.id)
            unlocked.append(contract.id)
            logger.info("contract %s unlocked", contract.id)
    return unlocked


def _respawn(
    work: GameState,
    run: ActiveRun,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    now: float,
) -> ActiveRun | None:
    contract = catalog.contract(run.contract_id)
    if contract is None or any(work.adventurer(aid) is None for aid in run.adventurer_ids):
        return None
    remaining = None if run.runs_remaining is None else run.runs_remaining - 1
    return build_run(
        work, catalog, config, rng, contract, run.adventurer_ids, now,
        auto_repeat=True,
        runs_remaining=remaining,
        total_runs=run.total_runs + 1,
    )


def tick(
    state: GameState,
    now: float,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    *,
    bus: EventBus | None = None,
) -> GameState:
    if not _has_work(state, now):
        return state

    work = copy.deepcopy(state)
    work.last_tick = now
    work.active_consumables = [c for c in work.active_consumables if c.expires_at > now]
    _advance_combats(work, now, config, bus)

    finished = [run for run in work.active_runs if is_finished(run, now)]
    resolved: set[str] = set()
    for run in finished:
        report = apply_run_rewards(work, run, catalog, config, rng, now=now, bus=bus)
        if report is not None:
            resolved.add(run.id)

    if finished:
        refresh_unlocks(work, catalog)

    finished_ids = {run.id for run in finished}
    next_runs: list[ActiveRun] = []
    for run in work.active_runs:
        if run.id not in finished_ids:
            next_runs.append(run)
            continue
        if run.id in resolved and should_respawn(run):
            replacement = _respawn(work, run, catalog, config, rng, now)
            if replacement is not None:
                next_runs.append(replacement)
                logger.info("run %s respawned as %s (#%d)", run.id, replacement.id,
                            replacement.total_runs)
    work.active_runs = next_runs
    return work
