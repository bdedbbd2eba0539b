"""Starting, cancelling and repeating contract runs.

A run freezes its party's aggregate stats (the snapshot) and a deep copy
of every member (adventurer_state) when it starts. Equipment changes on a
busy character are allowed but only recorded in modified_slots; they
never touch the snapshot of the run already in flight.

All functions are transitions: they return a new GameState, or the
same object unchanged when the request is rejected.
"""

from __future__ import annotations

import copy
import logging
import random

from idle_contractor.engine.combat import init_combat
from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.mastery import mastery_bonus, track_for
from idle_contractor.models.catalog import Catalog, Contract
from idle_contractor.models.character import Character
from idle_contractor.models.constants import ConsumableEffect, ItemType, Modifier
from idle_contractor.models.derived_stats import (
    compute_stats,
    consumable_bonuses,
    party_modifiers,
    reset_bonuses,
    stats_dps,
    stats_power,
)
from idle_contractor.models.game_state import ActiveRun, GameState, RunSnapshot
from idle_contractor.models.ids import new_id

logger = logging.getLogger(__name__)

METHODICAL_REWARD = 0.50
METHODICAL_TIME = 0.20
GAMBLER_GOLD = -0.50
GAMBLER_LOOT = 0.25
LOGISTICIAN_TIME = 0.10


# ---------------------------------------------------------------------------
# Snapshot and duration
# ---------------------------------------------------------------------------


def compute_snapshot(
    state: GameState, catalog: Catalog, adventurer_ids: list[str]
) -> RunSnapshot:
    """Aggregate party stats plus guild and permanent economy upgrades."""
    snapshot = RunSnapshot()
    for aid in adventurer_ids:
        member = state.adventurer(aid)
        if member is None:
            continue
        stats = compute_stats(member, state, catalog, adventurer_ids)
        snapshot.dps += stats_dps(stats)
        snapshot.power += stats_power(stats)
        snapshot.gold_bonus += stats.gold_gain
        snapshot.xp_bonus += stats.xp_gain
        snapshot.loot_bonus += stats.loot_luck

    flags = party_modifiers(state, adventurer_ids)
    methodical = flags.count(Modifier.METHODICAL)
    gambler = flags.count(Modifier.GAMBLER)
    snapshot.gold_bonus += METHODICAL_REWARD * methodical + GAMBLER_GOLD * gambler
    snapshot.xp_bonus += METHODICAL_REWARD * methodical
    snapshot.loot_bonus += METHODICAL_REWARD * methodical + GAMBLER_LOOT * gambler

    upgrades, permanent = state.upgrades, state.permanent_upgrades
    snapshot.gold_bonus += catalog.upgrade_effect(
        "marketplace_connections", upgrades.get("marketplace_connections", 0)
    )
    snapshot.gold_bonus += catalog.permanent_effect(
        "legacy_wealth", permanent.get("legacy_wealth", 0)
    )
    snapshot.xp_bonus += catalog.permanent_effect(
        "renowned_guild", permanent.get("renowned_guild", 0)
    )
    snapshot.loot_bonus += catalog.upgrade_effect("loot_logic", upgrades.get("loot_logic", 0))
    snapshot.active_modifiers = flags
    return snapshot


def run_duration(
    state: GameState,
    catalog: Catalog,
    config: EngineConfig,
    base_duration: float,
    adventurer_ids: list[str],
    contract: Contract | None = None,
) -> float:
    """Base duration after logistics, party flags, resets and consumables.

    With a *contract*, its dungeon mechanic and the guild mastery of its
    family also apply.
    """
    level = state.upgrades.get("logistics_network", 0)
    reduction = min(catalog.upgrade_effect("logistics_network", level), config.max_duration_reduction)
    duration = max(config.min_run_seconds, base_duration * (1 - reduction))

    flags = party_modifiers(state, adventurer_ids)
    duration *= 1 + METHODICAL_TIME * flags.count(Modifier.METHODICAL)
    duration *= max(0.0, 1 - LOGISTICIAN_TIME * flags.count(Modifier.LOGISTICIAN))
    duration *= 1 - reset_bonuses(state.reset_count).duration_reduction
    if contract is not None:
        duration *= contract.modifier.duration_mult
        bonus = mastery_bonus(state.mastery, track_for(contract.type), config)
        duration *= 1 - bonus.duration_reduction
    speed = consumable_bonuses(state, catalog)[ConsumableEffect.SPEED]
    duration *= 1 - min(speed, config.max_duration_reduction)
    return max(config.min_run_seconds, duration)


def build_run(
    state: GameState,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    contract: Contract,
    adventurer_ids: list[str],
    now: float,
    *,
    auto_repeat: bool = False,
    runs_remaining: int | None = 1,
    total_runs: int = 1,
) -> ActiveRun:
    """Create a run for *adventurer_ids* from the characters in *state*."""
    ids = list(adventurer_ids)
    duration = run_duration(state, catalog, config, contract.duration, ids, contract)
    run = ActiveRun(
        id=new_id(rng),
        contract_id=contract.id,
        adventurer_ids=ids,
        start_time=now,
        duration=duration,
        snapshot=compute_snapshot(state, catalog, ids),
        adventurer_state={aid: copy.deepcopy(state.adventurer(aid)) for aid in ids},
        modified_slots={},
        auto_repeat=auto_repeat,
        runs_remaining=runs_remaining,
        total_runs=total_runs,
    )
    enemy = catalog.enemy_for(contract)
    if config.resolution_model == "pressure" and contract.is_combat and enemy is not None:
        party_stats = {
            aid: compute_stats(state.adventurer(aid), state, catalog, ids) for aid in ids
        }
        run.combat = init_combat(contract, enemy, party_stats, duration, config)
    return run


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _start_rejection(
    state: GameState,
    actor_ids: list[str],
    contract_id: str,
    catalog: Catalog,
    config: EngineConfig,
) -> str | None:
    if not actor_ids:
        return "empty party"
    if len(actor_ids) > config.max_party_size:
        return f"party of {len(actor_ids)} exceeds {config.max_party_size}"
    if len(set(actor_ids)) != len(actor_ids):
        return "duplicate party member"
    if catalog.contract(contract_id) is None:
        return f"unknown contract {contract_id!r}"
    if contract_id not in state.unlocked_contracts:
        return f"contract {contract_id!r} is locked"
    busy = state.busy_ids()
    for aid in actor_ids:
        if state.adventurer(aid) is None:
            return f"unknown adventurer {aid!r}"
        if aid in busy:
            return f"adventurer {aid!r} is already on a run"
    return None


def start_run(
    state: GameState,
    actor_ids: list[str],
    contract_id: str,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    *,
    now: float,
    auto_repeat: bool = False,
    runs: int | None = None,
) -> GameState:
    """Send a party on a contract.

    runs limits how many times an auto-repeating run goes out in total;
    None repeats until stop_repeat is called.
    """
    reason = _start_rejection(state, actor_ids, contract_id, catalog, config)
    if reason is not None:
        logger.debug("start_run rejected: %s", reason)
        return state

    contract = catalog.contract(contract_id)
    new_state = copy.deepcopy(state)
    remaining = runs if auto_repeat else 1
    run = build_run(
        new_state, catalog, config, rng, contract, actor_ids, now,
        auto_repeat=auto_repeat, runs_remaining=remaining,
    )
    new_state.active_runs.append(run)
    new_state.last_parties[contract_id] = list(actor_ids)
    logger.info(
        "run %s started on %s with %d adventurer(s), %.1fs",
        run.id, contract_id, len(actor_ids), run.duration,
    )
    return new_state


def cancel_run(state: GameState, run_id: str) -> GameState:
    """Drop a run immediately. No reward, no penalty."""
    if state.run(run_id) is None:
        logger.debug("cancel_run rejected: unknown run %r", run_id)
        return state
    new_state = copy.deepcopy(state)
    new_state.active_runs = [r for r in new_state.active_runs if r.id != run_id]
    logger.info("run %s cancelled", run_id)
    return new_state


def stop_repeat(state: GameState, run_id: str) -> GameState:
    """Let the current run finish, then do not respawn it."""
    run = state.run(run_id)
    if run is None:
        logger.debug("stop_repeat rejected: unknown run %r", run_id)
        return state
    new_state = copy.deepcopy(state)
    target = new_state.run(run_id)
    target.auto_repeat = False
    target.runs_remaining = 1
    return new_state


# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------


def _mark_modified(state: GameState, actor_id: str, slot: ItemType) -> None:
    run = state.run_for(actor_id)
    if run is None:
        return
    marked = run.modified_slots.setdefault(actor_id, [])
    if slot not in marked:
        marked.append(slot)


def equip_item(state: GameState, actor_id: str, item_id: str) -> GameState:
    """Move an inventory item into its slot, swapping out any occupant."""
    character = state.adventurer(actor_id)
    item = state.inventory_item(item_id)
    if character is None or item is None:
        logger.debug("equip_item rejected: unknown adventurer or item")
        return state
    if not item.can_be_equipped_by(character.role):
        logger.debug("equip_item rejected: %s cannot use %s", character.role.value, item.name)
        return state

    new_state = copy.deepcopy(state)
    character = new_state.adventurer(actor_id)
    item = new_state.inventory_item(item_id)
    new_state.inventory = [i for i in new_state.inventory if i.id != item_id]
    previous = character.slots.get(item.type)
    character.slots[item.type] = item
    if previous is not None:
        new_state.inventory.append(previous)
    _mark_modified(new_state, actor_id, item.type)
    return new_state


def unequip_item(
    state: GameState, actor_id: str, slot: ItemType, config: EngineConfig
) -> GameState:
    character = state.adventurer(actor_id)
    if character is None or character.slots.get(slot) is None:
        logger.debug("unequip_item rejected: nothing in %s", slot)
        return state
    if len(state.inventory) >= config.inventory_size:
        logger.debug("unequip_item rejected: inventory full")
        return state

    new_state = copy.deepcopy(state)
    character = new_state.adventurer(actor_id)
    new_state.inventory.append(character.slots[slot])
    character.slots[slot] = None
    _mark_modified(new_state, actor_id, slot)
    return new_state


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def busy_run_for(state: GameState, actor_id: str) -> ActiveRun | None:
    return state.run_for(actor_id)


def effective_character(state: GameState, character: Character) -> Character:
    """The copy of *character* its current run is working with.

    Idle characters are their own effective version.
    """
    run = state.run_for(character.id)
    if run is None:
        return character
    return run.adventurer_state.get(character.id, character)
