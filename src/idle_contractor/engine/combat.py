"""Pressure-based combat resolution.

Alternative to the instant kills = DPS * duration / HP estimate. Each
step the party deals its DPS to the current enemy while taking chip
damage that grows with the elapsed fraction of the run. Enemies killed
before the boss threshold are minions: the kill counts and the next
wave arrives at a fraction of max HP. At the threshold a single elite
boss spawns; from then on the run ends only by VICTORY (boss down) or
DEFEAT (every character collapsed).
"""

from __future__ import annotations

import copy
import logging
import math

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus, emit
from idle_contractor.models.catalog import Contract, Enemy
from idle_contractor.models.constants import CombatStatus, EventKind
from idle_contractor.models.derived_stats import CharacterStats, stats_dps
from idle_contractor.models.game_state import (
    CombatantState,
    CombatState,
    EnemyCombatState,
)

logger = logging.getLogger(__name__)


def init_combat(
    contract: Contract,
    enemy: Enemy,
    party_stats: dict[str, CharacterStats],
    duration: float,
    config: EngineConfig,
) -> CombatState:
    """Fresh ONGOING encounter for a party whose stats were just frozen.

    The contract's mechanic scales enemy HP and the power requirement
    that sets incoming pressure.
    """
    combatants = {
        cid: CombatantState(
            max_hp=float(stats.health),
            current_hp=float(stats.health),
            dps=stats_dps(stats),
        )
        for cid, stats in party_stats.items()
    }
    hp = float(max(1, math.floor(enemy.hp * contract.modifier.enemy_hp_mult)))
    return CombatState(
        status=CombatStatus.ONGOING,
        enemy=EnemyCombatState(enemy.name, hp, hp),
        combatants=combatants,
        pressure_dps=contract.effective_power * config.pressure_per_power,
        total_duration=duration,
        time_remaining=duration,
    )


def squad_dps(combat: CombatState, config: EngineConfig) -> float:
    """Summed DPS of standing characters, with the last-survivor bonus."""
    active = combat.active_ids()
    total = sum(combat.combatants[cid].dps for cid in active)
    if len(active) == 1 and len(combat.combatants) > 1:
        total *= config.solo_survivor_bonus
    return total


def _spawn_boss(combat: CombatState, config: EngineConfig) -> None:
    combat.boss_spawned = True
    combat.pressure_dps *= config.boss_pressure_mult
    enemy = combat.enemy
    enemy.max_hp *= config.boss_hp_mult
    enemy.current_hp *= config.boss_hp_mult
    enemy.name = f"Elite {enemy.name}"
    enemy.is_boss = True


def advance_combat(
    combat: CombatState,
    dt: float,
    config: EngineConfig,
    *,
    bus: EventBus | None = None,
    context_id: str = "",
) -> CombatState:
    """Advance one step of *dt* seconds. Finished encounters are returned as-is."""
    if combat.status != CombatStatus.ONGOING or dt <= 0:
        return combat

    c = copy.deepcopy(combat)
    c.elapsed += dt

    if not c.active_ids():
        c.status = CombatStatus.DEFEAT
        return c

    if not c.boss_spawned and c.elapsed >= c.total_duration * config.boss_threshold:
        _spawn_boss(c, config)
        emit(bus, EventKind.BOSS_SPAWN, c.enemy.max_hp, context_id, c.enemy.name)
        logger.debug("run %s: boss %s spawned", context_id, c.enemy.name)

    c.time_remaining = 0.0 if c.boss_spawned else max(0.0, c.total_duration - c.elapsed)

    outgoing = squad_dps(c, config)
    active = c.active_ids()

    # Chip damage, split evenly across whoever is still standing.
    fraction = c.elapsed / c.total_duration if c.total_duration > 0 else 1.0
    chip = c.pressure_dps * (1 + fraction) * dt
    share = chip / len(active)
    for cid in active:
        member = c.combatants[cid]
        member.current_hp -= share
        emit(bus, EventKind.DAMAGE, share, cid)
        if member.current_hp <= 0:
            member.current_hp = 0.0
            member.is_collapsed = True

    c.enemy.current_hp -= outgoing * dt
    if c.enemy.current_hp <= 0:
        if c.enemy.is_boss:
            c.enemy.current_hp = 0.0
            c.kills += config.boss_kill_bonus
            c.status = CombatStatus.VICTORY
            return c
        c.kills += 1
        c.enemy.current_hp = c.enemy.max_hp * config.minion_refill_fraction

    if not c.active_ids():
        c.status = CombatStatus.DEFEAT
    return c
