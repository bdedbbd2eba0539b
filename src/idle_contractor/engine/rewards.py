"""Turning one finished run into gold, xp, items and materials.

Reward math reads the run's frozen snapshot (bonuses, power, DPS), never
the live party stats, so gear swapped mid-run cannot change the payout.
XP lands on the live characters, which is where level-ups happen.
"""

from __future__ import annotations

import copy
import logging
import math
import random

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus, emit
from idle_contractor.engine.mastery import add_mastery_xp, mastery_bonus, track_for
from idle_contractor.loot.generator import generate_item
from idle_contractor.loot.rarity import rarity_weights, roll_rarity
from idle_contractor.models.catalog import Catalog, Contract, Enemy
from idle_contractor.models.character import Character
from idle_contractor.models.constants import (
    CombatStatus,
    EventKind,
    MasteryTrack,
    Modifier,
    Rarity,
    rarity_rank,
    total_skill_points,
)
from idle_contractor.models.game_state import (
    ActiveRun,
    GameState,
    LootFilter,
    RunReport,
)
from idle_contractor.models.ids import new_id
from idle_contractor.models.item import Item
from idle_contractor.models.mechanics import NO_MECHANIC, MechanicModifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def instant_kills(run: ActiveRun, enemy: Enemy, modifier: MechanicModifier = NO_MECHANIC) -> int:
    """Kills under the instant model: DPS * duration / enemy HP."""
    hp = enemy.hp * modifier.enemy_hp_mult
    if hp <= 0:
        return 0
    return math.floor(run.snapshot.dps * run.duration / hp)


def roll_kill_rewards(
    enemy: Enemy,
    kills: int,
    rng: random.Random,
    config: EngineConfig,
    modifier: MechanicModifier = NO_MECHANIC,
) -> tuple[int, int]:
    """Raw (gold, xp) for *kills*, rolled per kill or averaged for big batches.

    Totals are scaled by the mechanic's gold and xp yield.
    """
    if kills <= 0:
        return 0, 0
    if kills > config.kill_sampling_threshold:
        gold = kills * (enemy.gold_min + enemy.gold_max) / 2
        xp = kills * (enemy.xp_min + enemy.xp_max) / 2
    else:
        gold = xp = 0
        for _ in range(kills):
            gold += rng.randint(enemy.gold_min, enemy.gold_max)
            xp += rng.randint(enemy.xp_min, enemy.xp_max)
    return math.floor(gold * modifier.gold_yield_mult), math.floor(xp * modifier.xp_yield_mult)


def is_overpowered(run: ActiveRun, contract: Contract, config: EngineConfig) -> bool:
    return run.snapshot.power > contract.effective_power * config.overpowered_ratio


def drop_chance(contract: Contract, loot_bonus: float, config: EngineConfig) -> float:
    return max(0.0, min(config.max_drop_chance, contract.drop_chance * (1 + loot_bonus)))


def apply_xp(character: Character, amount: int, config: EngineConfig) -> int:
    """Add xp and run the level-up loop in place. Returns levels gained."""
    if amount <= 0:
        return 0
    character.xp += amount
    gained = 0
    while character.xp >= character.xp_to_next_level:
        character.xp -= character.xp_to_next_level
        old_points = total_skill_points(character.level)
        character.level += 1
        character.xp_to_next_level = config.xp_required(character.level)
        character.base_stats.damage += config.level_up_damage
        character.base_stats.health += config.level_up_health
        character.skill_points += total_skill_points(character.level) - old_points
        gained += 1
    return gained


def keep_item(item: Item, loot_filter: LootFilter) -> bool:
    """False if the loot filter wants *item* salvaged on the spot."""
    if not loot_filter.enabled:
        return True
    if loot_filter.match_any_stat:
        wanted = set(loot_filter.match_any_stat)
        if any(stat.name in wanted for stat in item.stats):
            return True
    if rarity_rank(item.rarity) <= rarity_rank(loot_filter.min_rarity):
        return False
    return item.type in loot_filter.keep_types


# ---------------------------------------------------------------------------
# Loot
# ---------------------------------------------------------------------------


class _LootCollector:
    """Accumulates one run's drops into the working state and report."""

    def __init__(self, work: GameState, report: RunReport, config: EngineConfig,
                 bus: EventBus | None) -> None:
        self.work = work
        self.report = report
        self.config = config
        self.bus = bus

    def add_item(self, item: Item) -> None:
        work, report = self.work, self.report
        work.statistics.items_found += 1
        if not keep_item(item, work.loot_filter):
            report.auto_salvaged_count += 1
            report.auto_salvaged_gold += item.value
            work.gold += item.value
            work.statistics.items_auto_salvaged += 1
            return
        if len(work.inventory) >= self.config.inventory_size:
            logger.debug("inventory full, discarding %s", item.name)
            return
        work.inventory.append(item)
        report.items_found.append(item)
        emit(self.bus, EventKind.LOOT, item.value, report.run_id, item.name)

    def add_material(self, material_id: str, amount: int = 1) -> None:
        self.work.materials[material_id] = self.work.materials.get(material_id, 0) + amount
        found = self.report.materials_found
        found[material_id] = found.get(material_id, 0) + amount


def _roll_item(
    work: GameState, contract: Contract, catalog: Catalog, config: EngineConfig,
    rng: random.Random,
) -> Item:
    favor = catalog.permanent_effect("divine_favor", work.permanent_upgrades.get("divine_favor", 0))
    weights = rarity_weights(
        contract.tier,
        rarity_bonus=favor,
        pity=work.legendary_pity,
        reset_count=work.reset_count,
        pity_threshold=config.pity_threshold,
    )
    rarity = roll_rarity(weights, rng)
    work.legendary_pity = 0 if rarity == Rarity.LEGENDARY else work.legendary_pity + 1
    crafters = catalog.permanent_effect(
        "master_crafters", work.permanent_upgrades.get("master_crafters", 0)
    )
    return generate_item(
        contract.level, rarity, rng,
        catalog=catalog,
        crafter_bonus=crafters,
        stat_budget_per_level=config.stat_budget_per_level,
    )


def _scavenged_material(contract: Contract, catalog: Catalog, rng: random.Random) -> str | None:
    pool = contract.loot_table or sorted(catalog.materials)
    return rng.choice(pool) if pool else None


def _combat_loot(
    collector: _LootCollector, run: ActiveRun, contract: Contract, kills: int,
    catalog: Catalog, config: EngineConfig, rng: random.Random,
) -> None:
    rolls = min(1 + kills // config.kills_per_loot_roll, config.max_loot_rolls)
    rolls += contract.modifier.loot_roll_bonus
    chance = drop_chance(contract, run.snapshot.loot_bonus, config)
    scavenger = Modifier.RESOURCE_SCAVENGER in run.snapshot.active_modifiers
    for _ in range(rolls):
        if rng.random() >= chance:
            continue
        if scavenger:
            material = _scavenged_material(contract, catalog, rng)
            if material is not None:
                collector.add_material(material)
            continue
        collector.add_item(_roll_item(collector.work, contract, catalog, config, rng))
        if rng.random() < config.secondary_drop_chance:
            collector.add_item(_roll_item(collector.work, contract, catalog, config, rng))


def rarest_material(contract: Contract, catalog: Catalog) -> str:
    """Highest-rarity entry of a non-empty loot table. Ties keep table order."""
    def rank(material_id: str) -> int:
        material = catalog.materials.get(material_id)
        return -1 if material is None else rarity_rank(material.rarity)

    return max(contract.loot_table, key=rank)


def _gathering_loot(
    collector: _LootCollector, run: ActiveRun, contract: Contract,
    catalog: Catalog, config: EngineConfig, rng: random.Random,
) -> int:
    """Roll one material per gathering cycle. Returns units collected."""
    if not contract.loot_table:
        return 0
    bonus = mastery_bonus(collector.work.mastery, track_for(contract.type), config)
    cycles = max(1, int(run.duration // config.gathering_cycle_seconds))
    chance = drop_chance(contract, run.snapshot.loot_bonus, config)
    units = 0
    for _ in range(cycles):
        if rng.random() >= chance:
            continue
        if bonus.rare_chance and rng.random() < bonus.rare_chance:
            material = rarest_material(contract, catalog)
        else:
            material = rng.choice(contract.loot_table)
        amount = 2 if bonus.double_chance and rng.random() < bonus.double_chance else 1
        collector.add_material(material, amount)
        units += amount
    return units


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def apply_run_rewards(
    work: GameState,
    run: ActiveRun,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    *,
    now: float,
    bus: EventBus | None = None,
) -> RunReport | None:
    """Credit *run*'s rewards into *work* in place.

    *work* must be a private copy owned by the caller. Returns None (and
    leaves *work* untouched) when the contract or enemy is unknown.
    """
    contract = catalog.contract(run.contract_id)
    if contract is None:
        logger.warning("run %s: unknown contract %r, skipped", run.id, run.contract_id)
        return None
    enemy = catalog.enemy_for(contract)
    if enemy is None:
        logger.warning("run %s: unknown enemy %r, skipped", run.id, contract.enemy_id)
        return None

    party = [m for m in (work.adventurer(aid) for aid in run.adventurer_ids) if m is not None]
    report = RunReport(
        id=new_id(rng),
        run_id=run.id,
        contract_id=contract.id,
        contract_name=contract.name,
        success=True,
        timestamp=now,
    )
    collector = _LootCollector(work, report, config, bus)

    if contract.is_combat:
        modifier = contract.modifier
        if run.combat is not None:
            kills = run.combat.kills
            report.success = run.combat.status == CombatStatus.VICTORY
        else:
            kills = instant_kills(run, enemy, modifier)
            report.success = kills > 0
        report.kills = kills

        raw_gold, raw_xp = roll_kill_rewards(enemy, kills, rng, config, modifier)
        if is_overpowered(run, contract, config):
            raw_gold = math.floor(kills * enemy.gold_min * modifier.gold_yield_mult)
            raw_xp = math.floor(raw_xp * config.overpowered_xp_factor)
        xp_mult = mastery_bonus(work.mastery, MasteryTrack.COMBAT, config).xp_mult
        report.gold_earned = max(0, math.floor(raw_gold * (1 + run.snapshot.gold_bonus)))
        report.xp_earned = max(0, math.floor(raw_xp * (1 + run.snapshot.xp_bonus) * xp_mult))
        if kills > 0:
            _combat_loot(collector, run, contract, kills, catalog, config, rng)
        mastery_xp = kills
    else:
        mastery_xp = _gathering_loot(collector, run, contract, catalog, config, rng)
    add_mastery_xp(work.mastery, track_for(contract.type), mastery_xp, config, bus=bus)

    work.gold += report.gold_earned
    stats = work.statistics
    stats.total_gold_earned += report.gold_earned + report.auto_salvaged_gold
    stats.monsters_killed += report.kills
    stats.runs_completed += 1
    if report.success:
        stats.contract_clears[contract.id] = stats.contract_clears.get(contract.id, 0) + 1

    if party and report.xp_earned > 0:
        share = report.xp_earned // len(party)
        for member in party:
            levels = apply_xp(member, share, config)
            if levels:
                emit(bus, EventKind.LEVEL_UP, member.level, member.id, member.name)

    work.recent_reports.append(report)
    if len(work.recent_reports) > config.max_recent_reports:
        work.recent_reports = work.recent_reports[-config.max_recent_reports:]

    logger.info(
        "run %s on %s resolved: kills=%d gold=%d xp=%d items=%d",
        run.id, contract.id, report.kills, report.gold_earned, report.xp_earned,
        len(report.items_found),
    )
    return report


def resolve_run(
    state: GameState,
    run: ActiveRun,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    *,
    now: float,
    bus: EventBus | None = None,
) -> tuple[GameState, RunReport] | None:
    """Pure wrapper around apply_run_rewards. The run itself is not removed."""
    work = copy.deepcopy(state)
    report = apply_run_rewards(work, run, catalog, config, rng, now=now, bus=bus)
    if report is None:
        return None
    return work, report
