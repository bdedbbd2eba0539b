"""Final character stats from every modifier source.

Every source contributes to one (flat, percent) accumulator pair per
stat, applied in a fixed order:

  1. guild upgrades            7. item-set bonuses
  2. level-gated class skills  8. unique item effects
  3. traits                    9. specialization bonus
  4. unlocked skill nodes     10. reset (prestige) growth
  5. party rule modifiers     11. active consumables
  6. equipped item lines

Final value = flat * (1 + percent). Reset growth and consumables are
outer multipliers on top of that, which keeps a single reset from
compounding with every percent source.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass

from idle_contractor.models.catalog import MODIFIER_EFFECTS, Catalog
from idle_contractor.models.character import Character
from idle_contractor.models.constants import (
    SPECIAL_LINES,
    STAT_CRIT,
    STAT_DAMAGE,
    STAT_GOLD,
    STAT_HEALTH,
    STAT_LOOT,
    STAT_SPEED,
    ConsumableEffect,
    ItemType,
    Modifier,
    SkillEffectType,
    Specialization,
    StatTarget,
)
from idle_contractor.models.effect import Operation, StatModifier
from idle_contractor.models.game_state import GameState
from idle_contractor.models.item import ItemStat
from idle_contractor.models.specialization import classify_specialization

T = StatTarget

WEAPON_MASTER_SCALE = 2.0

# Skill-node stat targets that feed the percent bucket.
_NODE_PERCENT_TARGETS: dict[str, tuple[StatTarget, ...]] = {
    "damage": (T.DAMAGE,),
    "health": (T.HEALTH,),
    "speed": (T.SPEED,),
    "all": (T.DAMAGE, T.HEALTH),
}

# Item stat name -> (target, goes to percent bucket)
_ITEM_PERCENT_STATS: dict[str, tuple[StatTarget, bool]] = {
    STAT_CRIT: (T.CRIT, False),
    STAT_SPEED: (T.SPEED, True),
    STAT_GOLD: (T.GOLD, False),
    STAT_LOOT: (T.LOOT, False),
}


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CharacterStats:
    """Computed stat snapshot for one character."""

    damage: int = 0
    health: int = 0
    speed: float = 0.0
    crit_chance: float = 0.0
    gold_gain: float = 0.0
    xp_gain: float = 0.0
    loot_luck: float = 0.0
    specialization: Specialization = Specialization.NOVICE


@dataclass(slots=True)
class ResetBonuses:
    power_growth: float
    gold_growth: float
    rarity_shift: float
    duration_reduction: float


def reset_bonuses(reset_count: int) -> ResetBonuses:
    count = max(0, reset_count)
    return ResetBonuses(
        power_growth=count * 0.10,
        gold_growth=count * 0.20,
        rarity_shift=count * 0.5,
        duration_reduction=min(0.5, count * 0.05),
    )


def consumable_bonuses(state: GameState, catalog: Catalog) -> dict[ConsumableEffect, float]:
    """Summed effect value per consumable type currently active."""
    totals = {effect: 0.0 for effect in ConsumableEffect}
    for active in state.active_consumables:
        definition = catalog.consumables.get(active.consumable_id)
        if definition is not None:
            totals[definition.effect] += definition.value
    return totals


class StatAccumulator:
    """Two buckets per stat: flat and percent."""

    __slots__ = ("flat", "percent")

    def __init__(self, character: Character) -> None:
        base = character.base_stats
        self.flat: dict[StatTarget, float] = {t: 0.0 for t in StatTarget}
        self.percent: dict[StatTarget, float] = {t: 0.0 for t in StatTarget}
        self.flat[T.DAMAGE] = float(base.damage)
        self.flat[T.HEALTH] = float(base.health)
        self.flat[T.SPEED] = float(base.speed)
        self.flat[T.CRIT] = float(base.crit_chance)

    def apply(self, modifier: StatModifier) -> None:
        if modifier.operation == Operation.ADD:
            self.flat[modifier.target] += modifier.value
        else:
            self.percent[modifier.target] += modifier.percent_delta

    def apply_all(self, modifiers: list[StatModifier]) -> None:
        for modifier in modifiers:
            self.apply(modifier)

    def value(self, target: StatTarget) -> float:
        return max(0.0, self.flat[target] * (1.0 + self.percent[target]))


# ---------------------------------------------------------------------------
# Party helpers
# ---------------------------------------------------------------------------


def _party_members(
    character: Character, state: GameState, party_ids: list[str] | None
) -> list[Character]:
    """Characters sharing a run with *character* (itself included)."""
    if party_ids is None:
        run = state.run_for(character.id)
        party_ids = list(run.adventurer_ids) if run else [character.id]
    members: list[Character] = []
    for member_id in party_ids:
        if member_id == character.id:
            members.append(character)
            continue
        member = state.adventurer(member_id)
        if member is not None:
            members.append(member)
    if all(m.id != character.id for m in members):
        members.append(character)
    return members


def active_modifiers(party: list[Character]) -> list[Modifier]:
    """Rule flags of every party member, one entry per unlocked node."""
    flags: list[Modifier] = []
    for member in party:
        flags.extend(member.modifiers())
    return flags


def party_modifiers(
    state: GameState, adventurer_ids: list[str]
) -> list[Modifier]:
    members = [state.adventurer(aid) for aid in adventurer_ids]
    return active_modifiers([m for m in members if m is not None])


# ---------------------------------------------------------------------------
# Item lines
# ---------------------------------------------------------------------------


def _apply_item_stat(acc: StatAccumulator, stat: ItemStat, scale: float) -> None:
    if stat.is_special:
        line = SPECIAL_LINES.get(stat.name)
        if line is None:
            return
        _, target = line
        if target in (T.GOLD, T.LOOT, T.CRIT):
            acc.flat[target] += stat.value / 100.0 * scale
        else:
            acc.percent[target] += stat.value / 100.0 * scale
        return

    if stat.name in (STAT_DAMAGE, STAT_HEALTH):
        target = T.DAMAGE if stat.name == STAT_DAMAGE else T.HEALTH
        if stat.is_percentage:
            acc.percent[target] += stat.value / 100.0 * scale
        else:
            acc.flat[target] += stat.value * scale
        return

    mapped = _ITEM_PERCENT_STATS.get(stat.name)
    if mapped is None:
        return
    target, to_percent = mapped
    bucket = acc.percent if to_percent else acc.flat
    bucket[target] += stat.value / 100.0 * scale


def _apply_specialization(acc: StatAccumulator, character: Character) -> Specialization:
    result = classify_specialization(character)
    bonus = result.efficiency_bonus
    if result.type == Specialization.COMBAT:
        acc.percent[T.DAMAGE] += bonus
        acc.percent[T.HEALTH] += bonus
    elif result.type == Specialization.GATHERING:
        acc.percent[T.GOLD] += bonus
        acc.flat[T.LOOT] += bonus
    elif result.type == Specialization.FISHING:
        acc.flat[T.LOOT] += bonus * 2
    elif result.type == Specialization.HYBRID:
        acc.percent[T.DAMAGE] += bonus / 2
        acc.flat[T.GOLD] += bonus / 2
    return result.type


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def compute_stats(
    character: Character,
    state: GameState,
    catalog: Catalog,
    party_ids: list[str] | None = None,
) -> CharacterStats:
    """Compute final stats for *character*.

    party_ids names the run party when the character is about to start
    one; otherwise the character's live run (or the character alone) is
    used to collect rule modifiers.
    """
    acc = StatAccumulator(character)

    # Guild upgrades
    training = state.upgrades.get("recruit_training", 0)
    acc.flat[T.DAMAGE] += catalog.upgrade_effect("recruit_training", training)

    # Class passives
    for skill in catalog.class_skills_for(character.role, character.level):
        acc.apply_all(skill.modifiers)

    # Traits
    for trait in character.traits:
        acc.apply_all(trait.modifiers)

    # Skill nodes
    for node in character.unlocked_nodes():
        target = node.stat_target or ""
        if node.effect_type == SkillEffectType.STAT:
            if target in _NODE_PERCENT_TARGETS:
                for stat in _NODE_PERCENT_TARGETS[target]:
                    acc.percent[stat] += node.effect_value
            elif target == "crit":
                acc.flat[T.CRIT] += node.effect_value
            elif target == "speed_crit":
                acc.percent[T.SPEED] += node.effect_value
                acc.flat[T.CRIT] += node.effect_value / 2
        elif node.effect_type == SkillEffectType.ECONOMY:
            if target in (T.GOLD.value, T.XP.value, T.LOOT.value):
                acc.flat[StatTarget(target)] += node.effect_value

    # Party rule modifiers
    flags = active_modifiers(_party_members(character, state, party_ids))
    for flag in flags:
        acc.apply_all(MODIFIER_EFFECTS.get(flag, []))
    weapon_master = Modifier.WEAPON_MASTER in flags

    # Equipment
    set_counts: dict[str, int] = {}
    for slot, item in character.slots.items():
        if item is None:
            continue
        if weapon_master and slot == ItemType.TRINKET:
            continue
        scale = WEAPON_MASTER_SCALE if weapon_master and slot == ItemType.WEAPON else 1.0
        for stat in item.stats:
            _apply_item_stat(acc, stat, scale)
        if item.set_id:
            set_counts[item.set_id] = set_counts.get(item.set_id, 0) + 1
        if item.unique_effect_id:
            unique = catalog.unique_effects.get(item.unique_effect_id)
            if unique is not None:
                acc.apply_all(unique.modifiers)

    for set_id, count in set_counts.items():
        item_set = catalog.item_sets.get(set_id)
        if item_set is not None and count >= item_set.required_pieces:
            acc.apply_all(item_set.modifiers)

    specialization = _apply_specialization(acc, character)

    # Outer multipliers
    resets = reset_bonuses(state.reset_count)
    consumables = consumable_bonuses(state, catalog)

    damage = math.floor(
        acc.value(T.DAMAGE) * (1 + resets.power_growth + consumables[ConsumableEffect.POWER])
    )
    health = math.floor(acc.value(T.HEALTH) * (1 + resets.power_growth))
    gold = (
        acc.flat[T.GOLD] * (1 + acc.percent[T.GOLD]) + 1
    ) * (1 + resets.gold_growth + consumables[ConsumableEffect.GOLD]) - 1
    xp = (
        acc.flat[T.XP] * (1 + acc.percent[T.XP]) + 1
    ) * (1 + consumables[ConsumableEffect.XP]) - 1

    return CharacterStats(
        damage=max(0, damage),
        health=max(0, health),
        speed=round(acc.value(T.SPEED), 2),
        crit_chance=round(acc.value(T.CRIT), 2),
        gold_gain=round(max(0.0, gold), 2),
        xp_gain=round(max(0.0, xp), 2),
        loot_luck=round(acc.value(T.LOOT), 2),
        specialization=specialization,
    )


# ---------------------------------------------------------------------------
# Power / DPS
# ---------------------------------------------------------------------------


def stats_power(stats: CharacterStats) -> int:
    """floor((damage * (1 + crit) + health / 5) * speed)"""
    return math.floor(
        (stats.damage * (1 + stats.crit_chance) + stats.health / 5) * stats.speed
    )


def stats_dps(stats: CharacterStats) -> float:
    return stats.damage * (1 + stats.crit_chance) * stats.speed


def character_power(
    character: Character,
    state: GameState,
    catalog: Catalog,
    party_ids: list[str] | None = None,
) -> int:
    return stats_power(compute_stats(character, state, catalog, party_ids))


def character_dps(
    character: Character,
    state: GameState,
    catalog: Catalog,
    party_ids: list[str] | None = None,
) -> float:
    return stats_dps(compute_stats(character, state, catalog, party_ids))


def party_dps(state: GameState, catalog: Catalog, adventurer_ids: list[str]) -> float:
    total = 0.0
    for aid in adventurer_ids:
        member = state.adventurer(aid)
        if member is not None:
            total += character_dps(member, state, catalog, adventurer_ids)
    return total


def party_power(state: GameState, catalog: Catalog, adventurer_ids: list[str]) -> int:
    total = 0
    for aid in adventurer_ids:
        member = state.adventurer(aid)
        if member is not None:
            total += character_power(member, state, catalog, adventurer_ids)
    return total


# ---------------------------------------------------------------------------
# Conservative view for busy characters
# ---------------------------------------------------------------------------


def conservative_character(character: Character, state: GameState) -> Character:
    """Copy of *character* with every slot changed mid-run emptied.

    A slot is dropped when it is listed in the run's modified_slots or
    when its live item no longer matches the item captured at run start.
    Idle characters are returned unchanged.
    """
    run = state.run_for(character.id)
    if run is None:
        return character
    marked = set(run.modified_slots.get(character.id, []))
    captured = run.adventurer_state.get(character.id)
    view = copy.deepcopy(character)
    for slot, item in character.slots.items():
        snapshot_item = captured.slots.get(slot) if captured else None
        if slot in marked:
            view.slots[slot] = None
        elif item is not None and not item.same_rolls_as(snapshot_item):
            view.slots[slot] = None
    return view


def conservative_power(character: Character, state: GameState, catalog: Catalog) -> int:
    """Pessimistic power estimate for a character with a run in flight."""
    return character_power(conservative_character(character, state), state, catalog)
