"""Player actions outside of runs: economy, crafting and progression.

Every function is a transition: it returns a new GameState, or the input
object itself (and logs the reason at DEBUG) when the request is rejected.
"""

from __future__ import annotations

import copy
import logging
import math
import random
from dataclasses import dataclass, field, fields

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.recruitment import starting_state
from idle_contractor.graph.skill_tree import SkillTree
from idle_contractor.loot.generator import (
    primary_value,
    refresh_item_scores,
    roll_affix,
    roll_tier,
    stat_budget,
)
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import (
    CRAFTING_RARITY_MULTIPLIERS,
    ItemType,
    Rarity,
)
from idle_contractor.models.game_state import ActiveConsumable, GameState, LootFilter
from idle_contractor.models.item import Item

logger = logging.getLogger(__name__)

ENCHANT_COST_BASE = 100
REROLL_COST_BASE = 50
ENCHANT_VALUE_GROWTH = 1.1

# rarity -> [(material id, amount, scales with item level)]
_ENCHANT_MATERIALS: dict[Rarity, list[tuple[str, int, bool]]] = {
    Rarity.COMMON: [],
    Rarity.UNCOMMON: [("iron_ore", 3, True)],
    Rarity.RARE: [("iron_ore", 5, True), ("hardwood", 3, True)],
    Rarity.EPIC: [("mystic_herb", 2, True), ("prism_pearl", 1, False)],
    Rarity.LEGENDARY: [("ancient_relic", 1, False), ("prism_pearl", 3, False)],
}

_REROLL_MATERIALS: dict[Rarity, list[tuple[str, int, bool]]] = {
    Rarity.COMMON: [],
    Rarity.UNCOMMON: [("iron_ore", 1, True)],
    Rarity.RARE: [("iron_ore", 2, True), ("hardwood", 1, True)],
    Rarity.EPIC: [("mystic_herb", 1, True)],
    Rarity.LEGENDARY: [("prism_pearl", 1, False)],
}


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CraftingCost:
    gold: int
    materials: dict[str, int] = field(default_factory=dict)

    def affordable(self, state: GameState) -> bool:
        if state.gold < self.gold:
            return False
        return all(state.materials.get(mid, 0) >= n for mid, n in self.materials.items())

    def pay(self, state: GameState) -> None:
        state.gold -= self.gold
        for mid, n in self.materials.items():
            state.materials[mid] = state.materials.get(mid, 0) - n


def crafting_cost(item: Item, action: str) -> CraftingCost:
    """Gold and materials for an "enchant" or "reroll" on *item*.

    Both scale with level, the rarity crafting multiplier and the item's
    potential; enchanting also scales with the number of lines already on it.
    """
    if action not in ("enchant", "reroll"):
        raise ValueError(f"unknown crafting action {action!r}")
    potential_mult = 1 + item.potential / 200
    rarity_mult = CRAFTING_RARITY_MULTIPLIERS[item.rarity]
    mat_scale = max(1, item.level // 5)
    if action == "enchant":
        gold = ENCHANT_COST_BASE * item.level * rarity_mult * max(1, len(item.stats))
        table = _ENCHANT_MATERIALS[item.rarity]
    else:
        gold = REROLL_COST_BASE * item.level * rarity_mult
        table = _REROLL_MATERIALS[item.rarity]
    materials = {mid: amount * mat_scale if scales else amount
                 for mid, amount, scales in table}
    return CraftingCost(math.floor(gold * potential_mult), materials)


def reset_gain(state: GameState, config: EngineConfig) -> int:
    """Reset currency a reset would award right now (0 below the threshold)."""
    earned = state.statistics.total_gold_earned
    if earned < config.reset_gold_threshold:
        return 0
    return math.floor(math.sqrt(earned / config.reset_gold_divisor))


def respec_cost(level: int, config: EngineConfig) -> int:
    return config.respec_cost_per_level * level


# ---------------------------------------------------------------------------
# Salvage
# ---------------------------------------------------------------------------


def salvage_item(state: GameState, item_id: str) -> GameState:
    """Sell an inventory item for its value."""
    return salvage_items(state, [item_id])


def salvage_items(state: GameState, item_ids: list[str]) -> GameState:
    """Sell every listed inventory item. Ids not in the inventory are ignored."""
    wanted = set(item_ids)
    doomed = [item for item in state.inventory if item.id in wanted]
    if not doomed:
        logger.debug("salvage rejected: none of %d id(s) in inventory", len(wanted))
        return state
    new_state = copy.deepcopy(state)
    gold = sum(item.value for item in doomed)
    new_state.inventory = [item for item in new_state.inventory if item.id not in wanted]
    new_state.gold += gold
    new_state.statistics.total_gold_earned += gold
    logger.info("salvaged %d item(s) for %d gold", len(doomed), gold)
    return new_state


# ---------------------------------------------------------------------------
# Upgrades and reset
# ---------------------------------------------------------------------------


def purchase_upgrade(state: GameState, upgrade_id: str, catalog: Catalog) -> GameState:
    """Buy the next level of a guild upgrade with gold."""
    upgrade = catalog.upgrades.get(upgrade_id)
    if upgrade is None:
        logger.debug("purchase_upgrade rejected: unknown upgrade %r", upgrade_id)
        return state
    level = state.upgrades.get(upgrade_id, 0)
    if level >= upgrade.max_level:
        logger.debug("purchase_upgrade rejected: %s at max level", upgrade_id)
        return state
    cost = upgrade.cost_at(level)
    if state.gold < cost:
        logger.debug("purchase_upgrade rejected: %s costs %d", upgrade_id, cost)
        return state
    new_state = copy.deepcopy(state)
    new_state.gold -= cost
    new_state.upgrades[upgrade_id] = level + 1
    return new_state


def purchase_permanent_upgrade(
    state: GameState, upgrade_id: str, catalog: Catalog
) -> GameState:
    """Buy the next level of a permanent upgrade with reset currency."""
    upgrade = catalog.permanent_upgrades.get(upgrade_id)
    if upgrade is None:
        logger.debug("purchase_permanent_upgrade rejected: unknown upgrade %r", upgrade_id)
        return state
    level = state.permanent_upgrades.get(upgrade_id, 0)
    if level >= upgrade.max_level:
        logger.debug("purchase_permanent_upgrade rejected: %s at max level", upgrade_id)
        return state
    cost = upgrade.cost_at(level)
    if state.reset_currency < cost:
        logger.debug("purchase_permanent_upgrade rejected: %s costs %d", upgrade_id, cost)
        return state
    new_state = copy.deepcopy(state)
    new_state.reset_currency -= cost
    new_state.permanent_upgrades[upgrade_id] = level + 1
    return new_state


def perform_reset(
    state: GameState, catalog: Catalog, config: EngineConfig, rng: random.Random
) -> GameState:
    """Trade the current guild for reset currency.

    Only permanent upgrades, reset currency and the reset count survive.
    """
    gain = reset_gain(state, config)
    if gain <= 0:
        logger.debug(
            "perform_reset rejected: %d lifetime gold is below %d",
            state.statistics.total_gold_earned, config.reset_gold_threshold,
        )
        return state
    new_state = starting_state(catalog, config, rng)
    new_state.reset_currency = state.reset_currency + gain
    new_state.reset_count = state.reset_count + 1
    new_state.permanent_upgrades = dict(state.permanent_upgrades)
    new_state.last_tick = state.last_tick
    logger.info("reset #%d for %d currency", new_state.reset_count, gain)
    return new_state


# ---------------------------------------------------------------------------
# Crafting
# ---------------------------------------------------------------------------


def _locate_item(state: GameState, item_id: str) -> tuple[Item, str | None] | None:
    """Find *item_id* in the inventory or on a character.

    Returns (item, wearer id); the wearer is None for inventory items.
    """
    item = state.inventory_item(item_id)
    if item is not None:
        return item, None
    for character in state.adventurers:
        for worn in character.equipped_items():
            if worn.id == item_id:
                return worn, character.id
    return None


def _note_gear_change(state: GameState, wearer_id: str | None, slot: ItemType) -> None:
    if wearer_id is None:
        return
    run = state.run_for(wearer_id)
    if run is None:
        return
    marked = run.modified_slots.setdefault(wearer_id, [])
    if slot not in marked:
        marked.append(slot)


def enchant_item(state: GameState, item_id: str, rng: random.Random) -> GameState:
    """Add one bonus line to an item with a free slot."""
    found = _locate_item(state, item_id)
    if found is None:
        logger.debug("enchant_item rejected: unknown item %r", item_id)
        return state
    item, _ = found
    if not item.has_free_stat_slot:
        logger.debug("enchant_item rejected: %s has no free line", item.name)
        return state
    cost = crafting_cost(item, "enchant")
    if not cost.affordable(state):
        logger.debug("enchant_item rejected: needs %d gold and %s", cost.gold, cost.materials)
        return state

    new_state = copy.deepcopy(state)
    item, wearer_id = _locate_item(new_state, item_id)
    affix = roll_affix(rng, item.level, item.rarity, set(item.stat_names()))
    if affix is None:
        logger.debug("enchant_item rejected: affix pool exhausted on %s", item.name)
        return state
    cost.pay(new_state)
    item.stats.append(affix)
    item.value = math.floor(item.value * ENCHANT_VALUE_GROWTH)
    refresh_item_scores(item)
    _note_gear_change(new_state, wearer_id, item.type)
    return new_state


def reroll_item_stat(
    state: GameState,
    item_id: str,
    stat_index: int,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
) -> GameState:
    """Re-roll one line of an item.

    Index 0 keeps the primary line's name and rolls a new tier and value;
    any other index is replaced by a fresh affix. Special (tier 0) lines
    are fixed.
    """
    found = _locate_item(state, item_id)
    if found is None:
        logger.debug("reroll_item_stat rejected: unknown item %r", item_id)
        return state
    item, _ = found
    if not 0 <= stat_index < len(item.stats):
        logger.debug("reroll_item_stat rejected: no line %d on %s", stat_index, item.name)
        return state
    if item.stats[stat_index].is_special:
        logger.debug("reroll_item_stat rejected: line %d is special", stat_index)
        return state
    cost = crafting_cost(item, "reroll")
    if not cost.affordable(state):
        logger.debug("reroll_item_stat rejected: needs %d gold and %s", cost.gold, cost.materials)
        return state

    new_state = copy.deepcopy(state)
    item, wearer_id = _locate_item(new_state, item_id)
    line = item.stats[stat_index]
    if stat_index == 0:
        crafters = catalog.permanent_effect(
            "master_crafters", new_state.permanent_upgrades.get("master_crafters", 0)
        )
        budget = stat_budget(item.level, item.rarity, crafters, config.stat_budget_per_level)
        line.tier = roll_tier(rng)
        line.value = primary_value(item.type, line.name, budget, line.tier)
    else:
        others = {s.name for i, s in enumerate(item.stats) if i != stat_index}
        affix = roll_affix(rng, item.level, item.rarity, others)
        if affix is None:
            logger.debug("reroll_item_stat rejected: affix pool exhausted on %s", item.name)
            return state
        item.stats[stat_index] = affix
    cost.pay(new_state)
    refresh_item_scores(item)
    _note_gear_change(new_state, wearer_id, item.type)
    return new_state


# ---------------------------------------------------------------------------
# Skill trees
# ---------------------------------------------------------------------------


def unlock_skill_node(state: GameState, actor_id: str, node_id: str) -> GameState:
    character = state.adventurer(actor_id)
    if character is None:
        logger.debug("unlock_skill_node rejected: unknown adventurer %r", actor_id)
        return state
    tree = SkillTree.for_character(character)
    unmet = tree.unmet_requirements(node_id, character)
    if unmet:
        logger.debug("unlock_skill_node rejected: %s", "; ".join(unmet))
        return state

    new_state = copy.deepcopy(state)
    character = new_state.adventurer(actor_id)
    character.skill_points -= tree.get_node(node_id).cost
    character.unlocked_skills.append(node_id)
    return new_state


def respec_actor(state: GameState, actor_id: str, config: EngineConfig) -> GameState:
    """Clear every unlocked node and refund all earned points for gold."""
    character = state.adventurer(actor_id)
    if character is None:
        logger.debug("respec_actor rejected: unknown adventurer %r", actor_id)
        return state
    if not character.unlocked_skills:
        logger.debug("respec_actor rejected: %s has nothing to refund", character.name)
        return state
    cost = respec_cost(character.level, config)
    if state.gold < cost:
        logger.debug("respec_actor rejected: costs %d", cost)
        return state

    new_state = copy.deepcopy(state)
    new_state.gold -= cost
    character = new_state.adventurer(actor_id)
    character.unlocked_skills = []
    character.skill_points = character.earned_skill_points()
    return new_state


# ---------------------------------------------------------------------------
# Loot filter, reports, consumables
# ---------------------------------------------------------------------------


_FILTER_FIELDS = {f.name for f in fields(LootFilter)}


def _coerce_filter_value(name: str, value):
    if name == "min_rarity":
        return Rarity(value)
    if name == "keep_types":
        return [ItemType(v) for v in value]
    if name == "match_any_stat":
        return [str(v) for v in value]
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a bool, got {value!r}")
    return value


def update_loot_filter(state: GameState, changes: dict) -> GameState:
    """Merge *changes* into the loot filter. Unknown keys reject the update."""
    unknown = set(changes) - _FILTER_FIELDS
    if unknown:
        logger.debug("update_loot_filter rejected: unknown field(s) %s", sorted(unknown))
        return state
    try:
        coerced = {name: _coerce_filter_value(name, v) for name, v in changes.items()}
    except (TypeError, ValueError) as exc:
        logger.debug("update_loot_filter rejected: %s", exc)
        return state
    new_state = copy.deepcopy(state)
    for name, value in coerced.items():
        setattr(new_state.loot_filter, name, value)
    return new_state


def dismiss_report(state: GameState, report_id: str) -> GameState:
    if not any(r.id == report_id for r in state.recent_reports):
        logger.debug("dismiss_report rejected: unknown report %r", report_id)
        return state
    new_state = copy.deepcopy(state)
    new_state.recent_reports = [r for r in new_state.recent_reports if r.id != report_id]
    return new_state


def use_consumable(
    state: GameState, consumable_id: str, catalog: Catalog, *, now: float
) -> GameState:
    """Buy a timed buff. Buying one already active restarts its timer."""
    consumable = catalog.consumables.get(consumable_id)
    if consumable is None:
        logger.debug("use_consumable rejected: unknown consumable %r", consumable_id)
        return state
    if state.gold < consumable.cost:
        logger.debug("use_consumable rejected: %s costs %d", consumable_id, consumable.cost)
        return state
    new_state = copy.deepcopy(state)
    new_state.gold -= consumable.cost
    new_state.active_consumables = [
        c for c in new_state.active_consumables if c.consumable_id != consumable_id
    ]
    new_state.active_consumables.append(
        ActiveConsumable(consumable_id, now + consumable.duration)
    )
    return new_state
