"""Random item generation.

An item's primary line is sized from a stat budget:

    budget = stat_budget_per_level * level * rarity_stat_mult * (1 + crafter_bonus)

scaled by the multiplier of a rolled quality tier. Bonus affixes are
percentage lines drawn from a fixed pool without repeating a name.
Rarity gates the optional extras: a set for Rare and up, a unique effect
for every Legendary, and a tier-0 special line on some Epics.
"""

from __future__ import annotations

import math
import random

from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import (
    AFFIX_BASE_POWER,
    AFFIX_POOL,
    CLASS_WEAPONS,
    MAX_STATS_BY_RARITY,
    POTENTIAL_RARITY_MULTIPLIERS,
    POTENTIAL_STAT_WEIGHTS,
    RARITY_CONFIG,
    SPECIAL_LINES,
    STAT_DAMAGE,
    STAT_HEALTH,
    TIER_MULTIPLIERS,
    TIER_WEIGHTS,
    VISUAL_TIER_THRESHOLDS,
    ItemType,
    Rarity,
    Role,
    WeaponType,
    rarity_rank,
)
from idle_contractor.models.ids import new_id
from idle_contractor.models.item import Item, ItemStat

SET_CHANCE = 0.15
EPIC_SPECIAL_CHANCE = 0.20
PRISTINE_TIER = 2

_TIER_TOTAL = sum(TIER_WEIGHTS.values())
_WEAPON_SUBTYPES = [w for w in WeaponType if w != WeaponType.NONE]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def roll_tier(rng: random.Random) -> int:
    """Weighted draw from TIER_WEIGHTS (1 rarest/best, 7 worst)."""
    roll = rng.random() * _TIER_TOTAL
    for tier, weight in TIER_WEIGHTS.items():
        if roll < weight:
            return tier
        roll -= weight
    return 7


def stat_budget(
    level: int,
    rarity: Rarity,
    crafter_bonus: float = 0.0,
    per_level: float = 3.0,
) -> float:
    stat_mult, _ = RARITY_CONFIG[rarity]
    return per_level * level * stat_mult * (1 + crafter_bonus)


def affix_value(name: str, level: int, rarity: Rarity, tier: int) -> int:
    """Percentage value of a bonus line."""
    stat_mult, _ = RARITY_CONFIG[rarity]
    base = AFFIX_BASE_POWER.get(name, 1.0)
    return max(1, round(base * (1 + level * 0.1) * stat_mult * TIER_MULTIPLIERS[tier]))


def roll_affix(
    rng: random.Random,
    level: int,
    rarity: Rarity,
    exclude: set[str],
) -> ItemStat | None:
    """Roll one bonus line whose name is not in *exclude*."""
    choices = [name for name in AFFIX_POOL if name not in exclude]
    if not choices:
        return None
    name = rng.choice(choices)
    tier = roll_tier(rng)
    return ItemStat(name, affix_value(name, level, rarity, tier), True, tier)


def primary_value(item_type: ItemType, name: str, budget: float, tier: int) -> int:
    """Flat value of a primary line named *name* on an *item_type*."""
    scaled = budget * TIER_MULTIPLIERS[tier]
    if item_type == ItemType.WEAPON:
        value = scaled
    elif item_type == ItemType.ARMOR:
        value = max(5.0, scaled * 5)
    elif name == STAT_DAMAGE:
        value = scaled * 0.5
    else:
        value = scaled * 2.5
    return max(1, round(value))


def primary_stat(
    item_type: ItemType,
    budget: float,
    tier: int,
    rng: random.Random,
) -> ItemStat:
    """Primary line for *item_type* at *tier*.

    Weapons roll Damage, armor Health; trinkets pick either at 50/50.
    """
    if item_type == ItemType.WEAPON:
        name = STAT_DAMAGE
    elif item_type == ItemType.ARMOR:
        name = STAT_HEALTH
    else:
        name = STAT_DAMAGE if rng.random() < 0.5 else STAT_HEALTH
    return ItemStat(name, primary_value(item_type, name, budget, tier), False, tier)


def item_potential(item: Item) -> int:
    """Level-normalised quality score."""
    score = 0.0
    for stat in item.stats:
        value = stat.value * 10 if stat.is_percentage else stat.value
        score += value * POTENTIAL_STAT_WEIGHTS.get(stat.name, 1.0)
    score *= POTENTIAL_RARITY_MULTIPLIERS[item.rarity]
    if item.set_id:
        score *= 1.2
    if item.unique_effect_id:
        score *= 1.5
    return math.floor(score / (1 + item.level * 0.5))


def visual_tier(potential: int) -> str:
    for threshold, label in VISUAL_TIER_THRESHOLDS:
        if potential > threshold:
            return label
    return "D"


def scrap_value(
    budget: float, bonus_stats: int, has_set: bool, has_unique: bool
) -> int:
    value = budget * 3 * (1 + bonus_stats * 0.2)
    if has_set:
        value *= 1.5
    if has_unique:
        value *= 2
    return math.ceil(value)


def refresh_item_scores(item: Item) -> None:
    """Recompute potential and visual tier after the stat lines changed."""
    item.potential = item_potential(item)
    item.visual_tier = visual_tier(item.potential)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def _roll_item_type(rng: random.Random) -> ItemType:
    roll = rng.random()
    if roll < 0.33:
        return ItemType.WEAPON
    if roll < 0.66:
        return ItemType.ARMOR
    return ItemType.TRINKET


def _restriction_for(subtype: WeaponType) -> list[Role]:
    return [role for role, weapons in CLASS_WEAPONS.items() if subtype in weapons]


def generate_item(
    level: int,
    rarity: Rarity,
    rng: random.Random,
    *,
    catalog: Catalog | None = None,
    crafter_bonus: float = 0.0,
    item_type: ItemType | None = None,
    stat_budget_per_level: float = 3.0,
) -> Item:
    """Build a complete item of *rarity* at power *level*."""
    catalog = catalog or Catalog.defaults()
    level = max(1, level)
    item_type = item_type or _roll_item_type(rng)
    budget = stat_budget(level, rarity, crafter_bonus, stat_budget_per_level)
    _, bonus_count = RARITY_CONFIG[rarity]
    max_lines = MAX_STATS_BY_RARITY[rarity]

    primary_tier = roll_tier(rng)
    stats = [primary_stat(item_type, budget, primary_tier, rng)]

    for _ in range(bonus_count):
        if len(stats) >= max_lines:
            break
        affix = roll_affix(rng, level, rarity, {s.name for s in stats})
        if affix is None:
            break
        stats.append(affix)

    subtype = WeaponType.NONE
    restriction: list[Role] = []
    if item_type == ItemType.WEAPON:
        subtype = rng.choice(_WEAPON_SUBTYPES)
        restriction = _restriction_for(subtype)

    set_id = None
    if rarity_rank(rarity) >= rarity_rank(Rarity.RARE) and catalog.item_sets:
        if rng.random() < SET_CHANCE:
            set_id = rng.choice(sorted(catalog.item_sets))

    unique_id = None
    tag = None
    if rarity == Rarity.LEGENDARY and catalog.unique_effects:
        unique_id = rng.choice(sorted(catalog.unique_effects))
        tag = "Ancient Artifact"
    elif rarity == Rarity.EPIC and len(stats) < max_lines:
        if rng.random() < EPIC_SPECIAL_CHANCE:
            special = rng.choice(sorted(SPECIAL_LINES))
            stats.append(ItemStat(special, SPECIAL_LINES[special][0], True, 0))
    if tag is None and primary_tier <= PRISTINE_TIER:
        tag = "Pristine"

    base_name = subtype.value if subtype != WeaponType.NONE else item_type.value
    if unique_id:
        name = catalog.unique_effects[unique_id].name
    elif set_id:
        name = f"{catalog.item_sets[set_id].name} {base_name}"
    else:
        name = f"{rarity.value} {base_name}"

    item = Item(
        id=new_id(rng),
        name=name,
        type=item_type,
        rarity=rarity,
        level=level,
        stats=stats,
        value=scrap_value(budget, bonus_count, set_id is not None, unique_id is not None),
        subtype=subtype,
        class_restriction=restriction,
        set_id=set_id,
        unique_effect_id=unique_id,
        identity_tag=tag,
    )
    refresh_item_scores(item)
    return item
