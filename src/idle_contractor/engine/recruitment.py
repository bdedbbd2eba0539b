"""Character creation: the fixed starter, recruit candidates and skill trees.

Every generated tree has the same shape:

    root -> t2_l | t2_r (exclusive) -> t3_l / t3_r -> cap (either branch)

with node content drawn from the role's pools in the catalog.
"""

from __future__ import annotations

import copy
import logging
import math
import random

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.models.catalog import Catalog, NodeTemplate
from idle_contractor.models.character import BaseStats, Character, SkillNode, Trait
from idle_contractor.models.constants import (
    ADVENTURER_NAMES,
    ADVENTURER_RARITY_MULTIPLIERS,
    ADVENTURER_TITLES,
    ROLE_BASE_STATS,
    Rarity,
    Role,
)
from idle_contractor.models.game_state import GameState
from idle_contractor.models.ids import new_id

logger = logging.getLogger(__name__)

STARTER_ID = "starter"
TRAITS_PER_RECRUIT = 3

# (threshold, rarity): first threshold the roll exceeds wins.
_RECRUIT_RARITY_ROLLS: tuple[tuple[float, Rarity], ...] = (
    (0.98, Rarity.LEGENDARY),
    (0.90, Rarity.EPIC),
    (0.75, Rarity.RARE),
    (0.50, Rarity.UNCOMMON),
)


def _node_from(template: NodeTemplate, node_id: str, cost: int, **shape) -> SkillNode:
    return SkillNode(
        id=node_id,
        name=template.name,
        effect_type=template.effect_type,
        cost=cost,
        effect_value=template.effect_value,
        stat_target=template.stat_target,
        modifier=template.modifier,
        description=template.description,
        **shape,
    )


def generate_skill_tree(
    role: Role, catalog: Catalog, rng: random.Random
) -> tuple[list[SkillNode], str]:
    """Return (nodes, archetype name). The archetype is the capstone's name."""
    pools = catalog.skill_pools[role]

    root = rng.choice(pools.root if rng.random() > 0.3 else pools.offense)
    left = rng.choice(pools.offense if rng.random() > 0.5 else pools.defense)
    right = rng.choice(pools.offense if rng.random() > 0.5 else pools.defense)
    left_ext = rng.choice(pools.hybrid if rng.random() > 0.5 else pools.root)
    right_ext = rng.choice(pools.hybrid if rng.random() > 0.5 else pools.root)
    cap = rng.choice(pools.capstones)

    nodes = [
        _node_from(root, "root", 1),
        _node_from(left, "t2_l", 1, requires=["root"], exclusive_group="tier2"),
        _node_from(right, "t2_r", 1, requires=["root"], exclusive_group="tier2"),
        _node_from(left_ext, "t3_l", 2, requires=["t2_l"]),
        _node_from(right_ext, "t3_r", 2, requires=["t2_r"]),
        _node_from(cap, "cap", 3, requires=["t3_l", "t3_r"], requires_any=True),
    ]
    return nodes, cap.name


def generate_traits(
    catalog: Catalog, rng: random.Random, count: int = TRAITS_PER_RECRUIT
) -> list[Trait]:
    """*count* distinct traits from the catalog pool."""
    pool = sorted(catalog.traits)
    picked = rng.sample(pool, min(count, len(pool)))
    traits: list[Trait] = []
    for template_id in picked:
        template = catalog.traits[template_id]
        traits.append(Trait(
            id=template.id,
            name=template.name,
            type=template.type,
            modifiers=copy.deepcopy(template.modifiers),
            description=template.description,
        ))
    return traits


def roll_recruit_rarity(rng: random.Random) -> Rarity:
    roll = rng.random()
    for threshold, rarity in _RECRUIT_RARITY_ROLLS:
        if roll > threshold:
            return rarity
    return Rarity.COMMON


def base_stats_for(role: Role, rarity: Rarity) -> BaseStats:
    health, damage, speed, crit = ROLE_BASE_STATS[role]
    mult = ADVENTURER_RARITY_MULTIPLIERS[rarity]
    if mult == 1.0:
        return BaseStats(damage=damage, health=health, speed=speed, crit_chance=crit)
    return BaseStats(
        damage=math.ceil(damage * mult),
        health=math.ceil(health * mult),
        speed=round(speed * (1 + (mult - 1) * 0.1), 2),
        crit_chance=round(crit * mult, 2),
    )


def generate_candidate(
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    role: Role | None = None,
) -> Character:
    role = role or rng.choice(list(Role))
    rarity = roll_recruit_rarity(rng)
    tree, archetype = generate_skill_tree(role, catalog, rng)
    return Character(
        id=new_id(rng),
        name=rng.choice(ADVENTURER_NAMES),
        title=rng.choice(ADVENTURER_TITLES),
        role=role,
        rarity=rarity,
        archetype=archetype,
        xp_to_next_level=config.xp_required(1),
        base_stats=base_stats_for(role, rarity),
        traits=generate_traits(catalog, rng),
        skill_tree=tree,
    )


def starter_character(
    catalog: Catalog, config: EngineConfig, rng: random.Random
) -> Character:
    """Common level-1 warrior with no traits."""
    tree, archetype = generate_skill_tree(Role.WARRIOR, catalog, rng)
    return Character(
        id=STARTER_ID,
        name="Aldric",
        title="the Bold",
        role=Role.WARRIOR,
        rarity=Rarity.COMMON,
        archetype=archetype,
        xp_to_next_level=config.xp_required(1),
        base_stats=base_stats_for(Role.WARRIOR, Rarity.COMMON),
        skill_tree=tree,
    )


def starting_state(
    catalog: Catalog, config: EngineConfig, rng: random.Random
) -> GameState:
    """A brand-new guild: one starter, the starting contracts, no upgrades."""
    return GameState(
        gold=config.starting_gold,
        adventurers=[starter_character(catalog, config, rng)],
        unlocked_contracts=list(catalog.starting_contracts),
    )


def recruit_cost(roster_size: int, config: EngineConfig) -> int:
    """100 * 5^(n-1): each hire costs five times the last."""
    return int(config.recruit_base_cost * config.recruit_cost_growth ** max(0, roster_size - 1))


def recruit_adventurer(
    state: GameState,
    catalog: Catalog,
    config: EngineConfig,
    rng: random.Random,
    role: Role | None = None,
) -> GameState:
    if len(state.adventurers) >= config.max_roster:
        logger.debug("recruit rejected: roster full")
        return state
    cost = recruit_cost(len(state.adventurers), config)
    if state.gold < cost:
        logger.debug("recruit rejected: need %d gold, have %d", cost, state.gold)
        return state
    new_state = copy.deepcopy(state)
    new_state.gold -= cost
    recruit = generate_candidate(catalog, config, rng, role)
    new_state.adventurers.append(recruit)
    logger.info("recruited %s (%s %s) for %d gold",
                recruit.name, recruit.rarity.value, recruit.role.value, cost)
    return new_state
