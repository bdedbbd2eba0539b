"""Tests for the starter, recruit candidates and hiring."""

import random

import pytest

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.recruitment import (
    STARTER_ID,
    TRAITS_PER_RECRUIT,
    base_stats_for,
    generate_candidate,
    generate_traits,
    recruit_adventurer,
    recruit_cost,
    roll_recruit_rarity,
    starter_character,
    starting_state,
)
from idle_contractor.graph.skill_tree import SkillTree
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import ADVENTURER_NAMES, Rarity, Role


CATALOG = Catalog.defaults()
CONFIG = EngineConfig()


def test_starter_is_a_plain_warrior():
    hero = starter_character(CATALOG, CONFIG, random.Random(0))
    assert hero.id == STARTER_ID
    assert hero.role == Role.WARRIOR
    assert hero.rarity == Rarity.COMMON
    assert hero.traits == []
    assert hero.level == 1
    assert hero.unlocked_skills == []
    assert (hero.base_stats.damage, hero.base_stats.health) == (4, 120)
    assert len(hero.skill_tree) == 6
    assert hero.archetype == hero.node("cap").name


def test_starting_state():
    state = starting_state(CATALOG, EngineConfig(starting_gold=250), random.Random(0))
    assert state.gold == 250
    assert [a.id for a in state.adventurers] == [STARTER_ID]
    assert state.unlocked_contracts == ["rat_cellar", "whispering_woods", "crystal_lake"]
    assert state.active_runs == []
    assert state.reset_count == 0


@pytest.mark.parametrize("roster, cost", [(0, 100), (1, 100), (2, 500), (3, 2500)])
def test_recruit_cost_grows_fivefold(roster, cost):
    assert recruit_cost(roster, CONFIG) == cost


def test_rarity_scales_base_stats():
    rare = base_stats_for(Role.WARRIOR, Rarity.RARE)
    assert rare.damage == 6
    assert rare.health == 180
    legendary = base_stats_for(Role.MAGE, Rarity.LEGENDARY)
    assert legendary.damage == 30
    assert legendary.health == 125
    assert legendary.speed == pytest.approx(1.15)
    common = base_stats_for(Role.ROGUE, Rarity.COMMON)
    assert (common.damage, common.health, common.speed) == (8, 60, 1.2)


def test_traits_are_distinct():
    rng = random.Random(9)
    for _ in range(20):
        traits = generate_traits(CATALOG, rng)
        assert len(traits) == TRAITS_PER_RECRUIT
        assert len({t.id for t in traits}) == TRAITS_PER_RECRUIT


def test_candidate_shape():
    rng = random.Random(21)
    for _ in range(25):
        hero = generate_candidate(CATALOG, CONFIG, rng)
        assert hero.name in ADVENTURER_NAMES
        assert hero.level == 1
        assert hero.xp_to_next_level == CONFIG.xp_required(1)
        assert len(hero.traits) == TRAITS_PER_RECRUIT
        assert SkillTree.for_character(hero).is_acyclic()
    mage = generate_candidate(CATALOG, CONFIG, rng, role=Role.MAGE)
    assert mage.role == Role.MAGE


def test_recruit_rarity_distribution():
    rng = random.Random(5)
    draws = [roll_recruit_rarity(rng) for _ in range(4000)]
    assert draws.count(Rarity.COMMON) / len(draws) == pytest.approx(0.50, abs=0.03)
    assert draws.count(Rarity.LEGENDARY) / len(draws) == pytest.approx(0.02, abs=0.01)


def test_recruit_adventurer():
    rng = random.Random(3)
    state = starting_state(CATALOG, CONFIG, rng)
    assert recruit_adventurer(state, CATALOG, CONFIG, rng) is state

    state.gold = 600
    state = recruit_adventurer(state, CATALOG, CONFIG, rng, Role.ROGUE)
    assert len(state.adventurers) == 2
    assert state.adventurers[1].role == Role.ROGUE
    assert state.gold == 500
    state = recruit_adventurer(state, CATALOG, CONFIG, rng)
    assert len(state.adventurers) == 3
    assert state.gold == 0
    assert len({a.id for a in state.adventurers}) == 3


def test_full_roster_rejects_recruit():
    config = EngineConfig(max_roster=1)
    rng = random.Random(3)
    state = starting_state(CATALOG, config, rng)
    state.gold = 10**6
    assert recruit_adventurer(state, CATALOG, config, rng) is state
