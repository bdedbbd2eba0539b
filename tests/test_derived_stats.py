"""Tests for the stat resolver: accumulation order and outer multipliers."""

import math
import random

import pytest

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.recruitment import generate_candidate
from idle_contractor.loot.generator import generate_item
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.character import BaseStats, Character, SkillNode, Trait
from idle_contractor.models.constants import (
    ItemType,
    Modifier,
    Rarity,
    Role,
    SkillEffectType,
    StatTarget,
    TraitType,
)
from idle_contractor.models.derived_stats import (
    compute_stats,
    conservative_character,
    party_power,
    reset_bonuses,
    stats_power,
)
from idle_contractor.models.effect import StatModifier
from idle_contractor.models.game_state import (
    ActiveConsumable,
    ActiveRun,
    GameState,
    RunSnapshot,
)
from idle_contractor.models.item import Item, ItemStat


@pytest.fixture
def catalog():
    return Catalog.defaults()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _warrior(damage: float = 4, health: float = 120, **kwargs) -> Character:
    return Character(
        id=kwargs.pop("id", "w1"),
        name="Test",
        role=Role.WARRIOR,
        base_stats=BaseStats(damage=damage, health=health, speed=0.9, crit_chance=0.05),
        **kwargs,
    )


def _gear(item_type: ItemType, *stats: ItemStat, item_id: str = "g1") -> Item:
    return Item(id=item_id, name="Test Gear", type=item_type, rarity=Rarity.LEGENDARY,
                level=1, stats=list(stats))


def _state(*characters: Character, **kwargs) -> GameState:
    return GameState(adventurers=list(characters), **kwargs)


# ---------------------------------------------------------------------------
# Base and scenario values
# ---------------------------------------------------------------------------


def test_starter_warrior_power_is_25(catalog):
    """floor((4 * 1.05 + 120 / 5) * 0.9) = floor(25.38) = 25."""
    hero = _warrior()
    stats = compute_stats(hero, _state(hero), catalog)
    assert stats.damage == 4
    assert stats.health == 120
    assert stats.speed == pytest.approx(0.9)
    assert stats.crit_chance == pytest.approx(0.05)
    assert stats_power(stats) == 25


def test_recruit_training_adds_flat_damage(catalog):
    hero = _warrior()
    stats = compute_stats(hero, _state(hero, upgrades={"recruit_training": 3}), catalog)
    assert stats.damage == 10


def test_class_skill_unlocks_at_level(catalog):
    hero = _warrior(level=3)
    stats = compute_stats(hero, _state(hero), catalog)
    assert stats.health == 150


# ---------------------------------------------------------------------------
# Modifier sources
# ---------------------------------------------------------------------------


def test_combat_trait_stacks_with_specialization(catalog):
    """+10% trait and +10% combat specialist share the percent bucket."""
    trait = Trait("giant_slayer", "Giant Slayer", TraitType.COMBAT,
                  [StatModifier.mul(StatTarget.DAMAGE, 1.10)])
    hero = _warrior(damage=10, traits=[trait])
    stats = compute_stats(hero, _state(hero), catalog)
    assert stats.damage == 12


def test_flat_item_line_adds_before_percent(catalog):
    hero = _warrior()
    hero.slots[ItemType.WEAPON] = _gear(ItemType.WEAPON, ItemStat("Damage", 6))
    stats = compute_stats(hero, _state(hero), catalog)
    # (4 + 6) * 1.10 combat specialist
    assert stats.damage == 11


def test_weapon_master_doubles_weapon_and_ignores_trinket(catalog):
    master = SkillNode("cap", "Weapon Master", SkillEffectType.MODIFIER,
                       modifier=Modifier.WEAPON_MASTER)
    hero = _warrior(skill_tree=[master], unlocked_skills=["cap"])
    hero.slots[ItemType.WEAPON] = _gear(ItemType.WEAPON, ItemStat("Damage", 6))
    hero.slots[ItemType.TRINKET] = _gear(ItemType.TRINKET, ItemStat("Damage", 10), item_id="g2")
    stats = compute_stats(hero, _state(hero), catalog)
    # (4 + 12) * 1.10
    assert stats.damage == 17

    hero.unlocked_skills = []
    stats = compute_stats(hero, _state(hero), catalog)
    # (4 + 6 + 10) * 1.10
    assert stats.damage == 22


def test_party_flag_reaches_every_member(catalog):
    glass = SkillNode("cap", "Glass Cannon", SkillEffectType.MODIFIER,
                      modifier=Modifier.GLASS_CANNON)
    mage = Character("m1", "Mage", Role.MAGE, base_stats=BaseStats(12, 50, 1.0, 0.1),
                     skill_tree=[glass], unlocked_skills=["cap"])
    hero = _warrior(damage=10)
    state = _state(hero, mage)
    alone = compute_stats(hero, state, catalog)
    together = compute_stats(hero, state, catalog, party_ids=["w1", "m1"])
    assert alone.damage == 10
    assert together.damage == math.floor(10 * (1 + (1.40 - 1.0)))


def test_item_set_needs_required_pieces(catalog):
    hero = _warrior()
    hero.slots[ItemType.ARMOR] = _gear(ItemType.ARMOR, ItemStat("Speed", 0, True), item_id="a")
    hero.slots[ItemType.ARMOR].set_id = "vanguard"
    one_piece = compute_stats(hero, _state(hero), catalog)
    assert one_piece.health == 120

    hero.slots[ItemType.TRINKET] = _gear(ItemType.TRINKET, ItemStat("Speed", 0, True), item_id="t")
    hero.slots[ItemType.TRINKET].set_id = "vanguard"
    two_pieces = compute_stats(hero, _state(hero), catalog)
    assert two_pieces.health == math.floor(120 * (1 + (1.20 - 1.0)))


def test_unique_effect_applies(catalog):
    hero = _warrior(damage=100)
    hero.slots[ItemType.TRINKET] = _gear(ItemType.TRINKET, ItemStat("Speed", 0, True))
    hero.slots[ItemType.TRINKET].unique_effect_id = "kingslayer"
    stats = compute_stats(hero, _state(hero), catalog)
    assert stats.damage == 125


# ---------------------------------------------------------------------------
# Outer multipliers
# ---------------------------------------------------------------------------


def test_reset_growth_scales_damage_and_health(catalog):
    hero = _warrior()
    stats = compute_stats(hero, _state(hero, reset_count=1), catalog)
    assert stats.damage == 4
    assert stats.health == 132


def test_reset_bonus_table():
    bonuses = reset_bonuses(3)
    assert bonuses.power_growth == pytest.approx(0.3)
    assert bonuses.gold_growth == pytest.approx(0.6)
    assert bonuses.rarity_shift == pytest.approx(1.5)
    assert reset_bonuses(50).duration_reduction == pytest.approx(0.5)


def test_power_consumable_multiplies_damage(catalog):
    hero = _warrior(damage=10)
    state = _state(hero, active_consumables=[ActiveConsumable("whetstone_oil", 999.0)])
    assert compute_stats(hero, state, catalog).damage == 11


def test_gold_gain_uses_one_plus_formula(catalog):
    trait = Trait("hoarder", "Hoarder", TraitType.GATHERING,
                  [StatModifier.add(StatTarget.GOLD, 0.10)])
    hero = _warrior(traits=[trait])
    # gathering specialist adds +10% to the gold percent bucket
    plain = compute_stats(hero, _state(hero), catalog)
    assert plain.gold_gain == pytest.approx(0.11)
    after_reset = compute_stats(hero, _state(hero, reset_count=1), catalog)
    assert after_reset.gold_gain == pytest.approx(0.33)


def test_stats_are_finite_and_non_negative(catalog):
    rng = random.Random(7)
    config = EngineConfig()
    for _ in range(50):
        hero = generate_candidate(catalog, config, rng)
        hero.unlocked_skills = [n.id for n in hero.skill_tree]
        for slot in (ItemType.WEAPON, ItemType.ARMOR, ItemType.TRINKET):
            rarity = rng.choice(list(Rarity))
            hero.slots[slot] = generate_item(rng.randint(1, 40), rarity, rng,
                                             catalog=catalog, item_type=slot)
        stats = compute_stats(hero, _state(hero), catalog)
        for value in (stats.damage, stats.health, stats.speed, stats.crit_chance,
                      stats.gold_gain, stats.xp_gain, stats.loot_luck):
            assert value >= 0
            assert math.isfinite(value)


# ---------------------------------------------------------------------------
# Party and conservative views
# ---------------------------------------------------------------------------


def test_party_power_sums_members(catalog):
    a = _warrior(id="a")
    b = _warrior(id="b")
    assert party_power(_state(a, b), catalog, ["a", "b"]) == 50


def test_conservative_view_drops_modified_slots():
    hero = _warrior()
    hero.slots[ItemType.WEAPON] = _gear(ItemType.WEAPON, ItemStat("Damage", 6))
    run = ActiveRun(
        id="r1", contract_id="rat_cellar", adventurer_ids=["w1"], start_time=0.0,
        duration=10.0, snapshot=RunSnapshot(),
        adventurer_state={"w1": _warrior()},
        modified_slots={"w1": [ItemType.WEAPON]},
    )
    view = conservative_character(hero, _state(hero, active_runs=[run]))
    assert view.slots[ItemType.WEAPON] is None
    assert hero.slots[ItemType.WEAPON] is not None


def test_conservative_view_of_idle_character_is_itself():
    hero = _warrior()
    assert conservative_character(hero, _state(hero)) is hero
