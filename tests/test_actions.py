"""Tests for economy, crafting and progression actions."""

import random

import pytest

from idle_contractor.engine.actions import (
    crafting_cost,
    dismiss_report,
    enchant_item,
    perform_reset,
    purchase_permanent_upgrade,
    purchase_upgrade,
    reroll_item_stat,
    reset_gain,
    respec_actor,
    respec_cost,
    salvage_item,
    salvage_items,
    unlock_skill_node,
    update_loot_filter,
    use_consumable,
)
from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.recruitment import STARTER_ID, starting_state
from idle_contractor.engine.scheduler import equip_item, start_run
from idle_contractor.loot.generator import primary_value, stat_budget
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import ItemType, Rarity
from idle_contractor.models.game_state import RunReport
from idle_contractor.models.item import Item, ItemStat


CATALOG = Catalog.defaults()
CONFIG = EngineConfig()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _state(gold: int = 0, **materials):
    state = starting_state(CATALOG, CONFIG, random.Random(0))
    state.gold = gold
    state.materials = dict(materials)
    return state


def _item(item_id: str = "i1", rarity: Rarity = Rarity.UNCOMMON, level: int = 10,
          stats=None, value: int = 100) -> Item:
    return Item(id=item_id, name="Test Blade", type=ItemType.WEAPON, rarity=rarity,
                level=level, stats=stats or [ItemStat("Damage", 30)], value=value)


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------


def test_crafting_cost_scales_with_level_rarity_and_lines():
    item = _item(stats=[ItemStat("Damage", 30), ItemStat("Speed", 3, True)])
    enchant = crafting_cost(item, "enchant")
    assert enchant.gold == 100 * 10 * 2 * 2
    assert enchant.materials == {"iron_ore": 6}
    reroll = crafting_cost(item, "reroll")
    assert reroll.gold == 50 * 10 * 2
    assert reroll.materials == {"iron_ore": 2}


def test_crafting_cost_potential_multiplier():
    item = _item(level=1, rarity=Rarity.COMMON)
    item.potential = 100
    assert crafting_cost(item, "reroll").gold == 75
    assert crafting_cost(item, "reroll").materials == {}


def test_unknown_crafting_action():
    with pytest.raises(ValueError):
        crafting_cost(_item(), "polish")


def test_reset_gain_and_respec_cost():
    state = _state()
    state.statistics.total_gold_earned = 99_999
    assert reset_gain(state, CONFIG) == 0
    state.statistics.total_gold_earned = 250_000
    assert reset_gain(state, CONFIG) == 5
    assert respec_cost(7, CONFIG) == 350


# ---------------------------------------------------------------------------
# Salvage
# ---------------------------------------------------------------------------


def test_salvage_credits_value():
    state = _state()
    state.inventory = [_item("a", value=30), _item("b", value=12)]
    sold = salvage_item(state, "a")
    assert sold.gold == 30
    assert sold.statistics.total_gold_earned == 30
    assert [i.id for i in sold.inventory] == ["b"]
    assert [i.id for i in state.inventory] == ["a", "b"]


def test_salvage_many_and_unknown():
    state = _state()
    state.inventory = [_item("a", value=30), _item("b", value=12)]
    sold = salvage_items(state, ["a", "b", "zzz"])
    assert sold.gold == 42
    assert sold.inventory == []
    assert salvage_item(state, "zzz") is state


# ---------------------------------------------------------------------------
# Upgrades and reset
# ---------------------------------------------------------------------------


def test_purchase_upgrade():
    poor = _state(gold=49)
    assert purchase_upgrade(poor, "recruit_training", CATALOG) is poor

    state = purchase_upgrade(_state(gold=50 + 75), "recruit_training", CATALOG)
    assert state.upgrades == {"recruit_training": 1}
    assert state.gold == 75
    state = purchase_upgrade(state, "recruit_training", CATALOG)
    assert state.upgrades == {"recruit_training": 2}
    assert state.gold == 0


def test_purchase_upgrade_rejections():
    state = _state(gold=10**12)
    assert purchase_upgrade(state, "nonsense", CATALOG) is state
    state.upgrades["logistics_network"] = 10
    assert purchase_upgrade(state, "logistics_network", CATALOG) is state


def test_purchase_permanent_upgrade_uses_reset_currency():
    state = _state(gold=10**6)
    assert purchase_permanent_upgrade(state, "legacy_wealth", CATALOG) is state
    state.reset_currency = 3
    bought = purchase_permanent_upgrade(state, "legacy_wealth", CATALOG)
    assert bought.permanent_upgrades == {"legacy_wealth": 1}
    assert bought.reset_currency == 2
    assert bought.gold == state.gold


def test_perform_reset():
    state = _state(gold=5000)
    state.inventory = [_item()]
    state.upgrades = {"recruit_training": 4}
    state.permanent_upgrades = {"legacy_wealth": 2}
    state.reset_currency = 1
    state.last_tick = 123.0
    state.statistics.total_gold_earned = 250_000

    after = perform_reset(state, CATALOG, CONFIG, random.Random(1))
    assert after.reset_currency == 6
    assert after.reset_count == 1
    assert after.permanent_upgrades == {"legacy_wealth": 2}
    assert after.upgrades == {}
    assert after.gold == CONFIG.starting_gold
    assert after.inventory == []
    assert [a.id for a in after.adventurers] == [STARTER_ID]
    assert after.statistics.total_gold_earned == 0
    assert after.last_tick == 123.0


def test_reset_below_threshold_is_rejected():
    state = _state()
    assert perform_reset(state, CATALOG, CONFIG, random.Random(1)) is state


# ---------------------------------------------------------------------------
# Crafting
# ---------------------------------------------------------------------------


def test_enchant_adds_a_line_and_charges():
    state = _state(gold=5000, iron_ore=10)
    state.inventory = [_item()]
    after = enchant_item(state, "i1", random.Random(2))
    item = after.inventory_item("i1")
    assert len(item.stats) == 2
    assert item.stats[1].name != "Damage"
    assert item.stats[1].is_percentage
    assert item.value == 110
    assert after.gold == 3000
    assert after.materials == {"iron_ore": 4}
    assert len(state.inventory_item("i1").stats) == 1


def test_enchant_rejections():
    state = _state(gold=1999, iron_ore=10)
    state.inventory = [_item()]
    assert enchant_item(state, "i1", random.Random(2)) is state

    state = _state(gold=10**6, iron_ore=100)
    state.inventory = [_item(rarity=Rarity.COMMON,
                             stats=[ItemStat("Damage", 30), ItemStat("Speed", 2, True)])]
    assert enchant_item(state, "i1", random.Random(2)) is state
    assert enchant_item(state, "missing", random.Random(2)) is state


def test_enchant_worn_item_during_run_marks_slot():
    rng = random.Random(3)
    state = _state(gold=100)
    state.inventory = [_item(rarity=Rarity.COMMON, level=1)]
    state = equip_item(state, STARTER_ID, "i1")
    state = start_run(state, [STARTER_ID], "rat_cellar", CATALOG, CONFIG, rng, now=0.0)
    after = enchant_item(state, "i1", rng)
    assert after.gold == 0
    assert len(after.adventurer(STARTER_ID).slots[ItemType.WEAPON].stats) == 2
    run = after.active_runs[0]
    assert run.modified_slots == {STARTER_ID: [ItemType.WEAPON]}
    assert len(run.adventurer_state[STARTER_ID].slots[ItemType.WEAPON].stats) == 1


def test_reroll_primary_keeps_name():
    state = _state(gold=10**6, iron_ore=10)
    state.inventory = [_item()]
    after = reroll_item_stat(state, "i1", 0, CATALOG, CONFIG, random.Random(5))
    line = after.inventory_item("i1").stats[0]
    assert line.name == "Damage"
    assert 1 <= line.tier <= 7
    assert line.value == primary_value(ItemType.WEAPON, "Damage",
                                       stat_budget(10, Rarity.UNCOMMON), line.tier)
    assert after.gold == 10**6 - 1000
    assert after.materials == {"iron_ore": 8}


def test_reroll_affix_avoids_duplicate_names():
    state = _state(gold=10**6, iron_ore=10)
    state.inventory = [_item(stats=[ItemStat("Damage", 30), ItemStat("Speed", 2, True, 7)])]
    for seed in range(10):
        after = reroll_item_stat(state, "i1", 1, CATALOG, CONFIG, random.Random(seed))
        names = [s.name for s in after.inventory_item("i1").stats]
        assert names[0] == "Damage"
        assert names[1] != "Damage"


def test_reroll_rejections():
    state = _state(gold=10**6, iron_ore=10)
    state.inventory = [_item(rarity=Rarity.EPIC,
                             stats=[ItemStat("Damage", 30), ItemStat("Greed", 50, True, 0)])]
    state.materials = {"mystic_herb": 10}
    assert reroll_item_stat(state, "i1", 5, CATALOG, CONFIG, random.Random(1)) is state
    assert reroll_item_stat(state, "i1", -1, CATALOG, CONFIG, random.Random(1)) is state
    assert reroll_item_stat(state, "i1", 1, CATALOG, CONFIG, random.Random(1)) is state
    broke = _state()
    broke.inventory = [_item()]
    assert reroll_item_stat(broke, "i1", 0, CATALOG, CONFIG, random.Random(1)) is broke


# ---------------------------------------------------------------------------
# Skill trees
# ---------------------------------------------------------------------------


def test_unlock_and_respec():
    state = _state(gold=1000)
    hero = state.adventurer(STARTER_ID)
    assert unlock_skill_node(state, STARTER_ID, "root") is state

    hero.level = 5
    hero.skill_points = 1
    unlocked = unlock_skill_node(state, STARTER_ID, "root")
    assert unlocked.adventurer(STARTER_ID).unlocked_skills == ["root"]
    assert unlocked.adventurer(STARTER_ID).skill_points == 0
    assert unlock_skill_node(unlocked, STARTER_ID, "t2_l") is unlocked

    refunded = respec_actor(unlocked, STARTER_ID, CONFIG)
    assert refunded.adventurer(STARTER_ID).unlocked_skills == []
    assert refunded.adventurer(STARTER_ID).skill_points == 1
    assert refunded.gold == 1000 - 5 * CONFIG.respec_cost_per_level


def test_respec_rejections():
    state = _state(gold=1000)
    assert respec_actor(state, STARTER_ID, CONFIG) is state
    assert respec_actor(state, "nobody", CONFIG) is state
    hero = state.adventurer(STARTER_ID)
    hero.unlocked_skills = ["root"]
    state.gold = 10
    assert respec_actor(state, STARTER_ID, CONFIG) is state


# ---------------------------------------------------------------------------
# Loot filter, reports, consumables
# ---------------------------------------------------------------------------


def test_update_loot_filter_coerces_values():
    state = _state()
    after = update_loot_filter(state, {"enabled": True, "min_rarity": "Rare",
                                       "keep_types": ["Weapon"], "match_any_stat": ["Loot Luck"]})
    f = after.loot_filter
    assert f.enabled is True
    assert f.min_rarity == Rarity.RARE
    assert f.keep_types == [ItemType.WEAPON]
    assert f.match_any_stat == ["Loot Luck"]
    assert state.loot_filter.enabled is False


@pytest.mark.parametrize("changes", [{"color": "red"}, {"min_rarity": "Mythic"},
                                     {"keep_types": ["Boots"]},
                                     {"enabled": "false"}, {"enabled": 1}])
def test_update_loot_filter_rejects_bad_input(changes):
    state = _state()
    assert update_loot_filter(state, changes) is state


def test_dismiss_report():
    state = _state()
    state.recent_reports = [RunReport("a", "r", "rat_cellar", "Rat Cellar", True),
                            RunReport("b", "r", "rat_cellar", "Rat Cellar", False)]
    after = dismiss_report(state, "a")
    assert [r.id for r in after.recent_reports] == ["b"]
    assert dismiss_report(after, "a") is after


def test_use_consumable_restarts_timer():
    state = _state(gold=500)
    state = use_consumable(state, "whetstone_oil", CATALOG, now=10.0)
    assert state.gold == 300
    assert [(c.consumable_id, c.expires_at) for c in state.active_consumables] == [
        ("whetstone_oil", 310.0)
    ]
    state = use_consumable(state, "whetstone_oil", CATALOG, now=100.0)
    assert state.gold == 100
    assert [(c.consumable_id, c.expires_at) for c in state.active_consumables] == [
        ("whetstone_oil", 400.0)
    ]
    assert use_consumable(state, "whetstone_oil", CATALOG, now=100.0) is state
    assert use_consumable(state, "elixir_of_nothing", CATALOG, now=0.0) is state
