"""Tests for JSON save and load."""

import json
import logging
import random

import pytest

from idle_contractor.engine.actions import update_loot_filter, use_consumable
from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.recruitment import STARTER_ID, recruit_adventurer, starting_state
from idle_contractor.engine.scheduler import equip_item, start_run
from idle_contractor.engine.tick import tick
from idle_contractor.loot.generator import generate_item
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import ItemType, Rarity, Role
from idle_contractor.persistence.save_state import (
    SAVE_VERSION,
    dump_state,
    load_from_path,
    load_state,
    save_to_path,
    state_to_dict,
)


CATALOG = Catalog.defaults()


def _busy_state():
    """A state with every kind of record filled in."""
    config = EngineConfig(resolution_model="pressure")
    rng = random.Random(17)
    state = starting_state(CATALOG, config, rng)
    state.gold = 10_000
    state = recruit_adventurer(state, CATALOG, config, rng, Role.MAGE)
    state = recruit_adventurer(state, CATALOG, config, rng, Role.ROGUE)
    mage_id, rogue_id = state.adventurers[1].id, state.adventurers[2].id

    for level, rarity in ((3, Rarity.RARE), (8, Rarity.LEGENDARY), (2, Rarity.EPIC)):
        state.inventory.append(generate_item(level, rarity, rng, catalog=CATALOG,
                                             item_type=ItemType.TRINKET))
    first, second = state.inventory[0].id, state.inventory[1].id
    state = equip_item(state, STARTER_ID, first)
    starter = state.adventurer(STARTER_ID)
    starter.level = 5
    starter.unlocked_skills = ["root"]

    state = update_loot_filter(state, {"enabled": True, "match_any_stat": ["Speed"]})
    state = use_consumable(state, "merchant_charm", CATALOG, now=0.0)
    state.permanent_upgrades = {"legacy_wealth": 2}
    state.materials = {"iron_ore": 4}
    state.mastery.fishing.level = 3
    state.mastery.fishing.xp = 40

    state = start_run(state, [STARTER_ID, mage_id], "rat_cellar", CATALOG, config, rng,
                      now=0.0, auto_repeat=True)
    state = start_run(state, [rogue_id], "whispering_woods", CATALOG, config, rng, now=0.0)
    state = tick(state, 16.0, CATALOG, config, rng)
    # the repeating fight keeps the starter busy, so this swap is recorded
    return equip_item(state, STARTER_ID, second)


def test_round_trip_preserves_everything():
    state = _busy_state()
    assert state.active_runs[0].combat is not None
    assert state.active_runs[0].modified_slots
    assert state.recent_reports

    loaded = load_state(dump_state(state))
    assert loaded == state


def test_envelope_and_raw_payloads():
    state = _busy_state()
    payload = json.loads(dump_state(state, indent=2))
    assert payload["version"] == SAVE_VERSION
    assert payload["state"]["gold"] == state.gold
    assert load_state(json.dumps(state_to_dict(state))) == state


def test_enums_are_saved_as_display_strings():
    data = state_to_dict(_busy_state())
    starter = next(a for a in data["adventurers"] if a["id"] == STARTER_ID)
    assert starter["role"] == "Warrior"
    assert set(starter["slots"]) == {"Weapon", "Armor", "Trinket"}


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        '"just a string"',
        json.dumps({"gold": "lots", "adventurers": []}),
        json.dumps({"gold": True, "adventurers": []}),
        json.dumps({"gold": 5, "adventurers": {}}),
        json.dumps({"gold": 5}),
        json.dumps({"gold": 5, "adventurers": [{"id": "x", "name": "X", "role": "Bard"}]}),
        json.dumps({"version": 1, "state": {"gold": None, "adventurers": []}}),
        json.dumps({"gold": 5, "adventurers": [], "loot_filter": {"enabled": "false"}}),
    ],
)
def test_invalid_saves_are_rejected(text, caplog):
    with caplog.at_level(logging.WARNING, logger="idle_contractor.persistence.save_state"):
        assert load_state(text) is None
    assert "save rejected" in caplog.text


def test_minimal_save_fills_defaults():
    loaded = load_state(json.dumps({"gold": 12.0, "adventurers": []}))
    assert loaded is not None
    assert loaded.gold == 12
    assert loaded.inventory == []
    assert loaded.loot_filter.enabled is False
    assert loaded.mastery.combat.level == 0


def test_save_and_load_file(tmp_path):
    state = _busy_state()
    path = save_to_path(state, tmp_path / "saves" / "slot1.json")
    assert path.exists()
    assert load_from_path(path) == state
    assert load_from_path(tmp_path / "missing.json") is None


def test_old_per_character_gathering_counters_are_ignored():
    state = _busy_state()
    data = state_to_dict(state)
    for adventurer in data["adventurers"]:
        adventurer["gathering_xp"] = 12
        adventurer["fishing_xp"] = 3
    assert load_state(json.dumps(data)) == state
