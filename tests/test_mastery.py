"""Tests for guild mastery levelling and bonuses."""

import pytest

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus
from idle_contractor.engine.mastery import (
    MAX_MASTERY_DURATION_REDUCTION,
    RARE_MATERIAL_CHANCE,
    add_mastery_xp,
    mastery_bonus,
    track_for,
)
from idle_contractor.models.constants import ContractType, EventKind, MasteryTrack
from idle_contractor.models.game_state import GuildMastery


CONFIG = EngineConfig()


def _mastery(**levels) -> GuildMastery:
    mastery = GuildMastery()
    for name, level in levels.items():
        mastery.track(MasteryTrack(name)).level = level
    return mastery


def test_tracks_follow_contract_type():
    assert track_for(ContractType.DUNGEON) == MasteryTrack.COMBAT
    assert track_for(ContractType.GATHERING) == MasteryTrack.GATHERING
    assert track_for(ContractType.FISHING) == MasteryTrack.FISHING


def test_level_zero_grants_nothing():
    mastery = GuildMastery()
    for track in MasteryTrack:
        bonus = mastery_bonus(mastery, track, CONFIG)
        assert bonus.duration_reduction == 0.0
        assert bonus.xp_mult == 1.0
        assert bonus.double_chance == 0.0
        assert bonus.rare_chance == 0.0


def test_combat_bonus():
    bonus = mastery_bonus(_mastery(combat=10), MasteryTrack.COMBAT, CONFIG)
    assert bonus.duration_reduction == pytest.approx(0.10)
    assert bonus.xp_mult == pytest.approx(1.20)
    assert bonus.double_chance == 0.0


@pytest.mark.parametrize("level, rare", [(14, 0.0), (15, RARE_MATERIAL_CHANCE)])
def test_gathering_rare_pick_unlocks_at_level_fifteen(level, rare):
    bonus = mastery_bonus(_mastery(gathering=level), MasteryTrack.GATHERING, CONFIG)
    assert bonus.double_chance == pytest.approx(level * CONFIG.mastery_double_per_level)
    assert bonus.rare_chance == rare


def test_fishing_rare_pick_grows_per_level():
    bonus = mastery_bonus(_mastery(fishing=10), MasteryTrack.FISHING, CONFIG)
    assert bonus.rare_chance == pytest.approx(10 * CONFIG.mastery_rare_per_level)
    assert bonus.double_chance == pytest.approx(0.10)


def test_duration_reduction_is_capped():
    config = EngineConfig(mastery_duration_per_level=0.05)
    bonus = mastery_bonus(_mastery(fishing=40), MasteryTrack.FISHING, config)
    assert bonus.duration_reduction == MAX_MASTERY_DURATION_REDUCTION


def test_add_xp_levels_up_and_emits():
    bus = EventBus()
    mastery = GuildMastery()
    first, second = CONFIG.mastery_xp_required(0), CONFIG.mastery_xp_required(1)
    gained = add_mastery_xp(mastery, MasteryTrack.COMBAT, first + second + 7, CONFIG, bus=bus)
    assert gained == 2
    assert mastery.combat.level == 2
    assert mastery.combat.xp == 7
    assert mastery.gathering.level == 0
    events = bus.pending()
    assert [(e.kind, e.value, e.context_id) for e in events] == [
        (EventKind.LEVEL_UP, 2, "combat")
    ]
    assert events[0].label == "Combat Mastery"


def test_add_xp_below_threshold_only_accumulates():
    mastery = GuildMastery()
    assert add_mastery_xp(mastery, MasteryTrack.FISHING, 5, CONFIG) == 0
    assert add_mastery_xp(mastery, MasteryTrack.FISHING, 0, CONFIG) == 0
    assert mastery.fishing.xp == 5
    assert mastery.fishing.level == 0


def test_max_level_stops_xp():
    config = EngineConfig(mastery_max_level=1)
    mastery = GuildMastery()
    assert add_mastery_xp(mastery, MasteryTrack.GATHERING, 10**9, config) == 1
    assert mastery.gathering.level == 1
    assert mastery.gathering.xp == 0
    assert add_mastery_xp(mastery, MasteryTrack.GATHERING, 500, config) == 0
    assert mastery.gathering.xp == 0
