"""Guild mastery: one levelled track per contract family.

Dungeon kills feed the combat track; gathered and fished units feed the
gathering and fishing tracks. Levels shorten that family's contracts
and add a yield bonus:

    combat      more xp from dungeon kills
    gathering   chance to double each material, rare pick from level 15
    fishing     chance to double each catch, rare pick growing per level

Tracks start at level 0, which grants nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from idle_contractor.engine.engine_config import EngineConfig
from idle_contractor.engine.events import EventBus, emit
from idle_contractor.models.constants import ContractType, EventKind, MasteryTrack
from idle_contractor.models.game_state import GuildMastery

logger = logging.getLogger(__name__)

MAX_MASTERY_DURATION_REDUCTION = 0.5
RARE_MATERIAL_LEVEL = 15
RARE_MATERIAL_CHANCE = 0.10

_TRACKS = {
    ContractType.DUNGEON: MasteryTrack.COMBAT,
    ContractType.GATHERING: MasteryTrack.GATHERING,
    ContractType.FISHING: MasteryTrack.FISHING,
}


@dataclass(frozen=True, slots=True)
class MasteryBonus:
    duration_reduction: float = 0.0
    xp_mult: float = 1.0
    double_chance: float = 0.0
    rare_chance: float = 0.0


def track_for(contract_type: ContractType) -> MasteryTrack:
    return _TRACKS[contract_type]


def mastery_bonus(
    mastery: GuildMastery, track: MasteryTrack, config: EngineConfig
) -> MasteryBonus:
    level = mastery.track(track).level
    reduction = min(MAX_MASTERY_DURATION_REDUCTION, level * config.mastery_duration_per_level)
    if track == MasteryTrack.COMBAT:
        return MasteryBonus(
            duration_reduction=reduction,
            xp_mult=1 + level * config.mastery_xp_bonus_per_level,
        )
    if track == MasteryTrack.GATHERING:
        rare = RARE_MATERIAL_CHANCE if level >= RARE_MATERIAL_LEVEL else 0.0
    else:
        rare = min(1.0, level * config.mastery_rare_per_level)
    return MasteryBonus(
        duration_reduction=reduction,
        double_chance=min(1.0, level * config.mastery_double_per_level),
        rare_chance=rare,
    )


def add_mastery_xp(
    mastery: GuildMastery,
    track: MasteryTrack,
    amount: int,
    config: EngineConfig,
    *,
    bus: EventBus | None = None,
) -> int:
    """Add xp to *track* in place and level it up. Returns levels gained.

    XP stops accumulating at mastery_max_level.
    """
    progress = mastery.track(track)
    if amount <= 0 or progress.level >= config.mastery_max_level:
        return 0
    progress.xp += amount
    gained = 0
    while progress.level < config.mastery_max_level:
        required = config.mastery_xp_required(progress.level)
        if progress.xp < required:
            break
        progress.xp -= required
        progress.level += 1
        gained += 1
    if progress.level >= config.mastery_max_level:
        progress.xp = 0
    if gained:
        logger.info("%s mastery reached level %d", track.value, progress.level)
        emit(bus, EventKind.LEVEL_UP, progress.level, track.value,
             f"{track.value.title()} Mastery")
    return gained
