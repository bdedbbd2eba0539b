"""Combat / gathering / fishing affinity classification.

A character's traits, unlocked skill nodes and equipped stat lines each
add fixed points to three affinity scores. A clear leader makes the
character a specialist; a tie makes it a hybrid. The resulting
efficiency bonus is fed back into the stat resolver.
"""

from dataclasses import dataclass

from idle_contractor.models.character import Character
from idle_contractor.models.constants import (
    STAT_CRIT,
    STAT_DAMAGE,
    STAT_GOLD,
    STAT_HEALTH,
    STAT_LOOT,
    Specialization,
    TraitType,
)

SPECIALIST_BONUS = 0.10
HYBRID_BONUS = 0.05

_COMBAT_NODE_TARGETS = frozenset({"damage", "health", "crit", "speed", "speed_crit", "all"})
_GATHERING_NODE_TARGETS = frozenset({"gold", "loot"})
_COMBAT_ITEM_STATS = frozenset({STAT_DAMAGE, STAT_HEALTH, STAT_CRIT})


@dataclass(slots=True)
class SpecializationResult:
    type: Specialization
    combat: int
    gathering: int
    fishing: int
    efficiency_bonus: float

    @property
    def label(self) -> str:
        if self.type == Specialization.NOVICE:
            return "Novice"
        if self.type == Specialization.HYBRID:
            return "Hybrid Expert"
        return f"{self.type.value} Specialist"


def affinity_scores(character: Character) -> tuple[int, int, int]:
    """Return (combat, gathering, fishing) scores."""
    combat = gathering = fishing = 0

    for trait in character.traits:
        if trait.type == TraitType.COMBAT:
            combat += 5
        elif trait.type == TraitType.GATHERING:
            gathering += 5
        elif trait.type == TraitType.FISHING:
            fishing += 5
        elif trait.type == TraitType.HYBRID:
            combat += 2
            gathering += 2
            fishing += 1

    for node in character.unlocked_nodes():
        target = node.stat_target or ""
        if target in _COMBAT_NODE_TARGETS:
            combat += 2
        if target in _GATHERING_NODE_TARGETS:
            gathering += 2
            if target == "loot":
                fishing += 1

    for item in character.equipped_items():
        for stat in item.stats:
            if stat.name in _COMBAT_ITEM_STATS:
                combat += 2
            elif stat.name == STAT_GOLD:
                gathering += 3
            elif stat.name == STAT_LOOT:
                gathering += 2
                fishing += 3

    return combat, gathering, fishing


def classify_specialization(character: Character) -> SpecializationResult:
    combat, gathering, fishing = affinity_scores(character)
    ranked = sorted((combat, gathering, fishing), reverse=True)
    top, second = ranked[0], ranked[1]

    if top == 0:
        return SpecializationResult(Specialization.NOVICE, combat, gathering, fishing, 0.0)
    if top > second:
        if top == combat:
            kind = Specialization.COMBAT
        elif top == gathering:
            kind = Specialization.GATHERING
        else:
            kind = Specialization.FISHING
        return SpecializationResult(kind, combat, gathering, fishing, SPECIALIST_BONUS)
    return SpecializationResult(Specialization.HYBRID, combat, gathering, fishing, HYBRID_BONUS)
