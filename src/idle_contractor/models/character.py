"""Adventurer data model.

A character carries its own base stats, three equipment slots, rolled
traits and a personal skill tree. Everything derived from those (final
damage, power, bonuses) is computed by derived_stats.
"""

from dataclasses import dataclass, field

from idle_contractor.models.constants import (
    Modifier,
    Rarity,
    Role,
    SkillEffectType,
    TraitType,
    ItemType,
    total_skill_points,
)
from idle_contractor.models.effect import StatModifier
from idle_contractor.models.item import Item


SLOT_TYPES: tuple[ItemType, ...] = (ItemType.WEAPON, ItemType.ARMOR, ItemType.TRINKET)


def _empty_slots() -> dict[ItemType, Item | None]:
    return {slot: None for slot in SLOT_TYPES}


@dataclass(slots=True)
class BaseStats:
    damage: float = 0.0
    health: float = 0.0
    speed: float = 1.0
    crit_chance: float = 0.0


@dataclass(slots=True)
class Trait:
    """A rolled trait: a named bundle of stat modifiers."""
    id: str
    name: str
    type: TraitType
    modifiers: list[StatModifier] = field(default_factory=list)
    description: str = ""


@dataclass(slots=True)
class SkillNode:
    """One node in a character's skill tree.

    requires_any=False means every id in *requires* must be unlocked;
    True means one of them is enough. Nodes sharing an exclusive_group
    are mutually exclusive.
    """
    id: str
    name: str
    effect_type: SkillEffectType
    cost: int = 1
    requires: list[str] = field(default_factory=list)
    requires_any: bool = False
    effect_value: float = 0.0
    stat_target: str | None = None     # damage/health/speed/crit/speed_crit/all/gold/xp/loot
    modifier: Modifier | None = None
    exclusive_group: str | None = None
    description: str = ""


@dataclass
class Character:
    """An adventurer on the guild roster."""

    # Identity
    id: str
    name: str
    role: Role
    rarity: Rarity = Rarity.COMMON
    title: str = ""
    archetype: str = ""

    # Progression
    level: int = 1
    xp: int = 0
    xp_to_next_level: int = 100
    skill_points: int = 0

    base_stats: BaseStats = field(default_factory=BaseStats)
    slots: dict[ItemType, Item | None] = field(default_factory=_empty_slots)
    traits: list[Trait] = field(default_factory=list)
    skill_tree: list[SkillNode] = field(default_factory=list)
    unlocked_skills: list[str] = field(default_factory=list)

    def node(self, node_id: str) -> SkillNode | None:
        for node in self.skill_tree:
            if node.id == node_id:
                return node
        return None

    def unlocked_nodes(self) -> list[SkillNode]:
        unlocked = set(self.unlocked_skills)
        return [n for n in self.skill_tree if n.id in unlocked]

    def modifiers(self) -> list[Modifier]:
        """Rule flags granted by unlocked MODIFIER nodes."""
        return [
            n.modifier
            for n in self.unlocked_nodes()
            if n.effect_type == SkillEffectType.MODIFIER and n.modifier is not None
        ]

    def spent_skill_points(self) -> int:
        return sum(n.cost for n in self.unlocked_nodes())

    def earned_skill_points(self) -> int:
        return total_skill_points(self.level)

    def equipped_items(self) -> list[Item]:
        return [item for item in self.slots.values() if item is not None]
