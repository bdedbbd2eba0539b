"""Item data models: rolled stat lines and equippable gear.

Items are produced by the loot generator and mutated only by crafting
(enchant appends a line, reroll replaces one). The stat list order is
meaningful: index 0 is always the primary line.
"""

from dataclasses import dataclass, field

from idle_contractor.models.constants import (
    MAX_STATS_BY_RARITY,
    ItemType,
    Rarity,
    Role,
    WeaponType,
)


@dataclass(slots=True)
class ItemStat:
    """One rolled line, e.g. 'Damage 14 (tier 3)' or 'Crit Chance 4% (tier 5)'."""
    name: str
    value: float
    is_percentage: bool = False
    tier: int = 5          # 1 best .. 7 worst, 0 = special line

    @property
    def is_special(self) -> bool:
        return self.tier == 0


@dataclass(slots=True)
class Item:
    """A generated piece of equipment."""
    id: str
    name: str
    type: ItemType
    rarity: Rarity
    level: int
    stats: list[ItemStat] = field(default_factory=list)
    value: int = 0                          # scrap value in gold
    subtype: WeaponType = WeaponType.NONE
    class_restriction: list[Role] = field(default_factory=list)
    potential: int = 0
    visual_tier: str = "D"
    set_id: str | None = None
    unique_effect_id: str | None = None
    identity_tag: str | None = None

    @property
    def max_stats(self) -> int:
        return MAX_STATS_BY_RARITY[self.rarity]

    @property
    def has_free_stat_slot(self) -> bool:
        return len(self.stats) < self.max_stats

    def stat_names(self) -> set[str]:
        return {s.name for s in self.stats}

    def can_be_equipped_by(self, role: Role) -> bool:
        """Empty restriction means any role may use it."""
        return not self.class_restriction or role in self.class_restriction

    def same_rolls_as(self, other: "Item | None") -> bool:
        """True if *other* is this item with identical stat lines."""
        if other is None or other.id != self.id:
            return False
        if len(other.stats) != len(self.stats):
            return False
        return all(
            a.name == b.name and a.value == b.value and a.tier == b.tier
            for a, b in zip(self.stats, other.stats)
        )
