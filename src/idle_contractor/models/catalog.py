"""Reference data: enemies, contracts, materials, upgrades and bonuses.

The catalog is read-only balance data consumed by every engine module.
Catalog.defaults() returns the stock content so the engine works without
any external data files; tests build smaller catalogs by hand.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from idle_contractor.models.constants import (
    ConsumableEffect,
    ContractType,
    DungeonMechanic,
    Modifier,
    Rarity,
    Role,
    SkillEffectType,
    StatTarget,
    TraitType,
)
from idle_contractor.models.effect import StatModifier
from idle_contractor.models.mechanics import MechanicModifier, mechanic_modifier


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Enemy:
    id: str
    name: str
    hp: float
    xp_min: int = 0
    xp_max: int = 0
    gold_min: int = 0
    gold_max: int = 0


@dataclass(slots=True)
class Contract:
    """A timed activity a party can be sent on."""
    id: str
    name: str
    type: ContractType
    level: int
    duration: float                 # seconds, before any reduction
    enemy_id: str
    drop_chance: float
    recommended_power: int
    tier: int = 1
    loot_table: list[str] = field(default_factory=list)   # material ids
    unlock_after: str | None = None     # contract that must be cleared first
    unlock_clears: int = 0
    mechanic: DungeonMechanic = DungeonMechanic.NONE

    @property
    def is_combat(self) -> bool:
        return self.type == ContractType.DUNGEON

    @property
    def modifier(self) -> MechanicModifier:
        return mechanic_modifier(self.mechanic, self.tier)

    @property
    def effective_power(self) -> int:
        """Recommended power after the mechanic's power requirement."""
        return math.floor(self.recommended_power * self.modifier.power_req_mult)


@dataclass(slots=True)
class Material:
    id: str
    name: str
    rarity: Rarity
    value: int


@dataclass(slots=True)
class Upgrade:
    """A levelled purchase. Used for both guild and permanent upgrades."""
    id: str
    name: str
    cost: int
    cost_multiplier: float
    max_level: int
    effect_per_level: float
    effect_cap: float | None = None

    def cost_at(self, level: int) -> int:
        """Price of buying the level after *level*."""
        return math.floor(self.cost * self.cost_multiplier ** level)

    def effect(self, level: int) -> float:
        value = self.effect_per_level * level
        if self.effect_cap is not None:
            value = min(value, self.effect_cap)
        return value


@dataclass(slots=True)
class ClassSkill:
    """A passive unlocked automatically once a character reaches unlock_level."""
    id: str
    name: str
    role: Role
    unlock_level: int
    modifiers: list[StatModifier] = field(default_factory=list)


@dataclass(slots=True)
class TraitTemplate:
    id: str
    name: str
    type: TraitType
    modifiers: list[StatModifier] = field(default_factory=list)
    description: str = ""


@dataclass(slots=True)
class ItemSet:
    id: str
    name: str
    required_pieces: int
    modifiers: list[StatModifier] = field(default_factory=list)


@dataclass(slots=True)
class UniqueEffect:
    id: str
    name: str
    modifiers: list[StatModifier] = field(default_factory=list)


@dataclass(slots=True)
class Consumable:
    id: str
    name: str
    effect: ConsumableEffect
    value: float
    cost: int
    duration: float     # seconds


@dataclass(slots=True)
class NodeTemplate:
    """Skill-tree node content; the tree shape is assigned by recruitment."""
    name: str
    effect_type: SkillEffectType
    effect_value: float = 0.0
    stat_target: str | None = None
    modifier: Modifier | None = None
    description: str = ""


@dataclass(slots=True)
class SkillPools:
    """Per-role node templates used to generate a skill tree."""
    root: list[NodeTemplate]
    offense: list[NodeTemplate]
    defense: list[NodeTemplate]
    hybrid: list[NodeTemplate]
    capstones: list[NodeTemplate]


# ---------------------------------------------------------------------------
# Stock content
# ---------------------------------------------------------------------------

_T = StatTarget
_add = StatModifier.add
_mul = StatModifier.mul

_ENEMIES = [
    Enemy("giant_rat", "Giant Rat", 30, 4, 6, 1, 3),
    Enemy("scavenger_goblin", "Scavenger Goblin", 150, 12, 18, 6, 10),
    Enemy("dire_wolf", "Dire Wolf", 500, 35, 50, 15, 25),
    Enemy("skeleton_warrior", "Skeleton Warrior", 2000, 100, 140, 40, 60),
    Enemy("young_dragon", "Young Dragon", 10000, 700, 900, 250, 400),
    # Guardians of non-combat contracts: no gold or xp of their own.
    Enemy("forest_spirit", "Forest Spirit", 100),
    Enemy("rock_golem", "Rock Golem", 500),
    Enemy("river_guardian", "River Guardian", 100),
    Enemy("deep_lurker", "Deep Lurker", 800),
]

_CONTRACTS = [
    Contract("rat_cellar", "Rat Cellar", ContractType.DUNGEON, 1, 10, "giant_rat", 0.20, 25, tier=1),
    Contract("goblin_camp", "Goblin Camp", ContractType.DUNGEON, 5, 30, "scavenger_goblin", 0.25, 120,
             tier=2, unlock_after="rat_cellar", unlock_clears=5,
             mechanic=DungeonMechanic.SWARM),
    Contract("wolf_den", "Wolf Den", ContractType.DUNGEON, 10, 60, "dire_wolf", 0.30, 350,
             tier=3, unlock_after="goblin_camp", unlock_clears=5,
             mechanic=DungeonMechanic.PACK_TACTICS),
    Contract("skeleton_crypt", "Skeleton Crypt", ContractType.DUNGEON, 20, 120, "skeleton_warrior", 0.35, 1200,
             tier=4, unlock_after="wolf_den", unlock_clears=5,
             mechanic=DungeonMechanic.UNDEAD_RESILIENCE),
    Contract("dragon_peak", "Dragon Peak", ContractType.DUNGEON, 50, 300, "young_dragon", 0.40, 5000,
             tier=5, unlock_after="skeleton_crypt", unlock_clears=5,
             mechanic=DungeonMechanic.ELITE_HUNT),
    Contract("whispering_woods", "Whispering Woods", ContractType.GATHERING, 1, 15, "forest_spirit", 0.80, 30,
             tier=1, loot_table=["hardwood", "mystic_herb"]),
    Contract("iron_vein", "Iron Vein", ContractType.GATHERING, 10, 45, "rock_golem", 0.70, 200,
             tier=2, loot_table=["iron_ore", "ancient_relic"], unlock_after="whispering_woods", unlock_clears=5,
             mechanic=DungeonMechanic.RESOURCE_SURGE),
    Contract("crystal_lake", "Crystal Lake", ContractType.FISHING, 5, 20, "river_guardian", 0.60, 50,
             tier=1, loot_table=["raw_fish", "prism_pearl"]),
    Contract("abyssal_trench", "Abyssal Trench", ContractType.FISHING, 25, 90, "deep_lurker", 0.50, 1000,
             tier=3, loot_table=["raw_fish", "prism_pearl", "ancient_relic"],
             unlock_after="crystal_lake", unlock_clears=5),
]

_MATERIALS = [
    Material("iron_ore", "Iron Ore", Rarity.COMMON, 2),
    Material("hardwood", "Hardwood", Rarity.COMMON, 2),
    Material("mystic_herb", "Mystic Herb", Rarity.UNCOMMON, 5),
    Material("raw_fish", "Raw Fish", Rarity.COMMON, 1),
    Material("prism_pearl", "Prism Pearl", Rarity.RARE, 25),
    Material("ancient_relic", "Ancient Relic", Rarity.EPIC, 100),
]

_UPGRADES = [
    Upgrade("recruit_training", "Recruit Training", 50, 1.5, 50, 2.0),
    Upgrade("marketplace_connections", "Marketplace Connections", 100, 1.4, 20, 0.1),
    Upgrade("logistics_network", "Logistics Network", 500, 1.6, 10, 0.05, effect_cap=0.5),
    Upgrade("loot_logic", "Loot Logic", 250, 1.5, 20, 0.02),
]

_PERMANENT_UPGRADES = [
    Upgrade("legacy_wealth", "Legacy Wealth", 1, 2.0, 10, 0.25),
    Upgrade("renowned_guild", "Renowned Guild", 2, 1.5, 10, 0.25),
    Upgrade("divine_favor", "Divine Favor", 5, 2.5, 5, 0.1),
    Upgrade("master_crafters", "Master Crafters", 10, 3.0, 5, 0.1),
]

_CLASS_SKILLS = [
    ClassSkill("war_1", "Ironclad", Role.WARRIOR, 3, [_add(_T.HEALTH, 30)]),
    ClassSkill("war_2", "Heavy Swing", Role.WARRIOR, 8, [_mul(_T.DAMAGE, 1.15)]),
    ClassSkill("war_3", "Juggernaut", Role.WARRIOR, 15, [_add(_T.HEALTH, 50), _mul(_T.DAMAGE, 1.10)]),
    ClassSkill("rog_1", "Quick Step", Role.ROGUE, 3, [_mul(_T.SPEED, 1.10)]),
    ClassSkill("rog_2", "Precision", Role.ROGUE, 8, [_add(_T.CRIT, 0.10)]),
    ClassSkill("rog_3", "Assassinate", Role.ROGUE, 15, [_mul(_T.DAMAGE, 1.30)]),
    ClassSkill("mag_1", "Focus", Role.MAGE, 3, [_add(_T.DAMAGE, 5)]),
    ClassSkill("mag_2", "Glass Cannon", Role.MAGE, 8, [_mul(_T.DAMAGE, 1.20), _mul(_T.HEALTH, 0.90)]),
    ClassSkill("mag_3", "Meteor", Role.MAGE, 15, [_mul(_T.DAMAGE, 1.40)]),
]

_TRAITS = [
    TraitTemplate("giant_slayer", "Giant Slayer", TraitType.COMBAT, [_mul(_T.DAMAGE, 1.10)], "+10% Damage"),
    TraitTemplate("tank", "Iron Skin", TraitType.COMBAT, [_mul(_T.HEALTH, 1.15)], "+15% Health"),
    TraitTemplate("hoarder", "Hoarder", TraitType.GATHERING, [_add(_T.GOLD, 0.10)], "+10% Gold Gain"),
    TraitTemplate("miner", "Miner", TraitType.GATHERING, [_add(_T.LOOT, 0.10)], "+10% Material Yield"),
    TraitTemplate("angler", "Angler", TraitType.FISHING, [_add(_T.LOOT, 0.08)], "+8% Loot Luck"),
    TraitTemplate("scout", "Scout", TraitType.HYBRID, [_mul(_T.SPEED, 1.10)], "+10% Speed"),
    TraitTemplate("lucky", "Lucky", TraitType.HYBRID, [_add(_T.CRIT, 0.05)], "+5% Crit Chance"),
    TraitTemplate("scholar", "Scholar", TraitType.HYBRID, [_add(_T.XP, 0.10)], "+10% XP Gain"),
]

_ITEM_SETS = [
    ItemSet("vanguard", "Vanguard's Resolve", 2, [_mul(_T.HEALTH, 1.20)]),
    ItemSet("nightblade", "Nightblade's Edge", 2, [_add(_T.CRIT, 0.05), _mul(_T.SPEED, 1.05)]),
    ItemSet("arcanist", "Arcanist's Regalia", 2, [_mul(_T.DAMAGE, 1.15)]),
    ItemSet("prospector", "Prospector's Kit", 3, [_add(_T.GOLD, 0.25), _add(_T.LOOT, 0.10)]),
]

_UNIQUE_EFFECTS = [
    UniqueEffect("dragonheart", "Dragonheart", [_mul(_T.HEALTH, 1.25)]),
    UniqueEffect("stormcaller", "Stormcaller", [_mul(_T.SPEED, 1.15)]),
    UniqueEffect("kingslayer", "Kingslayer", [_mul(_T.DAMAGE, 1.25)]),
    UniqueEffect("midas_seal", "Midas Seal", [_add(_T.GOLD, 0.40)]),
    UniqueEffect("fortunes_eye", "Fortune's Eye", [_add(_T.CRIT, 0.10), _add(_T.LOOT, 0.10)]),
]

_CONSUMABLES = [
    Consumable("whetstone_oil", "Whetstone Oil", ConsumableEffect.POWER, 0.10, 200, 300),
    Consumable("merchant_charm", "Merchant's Charm", ConsumableEffect.GOLD, 0.25, 300, 300),
    Consumable("scholar_tonic", "Scholar's Tonic", ConsumableEffect.XP, 0.25, 300, 300),
    Consumable("swift_draught", "Swift Draught", ConsumableEffect.SPEED, 0.15, 400, 300),
]


def _node(name, effect_type, value=0.0, target=None, modifier=None, description=""):
    return NodeTemplate(name, effect_type, value, target, modifier, description)


_S = SkillEffectType.STAT
_E = SkillEffectType.ECONOMY
_M = SkillEffectType.MODIFIER

_SKILL_POOLS: dict[Role, SkillPools] = {
    Role.WARRIOR: SkillPools(
        root=[_node("Battle Rage", _S, 0.10, "damage"), _node("Iron Skin", _S, 0.15, "health")],
        offense=[_node("Reckless Swing", _S, 0.20, "damage"), _node("Bloodlust", _S, 0.25, "speed")],
        defense=[_node("Heavy Plating", _S, 0.30, "health"), _node("Vanguard", _E, 0.20, "xp")],
        hybrid=[_node("Fortress", _S, 0.10, "all"), _node("Commander", _E, 0.15, "gold")],
        capstones=[
            _node("Weapon Master", _M, modifier=Modifier.WEAPON_MASTER, description="Weapon stats x2, no trinket"),
            _node("Methodical", _M, modifier=Modifier.METHODICAL, description="+50% rewards, +20% time"),
            _node("Titan Grip", _M, modifier=Modifier.TITAN_GRIP, description="+20% damage and health, -10% speed"),
        ],
    ),
    Role.ROGUE: SkillPools(
        root=[_node("Lethality", _S, 0.10, "crit"), _node("Quick Fingers", _E, 0.15, "loot")],
        offense=[_node("Vital Points", _S, 0.25, "damage"), _node("Ambush", _S, 0.25, "speed")],
        defense=[_node("Appraiser", _E, 0.30, "gold"), _node("Surveyor", _E, 0.30, "loot")],
        hybrid=[_node("Shadow Step", _S, 0.10, "speed_crit"), _node("Dungeoneer", _E, 0.20, "xp")],
        capstones=[
            _node("Gambler", _M, modifier=Modifier.GAMBLER, description="Extra loot, -50% gold"),
            _node("Resourceful", _M, modifier=Modifier.RESOURCE_SCAVENGER, description="Drops materials instead of items"),
            _node("Speed Demon", _M, modifier=Modifier.SPEED_DEMON, description="+15% speed, -10% loot"),
            _node("Rush", _M, modifier=Modifier.RUSH, description="+25% speed, -15% health"),
        ],
    ),
    Role.MAGE: SkillPools(
        root=[_node("Arcane Power", _S, 0.15, "damage"), _node("Transmute", _E, 0.15, "gold")],
        offense=[_node("Overload", _S, 0.30, "damage"), _node("Time Warp", _S, 0.25, "speed")],
        defense=[_node("Potion Master", _S, 0.20, "health"), _node("Philosopher", _E, 0.35, "xp")],
        hybrid=[_node("Flow State", _S, 0.15, "crit"), _node("Greed", _E, 0.10, "loot")],
        capstones=[
            _node("Glass Cannon", _M, modifier=Modifier.GLASS_CANNON, description="+40% damage, -20% health"),
            _node("Golden Touch", _M, modifier=Modifier.GOLDEN_TOUCH, description="+50% gold, -10% damage"),
            _node("Boss Killer", _M, modifier=Modifier.BOSS_KILLER, description="+20% damage, -10% speed"),
            _node("Logistician", _M, modifier=Modifier.LOGISTICIAN, description="-10% run time"),
        ],
    ),
}

# Stat changes carried by rule flags; flags with no entry change rules, not stats.
MODIFIER_EFFECTS: dict[Modifier, list[StatModifier]] = {
    Modifier.RUSH: [_mul(_T.SPEED, 1.25), _mul(_T.HEALTH, 0.85)],
    Modifier.GLASS_CANNON: [_mul(_T.DAMAGE, 1.40), _mul(_T.HEALTH, 0.80)],
    Modifier.TITAN_GRIP: [_mul(_T.DAMAGE, 1.20), _mul(_T.HEALTH, 1.20), _mul(_T.SPEED, 0.90)],
    Modifier.GOLDEN_TOUCH: [_add(_T.GOLD, 0.50), _mul(_T.DAMAGE, 0.90)],
    Modifier.SPEED_DEMON: [_mul(_T.SPEED, 1.15), _add(_T.LOOT, -0.10)],
    Modifier.BOSS_KILLER: [_mul(_T.DAMAGE, 1.20), _mul(_T.SPEED, 0.90)],
}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def _by_id(records) -> dict:
    return {r.id: r for r in records}


@dataclass
class Catalog:
    """Indexed reference data. Lookups return None for unknown ids."""

    enemies: dict[str, Enemy] = field(default_factory=dict)
    contracts: dict[str, Contract] = field(default_factory=dict)
    materials: dict[str, Material] = field(default_factory=dict)
    upgrades: dict[str, Upgrade] = field(default_factory=dict)
    permanent_upgrades: dict[str, Upgrade] = field(default_factory=dict)
    class_skills: list[ClassSkill] = field(default_factory=list)
    traits: dict[str, TraitTemplate] = field(default_factory=dict)
    item_sets: dict[str, ItemSet] = field(default_factory=dict)
    unique_effects: dict[str, UniqueEffect] = field(default_factory=dict)
    consumables: dict[str, Consumable] = field(default_factory=dict)
    skill_pools: dict[Role, SkillPools] = field(default_factory=dict)
    starting_contracts: list[str] = field(default_factory=list)

    @classmethod
    def defaults(cls) -> Catalog:
        """Return the stock content."""
        return cls(
            enemies=_by_id(_ENEMIES),
            contracts=_by_id(_CONTRACTS),
            materials=_by_id(_MATERIALS),
            upgrades=_by_id(_UPGRADES),
            permanent_upgrades=_by_id(_PERMANENT_UPGRADES),
            class_skills=list(_CLASS_SKILLS),
            traits=_by_id(_TRAITS),
            item_sets=_by_id(_ITEM_SETS),
            unique_effects=_by_id(_UNIQUE_EFFECTS),
            consumables=_by_id(_CONSUMABLES),
            skill_pools=dict(_SKILL_POOLS),
            starting_contracts=[c.id for c in _CONTRACTS if c.unlock_after is None],
        )

    def contract(self, contract_id: str) -> Contract | None:
        return self.contracts.get(contract_id)

    def enemy(self, enemy_id: str) -> Enemy | None:
        return self.enemies.get(enemy_id)

    def enemy_for(self, contract: Contract) -> Enemy | None:
        return self.enemies.get(contract.enemy_id)

    def upgrade_effect(self, upgrade_id: str, level: int) -> float:
        """Effect of a guild upgrade at *level*, 0.0 if unknown."""
        upgrade = self.upgrades.get(upgrade_id)
        return upgrade.effect(level) if upgrade else 0.0

    def permanent_effect(self, upgrade_id: str, level: int) -> float:
        upgrade = self.permanent_upgrades.get(upgrade_id)
        return upgrade.effect(level) if upgrade else 0.0

    def class_skills_for(self, role: Role, level: int) -> list[ClassSkill]:
        """Passives *role* has unlocked by *level*."""
        return [
            s for s in self.class_skills
            if s.role == role and level >= s.unlock_level
        ]
