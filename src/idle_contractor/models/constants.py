"""Enumerations and fixed tables shared by the progression engine.

Rarity, slot, role and contract enums use their display string as the
value so saved games stay readable. Numeric tables (tier weights, rarity
multipliers, role base stats) are the balance constants every formula
in the engine reads from.
"""

from enum import Enum


class Rarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"


# Roulette and comparison order, worst first.
RARITY_ORDER: tuple[Rarity, ...] = (
    Rarity.COMMON,
    Rarity.UNCOMMON,
    Rarity.RARE,
    Rarity.EPIC,
    Rarity.LEGENDARY,
)


def rarity_rank(rarity: Rarity) -> int:
    """0 for Common up to 4 for Legendary."""
    return RARITY_ORDER.index(rarity)


class ItemType(str, Enum):
    WEAPON = "Weapon"
    ARMOR = "Armor"
    TRINKET = "Trinket"


class WeaponType(str, Enum):
    SWORD = "Sword"
    BLUNT = "Blunt"
    DAGGER = "Dagger"
    BOW = "Bow"
    STAFF = "Staff"
    BOOK = "Book"
    NONE = "None"


class Role(str, Enum):
    WARRIOR = "Warrior"
    ROGUE = "Rogue"
    MAGE = "Mage"


class ContractType(str, Enum):
    DUNGEON = "Dungeon"
    GATHERING = "Gathering"
    FISHING = "Fishing"


class TraitType(str, Enum):
    COMBAT = "Combat"
    GATHERING = "Gathering"
    FISHING = "Fishing"
    HYBRID = "Hybrid"


class Specialization(str, Enum):
    NOVICE = "Novice"
    COMBAT = "Combat"
    GATHERING = "Gathering"
    FISHING = "Fishing"
    HYBRID = "Hybrid"


class SkillEffectType(str, Enum):
    STAT = "Stat"
    ECONOMY = "Economy"
    MODIFIER = "Modifier"


class Modifier(str, Enum):
    """Rule-changing flags unlocked through skill-tree capstones."""

    GLASS_CANNON = "GLASS_CANNON"
    RUSH = "RUSH"
    TITAN_GRIP = "TITAN_GRIP"
    GOLDEN_TOUCH = "GOLDEN_TOUCH"
    SPEED_DEMON = "SPEED_DEMON"
    BOSS_KILLER = "BOSS_KILLER"
    WEAPON_MASTER = "WEAPON_MASTER"
    METHODICAL = "METHODICAL"
    GAMBLER = "GAMBLER"
    RESOURCE_SCAVENGER = "RESOURCE_SCAVENGER"
    LOGISTICIAN = "LOGISTICIAN"


class StatTarget(str, Enum):
    DAMAGE = "damage"
    HEALTH = "health"
    SPEED = "speed"
    CRIT = "crit"
    GOLD = "gold"
    XP = "xp"
    LOOT = "loot"


class ConsumableEffect(str, Enum):
    POWER = "POWER"
    SPEED = "SPEED"
    GOLD = "GOLD"
    XP = "XP"


class CombatStatus(str, Enum):
    ONGOING = "ONGOING"
    VICTORY = "VICTORY"
    DEFEAT = "DEFEAT"


class EventKind(str, Enum):
    DAMAGE = "DAMAGE"
    LOOT = "LOOT"
    BOSS_SPAWN = "BOSS_SPAWN"
    LEVEL_UP = "LEVEL_UP"


class DungeonMechanic(str, Enum):
    """Rule twist a dungeon applies to its enemies, yields and timing."""

    NONE = "NONE"
    SWARM = "SWARM"
    PACK_TACTICS = "PACK_TACTICS"
    UNDEAD_RESILIENCE = "UNDEAD_RESILIENCE"
    RESOURCE_SURGE = "RESOURCE_SURGE"
    ELITE_HUNT = "ELITE_HUNT"


class MasteryTrack(str, Enum):
    COMBAT = "combat"
    GATHERING = "gathering"
    FISHING = "fishing"


# ---------------------------------------------------------------------------
# Item stat names
# ---------------------------------------------------------------------------

STAT_DAMAGE = "Damage"
STAT_HEALTH = "Health"
STAT_CRIT = "Crit Chance"
STAT_SPEED = "Speed"
STAT_GOLD = "Gold Gain"
STAT_LOOT = "Loot Luck"

AFFIX_POOL: tuple[str, ...] = (
    STAT_CRIT,
    STAT_SPEED,
    STAT_DAMAGE,
    STAT_HEALTH,
    STAT_GOLD,
    STAT_LOOT,
)

# Base power of a percentage affix before level/rarity/tier scaling.
AFFIX_BASE_POWER: dict[str, float] = {
    STAT_DAMAGE: 2.0,
    STAT_HEALTH: 2.0,
    STAT_CRIT: 1.5,
    STAT_SPEED: 1.5,
    STAT_GOLD: 2.0,
    STAT_LOOT: 1.0,
}

# Tier-0 lines rolled on some epic items: name -> (value, stat it feeds).
SPECIAL_LINES: dict[str, tuple[int, StatTarget]] = {
    "Vampirism": (5, StatTarget.HEALTH),
    "Executioner": (15, StatTarget.DAMAGE),
    "Thorns": (10, StatTarget.HEALTH),
    "Greed": (50, StatTarget.GOLD),
    "Swiftness": (20, StatTarget.SPEED),
}


# ---------------------------------------------------------------------------
# Rarity tables
# ---------------------------------------------------------------------------

MAX_STATS_BY_RARITY: dict[Rarity, int] = {
    Rarity.COMMON: 2,
    Rarity.UNCOMMON: 3,
    Rarity.RARE: 4,
    Rarity.EPIC: 5,
    Rarity.LEGENDARY: 6,
}

# rarity -> (stat multiplier, bonus affix count)
RARITY_CONFIG: dict[Rarity, tuple[float, int]] = {
    Rarity.COMMON: (1.0, 0),
    Rarity.UNCOMMON: (1.3, 1),
    Rarity.RARE: (1.7, 2),
    Rarity.EPIC: (2.2, 2),
    Rarity.LEGENDARY: (3.0, 3),
}

BASE_RARITY_WEIGHTS: dict[Rarity, float] = {
    Rarity.COMMON: 60.0,
    Rarity.UNCOMMON: 25.0,
    Rarity.RARE: 10.0,
    Rarity.EPIC: 4.0,
    Rarity.LEGENDARY: 1.0,
}

# Share of the shift moved into each rarity (common gives it all away).
RARITY_SHIFT_SHARE: dict[Rarity, float] = {
    Rarity.COMMON: -1.0,
    Rarity.UNCOMMON: 0.0,
    Rarity.RARE: 0.6,
    Rarity.EPIC: 0.3,
    Rarity.LEGENDARY: 0.1,
}

ADVENTURER_RARITY_MULTIPLIERS: dict[Rarity, float] = {
    Rarity.COMMON: 1.0,
    Rarity.UNCOMMON: 1.25,
    Rarity.RARE: 1.5,
    Rarity.EPIC: 1.8,
    Rarity.LEGENDARY: 2.5,
}

CRAFTING_RARITY_MULTIPLIERS: dict[Rarity, float] = {
    Rarity.COMMON: 1.0,
    Rarity.UNCOMMON: 2.0,
    Rarity.RARE: 5.0,
    Rarity.EPIC: 12.0,
    Rarity.LEGENDARY: 30.0,
}

POTENTIAL_RARITY_MULTIPLIERS: dict[Rarity, float] = {
    Rarity.COMMON: 1.0,
    Rarity.UNCOMMON: 1.2,
    Rarity.RARE: 1.5,
    Rarity.EPIC: 2.0,
    Rarity.LEGENDARY: 3.0,
}


# ---------------------------------------------------------------------------
# Tier tables
# ---------------------------------------------------------------------------

# tier -> relative weight (sums to 200; tier 1 is 0.5%)
TIER_WEIGHTS: dict[int, int] = {1: 1, 2: 5, 3: 14, 4: 30, 5: 50, 6: 60, 7: 40}

TIER_MULTIPLIERS: dict[int, float] = {
    1: 2.0,
    2: 1.6,
    3: 1.35,
    4: 1.15,
    5: 1.0,
    6: 0.85,
    7: 0.65,
}

POTENTIAL_STAT_WEIGHTS: dict[str, float] = {
    STAT_DAMAGE: 1.5,
    STAT_HEALTH: 0.5,
    STAT_SPEED: 2.0,
    STAT_CRIT: 2.0,
}

# Checked top-down; anything at or below 30 is "D".
VISUAL_TIER_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (150, "S"),
    (100, "A"),
    (60, "B"),
    (30, "C"),
)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

# role -> (health, damage, speed, crit chance)
ROLE_BASE_STATS: dict[Role, tuple[int, int, float, float]] = {
    Role.WARRIOR: (120, 4, 0.9, 0.05),
    Role.ROGUE: (60, 8, 1.2, 0.20),
    Role.MAGE: (50, 12, 1.0, 0.10),
}

CLASS_WEAPONS: dict[Role, tuple[WeaponType, ...]] = {
    Role.WARRIOR: (WeaponType.SWORD, WeaponType.BLUNT),
    Role.ROGUE: (WeaponType.DAGGER, WeaponType.BOW),
    Role.MAGE: (WeaponType.STAFF, WeaponType.BOOK),
}

ADVENTURER_NAMES: tuple[str, ...] = (
    "Aldric", "Brina", "Cedric", "Dara", "Elric", "Fiona", "Gareth", "Hilda",
    "Ivar", "Jora", "Kael", "Lyra", "Magnus", "Nyssa", "Orin", "Petra",
)

ADVENTURER_TITLES: tuple[str, ...] = (
    "the Bold", "the Swift", "the Wise", "Ironhand", "Shadowstep",
    "the Unyielding", "Stormcaller", "the Lucky",
)

SKILL_POINT_FIRST_LEVEL = 5
SKILL_POINT_INTERVAL = 3


def total_skill_points(level: int) -> int:
    """Points earned by *level*: first at 5, then one every third level."""
    if level < SKILL_POINT_FIRST_LEVEL:
        return 0
    return 1 + (level - SKILL_POINT_FIRST_LEVEL) // SKILL_POINT_INTERVAL
