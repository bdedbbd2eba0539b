"""Dungeon mechanics.

A contract's mechanic scales enemy HP, the power the encounter is
balanced against, the gold and xp each kill yields, the number of loot
rolls and the run duration. Contracts without one use NO_MECHANIC,
which leaves every formula unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

from idle_contractor.models.constants import DungeonMechanic


@dataclass(frozen=True, slots=True)
class MechanicModifier:
    enemy_hp_mult: float = 1.0
    power_req_mult: float = 1.0
    xp_yield_mult: float = 1.0
    gold_yield_mult: float = 1.0
    loot_roll_bonus: int = 0
    duration_mult: float = 1.0
    description: str = ""


NO_MECHANIC = MechanicModifier()


def mechanic_modifier(mechanic: DungeonMechanic, tier: int) -> MechanicModifier:
    """Multipliers for *mechanic* on a contract of *tier*."""
    if mechanic == DungeonMechanic.SWARM:
        return MechanicModifier(
            enemy_hp_mult=0.5, xp_yield_mult=0.6, gold_yield_mult=0.6, loot_roll_bonus=1,
            description="Swarm: enemy HP halved, more loot rolls.",
        )
    if mechanic == DungeonMechanic.PACK_TACTICS:
        return MechanicModifier(
            power_req_mult=1.30 + tier * 0.05, gold_yield_mult=1.5,
            description="Pack Tactics: higher power requirement, +50% gold.",
        )
    if mechanic == DungeonMechanic.UNDEAD_RESILIENCE:
        return MechanicModifier(
            enemy_hp_mult=1.5, xp_yield_mult=2.0,
            description="Undead: enemy HP +50%, xp doubled.",
        )
    if mechanic == DungeonMechanic.RESOURCE_SURGE:
        return MechanicModifier(
            duration_mult=0.8,
            description="Surge: contract duration -20%.",
        )
    if mechanic == DungeonMechanic.ELITE_HUNT:
        return MechanicModifier(
            power_req_mult=1.5, xp_yield_mult=1.5, loot_roll_bonus=2,
            description="Elite: high power requirement, +2 loot rolls.",
        )
    return NO_MECHANIC
