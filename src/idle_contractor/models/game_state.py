"""Aggregate game state and the records hanging off it.

GameState is treated as a value: every engine operation takes one and
returns a new one (or the very same object when the operation was
rejected). Nothing in the engine mutates a state it was handed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from idle_contractor.models.character import Character
from idle_contractor.models.constants import (
    CombatStatus,
    ItemType,
    MasteryTrack,
    Modifier,
    Rarity,
)
from idle_contractor.models.item import Item


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RunSnapshot:
    """Party aggregates frozen at the moment a run starts."""

    dps: float = 0.0
    power: int = 0
    gold_bonus: float = 0.0
    xp_bonus: float = 0.0
    loot_bonus: float = 0.0
    active_modifiers: list[Modifier] = field(default_factory=list)


@dataclass(slots=True)
class CombatantState:
    max_hp: float
    current_hp: float
    dps: float
    is_collapsed: bool = False


@dataclass(slots=True)
class EnemyCombatState:
    name: str
    max_hp: float
    current_hp: float
    is_boss: bool = False


@dataclass(slots=True)
class CombatState:
    """Progress of one run under the pressure resolution model."""

    status: CombatStatus
    enemy: EnemyCombatState
    combatants: dict[str, CombatantState]
    pressure_dps: float
    total_duration: float
    elapsed: float = 0.0
    time_remaining: float = 0.0
    kills: int = 0
    boss_spawned: bool = False

    def active_ids(self) -> list[str]:
        return [cid for cid, c in self.combatants.items() if not c.is_collapsed]


@dataclass(slots=True)
class ActiveRun:
    """One party on one contract."""

    id: str
    contract_id: str
    adventurer_ids: list[str]
    start_time: float
    duration: float
    snapshot: RunSnapshot
    adventurer_state: dict[str, Character] = field(default_factory=dict)
    modified_slots: dict[str, list[ItemType]] = field(default_factory=dict)
    auto_repeat: bool = False
    runs_remaining: int | None = 1     # None = repeat until stopped
    total_runs: int = 1
    combat: CombatState | None = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


# ---------------------------------------------------------------------------
# Reports, filter, statistics
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RunReport:
    id: str
    run_id: str
    contract_id: str
    contract_name: str
    success: bool
    kills: int = 0
    gold_earned: int = 0
    xp_earned: int = 0
    items_found: list[Item] = field(default_factory=list)
    materials_found: dict[str, int] = field(default_factory=dict)
    auto_salvaged_count: int = 0
    auto_salvaged_gold: int = 0
    timestamp: float = 0.0


@dataclass(slots=True)
class LootFilter:
    """Auto-salvage rules applied to freshly dropped items.

    Items at or below min_rarity are salvaged unless one of their stat
    names is whitelisted in match_any_stat.
    """

    enabled: bool = False
    min_rarity: Rarity = Rarity.COMMON
    keep_types: list[ItemType] = field(
        default_factory=lambda: [ItemType.WEAPON, ItemType.ARMOR, ItemType.TRINKET]
    )
    match_any_stat: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Statistics:
    """Running totals since the last reset."""

    total_gold_earned: int = 0
    monsters_killed: int = 0
    runs_completed: int = 0
    items_found: int = 0
    items_auto_salvaged: int = 0
    contract_clears: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class ActiveConsumable:
    consumable_id: str
    expires_at: float


@dataclass(slots=True)
class MasteryProgress:
    level: int = 0
    xp: int = 0


@dataclass(slots=True)
class GuildMastery:
    """Guild-wide experience per contract family."""

    combat: MasteryProgress = field(default_factory=MasteryProgress)
    gathering: MasteryProgress = field(default_factory=MasteryProgress)
    fishing: MasteryProgress = field(default_factory=MasteryProgress)

    def track(self, track: MasteryTrack) -> MasteryProgress:
        return getattr(self, track.value)


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------


@dataclass
class GameState:
    gold: int = 0
    reset_currency: int = 0
    reset_count: int = 0

    adventurers: list[Character] = field(default_factory=list)
    inventory: list[Item] = field(default_factory=list)
    materials: dict[str, int] = field(default_factory=dict)

    active_runs: list[ActiveRun] = field(default_factory=list)
    unlocked_contracts: list[str] = field(default_factory=list)

    upgrades: dict[str, int] = field(default_factory=dict)
    permanent_upgrades: dict[str, int] = field(default_factory=dict)

    loot_filter: LootFilter = field(default_factory=LootFilter)
    statistics: Statistics = field(default_factory=Statistics)
    recent_reports: list[RunReport] = field(default_factory=list)
    last_parties: dict[str, list[str]] = field(default_factory=dict)
    legendary_pity: int = 0
    active_consumables: list[ActiveConsumable] = field(default_factory=list)
    mastery: GuildMastery = field(default_factory=GuildMastery)
    last_tick: float = 0.0

    # --- Lookups -----------------------------------------------------------

    def adventurer(self, adventurer_id: str) -> Character | None:
        for adv in self.adventurers:
            if adv.id == adventurer_id:
                return adv
        return None

    def inventory_item(self, item_id: str) -> Item | None:
        for item in self.inventory:
            if item.id == item_id:
                return item
        return None

    def run(self, run_id: str) -> ActiveRun | None:
        for run in self.active_runs:
            if run.id == run_id:
                return run
        return None

    def run_for(self, adventurer_id: str) -> ActiveRun | None:
        """The run *adventurer_id* is assigned to, if any."""
        for run in self.active_runs:
            if adventurer_id in run.adventurer_ids:
                return run
        return None

    def busy_ids(self) -> set[str]:
        return {aid for run in self.active_runs for aid in run.adventurer_ids}
