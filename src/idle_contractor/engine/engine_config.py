"""Configuration knobs for the progression engine.

Defaults are the stock balance. Balance data tied to a specific record
(enemy HP, upgrade costs) lives in the Catalog instead.
"""

from dataclasses import dataclass


RESOLUTION_MODELS = ("instant", "pressure")


@dataclass(slots=True)
class EngineConfig:
    """Tuneable parameters not stored on catalog records."""

    # Roster / inventory
    inventory_size: int = 50
    max_party_size: int = 3
    max_roster: int = 10
    max_recent_reports: int = 10
    recruit_base_cost: int = 100
    recruit_cost_growth: float = 5.0
    starting_gold: int = 0

    # Run timing
    min_run_seconds: float = 1.0
    max_duration_reduction: float = 0.5
    gathering_cycle_seconds: float = 5.0
    tick_interval: float = 0.2

    # Rewards
    overpowered_ratio: float = 3.0
    overpowered_xp_factor: float = 0.10
    kill_sampling_threshold: int = 500   # above this, use range averages
    max_drop_chance: float = 0.95
    secondary_drop_chance: float = 0.03
    kills_per_loot_roll: int = 10
    max_loot_rolls: int = 50

    # Loot
    pity_threshold: int = 50
    stat_budget_per_level: float = 3.0

    # Progression
    xp_curve_base: float = 100.0
    xp_curve_exponent: float = 1.5
    level_up_damage: int = 1
    level_up_health: int = 5
    respec_cost_per_level: int = 50

    # Guild mastery
    mastery_xp_base: float = 200.0
    mastery_xp_exponent: float = 1.5
    mastery_max_level: int = 50
    mastery_duration_per_level: float = 0.01
    mastery_xp_bonus_per_level: float = 0.02
    mastery_double_per_level: float = 0.01
    mastery_rare_per_level: float = 0.005

    # Reset
    reset_gold_threshold: int = 100_000
    reset_gold_divisor: int = 10_000

    # Combat model
    resolution_model: str = "instant"
    pressure_per_power: float = 0.02
    solo_survivor_bonus: float = 1.2
    boss_threshold: float = 0.8
    boss_pressure_mult: float = 1.2
    boss_hp_mult: float = 5.0
    boss_kill_bonus: int = 10
    minion_refill_fraction: float = 0.5

    def validate(self) -> "EngineConfig":
        """Raise ValueError on impossible settings; returns self for chaining."""
        if self.resolution_model not in RESOLUTION_MODELS:
            raise ValueError(
                f"resolution_model must be one of {RESOLUTION_MODELS}, "
                f"got {self.resolution_model!r}"
            )
        if self.max_party_size < 1:
            raise ValueError(f"max_party_size must be >= 1, got {self.max_party_size}")
        if self.inventory_size < 0:
            raise ValueError(f"inventory_size must be >= 0, got {self.inventory_size}")
        if self.min_run_seconds <= 0:
            raise ValueError(f"min_run_seconds must be > 0, got {self.min_run_seconds}")
        if not 0.0 <= self.max_duration_reduction < 1.0:
            raise ValueError(
                f"max_duration_reduction must be in [0, 1), got {self.max_duration_reduction}"
            )
        if not 0.0 < self.boss_threshold <= 1.0:
            raise ValueError(f"boss_threshold must be in (0, 1], got {self.boss_threshold}")
        if self.max_recent_reports < 1:
            raise ValueError(
                f"max_recent_reports must be >= 1, got {self.max_recent_reports}"
            )
        for name in ("xp_curve", "mastery_xp"):
            base = getattr(self, f"{name}_base")
            exponent = getattr(self, f"{name}_exponent")
            if base < 1:
                raise ValueError(f"{name}_base must be >= 1, got {base}")
            if exponent < 0:
                raise ValueError(f"{name}_exponent must be >= 0, got {exponent}")
        if self.mastery_max_level < 1:
            raise ValueError(f"mastery_max_level must be >= 1, got {self.mastery_max_level}")
        return self

    def xp_required(self, level: int) -> int:
        """XP needed to go from *level* to *level* + 1. Never below 1."""
        return max(1, int(self.xp_curve_base * level ** self.xp_curve_exponent))

    def mastery_xp_required(self, level: int) -> int:
        """Guild mastery XP needed to go from *level* to *level* + 1."""
        return max(1, int(self.mastery_xp_base * (level + 1) ** self.mastery_xp_exponent))
