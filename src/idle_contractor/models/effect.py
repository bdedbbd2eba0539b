"""Stat modifier records.

Traits, item sets, unique items and rule flags all describe their bonus
as data: a target stat, an operation and a value. The stat resolver is
the only place that interprets them.
"""

from dataclasses import dataclass
from enum import Enum

from idle_contractor.models.constants import StatTarget


class Operation(str, Enum):
    ADD = "ADD"            # flat bucket
    MULTIPLY = "MULTIPLY"  # percent bucket gets (value - 1)


@dataclass(slots=True)
class StatModifier:
    """A single bonus: 'x1.10 damage' or '+0.05 crit'."""
    target: StatTarget
    operation: Operation
    value: float

    @classmethod
    def add(cls, target: StatTarget, value: float) -> "StatModifier":
        return cls(target, Operation.ADD, value)

    @classmethod
    def mul(cls, target: StatTarget, value: float) -> "StatModifier":
        return cls(target, Operation.MULTIPLY, value)

    @property
    def percent_delta(self) -> float:
        """Contribution to the percent bucket (MULTIPLY only)."""
        if self.operation == Operation.MULTIPLY:
            return self.value - 1.0
        return 0.0
