"""Rarity probability vector and roulette sampling.

Weights start from a fixed common-heavy table. A single shift computed
from contract tier, player rarity bonus, reset count and any contextual
bonus is taken out of Common and spread upward (0.6 / 0.3 / 0.1 to
Rare / Epic / Legendary). A pity counter past the threshold moves
weight straight from Common to Legendary.
"""

import random

from idle_contractor.models.constants import (
    BASE_RARITY_WEIGHTS,
    RARITY_ORDER,
    RARITY_SHIFT_SHARE,
    Rarity,
)

DEFAULT_PITY_THRESHOLD = 50


def rarity_shift(
    tier: int,
    rarity_bonus: float = 0.0,
    reset_count: int = 0,
    context_shift: float = 0.0,
) -> float:
    """Total shift. rarity_bonus is a fraction (0.1 = +10%)."""
    return tier * 2 + rarity_bonus * 100 * 0.5 + reset_count * 0.5 + context_shift


def rarity_weights(
    tier: int,
    rarity_bonus: float = 0.0,
    pity: int = 0,
    reset_count: int = 0,
    context_shift: float = 0.0,
    pity_threshold: int = DEFAULT_PITY_THRESHOLD,
) -> dict[Rarity, float]:
    """Return weights keyed by rarity, normalised to sum to 100."""
    shift = rarity_shift(tier, rarity_bonus, reset_count, context_shift)
    weights = {r: BASE_RARITY_WEIGHTS[r] + shift * RARITY_SHIFT_SHARE[r] for r in RARITY_ORDER}

    if pity >= pity_threshold:
        extra = pity - pity_threshold
        weights[Rarity.LEGENDARY] += extra
        weights[Rarity.COMMON] -= extra

    for r in weights:
        if weights[r] < 0:
            weights[r] = 0.0

    total = sum(weights.values())
    if total <= 0:
        return dict(BASE_RARITY_WEIGHTS)
    return {r: w / total * 100.0 for r, w in weights.items()}


def roll_rarity(weights: dict[Rarity, float], rng: random.Random) -> Rarity:
    """Cumulative roulette over Common..Legendary."""
    roll = rng.random() * 100.0
    cumulative = 0.0
    for r in RARITY_ORDER:
        cumulative += weights.get(r, 0.0)
        if roll < cumulative:
            return r
    return Rarity.COMMON
