"""
Rarity tiers and their static tables.

Tiers are ordered most-common to rarest. The two rarest tiers form the
"top tier" band that pity protects and resets on.
"""

from enum import Enum


class Tier(str, Enum):
    """The seven devil fruit rarity tiers, most-common first."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHICAL = "mythical"
    DIVINE = "divine"

    @property
    def rank(self) -> int:
        """Position in the rarity order (0 = common)."""
        return TIER_ORDER.index(self)

    @property
    def is_top_tier(self) -> bool:
        return self in TOP_TIERS


TIER_ORDER: tuple[Tier, ...] = tuple(Tier)

TOP_TIERS: frozenset[Tier] = frozenset({Tier.MYTHICAL, Tier.DIVINE})

# Base pull rates in percent. Must sum to 100.
BASE_PULL_RATES: dict[Tier, float] = {
    Tier.COMMON: 45.0,
    Tier.UNCOMMON: 28.0,
    Tier.RARE: 15.0,
    Tier.EPIC: 7.0,
    Tier.LEGENDARY: 3.5,
    Tier.MYTHICAL: 1.2,
    Tier.DIVINE: 0.3,
}

# Power multiplier range (min, max) per tier. Power = multiplier * 100.
POWER_MULTIPLIERS: dict[Tier, tuple[float, float]] = {
    Tier.COMMON: (1.0, 1.2),
    Tier.UNCOMMON: (1.2, 1.4),
    Tier.RARE: (1.4, 1.7),
    Tier.EPIC: (1.7, 2.1),
    Tier.LEGENDARY: (1.95, 2.6),
    Tier.MYTHICAL: (2.6, 3.2),
    Tier.DIVINE: (3.7, 4.0),
}

POWER_SCALE = 100


def rarest(tiers: list[Tier]) -> Tier | None:
    """Return the rarest tier in `tiers`, or None when empty."""
    if not tiers:
        return None
    return max(tiers, key=lambda t: t.rank)
