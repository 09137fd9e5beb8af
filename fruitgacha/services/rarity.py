"""
Rarity resolution.

Maps a pity position and a base rate table to a tier. Pure apart from the
random source, which is always passed in.

Soft pity boosts the two top tiers and renormalizes the rest of the table so
the cumulative walk always covers exactly 100 percent. Hard pity bypasses the
table and picks between the two top tiers by their relative base weight.
"""

import random

from fruitgacha.config import Settings, settings
from fruitgacha.models.tier import BASE_PULL_RATES, TIER_ORDER, TOP_TIERS, Tier

RATE_TOTAL = 100.0

# Tolerance when checking that a rate table sums to 100
RATE_TOLERANCE = 1e-6


def validate_rates(rates: dict[Tier, float]) -> None:
    """
    Check a rate table covers every tier, has no negatives, and sums to 100.

    Raises:
        ValueError: if the table is malformed
    """
    missing = [tier.value for tier in TIER_ORDER if tier not in rates]
    if missing:
        raise ValueError(f"Rate table missing tiers: {', '.join(missing)}")
    negative = [tier.value for tier, rate in rates.items() if rate < 0]
    if negative:
        raise ValueError(f"Rate table has negative rates: {', '.join(negative)}")
    total = sum(rates.values())
    if abs(total - RATE_TOTAL) > RATE_TOLERANCE:
        raise ValueError(f"Rate table sums to {total}, expected {RATE_TOTAL}")


def soft_pity_boost(pulls: int, rules: Settings) -> float:
    """
    Multiplier applied to the top tiers for the pull at position `pulls`.

    `pulls` counts the upcoming pull itself, i.e. the pity counter plus one.

    1.0 below the soft threshold, then grows by `soft_pity_boost_step` per
    pull, capped at `soft_pity_max_boost`.
    """
    if pulls < rules.soft_pity_threshold:
        return 1.0
    steps = pulls - rules.soft_pity_threshold + 1
    return min(rules.soft_pity_max_boost, 1.0 + rules.soft_pity_boost_step * steps)


def effective_rates(
    pulls: int,
    rates: dict[Tier, float] | None = None,
    rules: Settings | None = None,
) -> dict[Tier, float]:
    """
    Rate table in effect for the pull at position `pulls`.

    Top tiers are scaled by the soft pity boost; the remaining tiers are
    scaled down proportionally so the table still sums to 100. If the boosted
    top tiers alone reach 100, they take the whole table.
    """
    rates = rates or BASE_PULL_RATES
    rules = rules or settings

    boost = soft_pity_boost(pulls, rules)
    if boost == 1.0:
        return dict(rates)

    top = {tier: rates[tier] * boost for tier in TIER_ORDER if tier in TOP_TIERS}
    top_total = sum(top.values())

    if top_total >= RATE_TOTAL:
        scale = RATE_TOTAL / top_total
        return {tier: (top[tier] * scale if tier in top else 0.0) for tier in TIER_ORDER}

    rest_total = sum(rates[tier] for tier in TIER_ORDER if tier not in TOP_TIERS)
    rest_scale = (RATE_TOTAL - top_total) / rest_total if rest_total else 0.0
    return {
        tier: (top[tier] if tier in top else rates[tier] * rest_scale) for tier in TIER_ORDER
    }


def pick_top_tier(rng: random.Random, rates: dict[Tier, float] | None = None) -> Tier:
    """Choose between the two top tiers by their relative base weight."""
    rates = rates or BASE_PULL_RATES
    tiers = [tier for tier in TIER_ORDER if tier in TOP_TIERS]
    weights = [rates[tier] for tier in tiers]
    if sum(weights) <= 0:
        return tiers[0]
    return rng.choices(tiers, weights=weights, k=1)[0]


def draw_tier(rates: dict[Tier, float], rng: random.Random) -> Tier:
    """
    Walk the table most-common to rarest against a uniform draw in [0, 100).

    Falls back to the most common tier on floating point edge cases.
    """
    roll = rng.random() * RATE_TOTAL
    cumulative = 0.0
    for tier in TIER_ORDER:
        rate = rates.get(tier, 0.0)
        if rate <= 0:
            continue
        cumulative += rate
        if roll <= cumulative:
            return tier
    return TIER_ORDER[0]


def resolve_tier(
    pulls: int,
    rates: dict[Tier, float] | None = None,
    rng: random.Random | None = None,
    rules: Settings | None = None,
) -> Tier:
    """
    Resolve the tier of the pull at position `pulls` since the last top tier.

    Args:
        pulls: 1-based pull position (pity counter + 1)
        rates: Base rate table; defaults to BASE_PULL_RATES
        rng: Random source
        rules: Pity thresholds and boost configuration

    Returns:
        The resolved tier. Always a top tier once `pulls` reaches hard pity.
    """
    rates = rates or BASE_PULL_RATES
    rules = rules or settings
    rng = rng or random.Random()

    if pulls >= rules.hard_pity_threshold:
        return pick_top_tier(rng, rates)

    return draw_tier(effective_rates(pulls, rates, rules), rng)


validate_rates(BASE_PULL_RATES)
