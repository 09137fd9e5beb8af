"""
Pity tracking.

The pity counter is the number of pulls since the player's last top-tier
fruit. It only ever grows by one per pull, and drops to zero the moment a
top-tier fruit is granted, whether drawn naturally or forced.

From the soft threshold on, an independent check may force a top-tier
result before hard pity. Its chance scales from 0% at the soft threshold
to 50% at the hard threshold.
"""

import random
from dataclasses import dataclass

from fruitgacha.config import Settings, settings
from fruitgacha.models.fruit import PityInfo
from fruitgacha.models.tier import Tier

MAX_FORCE_CHANCE = 0.5


@dataclass(frozen=True)
class PityTracker:
    """Stateless pity rules; the counter itself lives on the account row."""

    soft_pity: int
    hard_pity: int

    @classmethod
    def from_settings(cls, rules: Settings | None = None) -> "PityTracker":
        rules = rules or settings
        return cls(soft_pity=rules.soft_pity_threshold, hard_pity=rules.hard_pity_threshold)

    @staticmethod
    def pulls_for_next(counter: int) -> int:
        """Position of the upcoming pull since the last top-tier fruit."""
        return counter + 1

    def is_hard_pity(self, counter: int) -> bool:
        return self.pulls_for_next(counter) >= self.hard_pity

    def force_chance(self, counter: int) -> float:
        """Chance that the upcoming pull is forced into a top tier."""
        pulls = self.pulls_for_next(counter)
        if pulls < self.soft_pity:
            return 0.0
        if pulls >= self.hard_pity:
            return 1.0
        span = self.hard_pity - self.soft_pity
        return min(MAX_FORCE_CHANCE, MAX_FORCE_CHANCE * (pulls - self.soft_pity) / span)

    def should_force_pity(self, counter: int, rng: random.Random) -> bool:
        """
        Decide whether the upcoming pull must be a top-tier fruit.

        Always True at hard pity. Between the thresholds, a secondary roll
        against `force_chance`. Never True below the soft threshold.
        """
        if self.is_hard_pity(counter):
            return True
        chance = self.force_chance(counter)
        if chance <= 0:
            return False
        return rng.random() < chance

    @staticmethod
    def apply_result(counter: int, tier: Tier) -> int:
        """Counter after a pull that granted `tier`."""
        if tier.is_top_tier:
            return 0
        return counter + 1

    def info(self, counter: int) -> PityInfo:
        """Pity state as shown to the player. Active when the upcoming pull is boosted."""
        percentage = min(100.0, round(counter / self.hard_pity * 100, 1))
        return PityInfo(
            current=counter,
            hard_pity=self.hard_pity,
            soft_pity=self.soft_pity,
            percentage=percentage,
            pity_active=self.pulls_for_next(counter) >= self.soft_pity,
        )
