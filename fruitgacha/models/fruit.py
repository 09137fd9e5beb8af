from dataclasses import dataclass, field

from fruitgacha.models.tier import Tier


@dataclass(frozen=True)
class FruitDefinition:
    """
    A devil fruit in the static catalog.

    Immutable and shared read-only between requests. `generated` marks a
    placeholder synthesized for a tier the catalog has no entries for; such
    fruits never enter the catalog itself.
    """

    fruit_id: str
    name: str
    tier: Tier
    category: str = "Paramecia"
    element: str = "Unknown"
    description: str = ""
    power_range: tuple[float, float] = (1.0, 1.0)
    generated: bool = False


@dataclass(frozen=True)
class PullOutcome:
    """The result of one pull within a batch. Never persisted as-is."""

    fruit: FruitDefinition
    tier: Tier
    power: int
    is_first_copy: bool
    copy_count: int
    pity_consumed: bool


@dataclass
class BatchResult:
    """Settled result of a batch of pulls."""

    player_id: str
    results: list[PullOutcome] = field(default_factory=list)
    total_cost: int = 0
    pity_used_in_session: bool = False
    balance_after: int = 0
    pity_after: int = 0

    def count_by_tier(self) -> dict[Tier, int]:
        """Number of fruits pulled per tier."""
        counts: dict[Tier, int] = {}
        for outcome in self.results:
            counts[outcome.tier] = counts.get(outcome.tier, 0) + 1
        return counts

    def new_fruits(self) -> int:
        """Number of fruits the player did not own before this batch."""
        return sum(1 for outcome in self.results if outcome.is_first_copy)


@dataclass(frozen=True)
class PityInfo:
    """Snapshot of a player's pity progress for display."""

    current: int
    hard_pity: int
    soft_pity: int
    percentage: float
    pity_active: bool


@dataclass(frozen=True)
class PassiveIncomeResult:
    granted: int
    periods_elapsed: int
    hours_accumulated: float
    hourly_rate: int
    unique_fruits: int


@dataclass(frozen=True)
class ManualIncomeResult:
    income: int
    base_income: int
    multiplier: float
    hourly_rate: int
    unique_fruits: int
    next_claim_in: int


@dataclass(frozen=True)
class IncomeOverview:
    hourly_rate: int
    max_hourly_income: int
    unique_fruits: int
    fruits_for_max: int

    @property
    def fruits_needed(self) -> int:
        """Additional unique fruits required to reach the maximum rate."""
        return max(0, self.fruits_for_max - self.unique_fruits)


@dataclass
class CollectionSummary:
    """A player's collection grouped for display."""

    player_id: str
    total_fruits: int = 0
    unique_fruits: int = 0
    total_power: int = 0
    copies: dict[str, int] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)
    tiers: dict[str, Tier] = field(default_factory=dict)
    by_tier: dict[Tier, int] = field(default_factory=dict)
