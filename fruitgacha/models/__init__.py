from fruitgacha.models.failure import (
    CatalogError,
    CooldownError,
    DuplicateRequestError,
    FailureDetail,
    FailureKind,
    FailureResponse,
    InsufficientFundsError,
    KnownError,
    NotEligibleError,
    StorageError,
    ValidationError,
)
from fruitgacha.models.fruit import (
    BatchResult,
    CollectionSummary,
    FruitDefinition,
    IncomeOverview,
    ManualIncomeResult,
    PassiveIncomeResult,
    PityInfo,
    PullOutcome,
)
from fruitgacha.models.tier import (
    BASE_PULL_RATES,
    POWER_MULTIPLIERS,
    TIER_ORDER,
    TOP_TIERS,
    Tier,
)

__all__ = [
    "BASE_PULL_RATES",
    "BatchResult",
    "CatalogError",
    "CollectionSummary",
    "CooldownError",
    "DuplicateRequestError",
    "FailureDetail",
    "FailureKind",
    "FailureResponse",
    "FruitDefinition",
    "IncomeOverview",
    "InsufficientFundsError",
    "KnownError",
    "ManualIncomeResult",
    "NotEligibleError",
    "POWER_MULTIPLIERS",
    "PassiveIncomeResult",
    "PityInfo",
    "PullOutcome",
    "StorageError",
    "TIER_ORDER",
    "TOP_TIERS",
    "Tier",
    "ValidationError",
]
