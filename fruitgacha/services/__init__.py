"""
FruitGacha services.

Pull resolution, pity, income accrual and account views.
"""

from fruitgacha.services.accounts import (
    adjust_balance,
    get_balance,
    get_collection_summary,
    get_pity_info,
    validate_player_id,
    wipe_account,
)
from fruitgacha.services.catalog import FruitCatalog, get_catalog, load_catalog
from fruitgacha.services.income import (
    accrue_passive,
    claim_manual,
    hourly_rate,
    income_overview,
)
from fruitgacha.services.pity import PityTracker
from fruitgacha.services.pulls import perform_pulls
from fruitgacha.services.rarity import effective_rates, resolve_tier

__all__ = [
    "FruitCatalog",
    "PityTracker",
    "accrue_passive",
    "adjust_balance",
    "claim_manual",
    "effective_rates",
    "get_balance",
    "get_catalog",
    "get_collection_summary",
    "get_pity_info",
    "hourly_rate",
    "income_overview",
    "load_catalog",
    "perform_pulls",
    "resolve_tier",
    "validate_player_id",
    "wipe_account",
]
