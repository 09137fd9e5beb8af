"""
Devil fruit catalog service.

Loads the static fruit catalog once, validates it, and selects fruits by
tier. The loaded catalog is immutable and shared read-only by every request.
"""

import json
import logging
import random
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path
from typing import Any

from fruitgacha.models.failure import CatalogError
from fruitgacha.models.fruit import FruitDefinition
from fruitgacha.models.tier import POWER_MULTIPLIERS, POWER_SCALE, TIER_ORDER, Tier

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_CATALOG_PATH = DATA_DIR / "devil_fruits.json"

FALLBACK_NAMES = (
    "Mystery Fruit",
    "Unknown Fruit",
    "Ancient Fruit",
    "Mystic Fruit",
)
FALLBACK_ELEMENTS = ("Fire", "Ice", "Lightning", "Earth", "Wind", "Water", "Light", "Darkness")
FALLBACK_CATEGORIES = ("Paramecia", "Logia", "Zoan")


class FruitCatalog:
    """
    Immutable index of fruit definitions by tier.

    Tiers without entries are allowed but reported; pulls landing on them
    receive a synthesized placeholder.
    """

    def __init__(self, fruits: Iterable[FruitDefinition]):
        fruits = tuple(fruits)
        self._by_id: dict[str, FruitDefinition] = {fruit.fruit_id: fruit for fruit in fruits}
        self._by_tier: dict[Tier, tuple[FruitDefinition, ...]] = {
            tier: tuple(fruit for fruit in fruits if fruit.tier == tier) for tier in TIER_ORDER
        }

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, fruit_id: str) -> FruitDefinition | None:
        """Catalog entry for `fruit_id`, or None for unknown and generated fruits."""
        return self._by_id.get(fruit_id)

    def fruits_of(self, tier: Tier) -> tuple[FruitDefinition, ...]:
        return self._by_tier.get(tier, ())

    def missing_tiers(self) -> list[Tier]:
        """Tiers with no catalog entries."""
        return [tier for tier in TIER_ORDER if not self._by_tier.get(tier)]

    def select_fruit(self, tier: Tier, rng: random.Random) -> FruitDefinition:
        """
        Pick a fruit of `tier` uniformly at random.

        Falls back to a generated placeholder when the catalog has no fruit
        of that tier. The placeholder is not added to the catalog.
        """
        candidates = self.fruits_of(tier)
        if candidates:
            return rng.choice(candidates)
        return synthesize_fruit(tier, rng)


def synthesize_fruit(tier: Tier, rng: random.Random) -> FruitDefinition:
    """Build a one-off placeholder fruit for a tier with no catalog entries."""
    element = rng.choice(FALLBACK_ELEMENTS)
    name = rng.choice(FALLBACK_NAMES)
    fruit = FruitDefinition(
        fruit_id=f"generated_{tier.value}_{rng.getrandbits(32):08x}",
        name=f"{element} {name}",
        tier=tier,
        category=rng.choice(FALLBACK_CATEGORIES),
        element=element,
        description=f"A {tier.value} {element.lower()} fruit with mysterious powers",
        power_range=POWER_MULTIPLIERS[tier],
        generated=True,
    )
    logger.warning(
        "CATALOG_TIER_EMPTY_FRUIT_GENERATED",
        extra={"tier": tier.value, "fruit_id": fruit.fruit_id},
    )
    return fruit


def roll_power(fruit: FruitDefinition, rng: random.Random) -> int:
    """Sample a power value from the fruit's multiplier range."""
    low, high = fruit.power_range
    return int(rng.uniform(low, high) * POWER_SCALE)


def _parse_fruit(raw: dict[str, Any], index: int) -> FruitDefinition:
    fruit_id = str(raw.get("id") or "").strip()
    name = str(raw.get("name") or "").strip()
    if not fruit_id or not name:
        raise CatalogError(f"entry {index} is missing an id or name")

    try:
        tier = Tier(raw.get("rarity"))
    except ValueError as e:
        raise CatalogError(f"fruit '{fruit_id}' has unknown rarity {raw.get('rarity')!r}") from e

    power_range = raw.get("power_range") or POWER_MULTIPLIERS[tier]
    try:
        low, high = (float(value) for value in power_range)
    except (TypeError, ValueError) as e:
        raise CatalogError(f"fruit '{fruit_id}' has a malformed power_range") from e
    if low <= 0 or high < low:
        raise CatalogError(f"fruit '{fruit_id}' has an invalid power_range ({low}, {high})")

    return FruitDefinition(
        fruit_id=fruit_id,
        name=name,
        tier=tier,
        category=str(raw.get("type") or "Paramecia"),
        element=str(raw.get("element") or "Unknown"),
        description=str(raw.get("description") or ""),
        power_range=(low, high),
    )


def parse_catalog(entries: Any) -> FruitCatalog:
    """
    Validate raw catalog entries and build a catalog.

    Raises:
        CatalogError: if the catalog is empty, malformed, or has duplicate ids
    """
    if not isinstance(entries, list) or not entries:
        raise CatalogError("catalog must be a non-empty list of fruits")

    fruits: list[FruitDefinition] = []
    seen: set[str] = set()
    for index, raw in enumerate(entries):
        if not isinstance(raw, dict):
            raise CatalogError(f"entry {index} is not an object")
        fruit = _parse_fruit(raw, index)
        if fruit.fruit_id in seen:
            raise CatalogError(f"duplicate fruit id '{fruit.fruit_id}'")
        seen.add(fruit.fruit_id)
        fruits.append(fruit)

    catalog = FruitCatalog(fruits)
    missing = catalog.missing_tiers()
    if missing:
        logger.warning(
            "CATALOG_TIERS_MISSING",
            extra={"tiers": [tier.value for tier in missing]},
        )
    return catalog


def load_catalog(path: Path | None = None) -> FruitCatalog:
    """
    Load and validate the fruit catalog from a JSON file.

    Args:
        path: Path to JSON file. Defaults to data/devil_fruits.json

    Raises:
        CatalogError: If the file is missing, unreadable, or invalid
    """
    if path is None:
        path = DEFAULT_CATALOG_PATH

    if not path.exists():
        raise CatalogError(f"catalog file not found at {path}")

    try:
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogError(f"catalog file {path.name} is not valid JSON: {e.msg}") from e

    catalog = parse_catalog(entries)
    logger.info("CATALOG_LOADED", extra={"fruits": len(catalog), "path": str(path)})
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> FruitCatalog:
    """
    Get cached catalog.

    Loaded on first use (or at startup) and never reloaded.
    """
    return load_catalog()
