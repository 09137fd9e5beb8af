"""
Pull orchestration.

A batch of pulls is settled as one unit inside a single storage transaction:

1. validate player and count (nothing written on failure)
2. get or create the account
3. claim the request key, if one was given
4. debit the whole batch cost in one conditional update
5. resolve each pull strictly in order: pity check, tier, fruit, grant,
   pity update
6. persist pity and aggregate power, commit

INVARIANTS:
- A batch either grants all N fruits and debits N x cost, or grants
  nothing and debits nothing (abort-and-roll-back on any failure)
- The pity counter is read and written in pull order, never concurrently
- Balance is never negative: the debit is checked by the storage engine
"""

import logging
import random
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.config import Settings, settings
from fruitgacha.db.database import ledger_transaction
from fruitgacha.db.operations import (
    count_owned,
    debit,
    get_or_create_account,
    insert_grant,
    lock_account,
    record_request_key,
    request_key_exists,
)
from fruitgacha.models.db import CollectionEntryDB, utcnow
from fruitgacha.models.failure import DuplicateRequestError, ValidationError
from fruitgacha.models.fruit import BatchResult, PullOutcome
from fruitgacha.models.tier import BASE_PULL_RATES, Tier, rarest
from fruitgacha.services.accounts import validate_player_id
from fruitgacha.services.catalog import FruitCatalog, get_catalog, roll_power
from fruitgacha.services.pity import PityTracker
from fruitgacha.services.rarity import pick_top_tier, resolve_tier

logger = logging.getLogger(__name__)

PULL_REASON = "gacha_pull"


def validate_pull_count(count: object, rules: Settings) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("Pull count must be a whole number.")
    if count < 1 or count > rules.max_pulls_per_batch:
        raise ValidationError(
            f"You can summon between 1 and {rules.max_pulls_per_batch} fruits at once.",
            detail=f"count={count}",
        )
    return count


async def _resolve_one(
    session: AsyncSession,
    player_id: str,
    counter: int,
    tracker: PityTracker,
    catalog: FruitCatalog,
    rng: random.Random,
    rules: Settings,
    now: datetime,
) -> tuple[PullOutcome, int]:
    """Resolve, grant and account for a single pull. Returns (outcome, new counter)."""
    forced = tracker.should_force_pity(counter, rng)
    if forced:
        tier = pick_top_tier(rng, BASE_PULL_RATES)
    else:
        tier = resolve_tier(tracker.pulls_for_next(counter), BASE_PULL_RATES, rng, rules)

    fruit = catalog.select_fruit(tier, rng)
    power = roll_power(fruit, rng)
    copies_before = await count_owned(session, player_id, fruit.fruit_id)

    await insert_grant(
        session,
        CollectionEntryDB(
            player_id=player_id,
            fruit_id=fruit.fruit_id,
            fruit_name=fruit.name,
            tier=tier.value,
            category=fruit.category,
            power=power,
            generated=fruit.generated,
            acquired_at=now,
        ),
    )

    outcome = PullOutcome(
        fruit=fruit,
        tier=tier,
        power=power,
        is_first_copy=copies_before == 0,
        copy_count=copies_before + 1,
        pity_consumed=forced,
    )
    return outcome, tracker.apply_result(counter, tier)


async def perform_pulls(
    session: AsyncSession,
    player_id: str,
    count: int,
    *,
    request_key: str | None = None,
    rng: random.Random | None = None,
    rules: Settings | None = None,
    catalog: FruitCatalog | None = None,
    now: datetime | None = None,
) -> BatchResult:
    """
    Debit and resolve a batch of `count` pulls for a player.

    Args:
        session: Session without pending writes
        player_id: Player performing the pulls
        count: Number of pulls, 1..max_pulls_per_batch
        request_key: Optional idempotency key for the logical request
        rng: Random source; a fresh one is used when omitted
        rules: Economy and pity configuration
        catalog: Fruit catalog; defaults to the cached catalog
        now: Grant timestamp

    Returns:
        The settled batch

    Raises:
        ValidationError: bad player id or count (nothing written)
        InsufficientFundsError: balance below batch cost (nothing written)
        DuplicateRequestError: request key already processed (nothing written)
        StorageError: storage failure (everything rolled back)
    """
    rules = rules or settings
    player_id = validate_player_id(player_id)
    count = validate_pull_count(count, rules)
    rng = rng or random.Random()
    catalog = catalog if catalog is not None else get_catalog()
    now = now or utcnow()
    tracker = PityTracker.from_settings(rules)
    total_cost = rules.pull_cost * count

    batch = BatchResult(player_id=player_id, total_cost=total_cost)

    async with ledger_transaction(session, timeout=rules.storage_timeout_seconds):
        await get_or_create_account(session, player_id, rules.starting_balance, now=now)

        if request_key:
            if await request_key_exists(session, player_id, request_key):
                raise DuplicateRequestError(request_key)
            try:
                await record_request_key(session, player_id, request_key, count)
            except IntegrityError as e:
                raise DuplicateRequestError(request_key) from e

        batch.balance_after = await debit(session, player_id, total_cost, PULL_REASON)

        account = await lock_account(session, player_id)
        if account is None:
            msg = f"Account {player_id} vanished during pull batch"
            raise RuntimeError(msg)

        counter = account.pity_counter
        power_gained = 0
        for _ in range(count):
            outcome, counter = await _resolve_one(
                session, player_id, counter, tracker, catalog, rng, rules, now
            )
            batch.results.append(outcome)
            power_gained += outcome.power

        account.pity_counter = counter
        account.total_power += power_gained
        await session.flush()

    batch.pity_after = counter
    batch.pity_used_in_session = any(outcome.pity_consumed for outcome in batch.results)

    best: Tier | None = rarest([outcome.tier for outcome in batch.results])
    logger.info(
        "PULL_BATCH_SETTLED",
        extra={
            "player_id": player_id,
            "count": count,
            "total_cost": total_cost,
            "rarest_tier": best.value if best else None,
            "new_fruits": batch.new_fruits(),
            "pity_after": counter,
            "pity_used": batch.pity_used_in_session,
        },
    )
    return batch
