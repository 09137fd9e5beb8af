"""
Income accrual.

Passive income is paid in whole periods (one hour by default) since the
account's income checkpoint. The checkpoint moves forward by exactly the
periods paid, so a partial period carries over to the next call and is
never lost or paid twice.

Manual income is an independent lump sum gated by a short cooldown.

Both rates scale with the number of unique fruits a player owns: nothing
with no fruits, proportional for 1-4, the full rate from 5 on.
"""

import asyncio
import logging
import math
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.config import FRUITS_FOR_MAX_INCOME, Settings, settings
from fruitgacha.db.database import ledger_transaction
from fruitgacha.db.operations import (
    count_unique_owned,
    credit,
    get_account,
    get_or_create_account,
    lock_account,
)
from fruitgacha.models.db import AccountDB, utcnow
from fruitgacha.models.failure import CooldownError, NotEligibleError
from fruitgacha.models.fruit import IncomeOverview, ManualIncomeResult, PassiveIncomeResult
from fruitgacha.services.accounts import validate_player_id

logger = logging.getLogger(__name__)

PASSIVE_REASON = "passive_income"
MANUAL_REASON = "manual_income"

SECONDS_PER_HOUR = 3600


def hourly_rate(unique_fruits: int, max_hourly_income: int) -> int:
    """
    Berries per hour for a player owning `unique_fruits` distinct fruits.

    Example: 3 fruits at a 6250 maximum -> 3750.
    """
    if unique_fruits <= 0:
        return 0
    if unique_fruits >= FRUITS_FOR_MAX_INCOME:
        return max_hourly_income
    return max_hourly_income * unique_fruits // FRUITS_FOR_MAX_INCOME


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


async def _locked_account(
    session: AsyncSession, player_id: str, rules: Settings, now: datetime
) -> AccountDB:
    await get_or_create_account(session, player_id, rules.starting_balance, now=now)
    account = await lock_account(session, player_id)
    if account is None:
        msg = f"Account {player_id} not found after creation"
        raise RuntimeError(msg)
    return account


async def accrue_passive(
    session: AsyncSession,
    player_id: str,
    *,
    rules: Settings | None = None,
    now: datetime | None = None,
) -> PassiveIncomeResult:
    """
    Credit every whole income period elapsed since the checkpoint.

    Calling this again within the same period grants nothing. Periods that
    elapse while the player owns no fruits are consumed without payment.
    """
    rules = rules or settings
    player_id = validate_player_id(player_id)
    now = now or utcnow()
    period = timedelta(seconds=rules.income_period_seconds)

    async with ledger_transaction(session, timeout=rules.storage_timeout_seconds):
        account = await _locked_account(session, player_id, rules, now)
        unique = await count_unique_owned(session, player_id)
        rate = hourly_rate(unique, rules.max_hourly_income)

        checkpoint = as_utc(account.last_income_at)
        elapsed = now - checkpoint
        periods = elapsed // period if elapsed > timedelta(0) else 0

        granted = 0
        if periods > 0:
            per_period = rate * rules.income_period_seconds // SECONDS_PER_HOUR
            granted = per_period * periods
            account.last_income_at = checkpoint + period * periods
            await session.flush()
            if granted > 0:
                await credit(session, player_id, granted, PASSIVE_REASON)

    hours = periods * rules.income_period_seconds / SECONDS_PER_HOUR
    if periods > 0:
        logger.info(
            "PASSIVE_INCOME_ACCRUED",
            extra={
                "player_id": player_id,
                "periods": periods,
                "granted": granted,
                "hourly_rate": rate,
            },
        )
    return PassiveIncomeResult(
        granted=granted,
        periods_elapsed=periods,
        hours_accumulated=hours,
        hourly_rate=rate,
        unique_fruits=unique,
    )


def manual_income_amount(rate: int, rules: Settings) -> tuple[int, int]:
    """
    Lump sum for a manual claim.

    Returns (base_income, income): the base is what passive income would pay
    over one cooldown window, the income is that boosted by the multiplier.
    """
    window = rate * rules.manual_cooldown_seconds / SECONDS_PER_HOUR
    income = max(1, round(window * rules.manual_income_multiplier))
    return int(window), income


async def claim_manual(
    session: AsyncSession,
    player_id: str,
    *,
    rules: Settings | None = None,
    now: datetime | None = None,
) -> ManualIncomeResult:
    """
    Grant the boosted manual income lump sum.

    Raises:
        CooldownError: the previous claim was less than the cooldown ago
        NotEligibleError: the player owns no fruits
    """
    rules = rules or settings
    player_id = validate_player_id(player_id)
    now = now or utcnow()
    cooldown = timedelta(seconds=rules.manual_cooldown_seconds)

    async with ledger_transaction(session, timeout=rules.storage_timeout_seconds):
        account = await _locked_account(session, player_id, rules, now)

        if account.last_manual_claim_at is not None:
            ready_at = as_utc(account.last_manual_claim_at) + cooldown
            if now < ready_at:
                raise CooldownError(retry_after=math.ceil((ready_at - now).total_seconds()))

        unique = await count_unique_owned(session, player_id)
        if unique == 0:
            raise NotEligibleError(
                "You need at least one Devil Fruit to earn income.",
                suggestion="Use /summon to get your first Devil Fruit.",
            )

        rate = hourly_rate(unique, rules.max_hourly_income)
        base, income = manual_income_amount(rate, rules)

        account.last_manual_claim_at = now
        await session.flush()
        await credit(session, player_id, income, MANUAL_REASON)

    logger.info(
        "MANUAL_INCOME_CLAIMED",
        extra={"player_id": player_id, "income": income, "hourly_rate": rate},
    )
    return ManualIncomeResult(
        income=income,
        base_income=base,
        multiplier=rules.manual_income_multiplier,
        hourly_rate=rate,
        unique_fruits=unique,
        next_claim_in=rules.manual_cooldown_seconds,
    )


async def income_overview(
    session: AsyncSession,
    player_id: str,
    rules: Settings | None = None,
) -> IncomeOverview:
    """
    Read-only income rate summary. Unknown players have no fruits.

    Falls back to zero fruits if storage fails or exceeds the storage timeout.
    """
    rules = rules or settings
    try:
        async with asyncio.timeout(rules.storage_timeout_seconds):
            account = await get_account(session, player_id)
            unique = await count_unique_owned(session, player_id) if account else 0
    except (SQLAlchemyError, TimeoutError) as e:
        logger.warning(
            "INCOME_OVERVIEW_READ_FAILED",
            extra={"player_id": player_id, "error_type": type(e).__name__},
        )
        unique = 0
    return IncomeOverview(
        hourly_rate=hourly_rate(unique, rules.max_hourly_income),
        max_hourly_income=rules.max_hourly_income,
        unique_fruits=unique,
        fruits_for_max=FRUITS_FOR_MAX_INCOME,
    )
