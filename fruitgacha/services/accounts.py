"""
Account-level helpers.

Read-only views (balance, pity, collection) degrade to safe defaults when
storage is unavailable, since they only feed display. Administrative
mutations (balance adjustment, wipe) are all-or-nothing like every other
ledger write.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.config import MAX_PLAYER_ID_LENGTH, Settings, settings
from fruitgacha.db.database import ledger_transaction
from fruitgacha.db.operations import (
    adjust_balance as ledger_adjust_balance,
    delete_account,
    get_account,
    get_or_create_account,
    list_owned,
)
from fruitgacha.models.failure import ValidationError
from fruitgacha.models.fruit import CollectionSummary, PityInfo
from fruitgacha.models.tier import TIER_ORDER, Tier
from fruitgacha.services.pity import PityTracker

logger = logging.getLogger(__name__)

ADMIN_REASON = "admin_adjust"


def validate_player_id(player_id: object) -> str:
    """
    Normalize and check a player identifier.

    Raises:
        ValidationError: if the id is empty, not a string, or too long
    """
    if not isinstance(player_id, str) or not player_id.strip():
        raise ValidationError("A player id is required.")
    player_id = player_id.strip()
    if len(player_id) > MAX_PLAYER_ID_LENGTH:
        raise ValidationError(
            "Player id is too long.",
            detail=f"max {MAX_PLAYER_ID_LENGTH} characters",
        )
    return player_id


async def get_balance(
    session: AsyncSession,
    player_id: str,
    rules: Settings | None = None,
) -> int:
    """Current balance, or 0 if the player is unknown or storage fails or times out."""
    rules = rules or settings
    try:
        async with asyncio.timeout(rules.storage_timeout_seconds):
            account = await get_account(session, player_id)
    except (SQLAlchemyError, TimeoutError) as e:
        logger.warning(
            "BALANCE_READ_FAILED",
            extra={"player_id": player_id, "error_type": type(e).__name__},
        )
        return 0
    return account.balance if account else 0


async def get_pity_info(
    session: AsyncSession,
    player_id: str,
    rules: Settings | None = None,
) -> PityInfo:
    """Pity progress for display. Falls back to a zero counter."""
    rules = rules or settings
    tracker = PityTracker.from_settings(rules)
    try:
        async with asyncio.timeout(rules.storage_timeout_seconds):
            account = await get_account(session, player_id)
    except (SQLAlchemyError, TimeoutError) as e:
        logger.warning(
            "PITY_READ_FAILED",
            extra={"player_id": player_id, "error_type": type(e).__name__},
        )
        return tracker.info(0)
    return tracker.info(account.pity_counter if account else 0)


async def get_collection_summary(
    session: AsyncSession,
    player_id: str,
    rules: Settings | None = None,
) -> CollectionSummary:
    """
    Group a player's grants by fruit and tier.

    Returns an empty summary for unknown players, on storage failure, or
    when the read exceeds the storage timeout.
    """
    rules = rules or settings
    summary = CollectionSummary(player_id=player_id)
    try:
        async with asyncio.timeout(rules.storage_timeout_seconds):
            entries = await list_owned(session, player_id)
    except (SQLAlchemyError, TimeoutError) as e:
        logger.warning(
            "COLLECTION_READ_FAILED",
            extra={"player_id": player_id, "error_type": type(e).__name__},
        )
        return summary

    by_tier: dict[Tier, int] = {tier: 0 for tier in TIER_ORDER}
    for entry in entries:
        tier = Tier(entry.tier)
        summary.copies[entry.fruit_id] = summary.copies.get(entry.fruit_id, 0) + 1
        summary.names[entry.fruit_id] = entry.fruit_name
        summary.tiers[entry.fruit_id] = tier
        by_tier[tier] += 1
        summary.total_power += entry.power

    summary.total_fruits = len(entries)
    summary.unique_fruits = len(summary.copies)
    summary.by_tier = by_tier
    return summary


async def adjust_balance(
    session: AsyncSession,
    player_id: str,
    delta: int,
    reason: str = ADMIN_REASON,
    rules: Settings | None = None,
) -> int:
    """
    Administrative balance change. Creates the account if needed.

    Returns the new balance.

    Raises:
        ValidationError: zero delta or bad player id
        InsufficientFundsError: the change would make the balance negative
    """
    rules = rules or settings
    player_id = validate_player_id(player_id)
    if delta == 0:
        raise ValidationError("Balance adjustment cannot be zero.")

    async with ledger_transaction(session, timeout=rules.storage_timeout_seconds):
        await get_or_create_account(session, player_id, rules.starting_balance)
        balance = await ledger_adjust_balance(session, player_id, delta, reason)

    logger.info(
        "BALANCE_ADJUSTED",
        extra={"player_id": player_id, "delta": delta, "reason": reason, "balance": balance},
    )
    return balance


async def wipe_account(
    session: AsyncSession,
    player_id: str,
    rules: Settings | None = None,
) -> bool:
    """Delete a player and their whole collection. Returns False if unknown."""
    rules = rules or settings
    player_id = validate_player_id(player_id)

    async with ledger_transaction(session, timeout=rules.storage_timeout_seconds):
        deleted = await delete_account(session, player_id)

    if deleted:
        logger.warning("ACCOUNT_WIPED", extra={"player_id": player_id})
    return deleted
