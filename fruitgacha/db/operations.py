"""
Database CRUD operations.

Ledger store: accounts and balance changes.
Collection store: append-only fruit grants and ownership counts.

These functions never commit. Callers run them inside `ledger_transaction`
so that a sequence of them commits or rolls back as one unit.
"""

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.models.db import (
    AccountDB,
    CollectionEntryDB,
    LedgerEntryDB,
    PullRequestDB,
    utcnow,
)
from fruitgacha.models.failure import InsufficientFundsError, ValidationError

# Dialects with INSERT .. ON CONFLICT DO NOTHING
CONFLICT_SAFE_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}

# --- Ledger Operations ---


async def get_account(session: AsyncSession, player_id: str) -> AccountDB | None:
    """
    Get a player's account.

    Returns None if the player has never interacted. Always reflects the
    stored row, including balance changes made by conditional UPDATEs.
    """
    result = await session.execute(
        select(AccountDB)
        .where(AccountDB.player_id == player_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_account(session: AsyncSession, player_id: str) -> AccountDB | None:
    """
    Re-read an account with a row lock held until the transaction ends.

    The row is refreshed even if it is already in the identity map so that
    changes made by conditional UPDATEs are visible.
    """
    result = await session.execute(
        select(AccountDB)
        .where(AccountDB.player_id == player_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_account(
    session: AsyncSession,
    player_id: str,
    starting_balance: int,
    now: datetime | None = None,
) -> AccountDB:
    """
    Create a new account with the starting balance and zeroed counters.

    The starting balance is recorded as earned so the balance invariant holds
    from the first row. Raises IntegrityError if the account already exists.
    """
    now = now or utcnow()
    account = AccountDB(
        player_id=player_id,
        balance=starting_balance,
        total_earned=starting_balance,
        total_spent=0,
        total_power=0,
        level=1,
        pity_counter=0,
        last_income_at=now,
        last_manual_claim_at=None,
        created_at=now,
        updated_at=now,
    )
    session.add(account)
    _add_starting_entry(session, player_id, starting_balance, now)
    await session.flush()
    return account


def _add_starting_entry(
    session: AsyncSession, player_id: str, starting_balance: int, now: datetime
) -> None:
    if starting_balance:
        session.add(
            LedgerEntryDB(
                player_id=player_id,
                delta=starting_balance,
                reason="starting_balance",
                balance_after=starting_balance,
                created_at=now,
            )
        )


async def insert_account_if_absent(
    session: AsyncSession,
    player_id: str,
    starting_balance: int,
    now: datetime | None = None,
) -> bool:
    """
    Create an account unless one already exists.

    Uses INSERT .. ON CONFLICT DO NOTHING, so two transactions creating the
    same new player both succeed: the later one waits for the earlier and
    then inserts nothing. Returns True if this call created the row.
    """
    now = now or utcnow()
    insert = CONFLICT_SAFE_INSERTS.get(session.get_bind().dialect.name)
    if insert is None:
        await create_account(session, player_id, starting_balance, now=now)
        return True

    result = await session.execute(
        insert(AccountDB)
        .values(
            player_id=player_id,
            balance=starting_balance,
            total_earned=starting_balance,
            total_spent=0,
            total_power=0,
            level=1,
            pity_counter=0,
            last_income_at=now,
            last_manual_claim_at=None,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=[AccountDB.player_id])
        .returning(AccountDB.player_id)
    )
    if result.scalar_one_or_none() is None:
        return False

    _add_starting_entry(session, player_id, starting_balance, now)
    await session.flush()
    return True


async def get_or_create_account(
    session: AsyncSession,
    player_id: str,
    starting_balance: int,
    now: datetime | None = None,
) -> tuple[AccountDB, bool]:
    """
    Get existing account or create new one.

    Safe against a concurrent first request for the same player.

    Returns:
        Tuple of (account, created) where created is True if new.
    """
    account = await get_account(session, player_id)
    if account:
        return account, False

    created = await insert_account_if_absent(session, player_id, starting_balance, now=now)
    account = await get_account(session, player_id)
    if account is None:
        msg = f"Account {player_id} missing after insert"
        raise RuntimeError(msg)
    return account, created


async def _record_ledger_entry(
    session: AsyncSession,
    player_id: str,
    delta: int,
    reason: str,
) -> int:
    balance = await session.scalar(
        select(AccountDB.balance).where(AccountDB.player_id == player_id)
    )
    if balance is None:
        msg = f"Account {player_id} not found while recording '{reason}'"
        raise RuntimeError(msg)
    session.add(
        LedgerEntryDB(player_id=player_id, delta=delta, reason=reason, balance_after=balance)
    )
    await session.flush()
    return int(balance)


async def debit(session: AsyncSession, player_id: str, amount: int, reason: str) -> int:
    """
    Remove `amount` berries in a single conditional UPDATE.

    The balance check and the write are one statement, so concurrent debits
    of the same account are serialized by the storage engine and can never
    drive the balance negative.

    Returns the new balance.

    Raises:
        InsufficientFundsError: if the balance is below `amount`. Nothing is
            written in that case.
    """
    if amount <= 0:
        raise ValidationError("Debit amount must be positive.", detail=f"amount={amount}")

    result = await session.execute(
        update(AccountDB)
        .where(AccountDB.player_id == player_id, AccountDB.balance >= amount)
        .values(
            balance=AccountDB.balance - amount,
            total_spent=AccountDB.total_spent + amount,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    # rowcount is available on UPDATE results; type stubs incomplete for async
    if int(result.rowcount) == 0:  # type: ignore[attr-defined]
        balance = await session.scalar(
            select(AccountDB.balance).where(AccountDB.player_id == player_id)
        )
        raise InsufficientFundsError(balance=int(balance or 0), required=amount)

    return await _record_ledger_entry(session, player_id, -amount, reason)


async def credit(session: AsyncSession, player_id: str, amount: int, reason: str) -> int:
    """
    Add `amount` berries and count them as earned.

    Returns the new balance.
    """
    if amount <= 0:
        raise ValidationError("Credit amount must be positive.", detail=f"amount={amount}")

    await session.execute(
        update(AccountDB)
        .where(AccountDB.player_id == player_id)
        .values(
            balance=AccountDB.balance + amount,
            total_earned=AccountDB.total_earned + amount,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return await _record_ledger_entry(session, player_id, amount, reason)


async def adjust_balance(session: AsyncSession, player_id: str, delta: int, reason: str) -> int:
    """
    Apply a signed balance change.

    Positive deltas are earnings, negative deltas are spending. Returns the
    new balance. A zero delta is rejected.
    """
    if delta > 0:
        return await credit(session, player_id, delta, reason)
    if delta < 0:
        return await debit(session, player_id, -delta, reason)
    raise ValidationError("Balance adjustment cannot be zero.")


async def list_ledger_entries(
    session: AsyncSession, player_id: str, limit: int = 50
) -> list[LedgerEntryDB]:
    """Most recent balance changes first."""
    result = await session.execute(
        select(LedgerEntryDB)
        .where(LedgerEntryDB.player_id == player_id)
        .order_by(LedgerEntryDB.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_account(session: AsyncSession, player_id: str) -> bool:
    """
    Delete an account and everything it owns.

    Returns True if deleted, False if not found.
    """
    account = await get_account(session, player_id)
    if not account:
        return False

    for child in (CollectionEntryDB, LedgerEntryDB, PullRequestDB):
        await session.execute(delete(child).where(child.player_id == player_id))
    await session.delete(account)
    await session.flush()
    return True


# --- Pull Request Keys ---


async def request_key_exists(session: AsyncSession, player_id: str, request_key: str) -> bool:
    result = await session.execute(
        select(PullRequestDB.id).where(
            PullRequestDB.player_id == player_id,
            PullRequestDB.request_key == request_key,
        )
    )
    return result.first() is not None


async def record_request_key(
    session: AsyncSession, player_id: str, request_key: str, pull_count: int
) -> PullRequestDB:
    """Store a request key. Raises IntegrityError on a concurrent duplicate."""
    request = PullRequestDB(player_id=player_id, request_key=request_key, pull_count=pull_count)
    session.add(request)
    await session.flush()
    return request


# --- Collection Operations ---


async def insert_grant(session: AsyncSession, entry: CollectionEntryDB) -> CollectionEntryDB:
    """Append one granted fruit to a player's collection."""
    session.add(entry)
    await session.flush()
    return entry


async def count_owned(session: AsyncSession, player_id: str, fruit_id: str) -> int:
    """Number of copies of `fruit_id` the player holds."""
    count = await session.scalar(
        select(func.count(CollectionEntryDB.id)).where(
            CollectionEntryDB.player_id == player_id,
            CollectionEntryDB.fruit_id == fruit_id,
        )
    )
    return int(count or 0)


async def count_unique_owned(session: AsyncSession, player_id: str) -> int:
    """Number of distinct fruits the player holds."""
    count = await session.scalar(
        select(func.count(func.distinct(CollectionEntryDB.fruit_id))).where(
            CollectionEntryDB.player_id == player_id
        )
    )
    return int(count or 0)


async def list_owned(session: AsyncSession, player_id: str) -> list[CollectionEntryDB]:
    """All grants for a player, most powerful first."""
    result = await session.execute(
        select(CollectionEntryDB)
        .where(CollectionEntryDB.player_id == player_id)
        .order_by(CollectionEntryDB.power.desc(), CollectionEntryDB.acquired_at.desc())
    )
    return list(result.scalars().all())
