"""Tests for the pull orchestrator."""

import asyncio
import random
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fruitgacha.config import Settings
from fruitgacha.db.operations import (
    create_account,
    get_account,
    list_ledger_entries,
    list_owned,
)
from fruitgacha.models.db import Base
from fruitgacha.models.failure import (
    DuplicateRequestError,
    InsufficientFundsError,
    KnownError,
    StorageError,
    ValidationError,
)
from fruitgacha.models.fruit import FruitDefinition
from fruitgacha.models.tier import TIER_ORDER, TOP_TIERS
from fruitgacha.services import pulls as pulls_module
from fruitgacha.services.catalog import FruitCatalog
from fruitgacha.services.pulls import PULL_REASON, perform_pulls, validate_pull_count


@pytest.fixture
def small_catalog() -> FruitCatalog:
    """One fruit per tier, so every pull of a tier is a copy of the same fruit."""
    return FruitCatalog(
        FruitDefinition(fruit_id=f"{tier.value}_fruit", name=f"{tier.value} fruit", tier=tier)
        for tier in TIER_ORDER
    )


async def _account_with(session: AsyncSession, player_id: str, balance: int, pity: int = 0):
    account = await create_account(session, player_id, balance)
    account.pity_counter = pity
    await session.commit()
    return account


class TestValidatePullCount:
    @pytest.mark.parametrize("count", [0, -1, 101])
    def test_out_of_range(self, count: int) -> None:
        with pytest.raises(ValidationError):
            validate_pull_count(count, Settings())

    @pytest.mark.parametrize("count", [True, 2.0, "3", None])
    def test_not_an_integer(self, count) -> None:
        with pytest.raises(ValidationError):
            validate_pull_count(count, Settings())

    def test_bounds_accepted(self) -> None:
        assert validate_pull_count(1, Settings()) == 1
        assert validate_pull_count(100, Settings()) == 100


class TestPerformPulls:
    async def test_exact_balance_single_pull(self, session: AsyncSession, rules: Settings) -> None:
        """Balance 1000, cost 1000, one pull: balance 0 and one entry."""
        await _account_with(session, "luffy", 1000)

        batch = await perform_pulls(session, "luffy", 1, rng=random.Random(1), rules=rules)

        account = await get_account(session, "luffy")
        assert batch.total_cost == 1000
        assert batch.balance_after == 0
        assert account.balance == 0
        assert len(await list_owned(session, "luffy")) == 1
        assert len(batch.results) == 1

    async def test_insufficient_funds_changes_nothing(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        await _account_with(session, "usopp", 500)

        with pytest.raises(InsufficientFundsError):
            await perform_pulls(session, "usopp", 1, rng=random.Random(1), rules=rules)

        account = await get_account(session, "usopp")
        assert account.balance == 500
        assert account.pity_counter == 0
        assert await list_owned(session, "usopp") == []
        assert [e.reason for e in await list_ledger_entries(session, "usopp")] == [
            "starting_balance"
        ]

    async def test_hard_pity_forces_top_tier(self, session: AsyncSession) -> None:
        """Counter 1499 with hard pity 1500: next pull is a top tier and resets pity."""
        rules = Settings()
        await _account_with(session, "nami", 5000, pity=1499)

        batch = await perform_pulls(session, "nami", 1, rng=random.Random(3), rules=rules)

        outcome = batch.results[0]
        assert outcome.tier in TOP_TIERS
        assert outcome.pity_consumed is True
        assert batch.pity_used_in_session is True
        assert batch.pity_after == 0
        assert (await get_account(session, "nami")).pity_counter == 0

    async def test_new_player_gets_starting_balance(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        batch = await perform_pulls(session, "newbie", 5, rng=random.Random(2), rules=rules)

        assert batch.balance_after == rules.starting_balance - 5 * rules.pull_cost
        account = await get_account(session, "newbie")
        assert account.balance == batch.balance_after
        assert account.total_spent == 5 * rules.pull_cost

    async def test_ledger_entry_written_for_batch(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        await _account_with(session, "robin", 5000)

        await perform_pulls(session, "robin", 3, rng=random.Random(4), rules=rules)

        latest = (await list_ledger_entries(session, "robin"))[0]
        assert latest.reason == PULL_REASON
        assert latest.delta == -3000
        assert latest.balance_after == 2000

    async def test_grants_persisted_with_power(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        await _account_with(session, "franky", 5000)

        batch = await perform_pulls(session, "franky", 5, rng=random.Random(5), rules=rules)

        owned = await list_owned(session, "franky")
        account = await get_account(session, "franky")
        assert len(owned) == 5
        assert sorted(entry.power for entry in owned) == sorted(o.power for o in batch.results)
        assert account.total_power == sum(o.power for o in batch.results)
        assert {entry.tier for entry in owned} == {o.tier.value for o in batch.results}

    async def test_copy_counts(self, session: AsyncSession, small_catalog: FruitCatalog) -> None:
        """First grant of a fruit is a first copy; later grants count up."""
        rules = Settings(starting_balance=100_000, soft_pity_threshold=20, hard_pity_threshold=30)

        batch = await perform_pulls(
            session, "brook", 40, rng=random.Random(6), rules=rules, catalog=small_catalog
        )

        seen: dict[str, int] = {}
        for outcome in batch.results:
            seen[outcome.fruit.fruit_id] = seen.get(outcome.fruit.fruit_id, 0) + 1
            assert outcome.copy_count == seen[outcome.fruit.fruit_id]
            assert outcome.is_first_copy == (seen[outcome.fruit.fruit_id] == 1)
        assert batch.new_fruits() == len(seen)

    async def test_copy_counts_continue_across_batches(
        self, session: AsyncSession, small_catalog: FruitCatalog
    ) -> None:
        rules = Settings(starting_balance=100_000, soft_pity_threshold=20, hard_pity_threshold=30)
        rng = random.Random(21)

        first = await perform_pulls(
            session, "jinbe", 10, rng=rng, rules=rules, catalog=small_catalog
        )
        second = await perform_pulls(
            session, "jinbe", 10, rng=rng, rules=rules, catalog=small_catalog
        )

        seen: dict[str, int] = {}
        for outcome in first.results + second.results:
            seen[outcome.fruit.fruit_id] = seen.get(outcome.fruit.fruit_id, 0) + 1
            assert outcome.copy_count == seen[outcome.fruit.fruit_id]
        assert first.new_fruits() + second.new_fruits() == len(seen)

    async def test_pity_monotonic_until_reset(self, session: AsyncSession) -> None:
        rules = Settings(starting_balance=1_000_000, soft_pity_threshold=20, hard_pity_threshold=30)
        rng = random.Random(12)
        counter = 0

        for _ in range(5):
            batch = await perform_pulls(session, "zoro", 100, rng=rng, rules=rules)
            for outcome in batch.results:
                assert counter + 1 <= rules.hard_pity_threshold
                counter = 0 if outcome.tier in TOP_TIERS else counter + 1
            assert batch.pity_after == counter

        assert (await get_account(session, "zoro")).pity_counter == counter

    async def test_duplicate_request_key_rejected(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        await _account_with(session, "sanji", 5000)

        await perform_pulls(session, "sanji", 2, request_key="req-1", rules=rules)
        with pytest.raises(DuplicateRequestError):
            await perform_pulls(session, "sanji", 2, request_key="req-1", rules=rules)

        assert (await get_account(session, "sanji")).balance == 3000
        assert len(await list_owned(session, "sanji")) == 2

    async def test_failure_mid_batch_rolls_back_everything(
        self, session: AsyncSession, rules: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await _account_with(session, "chopper", 5000, pity=7)
        real_insert = pulls_module.insert_grant
        calls = 0

        async def flaky_insert(session, entry):
            nonlocal calls
            calls += 1
            if calls == 3:
                raise OperationalError("INSERT INTO collection_entries", {}, Exception("disk I/O"))
            return await real_insert(session, entry)

        monkeypatch.setattr(pulls_module, "insert_grant", flaky_insert)

        with pytest.raises(StorageError):
            await perform_pulls(session, "chopper", 5, rng=random.Random(8), rules=rules)

        account = await get_account(session, "chopper")
        assert account.balance == 5000
        assert account.total_spent == 0
        assert account.pity_counter == 7
        assert await list_owned(session, "chopper") == []
        assert len(await list_ledger_entries(session, "chopper")) == 1

    @pytest.mark.parametrize("player_id", ["", "   ", "x" * 65])
    async def test_invalid_player_writes_nothing(
        self, session: AsyncSession, rules: Settings, player_id: str
    ) -> None:
        with pytest.raises(ValidationError):
            await perform_pulls(session, player_id, 1, rules=rules)

    async def test_invalid_count_creates_no_account(
        self, session: AsyncSession, rules: Settings
    ) -> None:
        with pytest.raises(ValidationError):
            await perform_pulls(session, "ghost", 0, rules=rules)

        assert await get_account(session, "ghost") is None

    async def test_player_id_is_trimmed(self, session: AsyncSession, rules: Settings) -> None:
        batch = await perform_pulls(session, "  ace  ", 1, rules=rules)

        assert batch.player_id == "ace"
        assert await get_account(session, "ace") is not None


class TestConcurrentPulls:
    async def test_concurrent_batches_never_overdraw(self, tmp_path: Path) -> None:
        """Two batches racing on one account: at most one can be afforded."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        rules = Settings()

        async with factory() as session:
            await create_account(session, "racer", 5000)
            await session.commit()

        async def pull_three(seed: int):
            async with factory() as session:
                try:
                    return await perform_pulls(
                        session, "racer", 3, rng=random.Random(seed), rules=rules
                    )
                except KnownError as e:
                    return e

        outcomes = await asyncio.gather(pull_three(1), pull_three(2))

        async with factory() as session:
            account = await get_account(session, "racer")
            owned = await list_owned(session, "racer")
        await engine.dispose()

        settled = [o for o in outcomes if not isinstance(o, KnownError)]
        assert len(settled) <= 1
        assert account.balance >= 0
        assert account.balance == 5000 - 3000 * len(settled)
        assert len(owned) == 3 * len(settled)

    async def test_first_pulls_for_new_player_race(self, tmp_path: Path) -> None:
        """Two first requests for an unseen player both settle on one account."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        rules = Settings()

        async def pull_one(seed: int):
            async with factory() as session:
                return await perform_pulls(
                    session, "newcomer", 1, rng=random.Random(seed), rules=rules
                )

        outcomes = await asyncio.gather(pull_one(1), pull_one(2))

        async with factory() as session:
            account = await get_account(session, "newcomer")
            owned = await list_owned(session, "newcomer")
            entries = await list_ledger_entries(session, "newcomer")
        await engine.dispose()

        assert len(outcomes) == 2
        assert account.balance == rules.starting_balance - 2 * rules.pull_cost
        assert len(owned) == 2
        assert [e.reason for e in entries].count("starting_balance") == 1
