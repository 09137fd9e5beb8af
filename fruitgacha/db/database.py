"""
Database engine and session management.

Provides the async SQLAlchemy engine, the session factory for FastAPI, and
`ledger_transaction`, the single commit/rollback boundary every mutating
ledger operation runs inside.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fruitgacha.config import settings
from fruitgacha.models.db import Base
from fruitgacha.models.failure import StorageError

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Services open their own `ledger_transaction` on it; the final commit here
    only closes whatever read transaction the route left open.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


@asynccontextmanager
async def ledger_transaction(
    session: AsyncSession,
    timeout: float | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Run a block inside one storage transaction.

    Commits when the block exits normally. Any exception rolls back every
    write made inside the block. Driver errors and timeouts are re-raised as
    `StorageError`; `KnownError`s raised by the block propagate unchanged
    after the rollback.

    A session that already has an open transaction (e.g. from an earlier
    read) has it closed first so the block starts from a fresh snapshot.
    Pending writes are never silently discarded: a dirty session is an error.
    """
    if timeout is None:
        timeout = settings.storage_timeout_seconds

    if session.new or session.dirty or session.deleted:
        raise RuntimeError("ledger_transaction requires a session without pending writes")
    if session.in_transaction():
        await session.commit()

    try:
        async with asyncio.timeout(timeout):
            async with session.begin():
                yield session
    except SQLAlchemyError as e:
        logger.error(
            "LEDGER_TRANSACTION_FAILED",
            extra={"error_type": type(e).__name__, "error": str(e)},
        )
        raise StorageError(detail=type(e).__name__) from e
    except TimeoutError as e:
        logger.error("LEDGER_TRANSACTION_TIMEOUT", extra={"timeout": timeout})
        raise StorageError(detail=f"timed out after {timeout}s") from e


async def init_db() -> None:
    """Create the ledger and collection tables if they do not exist. Run at startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

