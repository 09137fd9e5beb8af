"""
SQLAlchemy ORM models for persistent storage.

The account row is the aggregate root for a player. Collection entries,
ledger entries and pull request keys hang off it and are removed with it.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class AccountDB(Base):
    """
    A player's ledger account.

    INVARIANT: balance == total_earned - total_spent >= 0.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),
        CheckConstraint("pity_counter >= 0", name="ck_account_pity_non_negative"),
    )

    player_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, default=0)
    total_earned: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[int] = mapped_column(Integer, default=0)
    total_power: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    pity_counter: Mapped[int] = mapped_column(Integer, default=0)

    # Passive income checkpoint; only ever advanced by whole periods
    last_income_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_manual_claim_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    fruits: Mapped[list["CollectionEntryDB"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    ledger: Mapped[list["LedgerEntryDB"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    requests: Mapped[list["PullRequestDB"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<AccountDB(player_id={self.player_id}, balance={self.balance})>"


class CollectionEntryDB(Base):
    """
    One granted devil fruit. Duplicates are separate rows.

    Rows are written once by a successful pull and never updated.
    """

    __tablename__ = "collection_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.player_id", ondelete="CASCADE"), index=True
    )
    fruit_id: Mapped[str] = mapped_column(String(128), index=True)
    fruit_name: Mapped[str] = mapped_column(String(255))
    tier: Mapped[str] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(50))
    power: Mapped[int] = mapped_column(Integer)
    generated: Mapped[bool] = mapped_column(Boolean, default=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    account: Mapped["AccountDB"] = relationship(back_populates="fruits")

    def __repr__(self) -> str:
        return f"<CollectionEntryDB(player={self.player_id}, fruit={self.fruit_id})>"


class LedgerEntryDB(Base):
    """Audit row for every balance change, written in the same transaction."""

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.player_id", ondelete="CASCADE"), index=True
    )
    delta: Mapped[int] = mapped_column(Integer)
    reason: Mapped[str] = mapped_column(String(50))
    balance_after: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    account: Mapped["AccountDB"] = relationship(back_populates="ledger")

    def __repr__(self) -> str:
        return f"<LedgerEntryDB(player={self.player_id}, delta={self.delta}, reason={self.reason})>"


class PullRequestDB(Base):
    """Idempotency key of a processed pull batch."""

    __tablename__ = "pull_requests"
    __table_args__ = (UniqueConstraint("player_id", "request_key", name="uq_player_request"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.player_id", ondelete="CASCADE"), index=True
    )
    request_key: Mapped[str] = mapped_column(String(128))
    pull_count: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    account: Mapped["AccountDB"] = relationship(back_populates="requests")

    def __repr__(self) -> str:
        return f"<PullRequestDB(player={self.player_id}, key={self.request_key})>"
