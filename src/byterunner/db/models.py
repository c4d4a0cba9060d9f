"""ORM models for users, runs, the balance ledger, fraud flags, competitions and badges.

Balances and amounts are integer cents. Ledger and flag tables are
append-only: rows are inserted, never updated or deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from byterunner.db.base import Base, BigIntPK, JSONType, UTCDateTime

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Player account. ``auth_subject`` is the session provider's user id."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    auth_subject: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    username: Mapped[str | None] = mapped_column(String(16), nullable=True)
    balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    last_withdrawal_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    continue_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    featured_badge: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("badges.slug", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    runs: Mapped[list[Run]] = relationship("Run", back_populates="user")


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class Run(Base):
    """One finished play session. Immutable once created."""

    __tablename__ = "runs"
    __table_args__ = (
        Index("idx_runs_user_created", "user_id", "created_at"),
        Index("idx_runs_created_score", "created_at", "score"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(BigInteger, nullable=False)
    distance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    duration_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    client_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="runs")


# ---------------------------------------------------------------------------
# Balance ledger
# ---------------------------------------------------------------------------


class BalanceTransaction(Base):
    """Signed balance movement. The sum per user equals ``users.balance_cents``."""

    __tablename__ = "balance_transactions"
    __table_args__ = (
        Index("idx_balance_tx_user_created", "user_id", "created_at"),
        Index("idx_balance_tx_type_reference", "type", "reference_id"),
        Index(
            "uq_balance_tx_hourly_reward",
            "reference_id",
            unique=True,
            postgresql_where=text("type = 'hourly_challenge'"),
            sqlite_where=text("type = 'hourly_challenge'"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class Withdrawal(Base):
    """Cash-out request. Balance is debited at submission, not at approval."""

    __tablename__ = "withdrawals"
    __table_args__ = (
        Index("idx_withdrawals_user", "user_id"),
        Index("idx_withdrawals_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    contact_info: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Fraud prevention
# ---------------------------------------------------------------------------


class FraudFlag(Base):
    """Suspicion signal. A user's fraud score is the sum of recent severities."""

    __tablename__ = "fraud_flags"
    __table_args__ = (Index("idx_fraud_flags_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    flag_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    flag_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------


class Contest(Base):
    """Multi-day competition. ``prize_pool`` maps "1" or "4-10" to a prize."""

    __tablename__ = "contests"
    __table_args__ = (Index("idx_contests_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    contest_timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC", server_default="UTC")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming", server_default="upcoming")
    prize_pool: Mapped[dict[str, str] | None] = mapped_column(JSONType, nullable=True)
    rules: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    max_entries_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=999, server_default="999")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    entries: Mapped[list[ContestEntry]] = relationship(
        "ContestEntry", back_populates="contest", cascade="all, delete-orphan", passive_deletes=True,
    )


class ContestEntry(Base):
    """A run entered into a contest. Only a user's best entry is ranked."""

    __tablename__ = "contest_entries"
    __table_args__ = (
        UniqueConstraint("contest_id", "run_id", name="contest_entries_contest_run_key"),
        Index("idx_contest_entries_contest_user", "contest_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    contest_id: Mapped[int] = mapped_column(Integer, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    run_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("runs.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(BigInteger, nullable=False)
    distance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    contest: Mapped[Contest] = relationship("Contest", back_populates="entries")


class PrizeClaim(Base):
    """Prize owed to a contest winner. At most one per (contest, user)."""

    __tablename__ = "prize_claims"
    __table_args__ = (
        UniqueConstraint("contest_id", "user_id", name="prize_claims_contest_user_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    contest_id: Mapped[int] = mapped_column(Integer, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    prize_description: Mapped[str] = mapped_column(Text, nullable=False)
    claim_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    contact_info: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    contest: Mapped[Contest] = relationship("Contest")


# ---------------------------------------------------------------------------
# Hourly challenges
# ---------------------------------------------------------------------------


class HourlyChallenge(Base):
    """One row per wall-clock hour: active -> ended | paid."""

    __tablename__ = "hourly_challenges"
    __table_args__ = (Index("uq_hourly_challenges_hour", "challenge_hour", unique=True),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    challenge_hour: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    winner_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    winner_run_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("runs.id"), nullable=True)
    winner_score: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    winner_distance: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Badges and shares
# ---------------------------------------------------------------------------


class Badge(Base):
    """Badge catalogue entry, seeded on startup."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    emoji: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(32), nullable=False)
    requirement_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class UserBadge(Base):
    """Badge earned by a user. UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="user_badges_user_badge_key"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")


class Share(Base):
    """A user sharing a run on a social platform. Each share earns a continue token."""

    __tablename__ = "shares"
    __table_args__ = (Index("idx_shares_user", "user_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    run_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("runs.id", ondelete="SET NULL"), nullable=True)
    score: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
