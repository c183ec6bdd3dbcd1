"""
Account Model
=============

One row per authenticated caller identity. Holds the $GIG balance, the
check-in streak, referral bookkeeping, role/ban flags, PvP counters, the
farming session and unspent bonus spins.

`balance` is only ever changed through `LedgerService.apply_delta`, a single
conditional `UPDATE ... SET balance = balance + :delta`. The CHECK constraint
is the last line of defense against a negative balance.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin, TimestampMixin
from gigvault.database.models.enums import AccountRole


class Account(Base, IdMixin, TimestampMixin):
    """Player account keyed by the identity provider's user id."""

    # ========================================================================
    # TABLE CONFIGURATION
    # ========================================================================

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        CheckConstraint("streak >= 0", name="streak_non_negative"),
        CheckConstraint("referral_count >= 0", name="referral_count_non_negative"),
        CheckConstraint("bonus_spins >= 0", name="bonus_spins_non_negative"),
        CheckConstraint("farming_rate >= 0", name="farming_rate_non_negative"),
        CheckConstraint("role IN ('user', 'admin')", name="role_valid"),
        Index("ix_accounts_pvp_eligible", "is_banned", "balance"),
    )

    # ========================================================================
    # IDENTITY
    # ========================================================================

    identity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
        doc="Authenticated caller identity (e.g. Telegram user id)",
    )

    display_name: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    role: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AccountRole.USER.value,
        server_default=AccountRole.USER.value,
    )

    is_banned: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    # ========================================================================
    # LEDGER
    # ========================================================================

    balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    # ========================================================================
    # DAILY CHECK-IN
    # ========================================================================

    streak: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    last_check_in: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ========================================================================
    # REFERRALS
    # ========================================================================

    referral_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    referred_by_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # ========================================================================
    # PVP
    # ========================================================================

    pvp_wins: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    pvp_total_stolen: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    last_heist_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ========================================================================
    # FARMING / SPINS
    # ========================================================================

    farming_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Start of the running farming session; NULL when not farming",
    )

    farming_rate: Mapped[Decimal] = mapped_column(
        Numeric(8, 3),
        nullable=False,
        default=Decimal("0.5"),
        server_default="0.5",
        doc="$GIG earned per farmed minute",
    )

    bonus_spins: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        doc="Free wheel spins granted by check-in streaks",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value

    def __repr__(self) -> str:
        return (
            f"<Account(id={self.id}, identity={self.identity}, "
            f"balance={self.balance}, streak={self.streak})>"
        )
