"""
Withdrawal Model
================

A request to move $GIG off-platform to a wallet address.

Schema Design
-------------
- The requested amount is debited in the same unit that inserts the row, so
  a PENDING row always stands for funds already taken from the balance.
- `tx_hash` is UNIQUE: the insert uses `ON CONFLICT (tx_hash) DO NOTHING`, so
  one on-chain transaction can back at most one request.
- `status` moves PENDING -> PROCESSING -> COMPLETED | REJECTED. Only the
  first transition happens here; settlement is handled elsewhere.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin
from gigvault.database.models.enums import WithdrawalStatus


class Withdrawal(Base, IdMixin):
    __tablename__ = "withdrawals"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'rejected')",
            name="status_valid",
        ),
        Index("ix_withdrawals_account_status", "account_id", "status"),
    )

    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    wallet_address: Mapped[str] = mapped_column(String(80), nullable=False)

    tx_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        doc="Identifier of the on-chain transaction backing the request",
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=WithdrawalStatus.PENDING.value,
        server_default=WithdrawalStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Withdrawal(id={self.id}, account_id={self.account_id}, "
            f"amount={self.amount}, status={self.status!r})>"
        )
