"""
SpinRecord: one row per resolved wheel spin.

Written in the same unit as the balance change it describes, so the history
never shows a spin whose cost or prize did not land.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin


class SpinRecord(Base, IdMixin):
    __tablename__ = "spin_history"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        CheckConstraint("cost >= 0", name="cost_non_negative"),
        Index("ix_spin_history_account_created", "account_id", "created_at"),
    )

    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    cost: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Price paid; 0 when a bonus spin was spent instead",
    )

    is_bonus: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<SpinRecord(account_id={self.account_id}, "
            f"reward_type={self.reward_type!r}, amount={self.amount})>"
        )
