"""
BattleLog: append-only record of resolved heists.

Also the source of truth for revenge eligibility: a revenge against X is
allowed only if X has a `win` or `shielded` entry against the caller.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin


class BattleLog(Base, IdMixin):
    __tablename__ = "battle_logs"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        Index("ix_battle_logs_attacker_defender", "attacker_id", "defender_id"),
    )

    attacker_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    defender_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    outcome: Mapped[str] = mapped_column(String(16), nullable=False)

    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Amount stolen on win; fine paid by the attacker otherwise",
    )

    is_revenge: Mapped[bool] = mapped_column(nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
