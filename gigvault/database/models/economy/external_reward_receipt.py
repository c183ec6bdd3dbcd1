"""
ExternalRewardReceipt Model - Idempotency Guard for External Credits
=====================================================================

Purpose
-------
Ad networks and other callback-driven sources deliver at-least-once. Each
delivery carries a record identifier; this table remembers which ones have
been credited.

Schema Design
-------------
- `record_id` is UNIQUE: the receipt insert uses
  `INSERT ... ON CONFLICT (record_id) DO NOTHING RETURNING id`, so exactly one
  of any number of concurrent deliveries wins.
- The receipt insert and the balance credit share one transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin


class ExternalRewardReceipt(Base, IdMixin):
    __tablename__ = "external_reward_receipts"

    record_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        doc="Delivery identifier supplied by the external source",
    )

    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    source: Mapped[str] = mapped_column(String(32), nullable=False)

    reward_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<ExternalRewardReceipt(record_id={self.record_id!r}, "
            f"account_id={self.account_id}, amount={self.amount})>"
        )
