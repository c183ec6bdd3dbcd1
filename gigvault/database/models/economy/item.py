"""
Item catalog and per-account inventory.

- `ItemDefinition`: what an item is (behavior, kind, price).
- `InventoryEntry`: how many units an account holds. Unique per
  (account, item); quantity is decremented only through a conditional
  `UPDATE ... WHERE quantity > 0`.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin, TimestampMixin
from gigvault.database.models.enums import ItemKind


class ItemDefinition(Base, IdMixin, TimestampMixin):
    __tablename__ = "item_definitions"
    __table_args__ = (
        CheckConstraint("price >= 0", name="price_non_negative"),
        CheckConstraint("reward_amount >= 0", name="reward_amount_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    behavior: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    kind: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ItemKind.CONSUMABLE.value,
    )

    price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    reward_amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Credit granted when a reward_grant item is used",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )

    @property
    def is_permanent(self) -> bool:
        return self.kind == ItemKind.PERMANENT.value

    def __repr__(self) -> str:
        return f"<ItemDefinition(id={self.id}, name={self.name!r}, behavior={self.behavior})>"


class InventoryEntry(Base, IdMixin, TimestampMixin):
    __tablename__ = "inventory_entries"
    __table_args__ = (
        UniqueConstraint("account_id", "item_id", name="uq_inventory_account_item"),
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
    )

    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("item_definitions.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<InventoryEntry(account_id={self.account_id}, "
            f"item_id={self.item_id}, quantity={self.quantity})>"
        )
