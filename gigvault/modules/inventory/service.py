"""
Inventory Service
=================

Purpose
-------
Owns item quantities: granting, consuming, purchasing and manual use, plus
seeding the item catalog from `gigvault/config/catalog.yaml`.

Domain
------
- Grants are upserts: `INSERT ... ON CONFLICT (account_id, item_id)
  DO UPDATE SET quantity = quantity + excluded.quantity`
- Consumption is one conditional `UPDATE ... SET quantity = quantity - 1
  WHERE quantity > 0 RETURNING`; no row back means nothing to consume
- Purchases debit through the ledger and grant in the same unit
- Only `reward_grant` consumables are manually usable; everything else is
  consumed implicitly by the resolver that needs it (check-in, PvP)

Events
------
- item.purchased
- item.used
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import (
    InventoryEntry,
    ItemBehavior,
    ItemDefinition,
    ItemKind,
)
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    InsufficientResourcesError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


@dataclass(frozen=True)
class ConsumedItem:
    """Result of a successful single-unit consumption."""

    item_id: int
    remaining: int


class InventoryService(BaseService):
    """
    Item catalog and per-account inventory.

    Public Methods
    --------------
    - grant_item() / consume_item() / consume_item_by_id() -> in-transaction primitives
    - count_by_behavior() -> in-transaction read
    - get_inventory() -> Read-only listing
    - purchase_item() / use_item() -> Atomic caller operations
    - seed_catalog() -> Load catalog.yaml into item_definitions
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger: LedgerService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._ledger = ledger
        self._items = BaseRepository[ItemDefinition](
            model_class=ItemDefinition,
            logger=get_logger(f"{__name__}.ItemDefinitionRepository"),
        )

    # ========================================================================
    # IN-TRANSACTION PRIMITIVES
    # ========================================================================

    async def get_item(self, session: AsyncSession, item_id: int) -> ItemDefinition:
        item = await self._items.get(session, item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    async def get_item_by_name(self, session: AsyncSession, name: str) -> ItemDefinition:
        item = await self._items.find_one_where(session, ItemDefinition.name == name)
        if item is None:
            raise NotFoundError("Item", name)
        return item

    async def grant_item(
        self,
        session: AsyncSession,
        account_id: int,
        item_id: int,
        quantity: int = 1,
    ) -> int:
        """Add `quantity` units; returns the new quantity held."""
        quantity = InputValidator.validate_positive_integer(quantity, "quantity")

        stmt = insert(InventoryEntry).values(
            account_id=account_id,
            item_id=item_id,
            quantity=quantity,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "item_id"],
            set_={
                "quantity": InventoryEntry.quantity + stmt.excluded.quantity,
                "updated_at": func.now(),
            },
        ).returning(InventoryEntry.quantity)

        new_quantity = (await session.execute(stmt)).scalar_one()

        self.log.info(
            "Item granted",
            extra={
                "account_id": account_id,
                "item_id": item_id,
                "quantity": quantity,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity

    async def consume_item(
        self,
        session: AsyncSession,
        account_id: int,
        behavior: ItemBehavior,
    ) -> ConsumedItem:
        """
        Consume one unit of any held item with the given behavior.

        Raises:
            InsufficientResourcesError: No unit of that behavior is held
        """
        behavior = ItemBehavior(behavior)
        candidate = (
            select(InventoryEntry.id)
            .join(ItemDefinition, ItemDefinition.id == InventoryEntry.item_id)
            .where(
                InventoryEntry.account_id == account_id,
                InventoryEntry.quantity > 0,
                ItemDefinition.behavior == behavior.value,
            )
            .order_by(InventoryEntry.id)
            .limit(1)
            .scalar_subquery()
        )
        consumed = await self._decrement(session, InventoryEntry.id == candidate)
        if consumed is None:
            raise InsufficientResourcesError(behavior.value.replace("_", " "), 1, 0)

        self.log.info(
            "Item consumed",
            extra={
                "account_id": account_id,
                "behavior": behavior.value,
                "item_id": consumed.item_id,
                "remaining": consumed.remaining,
            },
        )
        return consumed

    async def consume_item_by_id(
        self,
        session: AsyncSession,
        account_id: int,
        item: ItemDefinition,
    ) -> ConsumedItem:
        consumed = await self._decrement(
            session,
            InventoryEntry.account_id == account_id,
            InventoryEntry.item_id == item.id,
        )
        if consumed is None:
            raise InsufficientResourcesError(item.name, 1, 0)
        return consumed

    async def _decrement(
        self, session: AsyncSession, *conditions: Any
    ) -> Optional[ConsumedItem]:
        stmt = (
            update(InventoryEntry)
            .where(*conditions, InventoryEntry.quantity > 0)
            .values(quantity=InventoryEntry.quantity - 1, updated_at=func.now())
            .returning(InventoryEntry.item_id, InventoryEntry.quantity)
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return ConsumedItem(item_id=row.item_id, remaining=row.quantity)

    async def count_by_behavior(
        self,
        session: AsyncSession,
        account_id: int,
        behavior: ItemBehavior,
    ) -> int:
        stmt = (
            select(func.coalesce(func.sum(InventoryEntry.quantity), 0))
            .join(ItemDefinition, ItemDefinition.id == InventoryEntry.item_id)
            .where(
                InventoryEntry.account_id == account_id,
                ItemDefinition.behavior == ItemBehavior(behavior).value,
            )
        )
        return int(await session.scalar(stmt) or 0)

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_inventory(self, identity: int) -> List[Dict[str, Any]]:
        """Held items (quantity > 0) for an account, ordered by item name."""
        identity = InputValidator.validate_caller(identity, "get_inventory")

        async with DatabaseService.get_session() as session:
            account = await self._ledger.require_account(session, identity)
            stmt = (
                select(ItemDefinition, InventoryEntry.quantity)
                .join(InventoryEntry, InventoryEntry.item_id == ItemDefinition.id)
                .where(
                    InventoryEntry.account_id == account.id,
                    InventoryEntry.quantity > 0,
                )
                .order_by(ItemDefinition.name)
            )
            rows = (await session.execute(stmt)).all()

        return [
            {
                "item_id": item.id,
                "name": item.name,
                "description": item.description,
                "behavior": item.behavior,
                "kind": item.kind,
                "quantity": quantity,
            }
            for item, quantity in rows
        ]

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def purchase_item(self, identity: int, item_id: int) -> Dict[str, Any]:
        """
        Buy one unit of an item for its catalog price.

        Raises:
            NotFoundError: Unknown account or item, or item not on sale
            UnauthorizedError: Account is banned
            InvalidOperationError: Permanent item already owned
            InsufficientResourcesError: Balance below price
        """
        identity = InputValidator.validate_caller(identity, "purchase_item")
        item_id = InputValidator.validate_positive_integer(item_id, "item_id")

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("purchase_item", "account is banned")

            item = await self.get_item(session, item_id)
            if not item.is_active:
                raise NotFoundError("Item", item_id)

            if item.is_permanent:
                owned = await session.scalar(
                    select(InventoryEntry.quantity).where(
                        InventoryEntry.account_id == account.id,
                        InventoryEntry.item_id == item.id,
                    )
                )
                if owned:
                    raise InvalidOperationError(
                        "purchase_item", f"{item.name} is already owned"
                    )

            new_balance = await self._ledger.apply_delta(
                session, account.id, -item.price, reason=f"purchase:{item.name}"
            )
            quantity = await self.grant_item(session, account.id, item.id, 1)
            return {
                "item_id": item.id,
                "item": item.name,
                "price": item.price,
                "quantity": quantity,
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "inventory.purchase",
            _work,
            context={"account_identity": identity, "item_id": item_id},
        )

        self.log_operation("purchase_item", account_identity=identity, **result)
        await self.emit_event("item.purchased", {"account_identity": identity, **result})
        return result

    async def use_item(self, identity: int, item_id: int) -> Dict[str, Any]:
        """
        Use one unit of a `reward_grant` consumable: consume it and credit
        its `reward_amount` in the same unit.

        Raises:
            InvalidOperationError: Item is passive or otherwise not usable
            InsufficientResourcesError: None held
        """
        identity = InputValidator.validate_caller(identity, "use_item")
        item_id = InputValidator.validate_positive_integer(item_id, "item_id")

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity)
            if account.is_banned:
                raise UnauthorizedError("use_item", "account is banned")

            item = await self.get_item(session, item_id)
            if (
                item.behavior != ItemBehavior.REWARD_GRANT.value
                or item.kind != ItemKind.CONSUMABLE.value
            ):
                raise InvalidOperationError(
                    "use_item", f"{item.name} works passively and cannot be used"
                )

            consumed = await self.consume_item_by_id(session, account.id, item)
            new_balance = await self._ledger.apply_delta(
                session, account.id, item.reward_amount, reason=f"use:{item.name}"
            )
            return {
                "item_id": item.id,
                "item": item.name,
                "reward": item.reward_amount,
                "remaining": consumed.remaining,
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "inventory.use",
            _work,
            context={"account_identity": identity, "item_id": item_id},
        )

        self.log_operation("use_item", account_identity=identity, **result)
        await self.emit_event("item.used", {"account_identity": identity, **result})
        return result

    async def seed_catalog(self) -> int:
        """
        Insert catalog items missing from `item_definitions`.

        Existing rows (matched by name) are left untouched. Returns the
        number of rows inserted.
        """
        entries = self.get_config("catalog.items", default=[]) or []

        async def _work(session: AsyncSession) -> int:
            inserted = 0
            for entry in entries:
                stmt = (
                    insert(ItemDefinition)
                    .values(
                        name=entry["name"],
                        description=entry.get("description"),
                        behavior=ItemBehavior(entry["behavior"]).value,
                        kind=ItemKind(entry.get("kind", ItemKind.CONSUMABLE.value)).value,
                        price=int(entry.get("price", 0)),
                        reward_amount=int(entry.get("reward_amount", 0)),
                        is_active=bool(entry.get("is_active", True)),
                    )
                    .on_conflict_do_nothing(index_elements=["name"])
                    .returning(ItemDefinition.id)
                )
                if (await session.execute(stmt)).scalar_one_or_none() is not None:
                    inserted += 1
            return inserted

        inserted = await self.run_atomic("inventory.seed_catalog", _work)
        self.log.info(
            "Item catalog seeded",
            extra={"configured": len(entries), "inserted": inserted},
        )
        return inserted


__all__ = ["ConsumedItem", "InventoryService"]
