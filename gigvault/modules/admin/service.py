"""
Admin Action Service
====================

Purpose
-------
Privileged account operations, gated on the caller's `admin` role.

Domain
------
- gift: direct credit of a positive amount (through the ledger)
- ban / unban: toggle `is_banned`; admins cannot be banned
- set_role: `user` or `admin`
- grant_item: add item units through the inventory grant path

Design Notes
------------
- Caller and target rows are locked together in canonical order, so a
  concurrent demotion of the caller cannot interleave with the action.
- Admin credits use `LedgerService.apply_delta` like every other credit; the
  non-negative and audit invariants are never bypassed.

Events
------
- admin.action_executed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from gigvault.core.database.service import DatabaseService
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import AccountRole, AdminAction
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.database.models import Account
    from gigvault.modules.inventory.service import InventoryService
    from gigvault.modules.ledger.service import LedgerService


class AdminService(BaseService):
    """
    Admin action executor.

    Public Methods
    --------------
    - execute() -> action result
    - is_admin() -> role check for the caller
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger: LedgerService,
        inventory: InventoryService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._ledger = ledger
        self._inventory = inventory

    async def is_admin(self, identity: int) -> bool:
        identity = InputValidator.validate_identity(identity)

        async with DatabaseService.get_session() as session:
            account = await self._ledger.get_account_by_identity(session, identity)
            return account is not None and account.is_admin

    async def execute(
        self,
        caller_identity: int,
        action: str,
        target_identity: int,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run one admin action against a target account.

        Raises:
            UnauthorizedError: Caller is unknown or not an admin
            NotFoundError: Unknown target (or item, for grant_item)
            ValidationError: Bad action or parameters
            InvalidOperationError: Banning an admin
        """
        caller_identity = InputValidator.validate_caller(caller_identity, "admin_action")
        target_identity = InputValidator.validate_identity(target_identity, "target_identity")
        action = AdminAction(
            InputValidator.validate_choice(action, "action", [a.value for a in AdminAction])
        )
        params = dict(params or {})

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            locked = await self._ledger.lock_accounts(
                session, [caller_identity, target_identity]
            )
            caller = locked.get(caller_identity)
            if caller is None or not caller.is_admin:
                raise UnauthorizedError(action.value, "admin role required")

            target = locked.get(target_identity)
            if target is None:
                raise NotFoundError("Account", target_identity)

            return await self._dispatch(session, action, target, params)

        result = await self.run_atomic(
            f"admin.{action.value}",
            _work,
            context={
                "account_identity": caller_identity,
                "target_identity": target_identity,
            },
        )

        self.log.warning(
            f"Admin action executed: {action.value}",
            extra={
                "caller_identity": caller_identity,
                "target_identity": target_identity,
                "admin_action": action.value,
                "params": params,
            },
        )
        await self.emit_event(
            "admin.action_executed",
            {
                "caller_identity": caller_identity,
                "target_identity": target_identity,
                **result,
            },
        )
        return result

    async def _dispatch(
        self,
        session: AsyncSession,
        action: AdminAction,
        target: Account,
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {"action": action.value}

        if action is AdminAction.GIFT:
            max_gift = int(self.get_config("admin.max_gift_amount", 100_000_000))
            amount = InputValidator.validate_positive_integer(
                params.get("amount"), "amount", max_value=max_gift
            )
            result["amount"] = amount
            result["new_balance"] = await self._ledger.apply_delta(
                session, target.id, amount, reason="admin:gift"
            )

        elif action is AdminAction.BAN:
            if target.is_admin:
                raise InvalidOperationError("ban", "Cannot ban an admin user")
            target.is_banned = True
            result["is_banned"] = True

        elif action is AdminAction.UNBAN:
            target.is_banned = False
            result["is_banned"] = False

        elif action is AdminAction.SET_ROLE:
            role = InputValidator.validate_choice(
                params.get("role"), "role", [r.value for r in AccountRole]
            )
            target.role = role
            result["role"] = role

        elif action is AdminAction.GRANT_ITEM:
            quantity = InputValidator.validate_positive_integer(
                params.get("quantity", 1), "quantity", max_value=1_000_000
            )
            if params.get("item_id") is not None:
                item = await self._inventory.get_item(
                    session,
                    InputValidator.validate_positive_integer(params["item_id"], "item_id"),
                )
            elif params.get("item_name"):
                item = await self._inventory.get_item_by_name(session, str(params["item_name"]))
            else:
                raise ValidationError("item_name", "item_name or item_id is required")

            result["item"] = item.name
            result["quantity"] = await self._inventory.grant_item(
                session, target.id, item.id, quantity
            )

        return result
