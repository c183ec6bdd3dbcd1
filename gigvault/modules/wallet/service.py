"""
Wallet Service
==============

Purpose
-------
Accepts withdrawal requests: $GIG leaves the balance now and a PENDING
withdrawal row records where it should be paid out. Paying out (and moving
rows past PENDING) is settlement's job, not this service's.

Domain
------
- request_withdrawal(): bounds, address format, pending limit, debit and
  PENDING row in one unit
- list_withdrawals(): recent requests and completed totals

Design Notes
------------
- The account row is locked before the open requests are counted, so two
  concurrent requests from one account cannot both slip under
  `wallet.max_pending`.
- The debit is `LedgerService.apply_delta()`; the row insert is
  `ON CONFLICT (tx_hash) DO NOTHING RETURNING id`. A reused transaction hash,
  even from another account, rolls the debit back with it.
- Wallet addresses are TON addresses: user-friendly (`EQ` / `UQ` prefix),
  raw (`0:` prefix) or a bare 48-character base64url string.

Events
------
- wallet.withdrawal_requested
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import Withdrawal, WithdrawalStatus
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    DuplicateWithdrawalError,
    InvalidOperationError,
    UnauthorizedError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService

TON_ADDRESS_PATTERNS = (
    re.compile(r"^(EQ|UQ|0:)[a-zA-Z0-9_-]{46,48}$"),
    re.compile(r"^[a-zA-Z0-9_-]{48}$"),
)


def is_ton_address(value: str) -> bool:
    return any(pattern.match(value) for pattern in TON_ADDRESS_PATTERNS)


class WalletService(BaseService):
    """
    Withdrawal request resolver.

    Public Methods
    --------------
    - request_withdrawal() -> {withdrawal, new_balance}
    - list_withdrawals() -> {balance, withdrawals, stats, limits}
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
        self._withdrawals = BaseRepository[Withdrawal](
            model_class=Withdrawal,
            logger=get_logger(f"{__name__}.WithdrawalRepository"),
        )

    def _limits(self) -> Dict[str, int]:
        return {
            "min_withdrawal": int(self.get_config("wallet.min_withdrawal", 100_000)),
            "max_withdrawal": int(self.get_config("wallet.max_withdrawal", 10_000_000)),
        }

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def request_withdrawal(
        self,
        identity: int,
        amount: int,
        wallet_address: str,
        tx_hash: str,
    ) -> Dict[str, Any]:
        """
        Debit `amount` and file a PENDING withdrawal to `wallet_address`.

        Raises:
            ValidationError: Amount out of bounds, malformed address or hash
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            InvalidOperationError: Too many requests still open
            InsufficientResourcesError: Balance below the amount
            DuplicateWithdrawalError: `tx_hash` already backs a request
        """
        identity = InputValidator.validate_caller(identity, "request_withdrawal")
        limits = self._limits()
        amount = InputValidator.validate_integer(
            amount,
            "amount",
            min_value=limits["min_withdrawal"],
            max_value=limits["max_withdrawal"],
        )
        wallet_address = InputValidator.validate_string(
            wallet_address, "wallet_address", min_length=1, max_length=80
        )
        if not is_ton_address(wallet_address):
            raise ValidationError("wallet_address", "Invalid TON wallet address format")
        tx_hash = InputValidator.validate_string(tx_hash, "tx_hash", min_length=1, max_length=128)
        max_pending = int(self.get_config("wallet.max_pending", 3))

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("request_withdrawal", "account is banned")

            open_requests = await self._withdrawals.count(
                session,
                Withdrawal.account_id == account.id,
                Withdrawal.status.in_(WithdrawalStatus.open_statuses()),
            )
            if open_requests >= max_pending:
                raise InvalidOperationError(
                    "request_withdrawal",
                    f"{open_requests} withdrawals are still pending",
                )

            new_balance = await self._ledger.apply_delta(
                session, account.id, -amount, reason="withdrawal"
            )

            stmt = (
                insert(Withdrawal)
                .values(
                    account_id=account.id,
                    amount=amount,
                    wallet_address=wallet_address,
                    tx_hash=tx_hash,
                    status=WithdrawalStatus.PENDING.value,
                )
                .on_conflict_do_nothing(index_elements=["tx_hash"])
                .returning(Withdrawal.id, Withdrawal.created_at)
            )
            row = (await session.execute(stmt)).one_or_none()
            if row is None:
                raise DuplicateWithdrawalError(tx_hash)

            return {
                "withdrawal": {
                    "id": row.id,
                    "amount": amount,
                    "wallet_address": wallet_address,
                    "status": WithdrawalStatus.PENDING.value,
                    "created_at": row.created_at,
                },
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "wallet.request_withdrawal",
            _work,
            context={"account_identity": identity},
        )

        self.log_operation(
            "request_withdrawal",
            account_identity=identity,
            withdrawal_id=result["withdrawal"]["id"],
            amount=amount,
            new_balance=result["new_balance"],
        )
        await self.emit_event(
            "wallet.withdrawal_requested",
            {
                "account_identity": identity,
                "withdrawal_id": result["withdrawal"]["id"],
                "amount": amount,
                "wallet_address": wallet_address,
                "new_balance": result["new_balance"],
            },
        )
        return result

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def list_withdrawals(self, identity: int) -> Dict[str, Any]:
        """Most recent requests first, plus totals of completed payouts."""
        identity = InputValidator.validate_caller(identity, "list_withdrawals")
        history_limit = int(self.get_config("wallet.history_limit", 20))

        async with DatabaseService.get_session() as session:
            account = await self._ledger.require_account(session, identity)
            recent = await self._withdrawals.find_many_where(
                session,
                Withdrawal.account_id == account.id,
                order_by=[Withdrawal.created_at.desc(), Withdrawal.id.desc()],
                limit=history_limit,
            )
            totals = (
                await session.execute(
                    select(
                        func.coalesce(func.sum(Withdrawal.amount), 0),
                        func.count(Withdrawal.id),
                    ).where(
                        Withdrawal.account_id == account.id,
                        Withdrawal.status == WithdrawalStatus.COMPLETED.value,
                    )
                )
            ).one()

        return {
            "balance": account.balance,
            "withdrawals": [
                {
                    "id": withdrawal.id,
                    "amount": withdrawal.amount,
                    "wallet_address": withdrawal.wallet_address,
                    "status": withdrawal.status,
                    "tx_hash": withdrawal.tx_hash,
                    "created_at": withdrawal.created_at,
                    "processed_at": withdrawal.processed_at,
                }
                for withdrawal in recent
            ],
            "stats": {"total_withdrawn": int(totals[0]), "completed_count": int(totals[1])},
            **self._limits(),
        }
