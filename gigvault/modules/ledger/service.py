"""
Ledger Service
==============

Purpose
-------
The single write path for $GIG balances. Every credit and debit in the
engine is an `apply_delta()` call executed inside the caller's transaction.

Domain
------
- Atomic balance deltas with a non-negative guarantee
- Canonical-order row locking for multi-account units
- Account lookup by caller identity

Design Notes
------------
- `apply_delta()` is one statement:
  `UPDATE accounts SET balance = balance + :delta
   WHERE id = :id AND balance + :delta >= 0 RETURNING balance`.
  No row back means the debit would overdraw (or the account is gone); the
  caller's unit is aborted with a domain exception and rolls back whole.
- Balances are never read-modified-written in Python.
- `lock_accounts()` issues one `SELECT ... ORDER BY identity FOR UPDATE`, so
  two units touching the same pair of accounts always lock them in the same
  order and cannot deadlock each other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import Account
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import InsufficientResourcesError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus


class LedgerService(BaseService):
    """
    Balance mutation and account locking primitives.

    Public Methods
    --------------
    - apply_delta() -> Atomic credit/debit inside a caller's transaction
    - lock_accounts() -> SELECT FOR UPDATE in ascending identity order
    - get_account_by_identity() -> Lookup (optionally locked)
    - get_balance() -> Read-only balance query
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._accounts = BaseRepository[Account](
            model_class=Account,
            logger=get_logger(f"{__name__}.AccountRepository"),
        )

    # ========================================================================
    # WRITE PRIMITIVES (caller owns the transaction)
    # ========================================================================

    async def apply_delta(
        self,
        session: AsyncSession,
        account_id: int,
        delta: int,
        reason: str,
    ) -> int:
        """
        Add `delta` (may be negative) to an account balance.

        Args:
            session: Transactional session from `get_transaction()`
            account_id: Surrogate primary key of the account
            delta: Signed amount
            reason: Short machine-readable cause, for the log line

        Returns:
            The new balance

        Raises:
            InsufficientResourcesError: The result would be negative
            NotFoundError: No such account
        """
        delta = InputValidator.validate_integer(delta, "delta")

        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.balance + delta >= 0)
            .values(balance=Account.balance + delta)
            .returning(Account.balance)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        new_balance = result.scalar_one_or_none()

        if new_balance is None:
            current = await session.scalar(
                select(Account.balance).where(Account.id == account_id)
            )
            if current is None:
                raise NotFoundError("Account", account_id)
            self.log.info(
                "Ledger delta rejected: insufficient balance",
                extra={
                    "account_id": account_id,
                    "delta": delta,
                    "balance": current,
                    "reason": reason,
                },
            )
            raise InsufficientResourcesError("balance", required=-delta, current=current)

        # Keep an already-loaded Account in step with the row.
        loaded = session.identity_map.get(identity_key(Account, account_id))
        if loaded is not None:
            set_committed_value(loaded, "balance", new_balance)

        self.log.info(
            "Ledger delta applied",
            extra={
                "account_id": account_id,
                "delta": delta,
                "new_balance": new_balance,
                "reason": reason,
            },
        )

        return new_balance

    async def lock_accounts(
        self,
        session: AsyncSession,
        identities: Iterable[int],
    ) -> Dict[int, Account]:
        """
        Lock the given accounts for the rest of the transaction.

        Rows are locked in ascending identity order regardless of argument
        order. Unknown identities are simply absent from the result.
        """
        ordered = sorted(set(identities))
        if not ordered:
            return {}

        accounts = await self._accounts.find_many_where(
            session,
            Account.identity.in_(ordered),
            order_by=[Account.identity],
            for_update=True,
        )
        return {account.identity: account for account in accounts}

    async def get_account_by_identity(
        self,
        session: AsyncSession,
        identity: int,
        for_update: bool = False,
    ) -> Optional[Account]:
        return await self._accounts.find_one_where(
            session,
            Account.identity == identity,
            for_update=for_update,
        )

    async def require_account(
        self,
        session: AsyncSession,
        identity: int,
        for_update: bool = False,
    ) -> Account:
        """Like `get_account_by_identity()` but raises NotFoundError."""
        account = await self.get_account_by_identity(session, identity, for_update)
        if account is None:
            raise NotFoundError("Account", identity)
        return account

    # ========================================================================
    # READS
    # ========================================================================

    async def get_balance(self, identity: int) -> int:
        identity = InputValidator.validate_identity(identity)

        async with DatabaseService.get_session() as session:
            account = await self.require_account(session, identity)
            return account.balance
