"""
Farming Service
===============

Purpose
-------
Idle $GIG accrual: an account starts a farming session, lets it run for up
to `farming.max_minutes`, then claims what it earned.

Domain
------
- start_farming(): stamps `farming_started_at`
- claim_farming(): credits the accrued earnings and clears the session
- farming_status(): read-only progress of the running session

Design Notes
------------
- Both writes lock the account row first. The claim credits through
  `LedgerService.apply_delta()` and clears `farming_started_at` in that same
  unit, so of two concurrent claims the second one finds no session and is
  refused; a session is paid out once.
- Accrual is `farming_logic.farming_progress()`; the rate is per account
  (`Account.farming_rate`), the cap comes from configuration.

Events
------
- farming.claimed
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

from gigvault.core.database.service import DatabaseService
from gigvault.core.validation.input_validator import InputValidator
from gigvault.modules.farming.farming_logic import farming_progress, max_earnings
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import InvalidOperationError, UnauthorizedError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


class FarmingService(BaseService):
    """
    Farming session resolver.

    Public Methods
    --------------
    - start_farming() -> {farming_started_at, farming_rate, max_earnings}
    - claim_farming() -> {claimed_amount, elapsed_minutes, new_balance}
    - farming_status() -> progress snapshot
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

    def _max_minutes(self) -> int:
        return int(self.get_config("farming.max_minutes", 480))

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def start_farming(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Start a farming session.

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            InvalidOperationError: A session is already running
        """
        identity = InputValidator.validate_caller(identity, "start_farming")
        now = now or datetime.now(timezone.utc)
        max_minutes = self._max_minutes()

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("start_farming", "account is banned")
            if account.farming_started_at is not None:
                raise InvalidOperationError("start_farming", "already farming")

            account.farming_started_at = now
            return {
                "farming_started_at": now,
                "farming_rate": float(account.farming_rate),
                "max_earnings": max_earnings(account.farming_rate, max_minutes),
            }

        result = await self.run_atomic(
            "farming.start",
            _work,
            context={"account_identity": identity},
        )

        self.log_operation("start_farming", account_identity=identity)
        return result

    async def claim_farming(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Claim the running session's earnings and end it.

        Earnings stop growing at the cap, so claiming late loses nothing
        already earned but gains nothing either.

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            InvalidOperationError: No session is running
        """
        identity = InputValidator.validate_caller(identity, "claim_farming")
        now = now or datetime.now(timezone.utc)
        max_minutes = self._max_minutes()

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("claim_farming", "account is banned")
            if account.farming_started_at is None:
                raise InvalidOperationError("claim_farming", "not currently farming")

            progress = farming_progress(
                account.farming_started_at, now, account.farming_rate, max_minutes
            )
            new_balance = await self._ledger.apply_delta(
                session, account.id, progress.earnings, reason="farming"
            )
            account.farming_started_at = None

            return {
                "claimed_amount": progress.earnings,
                "elapsed_minutes": progress.elapsed_minutes,
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "farming.claim",
            _work,
            context={"account_identity": identity},
        )

        self.log_operation("claim_farming", account_identity=identity, **result)
        await self.emit_event("farming.claimed", {"account_identity": identity, **result})
        return result

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def farming_status(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Progress of the caller's session. An account that does not exist yet
        gets the idle defaults so a client can render before first contact.
        """
        identity = InputValidator.validate_caller(identity, "farming_status")
        now = now or datetime.now(timezone.utc)
        max_minutes = self._max_minutes()

        async with DatabaseService.get_session() as session:
            account = await self._ledger.get_account_by_identity(session, identity)

        if account is None:
            rate = Decimal(str(self.get_config("farming.default_rate", 0.5)))
            started_at = None
            balance = 0
        else:
            rate = account.farming_rate
            started_at = account.farming_started_at
            balance = account.balance

        progress = farming_progress(started_at, now, rate, max_minutes)
        return {
            "is_farming": started_at is not None,
            "farming_started_at": started_at,
            "farming_rate": float(rate),
            "elapsed_minutes": progress.elapsed_minutes,
            "current_earnings": progress.earnings,
            "max_earnings": progress.max_earnings,
            "is_full": progress.is_full,
            "balance": balance,
        }
