"""
Spin Wheel Service
==================

Purpose
-------
The prize wheel: a paid spin costs `spin.cost` and pays out one weighted
segment; a bonus spin (banked by check-in streaks) costs nothing; a free
spin granted after an ad credits a flat amount once per ad delivery.

Domain
------
- spin(): cost debit, prize credit and the history row in one unit
- free_spin(): idempotent flat credit keyed by the ad delivery id
- spin_info(): balance, price, unspent bonus spins, recent history, wheel

Design Notes
------------
- The account row is locked first, which serializes spins per account and
  makes the `bonus_spins` decrement safe.
- The cost is debited before the prize is credited, each through
  `LedgerService.apply_delta()`, so a balance below the price is refused
  even when the roll would have paid more than the price.
- Free spins reuse `RewardService.claim_external_reward()` with source
  `free_spin`, so a replayed delivery is not credited twice.

Events
------
- spin.resolved
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import RewardSource, SpinRecord
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import InsufficientResourcesError, UnauthorizedError
from gigvault.modules.spin.wheel import (
    WheelSegment,
    build_segments,
    default_segments,
    pick_segment,
    total_weight,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService
    from gigvault.modules.rewards.service import RewardService


class SpinService(BaseService):
    """
    Prize wheel resolver.

    Public Methods
    --------------
    - spin() -> {segment_index, reward_type, amount, cost, net, is_bonus, ...}
    - free_spin() -> {granted, reward_amount, balance}
    - spin_info() -> wheel state for the caller
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger: LedgerService,
        rewards: RewardService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._ledger = ledger
        self._rewards = rewards
        self._rng = rng or random.Random()
        self._spins = BaseRepository[SpinRecord](
            model_class=SpinRecord,
            logger=get_logger(f"{__name__}.SpinRecordRepository"),
        )

    # ========================================================================
    # CONFIG
    # ========================================================================

    def _segments(self) -> Sequence[WheelSegment]:
        raw = self.get_config("spin.segments")
        return build_segments(raw) if raw else default_segments()

    def _cost(self) -> int:
        return int(self.get_config("spin.cost", 500))

    def _roll(self, weight: int) -> int:
        """Uniform integer in [0, weight)."""
        return self._rng.randrange(weight)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def spin(self, identity: int, use_bonus_spin: bool = False) -> Dict[str, Any]:
        """
        Spin the wheel once.

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            InsufficientResourcesError: Balance below the price, or no bonus
                spin left when one was requested
        """
        identity = InputValidator.validate_caller(identity, "spin")
        segments = self._segments()
        price = self._cost()

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("spin", "account is banned")

            if use_bonus_spin:
                if account.bonus_spins <= 0:
                    raise InsufficientResourcesError("bonus_spins", required=1, current=0)
                account.bonus_spins -= 1
                cost = 0
            else:
                cost = price
                await self._ledger.apply_delta(session, account.id, -cost, reason="spin:cost")

            segment = pick_segment(segments, self._roll(total_weight(segments)))
            new_balance = await self._ledger.apply_delta(
                session, account.id, segment.amount, reason="spin:prize"
            )
            self._spins.add(
                session,
                SpinRecord(
                    account_id=account.id,
                    reward_type=segment.reward_type,
                    amount=segment.amount,
                    cost=cost,
                    is_bonus=use_bonus_spin,
                ),
            )

            return {
                "segment_index": segment.index,
                "reward_type": segment.reward_type,
                "amount": segment.amount,
                "cost": cost,
                "net": segment.amount - cost,
                "is_bonus": use_bonus_spin,
                "bonus_spins": account.bonus_spins,
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "spin.spin",
            _work,
            context={"account_identity": identity},
        )

        self.log_operation("spin", account_identity=identity, **result)
        await self.emit_event("spin.resolved", {"account_identity": identity, **result})
        return result

    async def free_spin(
        self,
        identity: int,
        record_id: Optional[str],
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Credit the free-spin reward for a watched ad.

        A replayed `record_id` answers `granted=False` with the unchanged
        balance.

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
        """
        identity = InputValidator.validate_caller(identity, "free_spin")
        amount = int(self.get_config("spin.free_spin_reward", 500))

        result = await self._rewards.claim_external_reward(
            record_id,
            identity,
            amount,
            RewardSource.FREE_SPIN.value,
            reward_type="free_spin",
            ip_address=ip_address,
        )
        return {
            "granted": result["granted"],
            "reward_amount": amount if result["granted"] else 0,
            "balance": result["balance"],
        }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def spin_info(self, identity: int) -> Dict[str, Any]:
        """Wheel state for the caller, newest spins first."""
        identity = InputValidator.validate_caller(identity, "spin_info")
        segments = self._segments()
        price = self._cost()
        history_limit = int(self.get_config("spin.history_limit", 10))

        async with DatabaseService.get_session() as session:
            account = await self._ledger.require_account(session, identity)
            recent = await self._spins.find_many_where(
                session,
                SpinRecord.account_id == account.id,
                order_by=[SpinRecord.created_at.desc(), SpinRecord.id.desc()],
                limit=history_limit,
            )

        history: List[Dict[str, Any]] = [
            {
                "reward_type": record.reward_type,
                "amount": record.amount,
                "cost": record.cost,
                "is_bonus": record.is_bonus,
                "created_at": record.created_at,
            }
            for record in recent
        ]
        return {
            "balance": account.balance,
            "spin_cost": price,
            "can_spin": account.balance >= price or account.bonus_spins > 0,
            "bonus_spins": account.bonus_spins,
            "recent_spins": history,
            "segments": [
                {
                    "index": segment.index,
                    "reward_type": segment.reward_type,
                    "amount": segment.amount,
                    "weight": segment.weight,
                }
                for segment in segments
            ],
        }
