"""
Daily Check-In Service
======================

Purpose
-------
Applies the streak rules from `streak_logic` to stored account state: credits
the day's reward, advances or resets the streak, and consumes a Streak Shield
when one bridges a missed day.

Domain
------
- check_in(): one atomic unit (account row locked) that credits the reward,
  sets `last_check_in` and `streak`, banks any bonus spins on the account
  for the wheel, and consumes a shield if used
- check_in_status(): the same rules in dry-run mode, no writes

Design Notes
------------
- Locking the account row serializes concurrent check-ins for one account;
  the loser re-reads `last_check_in` and gets `AlreadyCheckedInTodayError`.
- The reward schedule and timezone come from `checkin.*` configuration.

Events
------
- checkin.completed
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Any, Dict, Optional

from gigvault.core.database.service import DatabaseService
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import ItemBehavior
from gigvault.modules.checkin.streak_logic import (
    RewardSchedule,
    compute_transition,
    resolve_timezone,
)
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    AlreadyCheckedInTodayError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.inventory.service import InventoryService
    from gigvault.modules.ledger.service import LedgerService


class CheckInService(BaseService):
    """
    Daily check-in resolver.

    Public Methods
    --------------
    - check_in() -> {reward, streak, shield_used, bonus_spins,
      bonus_spins_available, new_balance}
    - check_in_status() -> read-only preview of the next check-in
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

    def _schedule(self) -> RewardSchedule:
        return RewardSchedule(
            base_reward=int(self.get_config("checkin.base_reward", 100)),
            increment=int(self.get_config("checkin.increment", 50)),
            cap_day=int(self.get_config("checkin.cap_day", 7)),
            cap_bonus_spins=int(self.get_config("checkin.cap_bonus_spins", 1)),
        )

    def _timezone(self) -> tzinfo:
        return resolve_timezone(self.get_config("checkin.timezone", "UTC"))

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def check_in(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Perform today's check-in.

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            AlreadyCheckedInTodayError: Already checked in on this calendar day
        """
        identity = InputValidator.validate_caller(identity, "check_in")
        now = now or datetime.now(timezone.utc)
        schedule = self._schedule()
        tz = self._timezone()

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity, for_update=True)
            if account.is_banned:
                raise UnauthorizedError("check_in", "account is banned")

            shield_count = await self._inventory.count_by_behavior(
                session, account.id, ItemBehavior.STREAK_PROTECTION
            )
            transition = compute_transition(
                account.last_check_in,
                now,
                account.streak,
                has_shield=shield_count > 0,
                tz=tz,
            )
            if not transition.allowed:
                raise AlreadyCheckedInTodayError(identity, account.streak)

            if transition.shield_used:
                await self._inventory.consume_item(
                    session, account.id, ItemBehavior.STREAK_PROTECTION
                )

            reward = schedule.reward_for(transition.new_streak)
            new_balance = await self._ledger.apply_delta(
                session, account.id, reward, reason="daily_checkin"
            )
            bonus_spins = schedule.bonus_spins_for(transition.new_streak)
            account.streak = transition.new_streak
            account.last_check_in = now
            account.bonus_spins += bonus_spins

            return {
                "reward": reward,
                "streak": transition.new_streak,
                "shield_used": transition.shield_used,
                "bonus_spins": bonus_spins,
                "bonus_spins_available": account.bonus_spins,
                "new_balance": new_balance,
            }

        result = await self.run_atomic(
            "checkin.check_in",
            _work,
            context={"account_identity": identity},
        )

        self.log_operation("check_in", account_identity=identity, **result)
        await self.emit_event("checkin.completed", {"account_identity": identity, **result})
        return result

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def check_in_status(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Preview the next check-in without changing anything."""
        identity = InputValidator.validate_caller(identity, "check_in_status")
        now = now or datetime.now(timezone.utc)
        schedule = self._schedule()
        tz = self._timezone()

        async with DatabaseService.get_session() as session:
            account = await self._ledger.get_account_by_identity(session, identity)
            if account is None:
                return {
                    "can_check_in": True,
                    "current_streak": 0,
                    "next_reward": schedule.reward_for(1),
                    "next_bonus_spins": schedule.bonus_spins_for(1),
                    "has_shield": False,
                    "shield_count": 0,
                    "will_reset": False,
                    "last_check_in": None,
                }

            shield_count = await self._inventory.count_by_behavior(
                session, account.id, ItemBehavior.STREAK_PROTECTION
            )

        transition = compute_transition(
            account.last_check_in,
            now,
            account.streak,
            has_shield=shield_count > 0,
            tz=tz,
        )

        if transition.allowed:
            next_day = transition.new_streak
            current_streak = 0 if transition.will_reset else account.streak
        else:
            next_day = account.streak + 1
            current_streak = account.streak

        return {
            "can_check_in": transition.allowed,
            "current_streak": current_streak,
            "next_reward": schedule.reward_for(next_day),
            "next_bonus_spins": schedule.bonus_spins_for(next_day),
            "has_shield": shield_count > 0,
            "shield_count": shield_count,
            "will_reset": transition.will_reset,
            "last_check_in": (
                account.last_check_in.isoformat() if account.last_check_in else None
            ),
        }
