"""
PvP Service - Cyber Heists
==========================

Purpose
-------
Target search and heist resolution between two accounts.

Domain
------
- find_target(): random eligible target, presented through the concealment
  rules; optionally spends a detection item to see through a fake balance
- attack(): resolves a heist (win / lose / shielded) and moves $GIG between
  the two accounts in one unit
- pvp_leaderboard(): top heisters by wins, then total stolen

Design Notes
------------
- Eligible targets: `balance >= pvp.min_target_balance`, not banned, not the
  attacker. Selection is uniform over that population: count it, draw
  one offset in `[0, population)` and read the single row there in id order.
- A detection item is consumed only when the chosen target is actually
  concealed.
- attack() locks both rows in ascending identity order through
  `LedgerService.lock_accounts()`; cooldown, revenge eligibility, shield and
  balances are all evaluated under those locks.
- Fines are capped at the attacker's balance so no heist leaves anyone
  negative.

Events
------
- pvp.heist_resolved
"""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import and_, or_

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import Account, BattleLog, BattleOutcome, ItemBehavior
from gigvault.modules.pvp.concealment_logic import (
    ConcealmentSettings,
    TargetView,
    build_target_view,
    display_name,
    format_balance,
    ranked,
)
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    CooldownActiveError,
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
    from gigvault.modules.inventory.service import InventoryService
    from gigvault.modules.ledger.service import LedgerService


@dataclass(frozen=True)
class HeistRules:
    cooldown_seconds: int
    steal_pct: float
    win_threshold: int


@dataclass(frozen=True)
class HeistResult:
    outcome: str
    amount: int
    attacker_balance: int
    defender_name: str
    is_revenge: bool
    roll: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PvPService(BaseService):
    """
    PvP engagement resolver.

    Public Methods
    --------------
    - find_target() -> TargetView
    - attack() -> HeistResult
    - pvp_leaderboard() -> ranked heisters
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger: LedgerService,
        inventory: InventoryService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._ledger = ledger
        self._inventory = inventory
        self._rng = rng or random.Random()
        self._accounts = BaseRepository[Account](
            model_class=Account,
            logger=get_logger(f"{__name__}.AccountRepository"),
        )
        self._battles = BaseRepository[BattleLog](
            model_class=BattleLog,
            logger=get_logger(f"{__name__}.BattleLogRepository"),
        )

    # ========================================================================
    # CONFIG
    # ========================================================================

    def _concealment_settings(self) -> ConcealmentSettings:
        return ConcealmentSettings.from_mapping(self.get_config("pvp", {}) or {})

    def _rules(self, revenge: bool) -> HeistRules:
        if revenge:
            return HeistRules(
                cooldown_seconds=int(self.get_config("pvp.revenge.cooldown_seconds", 1800)),
                steal_pct=float(self.get_config("pvp.revenge.steal_pct", 0.08)),
                win_threshold=int(self.get_config("pvp.revenge.win_threshold", 45)),
            )
        return HeistRules(
            cooldown_seconds=int(self.get_config("pvp.attack.cooldown_seconds", 3600)),
            steal_pct=float(self.get_config("pvp.attack.steal_pct", 0.05)),
            win_threshold=int(self.get_config("pvp.attack.win_threshold", 50)),
        )

    def _roll(self) -> int:
        """Uniform integer in [0, 100]."""
        return self._rng.randint(0, 100)

    @staticmethod
    def _steal_amount(balance: int, steal_pct: float) -> int:
        amount = Decimal(balance) * Decimal(str(steal_pct))
        return int(amount.to_integral_value(rounding=ROUND_FLOOR))

    # ========================================================================
    # PUBLIC API - Target Search
    # ========================================================================

    async def find_target(
        self, attacker_identity: int, use_detection_item: bool = False
    ) -> TargetView:
        """
        Pick a random eligible target.

        Raises:
            NotFoundError: Unknown attacker, or nobody is eligible
            UnauthorizedError: Attacker is banned
            InsufficientResourcesError: Detection requested on a concealed
                target but the attacker holds none
        """
        attacker_identity = InputValidator.validate_caller(attacker_identity, "find_target")
        min_balance = int(self.get_config("pvp.min_target_balance", 1000))
        settings = self._concealment_settings()

        async def _work(session: AsyncSession) -> TargetView:
            attacker = await self._ledger.require_account(session, attacker_identity)
            if attacker.is_banned:
                raise UnauthorizedError("find_target", "account is banned")

            eligible = (
                Account.balance >= min_balance,
                Account.is_banned.is_(False),
                Account.id != attacker.id,
            )
            population = await self._accounts.count(session, *eligible)
            if population == 0:
                raise NotFoundError("PvP target")

            offset = self._rng.randint(0, population - 1)
            picked = await self._accounts.find_many_where(
                session, *eligible, order_by=[Account.id], offset=offset, limit=1
            )
            # The population can shrink between the count and the read.
            if not picked:
                raise NotFoundError("PvP target")

            target = picked[0]
            is_concealed = (
                await self._inventory.count_by_behavior(
                    session, target.id, ItemBehavior.BALANCE_CONCEALMENT
                )
                > 0
            )

            reveal = False
            if use_detection_item and is_concealed:
                await self._inventory.consume_item(
                    session, attacker.id, ItemBehavior.CONCEALMENT_DETECTION
                )
                reveal = True

            return build_target_view(
                target.identity,
                target.display_name,
                target.balance,
                is_concealed=is_concealed,
                reveal=reveal,
                settings=settings,
                rng=self._rng,
            )

        view = await self.run_atomic(
            "pvp.find_target",
            _work,
            context={"account_identity": attacker_identity},
        )

        self.log_operation(
            "find_target",
            account_identity=attacker_identity,
            target_identity=view.identity,
            is_concealed=view.is_concealed,
            detection_used=view.detection_used,
        )
        return view

    # ========================================================================
    # PUBLIC API - Heist
    # ========================================================================

    async def attack(
        self,
        attacker_identity: int,
        target_identity: int,
        revenge: bool = False,
        now: Optional[datetime] = None,
    ) -> HeistResult:
        """
        Resolve one heist.

        Raises:
            NotFoundError: Unknown attacker or target
            UnauthorizedError: Attacker is banned
            InvalidOperationError: Self-attack, banned target, or revenge
                without a prior successful heist by the target
            CooldownActiveError: Attacker's last heist is too recent
        """
        attacker_identity = InputValidator.validate_caller(attacker_identity, "attack")
        target_identity = InputValidator.validate_identity(target_identity, "target_identity")
        if attacker_identity == target_identity:
            raise InvalidOperationError("attack", "You cannot attack yourself")

        action = "revenge" if revenge else "attack"
        rules = self._rules(revenge)
        shielded_penalty = int(self.get_config("pvp.shielded_penalty", 50))
        lose_penalty = int(self.get_config("pvp.lose_penalty", 100))
        prefix = str(self.get_config("pvp.anonymous_prefix", "Agent-"))
        now = now or datetime.now(timezone.utc)

        async def _work(session: AsyncSession) -> HeistResult:
            locked = await self._ledger.lock_accounts(
                session, [attacker_identity, target_identity]
            )
            attacker = locked.get(attacker_identity)
            defender = locked.get(target_identity)
            if attacker is None:
                raise NotFoundError("Account", attacker_identity)
            if defender is None:
                raise NotFoundError("Target", target_identity)
            if attacker.is_banned:
                raise UnauthorizedError(action, "account is banned")
            if defender.is_banned:
                raise InvalidOperationError(action, "Target is unavailable")

            if revenge:
                provoked = await self._battles.exists(
                    session,
                    BattleLog.attacker_id == defender.id,
                    BattleLog.defender_id == attacker.id,
                    BattleLog.outcome.in_(
                        [BattleOutcome.WIN.value, BattleOutcome.SHIELDED.value]
                    ),
                )
                if not provoked:
                    raise InvalidOperationError(
                        action, "This player hasn't attacked you. Use a normal attack."
                    )

            if attacker.last_heist_at is not None:
                elapsed = (now - attacker.last_heist_at).total_seconds()
                if elapsed < rules.cooldown_seconds:
                    raise CooldownActiveError(action, rules.cooldown_seconds - elapsed)

            roll: Optional[int] = None
            shield_count = await self._inventory.count_by_behavior(
                session, defender.id, ItemBehavior.STREAK_PROTECTION
            )

            if shield_count > 0:
                await self._inventory.consume_item(
                    session, defender.id, ItemBehavior.STREAK_PROTECTION
                )
                outcome = BattleOutcome.SHIELDED
                amount = min(shielded_penalty, attacker.balance)
                attacker_balance = await self._ledger.apply_delta(
                    session, attacker.id, -amount, reason="pvp:shielded_fine"
                )
            else:
                roll = self._roll()
                if roll > rules.win_threshold:
                    outcome = BattleOutcome.WIN
                    amount = self._steal_amount(defender.balance, rules.steal_pct)
                    await self._ledger.apply_delta(
                        session, defender.id, -amount, reason="pvp:robbed"
                    )
                    attacker_balance = await self._ledger.apply_delta(
                        session, attacker.id, amount, reason="pvp:stolen"
                    )
                    attacker.pvp_wins += 1
                    attacker.pvp_total_stolen += amount
                else:
                    outcome = BattleOutcome.LOSE
                    amount = min(lose_penalty, attacker.balance)
                    attacker_balance = await self._ledger.apply_delta(
                        session, attacker.id, -amount, reason="pvp:lose_fine"
                    )

            attacker.last_heist_at = now
            self._battles.add(
                session,
                BattleLog(
                    attacker_id=attacker.id,
                    defender_id=defender.id,
                    outcome=outcome.value,
                    amount=amount,
                    is_revenge=revenge,
                ),
            )

            return HeistResult(
                outcome=outcome.value,
                amount=amount,
                attacker_balance=attacker_balance,
                defender_name=display_name(defender.display_name, defender.identity, prefix),
                is_revenge=revenge,
                roll=roll,
            )

        result = await self.run_atomic(
            f"pvp.{action}",
            _work,
            context={
                "account_identity": attacker_identity,
                "target_identity": target_identity,
            },
        )

        self.log_operation(
            action,
            account_identity=attacker_identity,
            target_identity=target_identity,
            outcome=result.outcome,
            amount=result.amount,
            roll=result.roll,
        )
        await self.emit_event(
            "pvp.heist_resolved",
            {
                "attacker_identity": attacker_identity,
                "defender_identity": target_identity,
                **result.to_dict(),
            },
        )
        return result

    # ========================================================================
    # PUBLIC API - Leaderboard
    # ========================================================================

    async def pvp_leaderboard(
        self, identity: Optional[int] = None, limit: int = 20
    ) -> Dict[str, Any]:
        """
        Top heisters by wins, ties broken by total stolen.

        When `identity` is given the caller's own rank is included even if
        they are outside the top `limit`.
        """
        limit = InputValidator.validate_integer(limit, "limit", min_value=1, max_value=100)
        if identity is not None:
            identity = InputValidator.validate_caller(identity, "pvp_leaderboard")
        prefix = str(self.get_config("pvp.anonymous_prefix", "Agent-"))

        ranked_filter = (Account.is_banned.is_(False), Account.pvp_wins > 0)

        async with DatabaseService.get_session() as session:
            top = await self._accounts.find_many_where(
                session,
                *ranked_filter,
                order_by=[
                    Account.pvp_wins.desc(),
                    Account.pvp_total_stolen.desc(),
                    Account.id,
                ],
                limit=limit,
            )
            total_players = await self._accounts.count(session, *ranked_filter)

            current: Optional[Dict[str, Any]] = None
            if identity is not None:
                me = await self._ledger.get_account_by_identity(session, identity)
                if me is not None:
                    ahead = await self._accounts.count(
                        session,
                        Account.is_banned.is_(False),
                        or_(
                            Account.pvp_wins > me.pvp_wins,
                            and_(
                                Account.pvp_wins == me.pvp_wins,
                                Account.pvp_total_stolen > me.pvp_total_stolen,
                            ),
                        ),
                    )
                    current = {"rank": ahead + 1, **self._leaderboard_row(me, prefix)}

        rows: List[Dict[str, Any]] = [
            {
                **self._leaderboard_row(account, prefix),
                "is_current_user": account.identity == identity,
            }
            for account in top
        ]

        return {
            "top_players": ranked(rows),
            "current_user": current,
            "total_pvp_players": total_players,
        }

    @staticmethod
    def _leaderboard_row(account: Account, prefix: str) -> Dict[str, Any]:
        return {
            "identity": account.identity,
            "display_name": display_name(account.display_name, account.identity, prefix),
            "pvp_wins": account.pvp_wins,
            "pvp_total_stolen": account.pvp_total_stolen,
            "pvp_total_stolen_formatted": format_balance(account.pvp_total_stolen),
        }
