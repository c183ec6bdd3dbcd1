"""
Global Leaderboard Service
==========================

Purpose
-------
Read-only rankings across all accounts: top $GIG holders ("miners") and top
referrers, plus where the caller stands in each.

Domain
------
- global_leaderboard(): both top lists, the caller's ranks and stats, and
  the number of ranked accounts

Design Notes
------------
- Banned accounts are left out of every list, count and rank.
- Lists are ordered by the metric descending, ties by account id, so two
  reads of unchanged data agree.
- The caller's rank is `1 + number of accounts strictly ahead`, so tied
  accounts share a rank. A caller with no referrals has no referrer rank.
- Every query runs in one read-only session; nothing is cached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import Account
from gigvault.modules.pvp.concealment_logic import display_name, format_balance, ranked
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


class LeaderboardService(BaseService):
    """
    Global rankings by balance and by referrals.

    Public Methods
    --------------
    - global_leaderboard() -> {top_miners, top_referrers, current_user_rank,
      current_user, total_users}
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
        self._accounts = BaseRepository[Account](
            model_class=Account,
            logger=get_logger(f"{__name__}.AccountRepository"),
        )

    async def global_leaderboard(
        self, identity: int, limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Top miners and top referrers as seen by `identity`.

        An identity with no account yet still gets both lists; its ranks and
        stats are None.
        """
        identity = InputValidator.validate_caller(identity, "global_leaderboard")
        if limit is None:
            limit = int(self.get_config("leaderboard.limit", 50))
        limit = InputValidator.validate_integer(limit, "limit", min_value=1, max_value=100)
        prefix = str(self.get_config("leaderboard.anonymous_prefix", "Agent-"))

        active = Account.is_banned.is_(False)

        async with DatabaseService.get_session() as session:
            miners = await self._accounts.find_many_where(
                session,
                active,
                order_by=[Account.balance.desc(), Account.id],
                limit=limit,
            )
            referrers = await self._accounts.find_many_where(
                session,
                active,
                Account.referral_count > 0,
                order_by=[Account.referral_count.desc(), Account.id],
                limit=limit,
            )
            total_users = await self._accounts.count(session, active)

            me = await self._ledger.get_account_by_identity(session, identity)
            miner_rank: Optional[int] = None
            referrer_rank: Optional[int] = None
            if me is not None and not me.is_banned:
                miner_rank = 1 + await self._accounts.count(
                    session, active, Account.balance > me.balance
                )
                if me.referral_count > 0:
                    referrer_rank = 1 + await self._accounts.count(
                        session, active, Account.referral_count > me.referral_count
                    )

        top_miners: List[Dict[str, Any]] = [
            {
                "identity": account.identity,
                "display_name": display_name(account.display_name, account.identity, prefix),
                "balance": account.balance,
                "balance_formatted": format_balance(account.balance),
                "is_current_user": account.identity == identity,
            }
            for account in miners
        ]
        top_referrers: List[Dict[str, Any]] = [
            {
                "identity": account.identity,
                "display_name": display_name(account.display_name, account.identity, prefix),
                "referral_count": account.referral_count,
                "is_current_user": account.identity == identity,
            }
            for account in referrers
        ]

        current_user: Optional[Dict[str, Any]] = None
        if me is not None:
            current_user = {
                "identity": me.identity,
                "display_name": display_name(me.display_name, me.identity, prefix),
                "balance": me.balance,
                "balance_formatted": format_balance(me.balance),
                "referral_count": me.referral_count,
            }

        return {
            "top_miners": ranked(top_miners),
            "top_referrers": ranked(top_referrers),
            "current_user_rank": {"miners": miner_rank, "referrers": referrer_rank},
            "current_user": current_user,
            "total_users": total_users,
        }
