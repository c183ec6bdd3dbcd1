"""
Referral Service
================

Purpose
-------
First-contact account creation with one-time referral bonuses.

Domain
------
- authenticate(): idempotent account lookup-or-create for a caller identity
- Referral tokens look like `ref_<referrer identity>`; anything else is
  ignored
- A new account referred by an existing account gets
  `referral.new_account_bonus`; the referrer gets `referral.referrer_bonus`
  and `referral_count + 1`, all in one unit
- list_referrals(): the accounts a caller has brought in

Design Notes
------------
- The referrer row is locked before the new account is inserted, so every
  unit touching both takes locks in the same order.
- Account creation is `INSERT ... ON CONFLICT (identity) DO NOTHING
  RETURNING id`. When two first contacts race, the loser gets no row back,
  returns the winner's account and credits nobody.
- Starting balances are applied through the ledger like any other credit.

Events
------
- account.registered
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.dialects.postgresql import insert

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import Account
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


@dataclass(frozen=True)
class AccountSummary:
    identity: int
    display_name: Optional[str]
    balance: int
    referral_count: int
    role: str
    is_new: bool
    was_referred: bool = False
    referral_bonus: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReferralService(BaseService):
    """
    Referral resolver and account bootstrap.

    Public Methods
    --------------
    - parse_referral_token() -> referrer identity or None
    - authenticate() -> AccountSummary
    - list_referrals() -> referred accounts and earnings
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

    def parse_referral_token(self, token: Optional[str]) -> Optional[int]:
        """
        Extract the referrer identity from `ref_<identity>`.

        Malformed tokens yield None; they are not an error.
        """
        prefix = str(self.get_config("referral.token_prefix", "ref_"))
        if not token or not isinstance(token, str) or not token.startswith(prefix):
            return None

        raw = token[len(prefix):]
        if not raw.isdigit():
            self.log.info("Ignoring malformed referral token", extra={"token": token})
            return None

        referrer_identity = int(raw)
        return referrer_identity if referrer_identity > 0 else None

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def authenticate(
        self,
        identity: int,
        display_name: Optional[str] = None,
        referral_token: Optional[str] = None,
    ) -> AccountSummary:
        """
        Return the caller's account, creating it on first contact.

        Raises:
            ValidationError: The token refers the caller to themself
        """
        identity = InputValidator.validate_caller(identity, "authenticate")
        if display_name is not None:
            display_name = InputValidator.validate_string(
                display_name, "display_name", max_length=64
            ) or None

        referrer_identity = self.parse_referral_token(referral_token)
        new_account_bonus = int(self.get_config("referral.new_account_bonus", 1000))
        referrer_bonus = int(self.get_config("referral.referrer_bonus", 1000))

        async def _work(session: AsyncSession) -> AccountSummary:
            existing = await self._ledger.get_account_by_identity(session, identity)
            if existing is not None:
                return self._summarize(existing, is_new=False)

            if referrer_identity == identity:
                raise ValidationError("referral_token", "Cannot refer yourself")

            referrer: Optional[Account] = None
            if referrer_identity is not None:
                locked = await self._ledger.lock_accounts(session, [referrer_identity])
                referrer = locked.get(referrer_identity)
                if referrer is not None and referrer.is_banned:
                    referrer = None

            stmt = (
                insert(Account)
                .values(
                    identity=identity,
                    display_name=display_name,
                    referred_by_id=referrer.id if referrer else None,
                )
                .on_conflict_do_nothing(index_elements=["identity"])
                .returning(Account.id)
            )
            account_id = (await session.execute(stmt)).scalar_one_or_none()

            if account_id is None:
                # Lost a first-contact race; the winner already did the crediting.
                winner = await self._ledger.require_account(session, identity)
                return self._summarize(winner, is_new=False)

            balance = 0
            if referrer is not None:
                balance = await self._ledger.apply_delta(
                    session, account_id, new_account_bonus, reason="referral:new_account"
                )
                await self._ledger.apply_delta(
                    session, referrer.id, referrer_bonus, reason="referral:referrer"
                )
                referrer.referral_count += 1

            return AccountSummary(
                identity=identity,
                display_name=display_name,
                balance=balance,
                referral_count=0,
                role="user",
                is_new=True,
                was_referred=referrer is not None,
                referral_bonus=new_account_bonus if referrer is not None else 0,
            )

        summary = await self.run_atomic(
            "referral.authenticate",
            _work,
            context={"account_identity": identity, "referrer_identity": referrer_identity},
        )

        if summary.is_new:
            self.log_operation(
                "authenticate",
                account_identity=identity,
                was_referred=summary.was_referred,
                referrer_identity=referrer_identity if summary.was_referred else None,
            )
            await self.emit_event(
                "account.registered",
                {
                    "account_identity": identity,
                    "referrer_identity": referrer_identity if summary.was_referred else None,
                    "referral_bonus": summary.referral_bonus,
                },
            )
        return summary

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def list_referrals(self, identity: int) -> Dict[str, Any]:
        """Accounts referred by the caller, newest first."""
        identity = InputValidator.validate_caller(identity, "list_referrals")
        referrer_bonus = int(self.get_config("referral.referrer_bonus", 1000))

        async with DatabaseService.get_session() as session:
            account = await self._ledger.require_account(session, identity)
            referred = await self._accounts.find_many_where(
                session,
                Account.referred_by_id == account.id,
                order_by=[Account.created_at.desc(), Account.id.desc()],
            )

        return {
            "identity": identity,
            "referral_count": account.referral_count,
            "total_earned": account.referral_count * referrer_bonus,
            "friends": [
                {
                    "identity": friend.identity,
                    "display_name": friend.display_name
                    or f"User_{str(friend.identity)[-4:]}",
                    "joined_at": friend.created_at.isoformat(),
                    "reward": referrer_bonus,
                }
                for friend in referred
            ],
        }

    @staticmethod
    def _summarize(account: Account, is_new: bool) -> AccountSummary:
        return AccountSummary(
            identity=account.identity,
            display_name=account.display_name,
            balance=account.balance,
            referral_count=account.referral_count,
            role=account.role,
            is_new=is_new,
            was_referred=account.referred_by_id is not None,
        )
