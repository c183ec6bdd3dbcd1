"""
External Reward Service
=======================

Purpose
-------
Credits rewards triggered by external callbacks (ad networks) exactly once
per delivery, even though the callbacks themselves arrive at least once and
possibly concurrently.

Domain
------
- `claim_external_reward()`: receipt insert + balance credit in one unit
- `external_ad_reward()`: the ad-network callback entry point; always
  answers with a success-shaped payload, the truth lives in `granted`

Design Notes
------------
- The receipt insert is `INSERT ... ON CONFLICT (record_id) DO NOTHING
  RETURNING id`. Exactly one concurrent delivery gets a row back; the others
  raise `DuplicateExternalReceiptError` inside their unit, which rolls back
  and is reported as `granted=False`.
- There is no look-then-write: a prior SELECT would race.
- A delivery without a record id cannot be deduplicated. It is credited on a
  best-effort basis and logged as a warning.

Events
------
- reward.external_granted
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.dialects.postgresql import insert

from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import ExternalRewardReceipt, RewardSource
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    DuplicateExternalReceiptError,
    GigDomainException,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


class RewardService(BaseService):
    """
    Idempotency guard in front of the ledger for external credits.

    Public Methods
    --------------
    - claim_external_reward() -> {granted, balance}
    - external_ad_reward() -> {granted}, never raises
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

    async def claim_external_reward(
        self,
        record_id: Optional[str],
        account_identity: int,
        amount: int,
        source: str,
        reward_type: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Credit `amount` once per `record_id`.

        Returns:
            {"granted": bool, "balance": int}

        Raises:
            NotFoundError: Unknown account
            UnauthorizedError: Banned account
            TransientStoreError: Store unavailable after retries
        """
        account_identity = InputValidator.validate_identity(account_identity)
        amount = InputValidator.validate_positive_integer(amount, "amount")
        source = InputValidator.validate_string(source, "source", min_length=1, max_length=32)
        if record_id is not None:
            record_id = InputValidator.validate_string(
                record_id, "record_id", min_length=1, max_length=128
            )

        async def _work(session: AsyncSession) -> int:
            account = await self._ledger.require_account(session, account_identity)
            if account.is_banned:
                raise UnauthorizedError("claim_external_reward", "account is banned")

            if record_id is None:
                self.log.warning(
                    "External reward without record id; crediting without deduplication",
                    extra={
                        "account_identity": account_identity,
                        "amount": amount,
                        "source": source,
                    },
                )
            else:
                stmt = (
                    insert(ExternalRewardReceipt)
                    .values(
                        record_id=record_id,
                        account_id=account.id,
                        amount=amount,
                        source=source,
                        reward_type=reward_type,
                        ip_address=ip_address,
                    )
                    .on_conflict_do_nothing(index_elements=["record_id"])
                    .returning(ExternalRewardReceipt.id)
                )
                if (await session.execute(stmt)).scalar_one_or_none() is None:
                    raise DuplicateExternalReceiptError(record_id)

            return await self._ledger.apply_delta(
                session, account.id, amount, reason=f"external:{source}"
            )

        try:
            balance = await self.run_atomic(
                "rewards.claim_external",
                _work,
                context={"account_identity": account_identity, "record_id": record_id},
            )
        except DuplicateExternalReceiptError:
            self.log.info(
                "External reward already processed",
                extra={"account_identity": account_identity, "record_id": record_id},
            )
            return {
                "granted": False,
                "balance": await self._ledger.get_balance(account_identity),
            }

        self.log_operation(
            "claim_external_reward",
            account_identity=account_identity,
            record_id=record_id,
            amount=amount,
            source=source,
            new_balance=balance,
        )
        await self.emit_event(
            "reward.external_granted",
            {
                "account_identity": account_identity,
                "record_id": record_id,
                "amount": amount,
                "source": source,
                "new_balance": balance,
            },
        )
        return {"granted": True, "balance": balance}

    async def external_ad_reward(
        self,
        identity: Any,
        record_id: Optional[str] = None,
        source_type: str = "reward",
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Ad-network callback. The caller (the ad network) only needs an ack,
        so every outcome, including failures, is reported as `{"granted": bool}`.
        """
        amount = int(self.get_config("rewards.ad_amount", 500))
        source = str(self.get_config("rewards.ad_source", RewardSource.ADSGRAM.value))

        try:
            result = await self.claim_external_reward(
                record_id,
                identity,
                amount,
                source,
                reward_type=source_type,
                ip_address=ip_address,
            )
        except GigDomainException as exc:
            self.log.warning(
                "Ad reward rejected",
                extra={
                    "account_identity": identity,
                    "record_id": record_id,
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                },
            )
            return {"granted": False}
        except Exception as exc:
            self.log_error(
                "external_ad_reward",
                exc,
                account_identity=identity,
                record_id=record_id,
            )
            return {"granted": False}

        return {"granted": result["granted"]}
