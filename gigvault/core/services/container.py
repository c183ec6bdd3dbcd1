"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the GigVault resolvers, plus
`RewardEngine`, the facade external callers (HTTP handlers, bots, ad-network
callbacks) talk to.

Responsibilities
----------------
- Build every domain service with its dependencies, in dependency order
- Share one retry policy, one event bus and one ConfigManager across services
- Expose the engine operations as plain coroutine methods

Non-Responsibilities
--------------------
- Database and logging lifecycle (see `gigvault.main`)
- Business rules (every operation delegates to its resolver)

Architecture Notes
------------------
- All domain services follow the constructor pattern
  `(config_manager, event_bus, logger, <collaborators>, retry_policy)`.
- Services hold configuration only, never per-account state, so one
  container serves any number of concurrent requests.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from gigvault.core.database.retry_policy import DatabaseRetryPolicy
from gigvault.core.logging.logger import get_logger
from gigvault.modules.admin.service import AdminService
from gigvault.modules.checkin.service import CheckInService
from gigvault.modules.farming.service import FarmingService
from gigvault.modules.inventory.service import InventoryService
from gigvault.modules.leaderboard.service import LeaderboardService
from gigvault.modules.ledger.service import LedgerService
from gigvault.modules.pvp.service import PvPService
from gigvault.modules.referral.service import ReferralService
from gigvault.modules.rewards.service import RewardService
from gigvault.modules.spin.service import SpinService
from gigvault.modules.tasks.service import TaskService
from gigvault.modules.wallet.service import WalletService

if TYPE_CHECKING:
    from logging import Logger

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.pvp.concealment_logic import TargetView
    from gigvault.modules.pvp.service import HeistResult
    from gigvault.modules.referral.service import AccountSummary


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        container.initialize()
        await container.tasks.claim_task(identity, task_id)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._retry_policy = retry_policy

        self._ledger: Optional[LedgerService] = None
        self._inventory: Optional[InventoryService] = None
        self._rewards: Optional[RewardService] = None
        self._checkin: Optional[CheckInService] = None
        self._tasks: Optional[TaskService] = None
        self._referral: Optional[ReferralService] = None
        self._pvp: Optional[PvPService] = None
        self._admin: Optional[AdminService] = None
        self._farming: Optional[FarmingService] = None
        self._spin: Optional[SpinService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._wallet: Optional[WalletService] = None

        self._initialized = False
        self._service_init_times: Dict[str, float] = {}

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def initialize(self) -> None:
        """Build all services. Idempotent."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            retry_policy = self._retry_policy or DatabaseRetryPolicy.from_config()

            self._ledger = self._create_service("ledger", LedgerService, retry_policy=retry_policy)
            self._inventory = self._create_service(
                "inventory", InventoryService, ledger=self._ledger, retry_policy=retry_policy
            )
            self._rewards = self._create_service(
                "rewards", RewardService, ledger=self._ledger, retry_policy=retry_policy
            )
            self._checkin = self._create_service(
                "checkin",
                CheckInService,
                ledger=self._ledger,
                inventory=self._inventory,
                retry_policy=retry_policy,
            )
            self._tasks = self._create_service(
                "tasks", TaskService, ledger=self._ledger, retry_policy=retry_policy
            )
            self._referral = self._create_service(
                "referral", ReferralService, ledger=self._ledger, retry_policy=retry_policy
            )
            self._pvp = self._create_service(
                "pvp",
                PvPService,
                ledger=self._ledger,
                inventory=self._inventory,
                retry_policy=retry_policy,
            )
            self._admin = self._create_service(
                "admin",
                AdminService,
                ledger=self._ledger,
                inventory=self._inventory,
                retry_policy=retry_policy,
            )
            self._farming = self._create_service(
                "farming", FarmingService, ledger=self._ledger, retry_policy=retry_policy
            )
            self._spin = self._create_service(
                "spin",
                SpinService,
                ledger=self._ledger,
                rewards=self._rewards,
                retry_policy=retry_policy,
            )
            self._leaderboard = self._create_service(
                "leaderboard",
                LeaderboardService,
                ledger=self._ledger,
                retry_policy=retry_policy,
            )
            self._wallet = self._create_service(
                "wallet", WalletService, ledger=self._ledger, retry_policy=retry_policy
            )

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

        self._initialized = True
        self._logger.info(
            "Service container initialized successfully",
            extra={
                "total_time_seconds": round(time.perf_counter() - start, 3),
                "service_count": len(self._service_init_times),
            },
        )

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    def shutdown(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        self._logger.info("Service container shut down")

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Service Accessors
    # ========================================================================

    @property
    def ledger(self) -> LedgerService:
        return self._require(self._ledger)

    @property
    def inventory(self) -> InventoryService:
        return self._require(self._inventory)

    @property
    def rewards(self) -> RewardService:
        return self._require(self._rewards)

    @property
    def checkin(self) -> CheckInService:
        return self._require(self._checkin)

    @property
    def tasks(self) -> TaskService:
        return self._require(self._tasks)

    @property
    def referral(self) -> ReferralService:
        return self._require(self._referral)

    @property
    def pvp(self) -> PvPService:
        return self._require(self._pvp)

    @property
    def admin(self) -> AdminService:
        return self._require(self._admin)

    @property
    def farming(self) -> FarmingService:
        return self._require(self._farming)

    @property
    def spin(self) -> SpinService:
        return self._require(self._spin)

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._require(self._leaderboard)

    @property
    def wallet(self) -> WalletService:
        return self._require(self._wallet)

    @property
    def is_initialized(self) -> bool:
        return self._initialized


class RewardEngine:
    """
    Facade over the container: one coroutine per external operation.

    Domain exceptions propagate to the caller unchanged, except for
    `external_ad_reward`, which always answers `{"granted": bool}`.
    """

    def __init__(self, container: ServiceContainer) -> None:
        self._services = container

    @property
    def services(self) -> ServiceContainer:
        return self._services

    async def authenticate(
        self,
        identity: int,
        display_name: Optional[str] = None,
        referral_token: Optional[str] = None,
    ) -> AccountSummary:
        return await self._services.referral.authenticate(identity, display_name, referral_token)

    async def claim_task(self, identity: int, task_id: int) -> Dict[str, Any]:
        return await self._services.tasks.claim_task(identity, task_id)

    async def list_tasks(self, identity: int) -> List[Dict[str, Any]]:
        return await self._services.tasks.list_tasks(identity)

    async def check_in(self, identity: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        return await self._services.checkin.check_in(identity, now)

    async def check_in_status(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self._services.checkin.check_in_status(identity, now)

    async def external_ad_reward(
        self,
        identity: Any,
        record_id: Optional[str] = None,
        source_type: str = "reward",
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._services.rewards.external_ad_reward(
            identity, record_id, source_type, ip_address
        )

    async def find_pvp_target(
        self, identity: int, use_detection_item: bool = False
    ) -> TargetView:
        return await self._services.pvp.find_target(identity, use_detection_item)

    async def attack(
        self, identity: int, target_identity: int, revenge: bool = False
    ) -> HeistResult:
        return await self._services.pvp.attack(identity, target_identity, revenge)

    async def pvp_leaderboard(self, identity: Optional[int] = None) -> Dict[str, Any]:
        return await self._services.pvp.pvp_leaderboard(identity)

    async def admin_action(
        self,
        caller_identity: int,
        action: str,
        target_identity: int,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._services.admin.execute(caller_identity, action, target_identity, params)

    async def purchase_item(self, identity: int, item_id: int) -> Dict[str, Any]:
        return await self._services.inventory.purchase_item(identity, item_id)

    async def use_item(self, identity: int, item_id: int) -> Dict[str, Any]:
        return await self._services.inventory.use_item(identity, item_id)

    async def get_inventory(self, identity: int) -> List[Dict[str, Any]]:
        return await self._services.inventory.get_inventory(identity)

    async def list_referrals(self, identity: int) -> Dict[str, Any]:
        return await self._services.referral.list_referrals(identity)

    async def start_farming(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self._services.farming.start_farming(identity, now)

    async def claim_farming(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self._services.farming.claim_farming(identity, now)

    async def farming_status(
        self, identity: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self._services.farming.farming_status(identity, now)

    async def spin(self, identity: int, use_bonus_spin: bool = False) -> Dict[str, Any]:
        return await self._services.spin.spin(identity, use_bonus_spin)

    async def free_spin(
        self, identity: int, record_id: Optional[str], ip_address: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._services.spin.free_spin(identity, record_id, ip_address)

    async def spin_info(self, identity: int) -> Dict[str, Any]:
        return await self._services.spin.spin_info(identity)

    async def global_leaderboard(
        self, identity: int, limit: Optional[int] = None
    ) -> Dict[str, Any]:
        return await self._services.leaderboard.global_leaderboard(identity, limit)

    async def request_withdrawal(
        self, identity: int, amount: int, wallet_address: str, tx_hash: str
    ) -> Dict[str, Any]:
        return await self._services.wallet.request_withdrawal(
            identity, amount, wallet_address, tx_hash
        )

    async def list_withdrawals(self, identity: int) -> Dict[str, Any]:
        return await self._services.wallet.list_withdrawals(identity)
