"""
GigVault - Engine Bootstrap
===========================

- Config validation
- Database initialization
- Event bus
- ConfigManager initialization
- Service container + RewardEngine facade
- Graceful shutdown

Hosting processes (HTTP server, bot, worker) call `startup()` once and
`shutdown()` on exit. Running this module directly prepares a database:
it creates the schema and seeds the item catalog.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

from gigvault.core.config.config import Config
from gigvault.core.config.manager import ConfigManager
from gigvault.core.database.service import DatabaseService
from gigvault.core.event.bus import EventBus
from gigvault.core.logging.logger import get_logger, setup_logging, shutdown_logging
from gigvault.core.services.container import RewardEngine, ServiceContainer

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================


async def startup(
    *,
    create_schema: bool = False,
    seed_catalog: bool = False,
    event_bus: Optional[EventBus] = None,
) -> RewardEngine:
    """Initialize infrastructure and return a ready engine."""
    setup_logging()
    logger.info("========== GIGVAULT INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize()
        if create_schema:
            await DatabaseService.create_schema()
        logger.info("Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Economy configuration
    try:
        ConfigManager.initialize()
        logger.info("Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Service container
    try:
        container = ServiceContainer(
            config_manager=ConfigManager,  # type: ignore[arg-type]
            event_bus=event_bus or EventBus(),
            logger=get_logger("gigvault.core.services.container"),
        )
        container.initialize()
        logger.info("Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    if seed_catalog:
        await container.inventory.seed_catalog()

    logger.info("========== GIGVAULT INITIALIZED SUCCESSFULLY ==========")
    return RewardEngine(container)


async def shutdown(engine: Optional[RewardEngine]) -> None:
    """Release the container and the database engine. Never raises."""
    logger.info("========== GIGVAULT SHUTDOWN START ==========")

    if engine is not None:
        engine.services.shutdown()

    try:
        await DatabaseService.shutdown()
        logger.info("Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


async def main() -> None:
    engine: Optional[RewardEngine] = None
    try:
        engine = await startup(create_schema=True, seed_catalog=True)
    finally:
        await shutdown(engine)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bootstrap interrupted")
    except Exception as exc:
        logger.critical(f"Bootstrap failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run()
