"""
Pytest Configuration and Fixtures for the GigVault Test Suite
=============================================================

Purpose
-------
Centralized fixtures for the GigVault reward engine tests: a real PostgreSQL
database for integration tests, the wired service container, and mocks for
unit tests.

Responsibilities
----------------
- Testcontainers setup for PostgreSQL
- Database lifecycle per test (schema ensured, tables truncated)
- Service container and RewardEngine wiring with a fast retry policy
- Account / inventory helpers for arranging integration scenarios
- Mocks for ConfigManager and EventBus in unit tests

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests use testcontainers (real PostgreSQL, real row locks)
- Fixtures follow scope hierarchy: session > function
- Every integration test starts from empty tables
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Generator, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import select, text
from testcontainers.postgres import PostgresContainer

from gigvault.core.config.config import Config
from gigvault.core.config.manager import DEFAULT_CONFIG_DIR, ConfigManager
from gigvault.core.database.base import Base
from gigvault.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from gigvault.core.database.service import DatabaseService
from gigvault.core.event.bus import EventBus
from gigvault.core.logging.logger import get_logger
from gigvault.core.services.container import RewardEngine, ServiceContainer
from gigvault.database.models import Account

logger = get_logger(__name__)

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Skips dependent tests when Docker is not reachable.
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(
        image="postgres:17-alpine",
        driver="asyncpg",
    )
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(
    postgres_container: PostgresContainer,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService against the container with empty tables.

    Scope: function (clean slate per test)
    """
    monkeypatch.setenv("DATABASE_URL", postgres_container.get_connection_url())
    monkeypatch.setenv("ENVIRONMENT", "testing")
    Config.reset()
    Config.validate()

    await DatabaseService.initialize()
    await DatabaseService.create_schema()

    table_names = ", ".join(table.name for table in Base.metadata.sorted_tables)
    async with DatabaseService.get_transaction() as session:
        await session.execute(text(f"TRUNCATE {table_names} RESTART IDENTITY CASCADE"))

    yield

    await DatabaseService.shutdown()
    Config.reset()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """ConfigManager loaded from the packaged YAML, overrides dropped afterwards."""
    ConfigManager.initialize(config_dir=DEFAULT_CONFIG_DIR)
    yield ConfigManager
    ConfigManager.reset_overrides()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[Dict[str, Any]]:
    """Every event published on the bus, as {"name", "data"} entries."""
    events: List[Dict[str, Any]] = []

    def _record_as(name: str) -> Callable[[Dict[str, Any]], None]:
        return lambda data: events.append({"name": name, "data": data})

    for name in (
        "account.registered",
        "task.claimed",
        "checkin.completed",
        "reward.external_granted",
        "pvp.heist_resolved",
        "item.purchased",
        "item.used",
        "admin.action_executed",
        "farming.claimed",
        "spin.resolved",
        "wallet.withdrawal_requested",
    ):
        event_bus.subscribe(name, _record_as(name))
    return events


@pytest.fixture
def fast_retry_policy() -> DatabaseRetryPolicy:
    """Retry policy without backoff so contention tests stay quick."""
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=5,
            initial_backoff_ms=0,
            max_backoff_ms=0,
            jitter_ms=0,
            timeout_seconds=30.0,
        )
    )


@pytest.fixture
def container(
    database: None,
    config_manager: type[ConfigManager],
    event_bus: EventBus,
    fast_retry_policy: DatabaseRetryPolicy,
) -> Generator[ServiceContainer, None, None]:
    """Fully wired ServiceContainer on the test database."""
    services = ServiceContainer(
        config_manager=config_manager,  # type: ignore[arg-type]
        event_bus=event_bus,
        logger=get_logger("tests.container"),
        retry_policy=fast_retry_policy,
    )
    services.initialize()
    yield services
    services.shutdown()


@pytest.fixture
def engine(container: ServiceContainer) -> RewardEngine:
    return RewardEngine(container)


@pytest_asyncio.fixture
async def catalog(container: ServiceContainer) -> Dict[str, int]:
    """Seed the item catalog; returns item ids by name."""
    await container.inventory.seed_catalog()
    async with DatabaseService.get_session() as session:
        items = {}
        for entry in ConfigManager.get("catalog.items", []):
            item = await container.inventory.get_item_by_name(session, entry["name"])
            items[item.name] = item.id
    return items


# ============================================================================
# ARRANGE HELPERS (Integration Tests)
# ============================================================================


@pytest.fixture
def make_account(
    engine: RewardEngine,
    container: ServiceContainer,
) -> Callable[..., Awaitable[int]]:
    """
    Factory creating an account through `authenticate`, then adjusting it.

    Usage:
        identity = await make_account(1001, balance=5000, streak=3)
    """

    async def _make(
        identity: int,
        balance: int = 0,
        display_name: Optional[str] = None,
        **fields: Any,
    ) -> int:
        await engine.authenticate(identity, display_name=display_name)
        async with DatabaseService.get_transaction() as session:
            account = await container.ledger.require_account(session, identity, for_update=True)
            if balance:
                await container.ledger.apply_delta(session, account.id, balance, reason="test:seed")
            for name, value in fields.items():
                setattr(account, name, value)
        return identity

    return _make


@pytest.fixture
def give_item(
    container: ServiceContainer,
    catalog: Dict[str, int],
) -> Callable[..., Awaitable[int]]:
    """Factory granting catalog items by name; returns the new quantity."""

    async def _give(identity: int, item_name: str, quantity: int = 1) -> int:
        async with DatabaseService.get_transaction() as session:
            account = await container.ledger.require_account(session, identity)
            return await container.inventory.grant_item(
                session, account.id, catalog[item_name], quantity
            )

    return _give


@pytest.fixture
def load_account() -> Callable[[int], Awaitable[Account]]:
    """Fresh read of an account row outside any service call."""

    async def _load(identity: int) -> Account:
        async with DatabaseService.get_session() as session:
            account = await session.scalar(
                select(Account).where(Account.identity == identity)
            )
            assert account is not None, f"account {identity} missing"
            return account

    return _load


@pytest.fixture
def quantity_of(
    container: ServiceContainer,
) -> Callable[[int, str], Awaitable[int]]:
    """Units of a named item held by an account (0 when none)."""

    async def _quantity(identity: int, item_name: str) -> int:
        inventory = await container.inventory.get_inventory(identity)
        return next((row["quantity"] for row in inventory if row["name"] == item_name), 0)

    return _quantity


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to observe event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager that answers every key with the caller's default.

    Scope: function
    Uses: Unit tests that construct services without YAML
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Timezone-aware UTC datetime shorthand for check-in scenarios."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def events_named(events: List[Dict[str, Any]], name: str) -> List[Dict[str, Any]]:
    return [event["data"] for event in events if event["name"] == name]
