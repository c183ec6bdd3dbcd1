"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the GigVault
ledger store. Provides atomic transactions, pessimistic locking, statement
timeouts and health checks for every resolver.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for read-only sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on
  exception or cancellation
- Configure statement timeouts for PostgreSQL connections
- Create and drop the schema for bootstrap and tests

Non-Responsibilities
--------------------
- Retry policies for transient failures (handled by DatabaseRetryPolicy)
- Domain logic or business rules

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never manually call `session.commit()` inside service code
- Cancellation (caller timeout or disconnect) rolls back, so a unit is
  either fully committed or fully discarded

**Connection Pooling**:
- QueuePool for production (configurable pool_size and max_overflow)
- NullPool for testing environments (no connection reuse across event loops)

**Configuration**:
All values sourced from Config with safe defaults:
- DATABASE_URL (required)
- DATABASE_POOL_SIZE (default: 20)
- DATABASE_MAX_OVERFLOW (default: 10)
- DATABASE_POOL_RECYCLE (default: 3600)
- DATABASE_POOL_TIMEOUT (default: 30)
- DATABASE_STATEMENT_TIMEOUT_MS (default: 30000)
- DATABASE_ECHO (default: False)

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     locked = await ledger.lock_accounts(session, [attacker, defender])
...     await ledger.apply_delta(session, locked[attacker].id, 100, reason="bonus")
...     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, QueuePool

from gigvault.core.config.config import Config
from gigvault.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable snapshot of database configuration for the engine lifetime."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService - Core Infrastructure
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Initialize engine and session factory
    - shutdown() -> Dispose engine and cleanup resources
    - create_schema() / drop_schema() -> Manage tables from ORM metadata

    **Session Management**:
    - get_session() -> Read-only access
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast database reachability check
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls) -> _DatabaseConfigSnapshot:
        """
        Build an immutable configuration snapshot from Config.

        Raises
        ------
        DatabaseInitializationError
            If DATABASE_URL is missing or invalid.
        """
        database_url = getattr(Config, "DATABASE_URL", None)
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        is_testing = Config.is_testing()

        pool_class: Type[Pool] = NullPool if is_testing else QueuePool
        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=bool(getattr(Config, "DATABASE_ECHO", False)),
            pool_class=pool_class,
            pool_size=int(getattr(Config, "DATABASE_POOL_SIZE", 20)),
            max_overflow=int(getattr(Config, "DATABASE_MAX_OVERFLOW", 10)),
            pool_recycle=int(getattr(Config, "DATABASE_POOL_RECYCLE", 3600)),
            pool_timeout=int(getattr(Config, "DATABASE_POOL_TIMEOUT", 30)),
            statement_timeout_ms=int(
                getattr(Config, "DATABASE_STATEMENT_TIMEOUT_MS", 30_000)
            ),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
                "is_testing": is_testing,
            },
        )

        return snapshot

    @classmethod
    async def initialize(cls) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately if already initialized.

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot()
                cls._config_snapshot = config

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }

                if config.pool_class == QueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except Exception as exc:
                cls._config_snapshot = None
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine and reset internal state. Safe to call twice."""
        async with cls._init_lock:
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on `Base.metadata` (checkfirst)."""
        from gigvault.core.database.base import Base
        import gigvault.database.models  # noqa: F401  registers all models

        cls._ensure_initialized()
        assert cls._engine is not None

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema ensured",
            extra={"table_count": len(Base.metadata.tables)},
        )

    @classmethod
    async def drop_schema(cls) -> None:
        """Drop every table registered on `Base.metadata`."""
        from gigvault.core.database.base import Base
        import gigvault.database.models  # noqa: F401

        cls._ensure_initialized()
        assert cls._engine is not None

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        logger.warning("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Execute `SELECT 1`; return True if the database is reachable.

        Never raises.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        success = False

        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
            return True

        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        finally:
            logger.debug(
                "Database health check completed",
                extra={
                    "success": success,
                    "duration_ms": (time.perf_counter() - start) * 1000.0,
                },
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    def _get_config_snapshot(cls) -> _DatabaseConfigSnapshot:
        if cls._config_snapshot is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return cls._config_snapshot

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._get_config_snapshot()
        if config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {int(config.statement_timeout_ms)}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        Use for read-only operations. The session is closed on exit and any
        implicit transaction is rolled back.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
            finally:
                await session.close()
                logger.debug(
                    "Database session closed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        This is the **primary interface for all state mutations**.

        **On Success**: commits.
        **On Exception**: rolls back and re-raises.
        **On Cancellation**: rolls back and re-raises `CancelledError`.

        Raises
        ------
        DatabaseNotInitializedError
            If DatabaseService has not been initialized.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)

                logger.debug("Database transaction started")
                yield session

                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.warning(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            except asyncio.CancelledError:
                await asyncio.shield(session.rollback())
                logger.warning(
                    "Transaction cancelled; rolled back",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
                raise

            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            finally:
                await session.close()

