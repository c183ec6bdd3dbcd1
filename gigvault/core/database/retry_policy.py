"""
Database Retry Policy - Infrastructure Resilience

Purpose
-------
Execute an atomic unit of database work with bounded retries, exponential
backoff with jitter, and a caller-scoped timeout.

Responsibilities
----------------
- Classify errors as retriable (transient store conditions) or not
- Retry retriable failures with exponential backoff and jitter
- Bound the whole execution (all attempts) by a timeout
- Convert exhausted retries and timeouts into `TransientStoreError`
- Emit structured logs for each attempt

Non-Responsibilities
--------------------
- Transaction management (the operation opens its own transaction)
- Business rules: domain exceptions propagate untouched on the first attempt

Architecture Notes
------------------
**Retry Classification**:
- Retriable: OperationalError, DBAPIError (serialization failures,
  deadlocks, dropped connections)
- Never retried: IntegrityError, ProgrammingError, DataError and every
  non-database exception. A unique-constraint violation is a business
  outcome, not a transient fault.

**Backoff Strategy**:
- Formula: min(base * 2^(attempt-1), max) + random(0, jitter)

**Timeout**:
- `asyncio.wait_for` cancels the in-flight attempt; the transaction context
  rolls back on cancellation, so a timed-out unit leaves no partial state.

Configuration
-------------
All values sourced from Config:
- DATABASE_RETRY_MAX_ATTEMPTS (default: 3)
- DATABASE_RETRY_INITIAL_BACKOFF_MS (default: 50)
- DATABASE_RETRY_MAX_BACKOFF_MS (default: 1000)
- DATABASE_RETRY_JITTER_MS (default: 50)
- DATABASE_OPERATION_TIMEOUT_SECONDS (default: 10)

Retry Patterns
--------------
**Good Pattern** (retry entire operation including transaction):
```python
async def operation():
    async with DatabaseService.get_transaction() as session:
        ...

await retry_policy.execute(operation, operation_name="tasks.claim")
```

**Bad Pattern** (retry inside transaction):
```python
async with DatabaseService.get_transaction() as session:
    await retry_policy.execute(some_db_work, ...)
```
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    OperationalError,
    ProgrammingError,
)

from gigvault.core.config.config import Config
from gigvault.core.exceptions import TransientStoreError
from gigvault.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for database retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including initial attempt).
    initial_backoff_ms : int
        Initial backoff duration in milliseconds.
    max_backoff_ms : int
        Maximum backoff duration in milliseconds.
    jitter_ms : int
        Maximum random jitter to add to backoff in milliseconds.
    timeout_seconds : float
        Default budget for one `execute()` call across all attempts.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable.
    non_retriable_exceptions : Tuple[Type[BaseException], ...]
        Subclasses of the retriable types that must fail immediately.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    timeout_seconds: float = 10.0
    retriable_exceptions: Tuple[Type[BaseException], ...] = (
        OperationalError,
        DBAPIError,
    )
    non_retriable_exceptions: Tuple[Type[BaseException], ...] = (
        IntegrityError,
        ProgrammingError,
        DataError,
    )

    @classmethod
    def from_config(cls) -> DatabaseRetryConfig:
        """Build retry configuration from Config with safe defaults."""
        return cls(
            max_attempts=int(getattr(Config, "DATABASE_RETRY_MAX_ATTEMPTS", 3)),
            initial_backoff_ms=int(
                getattr(Config, "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50)
            ),
            max_backoff_ms=int(getattr(Config, "DATABASE_RETRY_MAX_BACKOFF_MS", 1000)),
            jitter_ms=int(getattr(Config, "DATABASE_RETRY_JITTER_MS", 50)),
            timeout_seconds=float(
                getattr(Config, "DATABASE_OPERATION_TIMEOUT_SECONDS", 10)
            ),
        )


# ============================================================================
# Retry Policy
# ============================================================================


class DatabaseRetryPolicy:
    """
    Execute async database operations with retry semantics.

    Public API
    ----------
    - __init__(config) -> Create policy with configuration
    - from_config() -> Create policy from Config
    - execute(operation, operation_name, context, timeout) -> Execute with retries

    Usage
    -----
    >>> retry_policy = DatabaseRetryPolicy.from_config()
    >>> result = await retry_policy.execute(
    ...     db_operation,
    ...     operation_name="tasks.claim",
    ...     context={"account_identity": 42},
    ... )
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> DatabaseRetryPolicy:
        return cls(DatabaseRetryConfig.from_config())

    @property
    def config(self) -> DatabaseRetryConfig:
        return self._config

    def _is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, self._config.non_retriable_exceptions):
            return False
        return isinstance(exc, self._config.retriable_exceptions)

    def _compute_backoff_ms(self, attempt: int) -> int:
        """
        Compute backoff duration for given attempt with jitter.

        Parameters
        ----------
        attempt : int
            Current attempt number (1-indexed).
        """
        exponent = max(attempt - 1, 0)
        base = self._config.initial_backoff_ms * (2**exponent)
        capped = min(base, self._config.max_backoff_ms)

        jitter = (
            random.randint(0, self._config.jitter_ms)
            if self._config.jitter_ms > 0
            else 0
        )

        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Execute async operation with retries and an overall timeout.

        Parameters
        ----------
        operation : Callable[[], Awaitable[T]]
            Zero-argument async callable that opens its own transaction.
        operation_name : str
            Stable identifier for logging (e.g., "tasks.claim").
        context : Optional[dict[str, Any]]
            Additional structured context for logs.
        timeout : Optional[float]
            Seconds allowed for all attempts together. Defaults to
            `DatabaseRetryConfig.timeout_seconds`; `0` disables the bound.

        Raises
        ------
        TransientStoreError
            When retries are exhausted on a retriable error, or the timeout
            elapses. Nothing has been committed.
        Exception
            Any non-retriable exception, propagated unchanged on first sight.
        """
        ctx_extra = context.copy() if context else {}
        ctx_extra["operation"] = operation_name

        budget = self._config.timeout_seconds if timeout is None else timeout
        attempts_made = [0]

        if not budget or budget <= 0:
            return await self._run_attempts(operation, operation_name, ctx_extra, attempts_made)

        try:
            return await asyncio.wait_for(
                self._run_attempts(operation, operation_name, ctx_extra, attempts_made),
                timeout=budget,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "Database operation timed out",
                extra={
                    **ctx_extra,
                    "attempt": attempts_made[0],
                    "timeout_seconds": budget,
                },
            )
            raise TransientStoreError(
                operation=operation_name,
                attempts=attempts_made[0],
                original_error=exc,
                timed_out=True,
            ) from exc

    async def _run_attempts(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        ctx_extra: dict[str, Any],
        attempts_made: list[int],
    ) -> T:
        attempt = 0

        while True:
            attempt += 1
            attempts_made[0] = attempt

            try:
                logger.debug(
                    "Executing database operation with retry policy",
                    extra={**ctx_extra, "attempt": attempt},
                )
                return await operation()

            except Exception as exc:
                if not self._is_retriable(exc):
                    raise

                error_type = type(exc).__name__
                will_retry = attempt < self._config.max_attempts

                logger.warning(
                    "Database operation failed",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "will_retry": will_retry,
                    },
                )

                if not will_retry:
                    logger.error(
                        "Database operation retries exhausted",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise TransientStoreError(
                        operation=operation_name,
                        attempts=attempt,
                        original_error=exc,
                    ) from exc

                backoff_ms = self._compute_backoff_ms(attempt)

                logger.debug(
                    "Backing off before retry",
                    extra={**ctx_extra, "attempt": attempt, "backoff_ms": backoff_ms},
                )

                await asyncio.sleep(backoff_ms / 1000.0)
