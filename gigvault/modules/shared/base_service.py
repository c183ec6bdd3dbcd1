"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all GigVault resolvers. Services
implement business rules, open atomic units of work, and emit domain events
once those units commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- `run_atomic()`: one transaction per attempt, under the retry policy
- Validation error wrapping

What this class does NOT do:
- Hold per-account state between calls (services hold configuration only)
- Retry business failures (domain exceptions propagate on first sight)

Usage
-----
    class TaskService(BaseService):
        def __init__(self, config_manager, event_bus, logger, ledger):
            super().__init__(config_manager, event_bus, logger)
            self._ledger = ledger

        async def claim_task(self, identity: int, task_id: int):
            async def _work(session):
                ...

            return await self.run_atomic("tasks.claim", _work)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, TypeVar

from gigvault.core.database.retry_policy import DatabaseRetryPolicy
from gigvault.core.database.service import DatabaseService
from gigvault.core.exceptions import ConfigurationError, is_transient_error, should_alert
from gigvault.core.logging.logger import LogContext

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.event.bus import EventBus

T = TypeVar("T")


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Economy configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
        retry_policy: Policy for atomic units (defaults to one built from Config)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key not found
            required: If True, raise exception if key missing

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    async def run_atomic(
        self,
        operation_name: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        context: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run `work(session)` inside a fresh transaction with bounded retries.

        Every attempt opens its own `DatabaseService.get_transaction()`, so a
        retried attempt never sees the partial writes of a failed one. Log
        records emitted during the unit carry the caller identity and
        operation name.

        Args:
            operation_name: Stable identifier for logs (e.g. "tasks.claim")
            work: Async callable receiving the transactional session
            context: Extra structured log context
            timeout: Seconds for all attempts together (None = configured default)

        Raises:
            TransientStoreError: Retries exhausted or timeout elapsed
            GigDomainException: Business rule violations, never retried
        """

        async def _unit() -> T:
            async with DatabaseService.get_transaction() as session:
                return await work(session)

        async with LogContext(
            account_id=(context or {}).get("account_identity"),
            component=type(self).__name__,
            operation=operation_name,
        ):
            return await self._retry.execute(
                _unit,
                operation_name=operation_name,
                context=context,
                timeout=timeout,
            )

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event for cross-module communication.

        Call only after the unit that produced the event has committed.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """
        Log a service error with full context.

        Errors below ERROR severity (a store outage that retries could not
        hide, a refused request) are logged as warnings.
        """
        level = logging.ERROR if should_alert(error) else logging.WARNING
        self.log.log(
            level,
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "retryable": is_transient_error(error),
                **context,
            },
        )

    def validate_positive_int(self, value: int, name: str) -> None:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not positive
        """
        from .exceptions import ValidationError

        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value}"
            )

    def validate_non_negative_int(self, value: int, name: str) -> None:
        """
        Validate that a value is a non-negative integer.

        Raises:
            ValidationError: If value is negative
        """
        from .exceptions import ValidationError

        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )
