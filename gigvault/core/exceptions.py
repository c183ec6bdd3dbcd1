"""
Infrastructure exceptions for the GigVault reward engine.

Purpose
-------
Define the exception hierarchy for infrastructure-level concerns:
configuration errors and exhausted retries or timeouts of the ledger store,
neither of which is a business rule violation.

Design Notes
------------
- All infrastructure exceptions inherit from `GigInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `TransientStoreError` is the only failure a caller should retry; domain
  exceptions in `gigvault.modules.shared.exceptions` are never retried.
- Helper functions (`is_transient_error`, `should_alert`) pick log levels and
  retry hints in `BaseService.log_error()`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., cooldowns)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class GigInfrastructureException(Exception):
    """
    Base exception for all GigVault infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(GigInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class TransientStoreError(GigInfrastructureException):
    """
    Raised when the ledger store stays unavailable after bounded retries,
    or when an atomic unit exceeds its caller-scoped timeout.

    Nothing was committed when this is raised; the caller may retry the
    whole operation.

    Args:
        operation: Stable operation name (e.g., "tasks.claim")
        attempts: Number of attempts made before giving up
        original_error: The last underlying exception, if any
        timed_out: Whether the final attempt hit the operation timeout
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        attempts: int,
        original_error: Optional[BaseException] = None,
        timed_out: bool = False,
    ) -> None:
        self.operation = operation
        self.attempts = attempts
        self.original_error = original_error
        self.timed_out = timed_out

        reason = "timed out" if timed_out else "store unavailable"
        message = f"Transient store failure during {operation} ({reason}, {attempts} attempt(s))"
        super().__init__(
            message,
            details={
                "operation": operation,
                "attempts": attempts,
                "timed_out": timed_out,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code="TRANSIENT_STORE_FAILURE",
            is_retryable=True,
        )




# Utility functions for exception handling patterns


def is_transient_error(exc: BaseException) -> bool:
    """True when the caller may retry the whole operation."""
    if isinstance(exc, GigInfrastructureException):
        return exc.is_retryable
    return False


def should_alert(exc: BaseException) -> bool:
    """
    Whether an exception deserves an error-level log line.

    Both exception trees carry `severity`; anything else is unexpected and
    always alerts.
    """
    severity = getattr(exc, "severity", ErrorSeverity.ERROR)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
