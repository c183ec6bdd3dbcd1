"""
Domain exceptions for the GigVault reward engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy raised by
resolvers for business rule violations. Callers (HTTP handlers, bots, tests)
translate these into user-facing responses; none of them is retried.

Design Notes
------------
- All domain exceptions inherit from `GigDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: always False for business outcomes
  - `error_code`: short, stable identifier for programmatic use
- `ConflictError` groups the "already happened" outcomes: a duplicate task
  claim, a second check-in on the same day, a replayed external receipt.
- Transient store failures live in `gigvault.core.exceptions`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from gigvault.core.exceptions import ErrorSeverity


class GigDomainException(Exception):
    """
    Base exception for all GigVault domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise GigDomainException("Claim failed", {"task_id": 7})
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


class ValidationError(GigDomainException):
    """
    Raised when user input fails validation.

    Args:
        field: Name of the invalid field
        message: What is wrong with it
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(
            f"Invalid {field}: {message}",
            details={"field": field, "reason": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(GigDomainException):
    """
    Raised when a referenced account, task or item does not exist.

    Args:
        resource_type: Type of resource (e.g., "Account", "Task", "Item")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ConflictError(GigDomainException):
    """Raised when a one-time action has already happened."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    ERROR_CODE = "CONFLICT"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, error_code=self.ERROR_CODE)


class AlreadyClaimedError(ConflictError):
    """Raised when a task completion already exists for the account."""

    ERROR_CODE = "TASK_ALREADY_CLAIMED"

    def __init__(self, account_identity: int, task_id: int) -> None:
        self.account_identity = account_identity
        self.task_id = task_id
        super().__init__(
            "Task already completed",
            details={"account_identity": account_identity, "task_id": task_id},
        )


class AlreadyCheckedInTodayError(ConflictError):
    """Raised on a second check-in within the same calendar day."""

    ERROR_CODE = "ALREADY_CHECKED_IN_TODAY"

    def __init__(self, account_identity: int, current_streak: int) -> None:
        self.account_identity = account_identity
        self.current_streak = current_streak
        super().__init__(
            "Already checked in today. Come back tomorrow!",
            details={
                "account_identity": account_identity,
                "current_streak": current_streak,
            },
        )


class DuplicateExternalReceiptError(ConflictError):
    """Raised when an external reward record id has already been credited."""

    ERROR_CODE = "DUPLICATE_EXTERNAL_RECEIPT"

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(
            "External reward already processed",
            details={"record_id": record_id},
        )


class DuplicateWithdrawalError(ConflictError):
    """Raised when a transaction hash already backs a withdrawal request."""

    ERROR_CODE = "DUPLICATE_WITHDRAWAL"

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(
            "This transaction has already been used for a withdrawal request",
            details={"tx_hash": tx_hash},
        )


class InsufficientResourcesError(GigDomainException):
    """
    Raised when an account lacks the balance or item quantity for an action.

    Args:
        resource: Name of the resource (e.g., "balance", "Streak Shield")
        required: Amount required for the action
        current: Amount currently held
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource: str, required: int, current: int) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient {resource}: need {required:,}, have {current:,}",
            details={
                "resource": resource,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code="INSUFFICIENT_" + resource.upper().replace(" ", "_").replace("-", "_"),
        )


class UnauthorizedError(GigDomainException):
    """
    Raised when the caller may not perform an action (not an admin, banned).

    Args:
        action: The attempted action
        reason: Why it is refused
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Not allowed to {action}: {reason}",
            details={"action": action, "reason": reason},
            error_code="UNAUTHORIZED",
        )


class CooldownActiveError(GigDomainException):
    """
    Raised when an action is attempted before its cooldown has elapsed.

    Args:
        action: Action on cooldown (e.g., "attack")
        remaining_seconds: Seconds until the action is available
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG

    def __init__(self, action: str, remaining_seconds: float) -> None:
        self.action = action
        self.remaining_seconds = remaining_seconds
        minutes = max(1, int(-(-remaining_seconds // 60)))
        super().__init__(
            f"Cooldown active for {action}. Wait {minutes} minute(s).",
            details={
                "action": action,
                "remaining_seconds": round(remaining_seconds, 1),
            },
            error_code="COOLDOWN_ACTIVE",
        )


class InvalidOperationError(GigDomainException):
    """
    Raised when an action is not valid in the current state.

    Args:
        action: The attempted action (e.g., "use_item")
        reason: Why the action is invalid
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action}: {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


class TaskInactiveError(InvalidOperationError):
    """Raised when a claim targets a task that is no longer active."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__("claim_task", "Task is no longer active")
        self.details["task_id"] = task_id
        self.error_code = "TASK_INACTIVE"
