"""
Input Validation Layer for GigVault

Purpose
-------
Centralized validation of caller-supplied values before they reach a
resolver: identities, ids, amounts, free-form names and choice fields.

Responsibilities
----------------
- Validate and convert inputs to the correct types
- Enforce bounds checking for numerical inputs
- Validate identities as positive 64-bit integers; a bad caller identity
  is refused as UnauthorizedError
- Validate string length and choice inputs
- Raise ValidationError with user-friendly messages for everything else

Non-Responsibilities
--------------------
- Business rule validation (resolver concern, evaluated inside the
  mutating transaction)
- Authorization (AdminService)

Observability
-------------
Every validation failure is logged at debug level with field_name,
raw_value (repr) and reason.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional, Sequence

from gigvault.core.logging.logger import get_logger
from gigvault.modules.shared.exceptions import UnauthorizedError, ValidationError

logger = get_logger(__name__)

MAX_BIGINT = 2**63 - 1


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation helpers.

    All methods return the validated (and converted) value or raise
    ValidationError; none of them fails silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Booleans are rejected even though `bool` subclasses `int`.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got '{value}'",
            )

        if isinstance(value, float) and value != int_value:
            _raise_validation_error(field_name, value, "Must be a whole number")

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = MAX_BIGINT,
    ) -> int:
        """Validate that value is a strictly positive integer (>= 1)."""
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
            allow_zero=False,
        )

    @staticmethod
    def validate_identity(value: Any, field_name: str = "identity") -> int:
        """
        Validate an authenticated caller identity.

        Identities come from the identity provider as 64-bit positive
        integers (e.g. Telegram user ids).
        """
        return InputValidator.validate_positive_integer(
            value=value,
            field_name=field_name,
            max_value=MAX_BIGINT,
        )

    @staticmethod
    def validate_caller(value: Any, action: str) -> int:
        """
        Validate the identity of the caller performing `action`.

        A missing or malformed caller identity means the request never
        authenticated, so it is refused as UnauthorizedError. Identities that
        name someone else (a target, a referrer) go through
        `validate_identity()` and stay ValidationError.
        """
        try:
            return InputValidator.validate_identity(value)
        except ValidationError as exc:
            raise UnauthorizedError(action, "missing or invalid caller identity") from exc

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_chars: Optional[str] = None,
    ) -> str:
        """
        Validate string input with optional length and character constraints.

        Args:
            value: String value to validate (converted via str())
            field_name: Name of field for error messages
            min_length: Minimum string length
            max_length: Maximum string length
            allowed_chars: Regex character class for allowed characters
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        if allowed_chars is not None:
            if not re.match(f"^[{allowed_chars}]+$", str_value):
                _raise_validation_error(
                    field_name,
                    str_value,
                    "Contains invalid characters",
                )

        return str_value

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """Validate that value is one of the allowed choices (case-insensitive)."""
        str_value = str(value).lower().strip()
        normalized_choices = {choice.lower() for choice in valid_choices}

        if str_value not in normalized_choices:
            choices_str = ", ".join(sorted(valid_choices))
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {choices_str}",
            )

        return str_value
