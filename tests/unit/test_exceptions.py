"""
Unit tests for the domain and infrastructure exception hierarchy.
"""

import pytest

from gigvault.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    TransientStoreError,
    is_transient_error,
    should_alert,
)
from gigvault.modules.shared.exceptions import (
    AlreadyCheckedInTodayError,
    AlreadyClaimedError,
    ConflictError,
    CooldownActiveError,
    DuplicateExternalReceiptError,
    DuplicateWithdrawalError,
    GigDomainException,
    InsufficientResourcesError,
    InvalidOperationError,
    NotFoundError,
    TaskInactiveError,
    ValidationError,
)


class TestConflictFamily:
    """Test that every "already happened" outcome is a ConflictError."""

    @pytest.mark.parametrize(
        "error",
        [
            AlreadyClaimedError(1, 2),
            AlreadyCheckedInTodayError(1, 5),
            DuplicateExternalReceiptError("rec-1"),
            DuplicateWithdrawalError("tx-1"),
        ],
    )
    def test_conflicts_share_base_and_are_not_retryable(self, error):
        assert isinstance(error, ConflictError)
        assert isinstance(error, GigDomainException)
        assert error.is_retryable is False

    def test_conflict_error_codes_are_stable(self):
        assert AlreadyClaimedError(1, 2).error_code == "TASK_ALREADY_CLAIMED"
        assert AlreadyCheckedInTodayError(1, 5).error_code == "ALREADY_CHECKED_IN_TODAY"
        assert DuplicateExternalReceiptError("r").error_code == "DUPLICATE_EXTERNAL_RECEIPT"
        assert DuplicateWithdrawalError("t").error_code == "DUPLICATE_WITHDRAWAL"


class TestDomainExceptions:
    """Test messages and structured details."""

    def test_not_found_with_identifier(self):
        error = NotFoundError("Task", 7)

        assert error.message == "Task not found: 7"
        assert error.error_code == "TASK_NOT_FOUND"
        assert error.details == {"resource_type": "Task", "identifier": 7}

    def test_insufficient_resources_reports_deficit(self):
        """Deficit is required minus current."""
        error = InsufficientResourcesError("balance", required=5_000, current=1_200)

        assert error.details["deficit"] == 3_800
        assert error.error_code == "INSUFFICIENT_BALANCE"
        assert "5,000" in error.message

    def test_cooldown_rounds_minutes_up(self):
        """61 seconds remaining reads as 2 minutes."""
        error = CooldownActiveError("attack", 61)

        assert "2 minute(s)" in error.message
        assert error.severity is ErrorSeverity.DEBUG

    def test_task_inactive_is_invalid_operation(self):
        error = TaskInactiveError(3)

        assert isinstance(error, InvalidOperationError)
        assert error.error_code == "TASK_INACTIVE"
        assert error.details["task_id"] == 3

    def test_validation_error_code_names_the_field(self):
        assert ValidationError("amount", "bad").error_code == "VALIDATION_AMOUNT"

    def test_to_dict_shape(self):
        payload = NotFoundError("Account", 42).to_dict()

        assert payload["error_type"] == "NotFoundError"
        assert payload["severity"] == "info"
        assert payload["is_retryable"] is False


class TestInfrastructureExceptions:
    """Test transient classification helpers."""

    def test_transient_store_error_is_retryable(self):
        error = TransientStoreError("tasks.claim", attempts=3)

        assert is_transient_error(error) is True
        assert error.details["attempts"] == 3
        assert "store unavailable" in error.message

    def test_timeout_variant_message(self):
        error = TransientStoreError("tasks.claim", attempts=1, timed_out=True)

        assert "timed out" in error.message

    def test_domain_errors_are_never_transient(self):
        assert is_transient_error(AlreadyClaimedError(1, 1)) is False

    def test_configuration_error_alerts(self):
        assert should_alert(ConfigurationError("checkin.timezone", "bad")) is True
        assert should_alert(TransientStoreError("op", attempts=1)) is False

    def test_domain_severity_drives_alerting(self):
        """Refusals never alert; unknown exceptions always do."""
        assert should_alert(NotFoundError("Account", 1)) is False
        assert should_alert(GigDomainException("unexpected")) is True
        assert should_alert(RuntimeError("boom")) is True
