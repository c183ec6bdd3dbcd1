"""
Unit tests for farming accrual.

Tests per-minute earnings, flooring, the duration cap and skewed clocks.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gigvault.modules.farming.farming_logic import (
    FarmingProgress,
    farming_progress,
    max_earnings,
)

START = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


class TestFarmingProgress:
    """Test earnings over the life of a session."""

    def test_not_farming_earns_nothing(self):
        progress = farming_progress(None, START, Decimal("0.5"), 480)

        assert progress == FarmingProgress(
            elapsed_minutes=0, earnings=0, max_earnings=240, is_full=False
        )

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (timedelta(minutes=1), 0),
            (timedelta(minutes=2), 1),
            (timedelta(minutes=61), 30),
            (timedelta(minutes=3, seconds=59), 1),
            (timedelta(hours=4), 120),
        ],
    )
    def test_earnings_are_floored(self, elapsed, expected):
        """0.5 per minute, rounded down to whole units."""
        progress = farming_progress(START, START + elapsed, Decimal("0.5"), 480)

        assert progress.earnings == expected
        assert progress.is_full is False

    def test_fractional_minutes_count(self):
        """Seconds accrue too: 90 s at rate 2 pays 3."""
        progress = farming_progress(START, START + timedelta(seconds=90), 2, 480)

        assert progress.earnings == 3
        assert progress.elapsed_minutes == 1

    def test_cap_stops_accrual(self):
        """Past eight hours the session is full and pays the maximum."""
        # Arrange
        later = START + timedelta(hours=30)

        # Act
        progress = farming_progress(START, later, Decimal("0.5"), 480)

        # Assert
        assert progress.is_full is True
        assert progress.elapsed_minutes == 480
        assert progress.earnings == progress.max_earnings == 240

    def test_exactly_at_cap_is_full(self):
        progress = farming_progress(START, START + timedelta(minutes=480), 1, 480)

        assert progress.is_full is True
        assert progress.earnings == 480

    def test_start_in_future_earns_nothing(self):
        """A start stamped after `now` (clock skew) never pays negative."""
        progress = farming_progress(START, START - timedelta(minutes=5), Decimal("0.5"), 480)

        assert progress.earnings == 0
        assert progress.elapsed_minutes == 0

    @pytest.mark.parametrize(
        "rate,expected", [(Decimal("0.5"), 240), (0.1, 48), ("1.25", 600), (0, 0)]
    )
    def test_max_earnings(self, rate, expected):
        assert max_earnings(rate, 480) == expected
