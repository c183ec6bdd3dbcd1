"""
Unit tests for the check-in streak rules.

Tests the transition table, calendar-day boundaries in a configured
timezone, and the reward schedule.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gigvault.core.exceptions import ConfigurationError
from gigvault.modules.checkin.streak_logic import (
    RewardSchedule,
    StreakTransition,
    calendar_date,
    compute_transition,
    days_between,
    resolve_timezone,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestTransitionTable:
    """Test every row of the streak transition table."""

    def test_first_ever_check_in_starts_streak_at_one(self):
        """No previous check-in always yields streak 1."""
        transition = compute_transition(None, NOW, current_streak=0, has_shield=False)

        assert transition == StreakTransition(allowed=True, new_streak=1)

    def test_first_ever_ignores_shield_and_stored_streak(self):
        """A stale stored streak is irrelevant without a previous check-in."""
        transition = compute_transition(None, NOW, current_streak=9, has_shield=True)

        assert transition.new_streak == 1
        assert transition.shield_used is False

    def test_same_day_is_rejected(self):
        """A second check-in on the same calendar date is not allowed."""
        earlier_today = NOW.replace(hour=0, minute=5)

        transition = compute_transition(earlier_today, NOW, current_streak=4, has_shield=True)

        assert transition.allowed is False
        assert transition.new_streak == 4
        assert transition.shield_used is False

    def test_previous_day_increments(self):
        """streak=5, last check-in yesterday -> streak 6."""
        transition = compute_transition(
            NOW - timedelta(days=1), NOW, current_streak=5, has_shield=False
        )

        assert transition == StreakTransition(allowed=True, new_streak=6)

    def test_gap_with_shield_keeps_streak(self):
        """streak=5, three days ago, shield held -> streak 6 and shield used."""
        transition = compute_transition(
            NOW - timedelta(days=3), NOW, current_streak=5, has_shield=True
        )

        assert transition.allowed is True
        assert transition.new_streak == 6
        assert transition.shield_used is True
        assert transition.will_reset is False

    def test_gap_without_shield_resets(self):
        """streak=5, three days ago, no shield -> streak 1."""
        transition = compute_transition(
            NOW - timedelta(days=3), NOW, current_streak=5, has_shield=False
        )

        assert transition.allowed is True
        assert transition.new_streak == 1
        assert transition.will_reset is True
        assert transition.shield_used is False

    def test_future_last_check_in_counts_as_today(self):
        """Clock skew (last check-in after now) never grants a check-in."""
        transition = compute_transition(
            NOW + timedelta(days=2), NOW, current_streak=3, has_shield=False
        )

        assert transition.allowed is False

    def test_negative_stored_streak_is_clamped(self):
        """A corrupt negative streak is treated as zero."""
        transition = compute_transition(
            NOW - timedelta(days=1), NOW, current_streak=-4, has_shield=False
        )

        assert transition.new_streak == 1


class TestCalendarBoundaries:
    """Test that days are calendar dates, not 24-hour windows."""

    def test_one_minute_across_midnight_is_next_day(self):
        """23:59 -> 00:00 is a new day even though only a minute passed."""
        last = datetime(2025, 3, 9, 23, 59, tzinfo=timezone.utc)
        now = datetime(2025, 3, 10, 0, 0, tzinfo=timezone.utc)

        transition = compute_transition(last, now, current_streak=2, has_shield=False)

        assert transition.allowed is True
        assert transition.new_streak == 3

    def test_twenty_three_hours_same_date_is_same_day(self):
        """00:30 -> 23:30 on one date is still the same day."""
        last = datetime(2025, 3, 10, 0, 30, tzinfo=timezone.utc)
        now = datetime(2025, 3, 10, 23, 30, tzinfo=timezone.utc)

        assert days_between(last, now, timezone.utc) == 0

    def test_configured_timezone_moves_the_boundary(self):
        """Midnight in the configured zone, not UTC, separates days."""
        tz = timezone(timedelta(hours=3))
        # 20:00 UTC and 22:00 UTC are both on Mar 10 in UTC,
        # but 23:00 and 01:00 (next day) at UTC+3.
        last = datetime(2025, 3, 10, 20, 0, tzinfo=timezone.utc)
        now = datetime(2025, 3, 10, 22, 0, tzinfo=timezone.utc)

        assert days_between(last, now, timezone.utc) == 0
        assert days_between(last, now, tz) == 1

    def test_naive_datetimes_are_treated_as_utc(self):
        """Naive stored values are interpreted as UTC."""
        naive = datetime(2025, 3, 10, 1, 0)

        assert calendar_date(naive, timezone.utc) == NOW.date()


class TestResolveTimezone:
    """Test timezone configuration parsing."""

    @pytest.mark.parametrize("name", [None, "", "UTC", "utc"])
    def test_utc_aliases(self, name):
        """Empty and UTC names resolve to the fixed UTC zone."""
        assert resolve_timezone(name) is timezone.utc

    def test_unknown_zone_is_configuration_error(self):
        """An unknown zone name is a configuration mistake."""
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_timezone("Mars/Olympus_Mons")

        assert exc_info.value.config_key == "checkin.timezone"


class TestRewardSchedule:
    """Test reward(day) = base + min(day, cap) * increment."""

    def test_day_six_reward(self):
        """streak 6 with defaults earns 100 + 6 * 50."""
        assert RewardSchedule().reward_for(6) == 400

    def test_reward_is_capped(self):
        """Days past the cap earn the cap reward."""
        schedule = RewardSchedule(base_reward=100, increment=50, cap_day=7)

        assert schedule.reward_for(7) == schedule.reward_for(30) == 450

    def test_bonus_spin_at_and_after_cap(self):
        """The cap bonus is granted whenever the cap is met or exceeded."""
        schedule = RewardSchedule(cap_day=7, cap_bonus_spins=2)

        assert schedule.bonus_spins_for(6) == 0
        assert schedule.bonus_spins_for(7) == 2
        assert schedule.bonus_spins_for(12) == 2
