"""
Integration Tests for CheckInService
====================================

Purpose
-------
Verify daily check-ins end to end: streak transitions, shield consumption,
reward crediting and the read-only status preview. `now` is injected so
calendar days are deterministic.
"""

import asyncio
from datetime import timedelta

import pytest

from gigvault.modules.shared.exceptions import (
    AlreadyCheckedInTodayError,
    NotFoundError,
    UnauthorizedError,
)
from tests.conftest import events_named, utc

NOW = utc(2025, 6, 15, 9, 30)
SHIELD = "Streak Shield"


@pytest.mark.integration
@pytest.mark.database
class TestCheckIn:
    """Test the check-in resolver."""

    async def test_first_check_in(self, engine, make_account, load_account, recorded_events):
        """First-ever check-in yields streak 1 and BASE + INCREMENT."""
        # Arrange
        await make_account(4001)

        # Act
        result = await engine.check_in(4001, now=NOW)

        # Assert
        assert result == {
            "reward": 150,
            "streak": 1,
            "shield_used": False,
            "bonus_spins": 0,
            "bonus_spins_available": 0,
            "new_balance": 150,
        }
        account = await load_account(4001)
        assert account.streak == 1
        assert account.last_check_in == NOW
        assert len(events_named(recorded_events, "checkin.completed")) == 1

    async def test_same_day_is_rejected(self, engine, make_account, load_account):
        """A second check-in on the same date raises and credits nothing."""
        # Arrange
        await make_account(4002)
        await engine.check_in(4002, now=NOW)

        # Act
        with pytest.raises(AlreadyCheckedInTodayError) as exc_info:
            await engine.check_in(4002, now=NOW + timedelta(hours=10))

        # Assert
        assert exc_info.value.current_streak == 1
        assert (await load_account(4002)).balance == 150

    async def test_consecutive_day_increments(self, engine, make_account):
        """streak=5, checked in yesterday -> streak 6, reward BASE + 6 x INCREMENT."""
        await make_account(4003, streak=5, last_check_in=NOW - timedelta(days=1))

        result = await engine.check_in(4003, now=NOW)

        assert result["streak"] == 6
        assert result["reward"] == 100 + 6 * 50
        assert result["shield_used"] is False

    async def test_missed_days_with_shield(
        self, engine, make_account, give_item, quantity_of, load_account
    ):
        """streak=5, 3 days ago, one shield -> streak 6 and the shield is gone."""
        # Arrange
        await make_account(4004, streak=5, last_check_in=NOW - timedelta(days=3))
        await give_item(4004, SHIELD, 1)

        # Act
        result = await engine.check_in(4004, now=NOW)

        # Assert
        assert result["streak"] == 6
        assert result["shield_used"] is True
        assert await quantity_of(4004, SHIELD) == 0
        assert (await load_account(4004)).streak == 6

    async def test_missed_days_without_shield_resets(self, engine, make_account, catalog):
        """streak=5, 3 days ago, no shield -> streak 1."""
        await make_account(4005, streak=5, last_check_in=NOW - timedelta(days=3))

        result = await engine.check_in(4005, now=NOW)

        assert result["streak"] == 1
        assert result["reward"] == 150
        assert result["shield_used"] is False

    async def test_cap_day_grants_bonus_spin(self, engine, make_account, load_account):
        """Reaching the cap pays the capped reward and banks the bonus spin."""
        await make_account(
            4006, streak=6, last_check_in=NOW - timedelta(days=1), bonus_spins=2
        )

        result = await engine.check_in(4006, now=NOW)

        assert result["streak"] == 7
        assert result["reward"] == 450
        assert result["bonus_spins"] == 1
        assert result["bonus_spins_available"] == 3
        assert (await load_account(4006)).bonus_spins == 3

    async def test_past_cap_keeps_capped_reward(self, engine, make_account):
        await make_account(4007, streak=20, last_check_in=NOW - timedelta(days=1))

        result = await engine.check_in(4007, now=NOW)

        assert result["streak"] == 21
        assert result["reward"] == 450
        assert result["bonus_spins"] == 1

    async def test_configured_schedule_is_used(self, engine, make_account, config_manager):
        """Runtime overrides of the schedule apply to the next check-in."""
        config_manager.set("checkin.base_reward", 10)
        config_manager.set("checkin.increment", 1)
        await make_account(4008)

        result = await engine.check_in(4008, now=NOW)

        assert result["reward"] == 11

    async def test_concurrent_check_ins_credit_once(self, engine, make_account, load_account):
        """Simultaneous check-ins on one day: exactly one succeeds."""
        # Arrange
        await make_account(4009)

        # Act
        results = await asyncio.gather(
            *(engine.check_in(4009, now=NOW) for _ in range(6)),
            return_exceptions=True,
        )

        # Assert
        assert sum(1 for r in results if isinstance(r, dict)) == 1
        assert all(
            isinstance(r, AlreadyCheckedInTodayError) for r in results if not isinstance(r, dict)
        )
        assert (await load_account(4009)).balance == 150

    async def test_unknown_and_banned_accounts(self, engine, make_account):
        await make_account(4010, is_banned=True)

        with pytest.raises(NotFoundError):
            await engine.check_in(4099, now=NOW)
        with pytest.raises(UnauthorizedError):
            await engine.check_in(4010, now=NOW)


@pytest.mark.integration
@pytest.mark.database
class TestCheckInStatus:
    """Test the read-only preview."""

    async def test_status_for_unknown_account(self, engine, container):
        status = await engine.check_in_status(4199, now=NOW)

        assert status["can_check_in"] is True
        assert status["current_streak"] == 0
        assert status["next_reward"] == 150
        assert status["last_check_in"] is None

    async def test_status_after_check_in_today(self, engine, make_account):
        """After today's check-in the preview shows tomorrow's reward."""
        await make_account(4101)
        await engine.check_in(4101, now=NOW)

        status = await engine.check_in_status(4101, now=NOW + timedelta(hours=1))

        assert status["can_check_in"] is False
        assert status["current_streak"] == 1
        assert status["next_reward"] == 200
        assert status["will_reset"] is False
        assert status["last_check_in"] == NOW.isoformat()

    async def test_status_predicts_reset_without_mutating(
        self, engine, make_account, load_account, catalog
    ):
        """A pending reset is reported but nothing is written."""
        # Arrange
        await make_account(4102, streak=4, last_check_in=NOW - timedelta(days=2))

        # Act
        status = await engine.check_in_status(4102, now=NOW)

        # Assert
        assert status["can_check_in"] is True
        assert status["will_reset"] is True
        assert status["current_streak"] == 0
        assert status["next_reward"] == 150
        assert status["has_shield"] is False
        account = await load_account(4102)
        assert account.streak == 4
        assert account.balance == 0

    async def test_status_reports_shield_protection(self, engine, make_account, give_item, quantity_of):
        """With a shield the preview keeps the streak and consumes nothing."""
        await make_account(4103, streak=4, last_check_in=NOW - timedelta(days=2))
        await give_item(4103, SHIELD, 2)

        status = await engine.check_in_status(4103, now=NOW)

        assert status["has_shield"] is True
        assert status["shield_count"] == 2
        assert status["will_reset"] is False
        assert status["current_streak"] == 4
        assert status["next_reward"] == 100 + 5 * 50
        assert await quantity_of(4103, SHIELD) == 2
