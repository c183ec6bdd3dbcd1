"""
Integration Tests for PvPService
================================

Purpose
-------
Verify target scanning with concealment/detection, heist resolution with
shields, fines, cooldowns and revenge, dual-account atomic transfers under
concurrency, and the leaderboard. The roll is patched for determinism.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from gigvault.core.database.service import DatabaseService
from gigvault.database.models import BattleLog
from gigvault.modules.shared.exceptions import (
    CooldownActiveError,
    InsufficientResourcesError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)
from tests.conftest import events_named

PHANTOM = "Phantom Wallet"
DRONE = "Nano-Spy Drone"
SHIELD = "Streak Shield"


@pytest.fixture
def fixed_roll(container, mocker):
    """Force the heist roll: fixed_roll(99) wins, fixed_roll(0) loses."""

    def _fix(value: int):
        return mocker.patch.object(container.pvp, "_roll", return_value=value)

    return _fix


async def _battle_logs():
    async with DatabaseService.get_session() as session:
        return list((await session.scalars(select(BattleLog).order_by(BattleLog.id))).all())


# ============================================================================
# HEIST RESOLUTION
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestAttack:
    """Test heist outcomes."""

    async def test_win_transfers_steal_percentage(
        self, engine, make_account, load_account, fixed_roll, recorded_events
    ):
        """A winning roll moves 5% of the defender's balance to the attacker."""
        # Arrange
        await make_account(6001, balance=2_000)
        await make_account(6002, balance=10_000, display_name="Morpheus")
        fixed_roll(99)

        # Act
        result = await engine.attack(6001, 6002)

        # Assert
        assert result.outcome == "win"
        assert result.amount == 500
        assert result.attacker_balance == 2_500
        assert result.defender_name == "Morpheus"
        assert result.roll == 99
        attacker = await load_account(6001)
        assert attacker.pvp_wins == 1
        assert attacker.pvp_total_stolen == 500
        assert attacker.last_heist_at is not None
        assert (await load_account(6002)).balance == 9_500

        logs = await _battle_logs()
        assert [(log.outcome, log.amount, log.is_revenge) for log in logs] == [("win", 500, False)]
        assert events_named(recorded_events, "pvp.heist_resolved")[0]["outcome"] == "win"

    async def test_roll_at_threshold_loses(self, engine, make_account, load_account, fixed_roll):
        """The attacker must roll strictly above the threshold; a loss costs the fine."""
        await make_account(6003, balance=2_000)
        await make_account(6004, balance=10_000)
        fixed_roll(50)

        result = await engine.attack(6003, 6004)

        assert result.outcome == "lose"
        assert result.amount == 100
        assert (await load_account(6003)).balance == 1_900
        assert (await load_account(6004)).balance == 10_000

    async def test_lose_fine_capped_at_balance(self, engine, make_account, load_account, fixed_roll):
        """The fine never drives the attacker negative."""
        await make_account(6005, balance=30)
        await make_account(6006, balance=10_000)
        fixed_roll(0)

        result = await engine.attack(6005, 6006)

        assert result.amount == 30
        assert (await load_account(6005)).balance == 0

    async def test_shield_blocks_and_is_consumed(
        self, engine, make_account, load_account, give_item, quantity_of, fixed_roll
    ):
        """A defender's shield absorbs the heist; the attacker pays the shielded fine."""
        # Arrange
        await make_account(6007, balance=2_000)
        await make_account(6008, balance=10_000)
        await give_item(6008, SHIELD, 1)
        roll = fixed_roll(99)

        # Act
        result = await engine.attack(6007, 6008)

        # Assert
        assert result.outcome == "shielded"
        assert result.amount == 50
        assert result.roll is None
        roll.assert_not_called()
        assert await quantity_of(6008, SHIELD) == 0
        assert (await load_account(6007)).balance == 1_950
        assert (await load_account(6008)).balance == 10_000

    async def test_cooldown(self, engine, container, make_account, fixed_roll):
        """A second heist within the cooldown is rejected; after it, allowed."""
        # Arrange
        await make_account(6009, balance=2_000)
        await make_account(6010, balance=10_000)
        fixed_roll(0)
        start = datetime.now(timezone.utc)
        await container.pvp.attack(6009, 6010, now=start)

        # Act / Assert
        with pytest.raises(CooldownActiveError) as exc_info:
            await container.pvp.attack(6009, 6010, now=start + timedelta(minutes=10))
        assert exc_info.value.remaining_seconds == pytest.approx(3000, abs=1)

        result = await container.pvp.attack(6009, 6010, now=start + timedelta(seconds=3601))
        assert result.outcome == "lose"

    async def test_invalid_targets(self, engine, make_account):
        """Self-attacks, banned targets and unknown targets are refused."""
        await make_account(6011, balance=2_000)
        await make_account(6012, balance=10_000, is_banned=True)

        with pytest.raises(InvalidOperationError):
            await engine.attack(6011, 6011)
        with pytest.raises(InvalidOperationError):
            await engine.attack(6011, 6012)
        with pytest.raises(NotFoundError):
            await engine.attack(6011, 6099)

    async def test_banned_attacker(self, engine, make_account):
        await make_account(6013, balance=2_000, is_banned=True)
        await make_account(6014, balance=10_000)

        with pytest.raises(UnauthorizedError):
            await engine.attack(6013, 6014)


@pytest.mark.integration
@pytest.mark.database
class TestRevenge:
    """Test revenge heists."""

    async def test_revenge_requires_provocation(self, engine, make_account):
        await make_account(6101, balance=2_000)
        await make_account(6102, balance=10_000)

        with pytest.raises(InvalidOperationError):
            await engine.attack(6101, 6102, revenge=True)

    async def test_revenge_uses_revenge_rules(
        self, engine, container, make_account, load_account, fixed_roll
    ):
        """After being robbed, the victim strikes back with the 8% rule."""
        # Arrange
        await make_account(6103, balance=10_000)
        await make_account(6104, balance=10_000)
        fixed_roll(99)
        await engine.attack(6103, 6104)
        assert (await load_account(6103)).balance == 10_500

        # Act
        result = await engine.attack(6104, 6103, revenge=True)

        # Assert
        assert result.is_revenge is True
        assert result.outcome == "win"
        assert result.amount == 840
        logs = await _battle_logs()
        assert logs[-1].is_revenge is True


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestHeistConcurrency:
    """Test dual-account transfers under contention."""

    async def test_simultaneous_raids_on_one_defender(
        self, engine, make_account, load_account, fixed_roll
    ):
        """Two raids serialize on the defender row; nothing is lost or duplicated."""
        # Arrange
        await make_account(6201, balance=1_000)
        await make_account(6202, balance=1_000)
        await make_account(6203, balance=10_000)
        fixed_roll(99)

        # Act
        first, second = await asyncio.gather(engine.attack(6201, 6203), engine.attack(6202, 6203))

        # Assert
        assert sorted([first.amount, second.amount]) == [475, 500]
        assert (await load_account(6203)).balance == 10_000 - 975
        total = sum([(await load_account(i)).balance for i in (6201, 6202, 6203)])
        assert total == 12_000

    async def test_mutual_attacks_do_not_deadlock(
        self, engine, make_account, load_account, fixed_roll
    ):
        """A attacks B while B attacks A: canonical lock order lets both finish."""
        await make_account(6204, balance=10_000)
        await make_account(6205, balance=10_000)
        fixed_roll(99)

        results = await asyncio.gather(engine.attack(6204, 6205), engine.attack(6205, 6204))

        assert all(result.outcome == "win" for result in results)
        total = (await load_account(6204)).balance + (await load_account(6205)).balance
        assert total == 20_000


# ============================================================================
# TARGET SEARCH
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestFindTarget:
    """Test random target selection and concealment."""

    async def test_only_eligible_accounts_are_picked(self, engine, make_account):
        """Poor, banned and self accounts are never chosen."""
        # Arrange
        await make_account(6301, balance=50_000)
        await make_account(6302, balance=999)
        await make_account(6303, balance=50_000, is_banned=True)
        await make_account(6304, balance=3_000, display_name="Target")

        # Act
        views = [await engine.find_pvp_target(6301) for _ in range(10)]

        # Assert
        assert {view.identity for view in views} == {6304}
        assert views[0].displayed_balance == 3_000
        assert views[0].balance_range == "1K - 5K"
        assert views[0].name == "Target"

    async def test_no_eligible_target(self, engine, make_account):
        await make_account(6305, balance=50_000)

        with pytest.raises(NotFoundError):
            await engine.find_pvp_target(6305)

    async def test_offset_covers_whole_population(self, engine, container, make_account, mocker):
        """One offset is drawn over every eligible row and exactly that row is read."""
        # Arrange
        await make_account(6320)
        for identity in (6321, 6322, 6323):
            await make_account(identity, balance=5_000)
        randint = mocker.patch.object(container.pvp._rng, "randint", side_effect=[2, 0])

        # Act
        last = await engine.find_pvp_target(6320)
        first = await engine.find_pvp_target(6320)

        # Assert
        assert randint.call_args_list == [mocker.call(0, 2), mocker.call(0, 2)]
        assert last.identity == 6323
        assert first.identity == 6321

    async def test_concealed_target_shows_fake_balance(self, engine, make_account, give_item):
        """A Phantom Wallet hides the real balance behind a fake low value."""
        await make_account(6306)
        await make_account(6307, balance=80_000)
        await give_item(6307, PHANTOM, 1)

        view = await engine.find_pvp_target(6306)

        assert view.is_concealed is True
        assert 10 <= view.displayed_balance <= 100
        assert view.balance_range == "0 - 1K"
        assert view.detection_used is False

    async def test_detection_reveals_and_is_consumed(
        self, engine, make_account, give_item, quantity_of
    ):
        """A drone pierces the wallet and is decremented by exactly one."""
        # Arrange
        await make_account(6308)
        await make_account(6309, balance=80_000)
        await give_item(6309, PHANTOM, 1)
        await give_item(6308, DRONE, 2)

        # Act
        view = await engine.find_pvp_target(6308, use_detection_item=True)

        # Assert
        assert view.revealed is True
        assert view.detection_used is True
        assert view.displayed_balance == 80_000
        assert await quantity_of(6308, DRONE) == 1
        assert await quantity_of(6309, PHANTOM) == 1

    async def test_detection_not_spent_on_open_target(
        self, engine, make_account, give_item, quantity_of
    ):
        await make_account(6310)
        await make_account(6311, balance=5_000)
        await give_item(6310, DRONE, 1)

        view = await engine.find_pvp_target(6310, use_detection_item=True)

        assert view.detection_used is False
        assert await quantity_of(6310, DRONE) == 1

    async def test_detection_without_drone(self, engine, make_account, give_item):
        """Asking to detect a concealed target without a drone fails cleanly."""
        await make_account(6312)
        await make_account(6313, balance=80_000)
        await give_item(6313, PHANTOM, 1)

        with pytest.raises(InsufficientResourcesError):
            await engine.find_pvp_target(6312, use_detection_item=True)


# ============================================================================
# LEADERBOARD
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLeaderboard:
    """Test the PvP leaderboard."""

    async def test_ranks_by_wins_then_stolen(self, engine, container, make_account):
        # Arrange
        await make_account(6401, pvp_wins=3, pvp_total_stolen=900)
        await make_account(6402, pvp_wins=5, pvp_total_stolen=100)
        await make_account(6403, pvp_wins=3, pvp_total_stolen=1_500)
        await make_account(6404)
        await make_account(6405, pvp_wins=9, is_banned=True)

        # Act
        board = await engine.pvp_leaderboard(6404)

        # Assert
        assert [row["identity"] for row in board["top_players"]] == [6402, 6403, 6401]
        assert [row["rank"] for row in board["top_players"]] == [1, 2, 3]
        assert board["total_pvp_players"] == 3
        assert board["current_user"]["rank"] == 4
        assert board["current_user"]["pvp_wins"] == 0

    async def test_limit_and_current_user_flag(self, container, make_account):
        await make_account(6410, pvp_wins=2)
        await make_account(6411, pvp_wins=1)

        board = await container.pvp.pvp_leaderboard(6410, limit=1)

        assert len(board["top_players"]) == 1
        assert board["top_players"][0]["is_current_user"] is True
        assert board["current_user"]["rank"] == 1
