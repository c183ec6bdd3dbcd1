"""
Integration Tests for LeaderboardService
========================================

Purpose
-------
Verify the global rankings: ordering with id tie-breaks, banned accounts left
out, referrers listed only once they have referred someone, and the caller's
own ranks including ties and unknown callers.
"""

import pytest
import pytest_asyncio

from gigvault.modules.shared.exceptions import UnauthorizedError, ValidationError


@pytest_asyncio.fixture
async def board(make_account):
    """Five ranked accounts and one banned whale."""
    await make_account(8301, balance=5_000, display_name="alice", referral_count=2)
    await make_account(8302, balance=9_000, referral_count=0)
    await make_account(8303, balance=5_000, display_name="carol", referral_count=7)
    await make_account(8304, balance=100, referral_count=2)
    await make_account(8305, balance=0)
    await make_account(8306, balance=99_000, referral_count=50, is_banned=True)


@pytest.mark.integration
@pytest.mark.database
class TestTopLists:
    """Test both top lists."""

    async def test_miners_by_balance_then_id(self, engine, board):
        # Act
        result = await engine.global_leaderboard(8305)

        # Assert
        miners = result["top_miners"]
        assert [(m["rank"], m["identity"], m["balance"]) for m in miners] == [
            (1, 8302, 9_000),
            (2, 8301, 5_000),
            (3, 8303, 5_000),
            (4, 8304, 100),
            (5, 8305, 0),
        ]
        assert miners[0]["display_name"] == "Agent-8302"
        assert miners[0]["balance_formatted"] == "9.0K"
        assert miners[1]["display_name"] == "alice"
        assert result["total_users"] == 5

    async def test_referrers_need_a_referral(self, engine, board):
        result = await engine.global_leaderboard(8305)

        assert [(r["identity"], r["referral_count"]) for r in result["top_referrers"]] == [
            (8303, 7),
            (8301, 2),
            (8304, 2),
        ]

    async def test_caller_is_flagged(self, engine, board):
        result = await engine.global_leaderboard(8303)

        flagged = [m["identity"] for m in result["top_miners"] if m["is_current_user"]]
        assert flagged == [8303]
        assert result["top_referrers"][0]["is_current_user"] is True

    async def test_limit(self, engine, board, config_manager):
        config_manager.set("leaderboard.limit", 2)

        default = await engine.global_leaderboard(8305)
        explicit = await engine.global_leaderboard(8305, limit=3)

        assert len(default["top_miners"]) == 2
        assert len(explicit["top_miners"]) == 3
        assert default["total_users"] == 5

    async def test_limit_out_of_range(self, engine, board):
        with pytest.raises(ValidationError):
            await engine.global_leaderboard(8305, limit=0)
        with pytest.raises(ValidationError):
            await engine.global_leaderboard(8305, limit=101)


@pytest.mark.integration
@pytest.mark.database
class TestCallerRank:
    """Test where the caller stands."""

    async def test_tied_accounts_share_a_rank(self, engine, board):
        """8301 and 8303 both hold 5,000; one account is strictly ahead."""
        # Act
        first = await engine.global_leaderboard(8301)
        second = await engine.global_leaderboard(8303)

        # Assert
        assert first["current_user_rank"]["miners"] == 2
        assert second["current_user_rank"]["miners"] == 2
        assert first["current_user_rank"]["referrers"] == 2
        assert second["current_user_rank"]["referrers"] == 1

    async def test_no_referrals_no_referrer_rank(self, engine, board):
        result = await engine.global_leaderboard(8302)

        assert result["current_user_rank"] == {"miners": 1, "referrers": None}
        assert result["current_user"] == {
            "identity": 8302,
            "display_name": "Agent-8302",
            "balance": 9_000,
            "balance_formatted": "9.0K",
            "referral_count": 0,
        }

    async def test_banned_caller_is_unranked(self, engine, board):
        result = await engine.global_leaderboard(8306)

        assert result["current_user_rank"] == {"miners": None, "referrers": None}
        assert all(m["identity"] != 8306 for m in result["top_miners"])

    async def test_unknown_caller_sees_lists(self, engine, board):
        result = await engine.global_leaderboard(8399)

        assert result["current_user"] is None
        assert result["current_user_rank"] == {"miners": None, "referrers": None}
        assert len(result["top_miners"]) == 5

    async def test_missing_caller(self, engine):
        with pytest.raises(UnauthorizedError):
            await engine.global_leaderboard(None)

    async def test_empty_board(self, engine):
        result = await engine.global_leaderboard(8398)

        assert result["top_miners"] == []
        assert result["top_referrers"] == []
        assert result["total_users"] == 0
