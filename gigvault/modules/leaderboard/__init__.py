"""Global rankings by balance and referrals."""

from gigvault.modules.leaderboard.service import LeaderboardService

__all__ = ["LeaderboardService"]
