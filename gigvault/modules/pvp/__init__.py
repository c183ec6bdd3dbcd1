"""PvP scanning, heists and leaderboard."""

from gigvault.modules.pvp.concealment_logic import ConcealmentSettings, TargetView
from gigvault.modules.pvp.service import HeistResult, HeistRules, PvPService

__all__ = ["ConcealmentSettings", "HeistResult", "HeistRules", "PvPService", "TargetView"]
