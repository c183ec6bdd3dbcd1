"""PvP models."""

from .battle_log import BattleLog

__all__ = ["BattleLog"]
