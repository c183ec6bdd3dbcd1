"""Idle farming sessions."""

from gigvault.modules.farming.farming_logic import FarmingProgress, farming_progress
from gigvault.modules.farming.service import FarmingService

__all__ = ["FarmingProgress", "FarmingService", "farming_progress"]
