"""Idempotent crediting of externally verified rewards."""

from gigvault.modules.rewards.service import RewardService

__all__ = ["RewardService"]
