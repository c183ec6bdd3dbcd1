"""Service container and the RewardEngine facade."""

from gigvault.core.services.container import RewardEngine, ServiceContainer

__all__ = ["RewardEngine", "ServiceContainer"]
