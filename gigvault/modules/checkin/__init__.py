"""Daily check-in with streaks and streak protection."""

from gigvault.modules.checkin.service import CheckInService
from gigvault.modules.checkin.streak_logic import (
    RewardSchedule,
    StreakTransition,
    compute_transition,
)

__all__ = ["CheckInService", "RewardSchedule", "StreakTransition", "compute_transition"]
