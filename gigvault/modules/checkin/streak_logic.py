"""
Daily check-in streak rules.

Pure functions, no I/O: callers pass in the stored state and the current
time and get back what the new state should be. Day boundaries are calendar
dates in one configured timezone, so "yesterday" means the previous date,
not "24 hours ago".

| last check-in vs now   | shield | result                           |
|------------------------|--------|----------------------------------|
| never                  | -      | streak 1                         |
| same date              | -      | rejected (already checked in)    |
| previous date          | -      | streak + 1                       |
| two or more dates back | yes    | streak + 1, one shield consumed  |
| two or more dates back | no     | streak 1                         |
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from gigvault.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class RewardSchedule:
    """`reward(day) = base + min(day, cap_day) * increment`."""

    base_reward: int = 100
    increment: int = 50
    cap_day: int = 7
    cap_bonus_spins: int = 1

    def reward_for(self, day: int) -> int:
        return self.base_reward + min(max(day, 0), self.cap_day) * self.increment

    def bonus_spins_for(self, day: int) -> int:
        return self.cap_bonus_spins if day >= self.cap_day else 0


@dataclass(frozen=True)
class StreakTransition:
    """
    Outcome of evaluating a check-in.

    Attributes:
        allowed: False when the account already checked in today
        new_streak: Streak after the check-in (unchanged when not allowed)
        shield_used: A shield must be consumed to keep the streak
        will_reset: The streak restarts at 1 (a day was missed, no shield)
    """

    allowed: bool
    new_streak: int
    shield_used: bool = False
    will_reset: bool = False


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Load a tz database zone; an unknown name is a configuration mistake."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (KeyError, ValueError) as exc:
        raise ConfigurationError("checkin.timezone", f"Unknown timezone '{name}'") from exc


def calendar_date(moment: datetime, tz: tzinfo) -> date:
    # Naive datetimes are stored UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def days_between(last_check_in: datetime, now: datetime, tz: tzinfo) -> int:
    """Whole calendar days from the last check-in to now (0 = same day)."""
    return (calendar_date(now, tz) - calendar_date(last_check_in, tz)).days


def compute_transition(
    last_check_in: Optional[datetime],
    now: datetime,
    current_streak: int,
    has_shield: bool,
    tz: Optional[tzinfo] = None,
) -> StreakTransition:
    """
    Decide the streak after a check-in at `now`.

    Args:
        last_check_in: Previous successful check-in, or None if never
        now: Moment of this check-in
        current_streak: Stored streak
        has_shield: The account holds at least one streak_protection item
        tz: Zone whose calendar defines a day (default UTC)

    Returns:
        StreakTransition; `allowed` is False for a same-day repeat
    """
    tz = tz or timezone.utc
    current_streak = max(current_streak, 0)

    if last_check_in is None:
        return StreakTransition(allowed=True, new_streak=1)

    gap = days_between(last_check_in, now, tz)

    # A last check-in dated after `now` (clock skew) counts as today.
    if gap <= 0:
        return StreakTransition(allowed=False, new_streak=current_streak)

    if gap == 1:
        return StreakTransition(allowed=True, new_streak=current_streak + 1)

    if has_shield:
        return StreakTransition(
            allowed=True,
            new_streak=current_streak + 1,
            shield_used=True,
        )

    return StreakTransition(allowed=True, new_streak=1, will_reset=True)
