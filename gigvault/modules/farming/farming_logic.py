"""
Farming accrual rules.

Pure functions, no I/O. A running session earns `rate` $GIG per elapsed
minute (fractions of a minute count) and stops accruing once `max_minutes`
have passed; the payout is floored to whole units.

    earnings = floor(min(elapsed, max_minutes) * rate)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Union

Rate = Union[Decimal, float, int, str]


@dataclass(frozen=True)
class FarmingProgress:
    elapsed_minutes: int
    earnings: int
    max_earnings: int
    is_full: bool


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _as_decimal(rate: Rate) -> Decimal:
    # str() keeps 0.1 as 0.1 rather than its binary float expansion
    return rate if isinstance(rate, Decimal) else Decimal(str(rate))


def max_earnings(rate: Rate, max_minutes: int) -> int:
    return _floor(Decimal(max_minutes) * _as_decimal(rate))


def farming_progress(
    started_at: Optional[datetime],
    now: datetime,
    rate: Rate,
    max_minutes: int,
) -> FarmingProgress:
    """
    Progress of the session started at `started_at`.

    A session that has not started, or whose start lies in the future
    (clock skew), has earned nothing.
    """
    cap = max_earnings(rate, max_minutes)
    if started_at is None:
        return FarmingProgress(elapsed_minutes=0, earnings=0, max_earnings=cap, is_full=False)

    elapsed = Decimal(str(max((now - started_at).total_seconds(), 0.0))) / 60
    is_full = elapsed >= max_minutes
    if is_full:
        elapsed = Decimal(max_minutes)

    return FarmingProgress(
        elapsed_minutes=_floor(elapsed),
        earnings=_floor(elapsed * _as_decimal(rate)),
        max_earnings=cap,
        is_full=is_full,
    )
