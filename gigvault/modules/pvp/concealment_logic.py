"""
PvP target presentation rules.

Pure functions, no I/O. A scanned target is never shown with an exact
balance: the view carries a coarse range label instead. A target holding a
balance-concealment item shows a fake low balance and the lowest range,
unless the attacker spends a detection item to see through it.
"""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

DEFAULT_BALANCE_RANGES: Tuple[Tuple[int, str], ...] = (
    (5_000, "1K - 5K"),
    (10_000, "5K - 10K"),
    (25_000, "10K - 25K"),
    (50_000, "25K - 50K"),
    (100_000, "50K - 100K"),
)


@dataclass(frozen=True)
class ConcealmentSettings:
    fake_min: int = 10
    fake_max: int = 100
    fake_range: str = "0 - 1K"
    balance_ranges: Tuple[Tuple[int, str], ...] = DEFAULT_BALANCE_RANGES
    top_range: str = "100K+"
    anonymous_prefix: str = "Agent-"
    displayed_win_chance: str = "50%"

    @classmethod
    def from_mapping(cls, pvp: Dict[str, Any]) -> ConcealmentSettings:
        """Build from the `pvp` configuration section."""
        concealment = pvp.get("concealment") or {}
        ranges = pvp.get("balance_ranges") or DEFAULT_BALANCE_RANGES
        return cls(
            fake_min=int(concealment.get("fake_min", cls.fake_min)),
            fake_max=int(concealment.get("fake_max", cls.fake_max)),
            fake_range=str(concealment.get("fake_range", cls.fake_range)),
            balance_ranges=tuple((int(limit), str(label)) for limit, label in ranges),
            top_range=str(pvp.get("top_range", cls.top_range)),
            anonymous_prefix=str(pvp.get("anonymous_prefix", cls.anonymous_prefix)),
            displayed_win_chance=str(
                pvp.get("displayed_win_chance", cls.displayed_win_chance)
            ),
        )


@dataclass(frozen=True)
class TargetView:
    """What an attacker sees after a scan."""

    identity: int
    name: str
    balance_range: str
    displayed_balance: int
    win_chance: str
    is_concealed: bool = False
    revealed: bool = False
    detection_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def balance_range(
    balance: int,
    ranges: Sequence[Tuple[int, str]] = DEFAULT_BALANCE_RANGES,
    top_range: str = "100K+",
) -> str:
    """Label of the first bracket whose upper bound exceeds `balance`."""
    for upper, label in sorted(ranges, key=lambda pair: pair[0]):
        if balance < upper:
            return label
    return top_range


def display_name(name: Optional[str], identity: int, prefix: str = "Agent-") -> str:
    return name or f"{prefix}{str(identity)[-4:]}"


def format_balance(balance: int) -> str:
    """Compact amount for leaderboards: 1.2M, 3.4K, 950."""
    if balance >= 1_000_000:
        return f"{balance / 1_000_000:.1f}M"
    if balance >= 1_000:
        return f"{balance / 1_000:.1f}K"
    return f"{balance:,}"


def build_target_view(
    identity: int,
    name: Optional[str],
    balance: int,
    *,
    is_concealed: bool,
    reveal: bool,
    settings: ConcealmentSettings,
    rng: Optional[random.Random] = None,
) -> TargetView:
    """
    Present a target.

    Args:
        identity: Target identity
        name: Target display name (None shows an anonymous agent name)
        balance: True balance
        is_concealed: Target holds a balance-concealment item
        reveal: Attacker spent a detection item on this target
        settings: Presentation settings
        rng: Source of the fake balance

    Returns:
        TargetView; `detection_used` is only True when a concealment was
        actually pierced
    """
    rng = rng or random.Random()
    shown_name = display_name(name, identity, settings.anonymous_prefix)

    if is_concealed and not reveal:
        low, high = sorted((settings.fake_min, settings.fake_max))
        return TargetView(
            identity=identity,
            name=shown_name,
            balance_range=settings.fake_range,
            displayed_balance=rng.randint(low, high),
            win_chance=settings.displayed_win_chance,
            is_concealed=True,
        )

    return TargetView(
        identity=identity,
        name=shown_name,
        balance_range=balance_range(balance, settings.balance_ranges, settings.top_range),
        displayed_balance=balance,
        win_chance=settings.displayed_win_chance,
        is_concealed=is_concealed,
        revealed=is_concealed and reveal,
        detection_used=is_concealed and reveal,
    )


def ranked(rows: List[Dict[str, Any]], start: int = 1) -> List[Dict[str, Any]]:
    return [{"rank": index, **row} for index, row in enumerate(rows, start=start)]
