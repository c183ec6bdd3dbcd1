"""
Prize wheel segments and weighted selection.

Pure functions, no I/O. Segments keep their configured order, which is also
the index a client uses to land the animation on the right slice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Tuple

from gigvault.core.exceptions import ConfigurationError

DEFAULT_SEGMENTS: Tuple[Tuple[str, int, int], ...] = (
    ("MISS", 0, 40),
    ("SMALL", 200, 30),
    ("MEDIUM", 500, 20),
    ("BIG", 1000, 9),
    ("JACKPOT", 10000, 1),
)


@dataclass(frozen=True)
class WheelSegment:
    index: int
    reward_type: str
    amount: int
    weight: int


def build_segments(raw: Iterable[Mapping[str, Any]]) -> Tuple[WheelSegment, ...]:
    """
    Build segments from the `spin.segments` configuration list.

    Raises:
        ConfigurationError: Empty wheel, negative amount or non-positive weight
    """
    segments = tuple(
        WheelSegment(
            index=index,
            reward_type=str(entry["type"]),
            amount=int(entry["amount"]),
            weight=int(entry["weight"]),
        )
        for index, entry in enumerate(raw)
    )
    if not segments:
        raise ConfigurationError("spin.segments", "the wheel needs at least one segment")
    for segment in segments:
        if segment.amount < 0 or segment.weight <= 0:
            raise ConfigurationError(
                "spin.segments",
                f"segment {segment.reward_type!r} needs amount >= 0 and weight > 0",
            )
    return segments


def default_segments() -> Tuple[WheelSegment, ...]:
    return build_segments(
        {"type": kind, "amount": amount, "weight": weight}
        for kind, amount, weight in DEFAULT_SEGMENTS
    )


def total_weight(segments: Sequence[WheelSegment]) -> int:
    return sum(segment.weight for segment in segments)


def pick_segment(segments: Sequence[WheelSegment], roll: int) -> WheelSegment:
    """
    Segment owning `roll`, a number in `[0, total_weight)`.

    Each segment owns a run of `weight` consecutive rolls, in order, so with
    weights 40/30/... rolls 0-39 miss and 40-69 win SMALL.
    """
    if not 0 <= roll < total_weight(segments):
        raise ValueError(f"roll {roll} outside [0, {total_weight(segments)})")

    cumulative = 0
    for segment in segments:
        cumulative += segment.weight
        if roll < cumulative:
            return segment
    raise AssertionError("unreachable: roll is below the total weight")
