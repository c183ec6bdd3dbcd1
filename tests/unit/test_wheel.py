"""
Unit tests for the prize wheel.

Tests segment building from configuration and cumulative-weight selection.
"""

from collections import Counter

import pytest

from gigvault.core.exceptions import ConfigurationError
from gigvault.modules.spin.wheel import (
    WheelSegment,
    build_segments,
    default_segments,
    pick_segment,
    total_weight,
)


@pytest.fixture
def segments():
    return default_segments()


class TestBuildSegments:
    """Test configuration parsing."""

    def test_defaults_keep_order_and_index(self, segments):
        assert [s.reward_type for s in segments] == ["MISS", "SMALL", "MEDIUM", "BIG", "JACKPOT"]
        assert [s.index for s in segments] == [0, 1, 2, 3, 4]
        assert total_weight(segments) == 100

    def test_from_config_entries(self):
        built = build_segments(
            [
                {"type": "NONE", "amount": 0, "weight": 3},
                {"type": "WIN", "amount": "50", "weight": 1},
            ]
        )

        assert built == (
            WheelSegment(index=0, reward_type="NONE", amount=0, weight=3),
            WheelSegment(index=1, reward_type="WIN", amount=50, weight=1),
        )

    @pytest.mark.parametrize(
        "raw",
        [
            [],
            [{"type": "BAD", "amount": -1, "weight": 1}],
            [{"type": "DEAD", "amount": 10, "weight": 0}],
        ],
    )
    def test_invalid_wheels_are_rejected(self, raw):
        """An empty wheel, negative prize or dead segment is a config error."""
        with pytest.raises(ConfigurationError):
            build_segments(raw)


class TestPickSegment:
    """Test cumulative-weight selection."""

    @pytest.mark.parametrize(
        "roll,expected",
        [
            (0, "MISS"),
            (39, "MISS"),
            (40, "SMALL"),
            (69, "SMALL"),
            (70, "MEDIUM"),
            (89, "MEDIUM"),
            (90, "BIG"),
            (98, "BIG"),
            (99, "JACKPOT"),
        ],
    )
    def test_boundaries(self, segments, roll, expected):
        assert pick_segment(segments, roll).reward_type == expected

    @pytest.mark.parametrize("roll", [-1, 100])
    def test_roll_out_of_range(self, segments, roll):
        with pytest.raises(ValueError):
            pick_segment(segments, roll)

    def test_every_roll_maps_by_weight(self, segments):
        """Walking every roll once reproduces the weights exactly."""
        counts = Counter(
            pick_segment(segments, roll).reward_type for roll in range(total_weight(segments))
        )

        assert counts == {"MISS": 40, "SMALL": 30, "MEDIUM": 20, "BIG": 9, "JACKPOT": 1}
