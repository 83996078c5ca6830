"""
Tests for body-close swing point detection.

Verifies:
- Strict comparison against two predecessors and up to two successors
- Ties never qualify
- Shortened forward check near the end of the sequence
- Only close is considered (wicks are ignored)
"""

import pytest

from conftest import candles_from_closes
from src.market_structure.swing_points import detect_swing_point, is_swing_high, is_swing_low
from src.market_structure.types import Candle, PointKind


class TestSwingHigh:
    """Tests for is_swing_high."""

    def test_clear_peak(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 2.0, 1.0])
        assert is_swing_high(candles, 2)

    def test_requires_two_predecessors(self):
        candles = candles_from_closes([1.0, 5.0, 2.0, 1.0, 0.5])
        assert not is_swing_high(candles, 1)
        assert not is_swing_high(candles, 0)

    def test_tie_with_predecessor_disqualifies(self):
        candles = candles_from_closes([5.0, 2.0, 5.0, 2.0, 1.0])
        assert not is_swing_high(candles, 2)

    def test_tie_with_successor_disqualifies(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 3.0, 5.0])
        assert not is_swing_high(candles, 2)

    def test_higher_second_successor_disqualifies(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 3.0, 6.0])
        assert not is_swing_high(candles, 2)

    def test_last_candle_uses_predecessors_only(self):
        candles = candles_from_closes([1.0, 2.0, 3.0, 4.0, 5.0])
        assert is_swing_high(candles, 4)
        assert not is_swing_high(candles, 3)

    def test_second_to_last_checks_one_successor(self):
        candles = candles_from_closes([1.0, 2.0, 3.0, 5.0, 4.0])
        assert is_swing_high(candles, 3)

    def test_out_of_range_index(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 2.0, 1.0])
        assert not is_swing_high(candles, 5)

    def test_wicks_are_ignored(self):
        """A huge wick on a neighbor does not matter; only closes compare."""
        closes = [1.0, 2.0, 5.0, 2.0, 1.0]
        candles = candles_from_closes(closes)
        candles[1] = Candle(open=2.0, high=9.0, low=1.5, close=2.0, timestamp=candles[1].timestamp)
        assert is_swing_high(candles, 2)


class TestSwingLow:
    """Tests for is_swing_low."""

    def test_clear_trough(self):
        candles = candles_from_closes([5.0, 4.0, 1.0, 4.0, 5.0])
        assert is_swing_low(candles, 2)

    def test_tie_disqualifies(self):
        candles = candles_from_closes([5.0, 1.0, 1.0, 4.0, 5.0])
        assert not is_swing_low(candles, 2)

    def test_last_candle_uses_predecessors_only(self):
        candles = candles_from_closes([5.0, 4.0, 3.0, 2.0, 1.0])
        assert is_swing_low(candles, 4)


class TestDetectSwingPoint:
    """Tests for detect_swing_point classification."""

    def test_classifies_high_low_and_none(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 2.0, 1.0, 0.5, 3.0, 4.0])
        assert detect_swing_point(candles, 2) == PointKind.SWING_HIGH
        assert detect_swing_point(candles, 5) == PointKind.SWING_LOW
        assert detect_swing_point(candles, 3) is None

    def test_nan_close_is_not_a_swing_point(self):
        candles = candles_from_closes([1.0, 2.0, float("nan"), 2.0, 1.0])
        assert detect_swing_point(candles, 2) is None

    def test_nan_neighbor_does_not_disqualify(self):
        candles = candles_from_closes([1.0, float("nan"), 5.0, 2.0, 1.0])
        assert detect_swing_point(candles, 2) == PointKind.SWING_HIGH

    def test_flat_sequence_has_no_points(self):
        candles = candles_from_closes([1.1] * 10)
        assert all(detect_swing_point(candles, i) is None for i in range(10))

    def test_is_pure(self):
        candles = candles_from_closes([1.0, 2.0, 5.0, 2.0, 1.0])
        first = detect_swing_point(candles, 2)
        second = detect_swing_point(candles, 2)
        assert first == second == PointKind.SWING_HIGH
