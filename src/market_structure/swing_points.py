"""
Body-close swing point detection.

A candle is a swing high when its close is strictly above the closes of the
two candles before it and of up to two candles after it. Near the end of the
sequence only the candles that exist are checked, so the very last candle is
judged on its predecessors alone. Swing lows mirror this. Ties never qualify,
and a NaN close is never a swing point.
"""

import math
from typing import Optional, Sequence

from .constants import SWING_NEIGHBORS
from .types import Candle, PointKind


def _forward_count(candles: Sequence[Candle], index: int) -> int:
    return min(SWING_NEIGHBORS, len(candles) - index - 1)


def is_swing_high(candles: Sequence[Candle], index: int) -> bool:
    if index < SWING_NEIGHBORS or index >= len(candles):
        return False

    current = candles[index].close
    if not math.isfinite(current):
        return False
    for offset in range(1, SWING_NEIGHBORS + 1):
        if candles[index - offset].close >= current:
            return False
    for offset in range(1, _forward_count(candles, index) + 1):
        if candles[index + offset].close >= current:
            return False
    return True


def is_swing_low(candles: Sequence[Candle], index: int) -> bool:
    if index < SWING_NEIGHBORS or index >= len(candles):
        return False

    current = candles[index].close
    if not math.isfinite(current):
        return False
    for offset in range(1, SWING_NEIGHBORS + 1):
        if candles[index - offset].close <= current:
            return False
    for offset in range(1, _forward_count(candles, index) + 1):
        if candles[index + offset].close <= current:
            return False
    return True


def detect_swing_point(candles: Sequence[Candle], index: int) -> Optional[PointKind]:
    """
    Classify the candle at index as a swing high, swing low, or neither.

    Pure function; invoked once per candle during the trend fold.

    Args:
        candles: Full candle window in ascending timestamp order.
        index: Position of the candle to classify.

    Returns:
        PointKind.SWING_HIGH, PointKind.SWING_LOW, or None.
    """
    if is_swing_high(candles, index):
        return PointKind.SWING_HIGH
    if is_swing_low(candles, index):
        return PointKind.SWING_LOW
    return None
