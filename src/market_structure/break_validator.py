"""
Break validation and staleness checks.

A structural break requires a body close strictly beyond the reference level
by more than the configured pip buffer. Prices are compared as Decimals built
from their string form, so a close sitting exactly on the buffer boundary is
never counted as a break because of float rounding. A missing (NaN) close or
level never breaks anything.
"""

import math
from decimal import Decimal
from typing import Union

from .types import BreakDirection

Number = Union[float, int, Decimal]


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def buffer_amount(buffer_pips: Number, pip_size: Number) -> Decimal:
    """Buffer distance in price units."""
    return _dec(buffer_pips) * _dec(pip_size)


def is_break(
    close: Number,
    reference_level: Number,
    direction: BreakDirection,
    buffer_pips: Number,
    pip_size: Number,
) -> bool:
    """
    Check whether a close breaks a reference level by more than the buffer.

    Args:
        close: Candle body close.
        reference_level: Structure level being tested (HL, LH, ...).
        direction: DOWN for a break below, UP for a break above.
        buffer_pips: Required excess in pips.
        pip_size: Price value of one pip.

    Returns:
        True only when the close is strictly beyond level -/+ buffer;
        False when either price is NaN or infinite.

    Example:
        >>> is_break(1.0974, 1.1000, BreakDirection.DOWN, 25, 0.0001)
        True
        >>> is_break(1.0975, 1.1000, BreakDirection.DOWN, 25, 0.0001)
        False
    """
    if not (math.isfinite(close) and math.isfinite(reference_level)):
        return False

    buffer = buffer_amount(buffer_pips, pip_size)
    if direction == BreakDirection.DOWN:
        return _dec(close) < _dec(reference_level) - buffer
    return _dec(close) > _dec(reference_level) + buffer


def is_recent(point_index: int, current_index: int, relevance_window: int) -> bool:
    """True while a point is no more than relevance_window candles old."""
    return (current_index - point_index) <= relevance_window


def distance_in_pips(price: Number, reference_level: Number, pip_size: Number) -> float:
    """Signed distance from reference_level to price, in pips."""
    return float((_dec(price) - _dec(reference_level)) / _dec(pip_size))
