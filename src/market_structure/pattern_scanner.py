"""
Recent Pattern Scanner

Independent fallback search for a reversal confined to the relevance window.
Used when the trend's primary anchor is stale (or missing) so that a valid
reversal is not masked by an old reference level.

Bearish flip (mirror for bullish):
1. Among recent swing lows take the two most recent, L1 (older) and L2 (newer),
   and require L2 < L1 (a lower low).
2. H2 = most recent recent swing high strictly between L1 and L2,
   H1 = most recent recent swing high strictly before L1; require H2 < H1
   (a lower high).
3. Accept only if some body close after H2 (up to the current candle) is below
   H2 by more than the buffer. The geometry alone is not enough. NaN closes
   are skipped; with no usable close the match stays unconfirmed.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .break_validator import is_break, is_recent, distance_in_pips
from .structure_config import ResolvedConfig
from .types import BreakDirection, PointKind, PointLabel, StructurePoint, Trend, TrendState


@dataclass
class PatternMatch:
    """
    A reversal geometry found within the relevance window.

    Attributes:
        direction: Trend the pattern points to (BEARISH for LL+LH, BULLISH for HH+HL).
        extreme: L2 for a bearish pattern (new LL), H2 for a bullish one (new HH).
        pullback: H2 for a bearish pattern (new LH), L2 for a bullish one (new HL).
        confirmed: Whether a body close broke the pullback level by more than the buffer.
        closest_close: Close nearest to (or furthest through) the pullback level
            after it formed. None if no candle followed it or every close
            since was NaN.
    """
    direction: Trend
    extreme: StructurePoint
    pullback: StructurePoint
    confirmed: bool
    closest_close: Optional[float] = None

    def closest_distance_pips(self, pip_size: float) -> Optional[float]:
        if self.closest_close is None:
            return None
        return distance_in_pips(self.closest_close, self.pullback.price, pip_size)


def _recent_points(
    points: List[StructurePoint],
    kind: PointKind,
    current_index: int,
    relevance_window: int,
) -> List[StructurePoint]:
    return [
        p for p in points
        if p.kind == kind
        and p.index <= current_index
        and is_recent(p.index, current_index, relevance_window)
    ]


def _latest(points: List[StructurePoint], after: int, before: int) -> Optional[StructurePoint]:
    """Most recent point with after < index < before."""
    candidates = [p for p in points if after < p.index < before]
    return max(candidates, key=lambda p: p.index) if candidates else None


def scan_bearish_flip(
    points: List[StructurePoint],
    closes: np.ndarray,
    current_index: int,
    config: ResolvedConfig,
) -> Optional[PatternMatch]:
    """
    Search the relevance window for a confirmed LL + LH reversal.

    Args:
        points: Structure points detected so far.
        closes: Body closes of the whole candle window.
        current_index: Index of the candle being processed.
        config: Resolved run parameters.

    Returns:
        PatternMatch (confirmed or not) when the LL + LH geometry exists,
        None otherwise.
    """
    window = config.relevance_window
    lows = _recent_points(points, PointKind.SWING_LOW, current_index, window)
    if len(lows) < 2:
        return None

    l1, l2 = lows[-2], lows[-1]
    if not l2.price < l1.price:
        return None

    highs = _recent_points(points, PointKind.SWING_HIGH, current_index, window)
    h2 = _latest(highs, l1.index, l2.index)
    h1 = _latest(highs, -1, l1.index)
    if h1 is None or h2 is None:
        return None
    if not h2.price < h1.price:
        return None

    after = closes[h2.index + 1:current_index + 1]
    if np.isnan(after).all():
        return PatternMatch(Trend.BEARISH, extreme=l2, pullback=h2, confirmed=False)

    lowest = float(np.nanmin(after))
    confirmed = is_break(lowest, h2.price, BreakDirection.DOWN, config.buffer_pips, config.pip_size)
    return PatternMatch(Trend.BEARISH, extreme=l2, pullback=h2, confirmed=confirmed, closest_close=lowest)


def scan_bullish_flip(
    points: List[StructurePoint],
    closes: np.ndarray,
    current_index: int,
    config: ResolvedConfig,
) -> Optional[PatternMatch]:
    """Search the relevance window for a confirmed HH + HL reversal."""
    window = config.relevance_window
    highs = _recent_points(points, PointKind.SWING_HIGH, current_index, window)
    if len(highs) < 2:
        return None

    h1, h2 = highs[-2], highs[-1]
    if not h2.price > h1.price:
        return None

    lows = _recent_points(points, PointKind.SWING_LOW, current_index, window)
    l2 = _latest(lows, h1.index, h2.index)
    l1 = _latest(lows, -1, h1.index)
    if l1 is None or l2 is None:
        return None
    if not l2.price > l1.price:
        return None

    after = closes[l2.index + 1:current_index + 1]
    if np.isnan(after).all():
        return PatternMatch(Trend.BULLISH, extreme=h2, pullback=l2, confirmed=False)

    highest = float(np.nanmax(after))
    confirmed = is_break(highest, l2.price, BreakDirection.UP, config.buffer_pips, config.pip_size)
    return PatternMatch(Trend.BULLISH, extreme=h2, pullback=l2, confirmed=confirmed, closest_close=highest)


def scan_reversal(
    state: TrendState,
    closes: np.ndarray,
    current_index: int,
    config: ResolvedConfig,
) -> Optional[PatternMatch]:
    """Run the scan that opposes the current trend (bearish scan while bullish, and vice versa)."""
    if state.trend == Trend.BULLISH:
        return scan_bearish_flip(state.points, closes, current_index, config)
    if state.trend == Trend.BEARISH:
        return scan_bullish_flip(state.points, closes, current_index, config)
    return None


def apply_pattern_flip(state: TrendState, match: PatternMatch) -> None:
    """Label the matched points and flip the state to the pattern's direction."""
    if match.direction == Trend.BEARISH:
        match.extreme.label = PointLabel.LL
        match.pullback.label = PointLabel.LH
        state.set_bearish(
            ll=match.extreme.price, ll_index=match.extreme.index,
            lh=match.pullback.price, lh_index=match.pullback.index,
        )
    else:
        match.extreme.label = PointLabel.HH
        match.pullback.label = PointLabel.HL
        state.set_bullish(
            hh=match.extreme.price, hh_index=match.extreme.index,
            hl=match.pullback.price, hl_index=match.pullback.index,
        )
