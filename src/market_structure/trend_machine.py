"""
Trend State Machine

Folds candles chronologically into a single owned TrendState. Each call to
process_candle() handles one candle:

1. Swing detection: the candle is classified against its body-close
   neighbors and appended to the structure points if it qualifies.
2. Trend logic, by current state:
   - NEUTRAL: try to seed from the two earliest swing highs (HH + HL) or,
     failing that, the two earliest swing lows (LL + LH). Bullish wins ties.
   - BULLISH: a close below HL by more than the buffer is a candidate break;
     otherwise a new swing high above HH advances the trend and promotes the
     most recent unlabeled swing low in between to HL.
   - BEARISH: mirror of BULLISH.
3. Opportunistic scan: if the step left the trend unchanged and its reference
   anchor (HL or LH) is missing or stale, the recent pattern scanner runs.

Candidate breaks flip the trend when the anchor is within the relevance
window. Against a stale anchor the break only counts if the recent pattern
scanner independently confirms a reversal; otherwise it is ignored.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .break_validator import is_break, is_recent, distance_in_pips
from .constants import MIN_STRUCTURE_CANDLES
from .events import (
    TrendEvent,
    SwingPointEvent,
    TrendSeededEvent,
    AnchorAdvancedEvent,
    StructureBreakEvent,
    BreakIgnoredEvent,
    PatternFlipEvent,
    PatternRejectedEvent,
)
from .pattern_scanner import PatternMatch, apply_pattern_flip, scan_reversal
from .structure_config import ResolvedConfig
from .swing_points import detect_swing_point
from .types import (
    BreakDirection,
    Candle,
    PointKind,
    PointLabel,
    StructurePoint,
    Trend,
    TrendState,
)


def reference_anchor(state: TrendState) -> Tuple[Optional[float], Optional[int]]:
    """The level a break is measured against: HL when bullish, LH when bearish."""
    if state.trend == Trend.BULLISH:
        return state.current_hl, state.hl_index
    if state.trend == Trend.BEARISH:
        return state.current_lh, state.lh_index
    return None, None


def break_direction(trend: Trend) -> BreakDirection:
    return BreakDirection.DOWN if trend == Trend.BULLISH else BreakDirection.UP


def breaks_anchor(state: TrendState, close: float, config: ResolvedConfig) -> bool:
    """Whether close breaks the active reference anchor by more than the buffer."""
    level, _ = reference_anchor(state)
    if level is None:
        return False
    return is_break(close, level, break_direction(state.trend), config.buffer_pips, config.pip_size)


def anchor_is_recent(state: TrendState, current_index: int, config: ResolvedConfig) -> bool:
    _, anchor_index = reference_anchor(state)
    if anchor_index is None:
        return False
    return is_recent(anchor_index, current_index, config.relevance_window)


def latest_point_before(
    points: Sequence[StructurePoint],
    kind: PointKind,
    before: int,
) -> Optional[StructurePoint]:
    """Most recent point of the given kind with index < before."""
    for point in reversed(points):
        if point.kind == kind and point.index < before:
            return point
    return None


def flip_on_break(state: TrendState, close: float, index: int) -> Optional[StructurePoint]:
    """
    Flip a trend whose anchor was broken by the close at index.

    Bullish -> bearish: the most recent swing high before the breaking candle
    becomes the new LH and the breaking close becomes LL. Bearish -> bullish
    mirrors this with HL/HH.

    Returns:
        The point promoted to LH/HL, or None if no such point exists.
    """
    if state.trend == Trend.BULLISH:
        preceding = latest_point_before(state.points, PointKind.SWING_HIGH, index)
        if preceding is not None:
            preceding.label = PointLabel.LH
        state.set_bearish(
            ll=close, ll_index=index,
            lh=preceding.price if preceding else None,
            lh_index=preceding.index if preceding else None,
        )
    else:
        preceding = latest_point_before(state.points, PointKind.SWING_LOW, index)
        if preceding is not None:
            preceding.label = PointLabel.HL
        state.set_bullish(
            hh=close, hh_index=index,
            hl=preceding.price if preceding else None,
            hl_index=preceding.index if preceding else None,
        )
    return preceding


def pattern_flip_event(match: PatternMatch, candle: Candle, index: int, trigger: str) -> PatternFlipEvent:
    return PatternFlipEvent(
        candle_index=index,
        timestamp=candle.timestamp,
        to_trend=match.direction.value,
        extreme_price=match.extreme.price,
        extreme_index=match.extreme.index,
        pullback_price=match.pullback.price,
        pullback_index=match.pullback.index,
        trigger=trigger,
    )


def pattern_rejected_event(match: PatternMatch, candle: Candle, index: int, pip_size: float) -> PatternRejectedEvent:
    return PatternRejectedEvent(
        candle_index=index,
        timestamp=candle.timestamp,
        direction=match.direction.value,
        level=match.pullback.price,
        closest_close=match.closest_close,
        distance_pips=match.closest_distance_pips(pip_size),
    )


class TrendStateMachine:
    """
    Incremental market structure fold over one candle window.

    The machine owns the TrendState for the duration of one run. Swing
    detection looks up to two candles ahead, so the full window is supplied
    up front and candles are processed by index.

    Example:
        >>> machine = TrendStateMachine(candles, StructureConfig.default().resolve('EURUSD', 'D'))
        >>> for i in range(len(candles)):
        ...     events = machine.process_candle(i)
        >>> machine.state.trend
    """

    def __init__(self, candles: Sequence[Candle], config: ResolvedConfig):
        self.candles = candles
        self.config = config
        self.closes = np.asarray([c.close for c in candles], dtype=float)
        self.state = TrendState()

    def process_candle(self, index: int) -> List[TrendEvent]:
        """
        Process one candle and return the trace events it produced.

        Args:
            index: Position of the candle in the window. Candles must be
                processed in ascending order, each exactly once.

        Returns:
            List of events (possibly empty).
        """
        events: List[TrendEvent] = []
        if len(self.candles) < MIN_STRUCTURE_CANDLES:
            return events

        point = self._record_swing_point(index, events)
        trend_before = self.state.trend

        if trend_before == Trend.NEUTRAL:
            self._try_seed(index, events)
        elif breaks_anchor(self.state, self.candles[index].close, self.config):
            self._handle_break(index, events)
        elif point is not None:
            self._try_advance(index, point, events)

        if trend_before != Trend.NEUTRAL and self.state.trend == trend_before:
            self._scan_if_anchor_stale(index, events)

        return events

    # ------------------------------------------------------------------
    # Swing detection
    # ------------------------------------------------------------------

    def _record_swing_point(self, index: int, events: List[TrendEvent]) -> Optional[StructurePoint]:
        kind = detect_swing_point(self.candles, index)
        if kind is None:
            return None

        candle = self.candles[index]
        point = StructurePoint(kind=kind, price=candle.close, timestamp=candle.timestamp, index=index)
        self.state.points.append(point)
        events.append(SwingPointEvent(
            candle_index=index,
            timestamp=candle.timestamp,
            kind=kind.value,
            price=candle.close,
        ))
        return point

    # ------------------------------------------------------------------
    # Neutral: seeding
    # ------------------------------------------------------------------

    def _try_seed(self, index: int, events: List[TrendEvent]) -> None:
        state = self.state
        highs = state.highs()
        lows = state.lows()

        if len(highs) >= 2 and len(lows) >= 1:
            h1, h2 = highs[0], highs[1]
            if h2.price > h1.price:
                # Only the earliest low between the two highs is considered; a later
                # low that would qualify does not seed the trend.
                hl = next((l for l in lows if h1.index < l.index < h2.index), None)
                if hl is not None and all(hl.price > l.price for l in lows if l.index < hl.index):
                    h2.label = PointLabel.HH
                    hl.label = PointLabel.HL
                    state.set_bullish(hh=h2.price, hh_index=h2.index, hl=hl.price, hl_index=hl.index)
                    events.append(self._seed_event(index, h2, hl))
                    return

        if len(lows) >= 2 and len(highs) >= 1:
            l1, l2 = lows[0], lows[1]
            if l2.price < l1.price:
                lh = next((h for h in highs if l1.index < h.index < l2.index), None)
                if lh is not None and all(lh.price < h.price for h in highs if h.index < lh.index):
                    l2.label = PointLabel.LL
                    lh.label = PointLabel.LH
                    state.set_bearish(ll=l2.price, ll_index=l2.index, lh=lh.price, lh_index=lh.index)
                    events.append(self._seed_event(index, l2, lh))

    def _seed_event(self, index: int, extreme: StructurePoint, pullback: StructurePoint) -> TrendSeededEvent:
        return TrendSeededEvent(
            candle_index=index,
            timestamp=self.candles[index].timestamp,
            trend=self.state.trend.value,
            extreme_price=extreme.price,
            extreme_index=extreme.index,
            pullback_price=pullback.price,
            pullback_index=pullback.index,
        )

    # ------------------------------------------------------------------
    # Continuation: new HH / new LL
    # ------------------------------------------------------------------

    def _try_advance(self, index: int, point: StructurePoint, events: List[TrendEvent]) -> None:
        state = self.state
        close = point.price

        if state.trend == Trend.BULLISH:
            if point.kind != PointKind.SWING_HIGH:
                return
            if state.current_hh is not None and not close > state.current_hh:
                return
            previous, previous_index = state.current_hh, state.hh_index
            point.label = PointLabel.HH
            state.current_hh, state.hh_index = close, index
            promoted = self._promote_pullback(PointKind.SWING_LOW, previous_index, index, PointLabel.HL)
            if promoted is not None:
                state.current_hl, state.hl_index = promoted.price, promoted.index
            label, pullback = PointLabel.HH, state.current_hl
        else:
            if point.kind != PointKind.SWING_LOW:
                return
            if state.current_ll is not None and not close < state.current_ll:
                return
            previous, previous_index = state.current_ll, state.ll_index
            point.label = PointLabel.LL
            state.current_ll, state.ll_index = close, index
            promoted = self._promote_pullback(PointKind.SWING_HIGH, previous_index, index, PointLabel.LH)
            if promoted is not None:
                state.current_lh, state.lh_index = promoted.price, promoted.index
            label, pullback = PointLabel.LL, state.current_lh

        events.append(AnchorAdvancedEvent(
            candle_index=index,
            timestamp=self.candles[index].timestamp,
            label=label.value,
            previous_price=previous,
            new_price=close,
            pullback_price=pullback,
            pullback_promoted=promoted is not None,
        ))

    def _promote_pullback(
        self,
        kind: PointKind,
        after: Optional[int],
        before: int,
        label: PointLabel,
    ) -> Optional[StructurePoint]:
        """Label the most recent unlabeled point of kind with after < index < before."""
        if after is None:
            return None
        for point in reversed(self.state.points):
            if point.index <= after:
                break
            if point.kind == kind and point.label is None and point.index < before:
                point.label = label
                return point
        return None

    # ------------------------------------------------------------------
    # Candidate breaks
    # ------------------------------------------------------------------

    def _handle_break(self, index: int, events: List[TrendEvent]) -> None:
        state = self.state
        candle = self.candles[index]
        level, anchor_index = reference_anchor(state)
        from_trend = state.trend

        if anchor_is_recent(state, index, self.config):
            flip_on_break(state, candle.close, index)
            events.append(StructureBreakEvent(
                candle_index=index,
                timestamp=candle.timestamp,
                from_trend=from_trend.value,
                to_trend=state.trend.value,
                broken_level=level,
                close=candle.close,
                distance_pips=abs(distance_in_pips(candle.close, level, self.config.pip_size)),
                anchor_age=index - anchor_index,
            ))
            return

        match = scan_reversal(state, self.closes, index, self.config)
        if match is not None and match.confirmed:
            apply_pattern_flip(state, match)
            events.append(pattern_flip_event(match, candle, index, trigger="stale_break"))
            return

        if match is not None:
            events.append(pattern_rejected_event(match, candle, index, self.config.pip_size))
        events.append(BreakIgnoredEvent(
            candle_index=index,
            timestamp=candle.timestamp,
            trend=state.trend.value,
            broken_level=level,
            close=candle.close,
            anchor_age=index - anchor_index if anchor_index is not None else None,
            relevance_window=self.config.relevance_window,
        ))

    def _scan_if_anchor_stale(self, index: int, events: List[TrendEvent]) -> None:
        if anchor_is_recent(self.state, index, self.config):
            return

        match = scan_reversal(self.state, self.closes, index, self.config)
        if match is not None and match.confirmed:
            apply_pattern_flip(self.state, match)
            events.append(pattern_flip_event(match, self.candles[index], index, trigger="stale_anchor"))
