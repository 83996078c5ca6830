"""
Tests for the post-fold consistency guard.

The guard is exercised on states folded over all but the last candle, so the
final close is seen by the guard alone.
"""

import pytest

from conftest import BULLISH_PREFIX, candles_from_closes, mirror, pips
from src.market_structure.consistency_guard import apply_consistency_guard
from src.market_structure.events import GuardFlipEvent, PatternFlipEvent, TrendDegradedEvent
from src.market_structure.trend_machine import TrendStateMachine
from src.market_structure.types import PointLabel, Trend, TrendState


def fold_all_but_last(candles, config) -> TrendState:
    machine = TrendStateMachine(candles, config)
    for i in range(len(candles) - 1):
        machine.process_candle(i)
    return machine.state


class TestConsistencyGuard:
    """Tests for apply_consistency_guard."""

    def test_recent_anchor_break_flips(self, daily_config):
        candles = candles_from_closes(pips(BULLISH_PREFIX + [60, 4]))
        state = fold_all_but_last(candles, daily_config)
        assert state.trend == Trend.BULLISH

        events = apply_consistency_guard(state, candles, daily_config)

        assert state.trend == Trend.BEARISH
        assert state.current_ll == pytest.approx(1.1004)
        assert state.ll_index == 15
        assert state.current_lh == pytest.approx(1.1070)
        assert len(events) == 1
        assert isinstance(events[0], GuardFlipEvent)
        assert events[0].from_trend == "bullish"
        assert events[0].to_trend == "bearish"

    def test_holding_anchor_is_untouched(self, daily_config):
        candles = candles_from_closes(pips(BULLISH_PREFIX + [60, 40]))
        state = fold_all_but_last(candles, daily_config)
        before = state.to_dict()

        events = apply_consistency_guard(state, candles, daily_config)

        assert events == []
        assert state.to_dict() == before

    def test_neutral_state_is_untouched(self, daily_config):
        candles = candles_from_closes(pips([0, 10, 20]))
        state = TrendState()

        assert apply_consistency_guard(state, candles, daily_config) == []
        assert state.trend == Trend.NEUTRAL

    def test_empty_window(self, daily_config):
        state = TrendState()
        state.set_bullish(hh=1.1, hh_index=0, hl=1.09, hl_index=0)

        assert apply_consistency_guard(state, [], daily_config) == []
        assert state.trend == Trend.BULLISH

    def test_stale_anchor_without_pattern_degrades(self, short_window_config):
        candles = candles_from_closes(pips(BULLISH_PREFIX + [60] * 20 + [4]))
        state = fold_all_but_last(candles, short_window_config)
        assert state.trend == Trend.BULLISH

        events = apply_consistency_guard(state, candles, short_window_config)

        assert state.trend == Trend.NEUTRAL
        assert state.current_hh is None
        assert state.current_hl is None
        assert state.current_ll is None
        assert state.current_lh is None
        assert isinstance(events[-1], TrendDegradedEvent)
        assert events[-1].anchor_age == 24

    def test_stale_anchor_with_pattern_flips(self, short_window_config):
        """The last close breaks the stale HL and confirms a recent LL + LH."""
        closes = [0, 10, 20, 30, 20, 10, 20, 40, 50, 44, 45, 46, 48, 42, 36, 30, 34, 38, 20, 5, 0, -20]
        candles = candles_from_closes(pips(closes))
        state = fold_all_but_last(candles, short_window_config)
        # Give the guard the LL the fold would have detected on the last candle
        machine = TrendStateMachine(candles, short_window_config)
        machine.state = state
        machine._record_swing_point(len(candles) - 1, [])
        assert state.trend == Trend.BULLISH

        events = apply_consistency_guard(state, candles, short_window_config)

        assert state.trend == Trend.BEARISH
        assert state.current_lh == pytest.approx(1.1038)
        assert state.current_ll == pytest.approx(1.0980)
        assert isinstance(events[-1], PatternFlipEvent)
        assert events[-1].trigger == "consistency_guard"
        assert state.points[-1].label == PointLabel.LL


class TestConsistencyGuardBearish:
    """The guard applied to a bearish fold whose final close breaks LH."""

    def test_recent_anchor_break_flips(self, daily_config):
        candles = candles_from_closes(pips(mirror(BULLISH_PREFIX + [60, 4])))
        state = fold_all_but_last(candles, daily_config)
        assert state.trend == Trend.BEARISH

        events = apply_consistency_guard(state, candles, daily_config)

        assert state.trend == Trend.BULLISH
        assert state.current_hh == pytest.approx(1.0996)
        assert state.hh_index == 15
        assert state.current_hl == pytest.approx(1.0930)
        assert state.current_ll is None
        assert state.current_lh is None
        assert len(events) == 1
        assert isinstance(events[0], GuardFlipEvent)
        assert events[0].from_trend == "bearish"
        assert events[0].to_trend == "bullish"

    def test_stale_anchor_without_pattern_degrades(self, short_window_config):
        candles = candles_from_closes(pips(mirror(BULLISH_PREFIX + [60] * 20 + [4])))
        state = fold_all_but_last(candles, short_window_config)
        assert state.trend == Trend.BEARISH

        events = apply_consistency_guard(state, candles, short_window_config)

        assert state.trend == Trend.NEUTRAL
        assert state.current_ll is None
        assert state.current_lh is None
        assert isinstance(events[-1], TrendDegradedEvent)
        assert events[-1].anchor_age == 24

    def test_stale_anchor_with_pattern_flips(self, short_window_config):
        """The last close breaks the stale LH and confirms a recent HH + HL."""
        closes = [0, 10, 20, 30, 20, 10, 20, 40, 50, 44, 45, 46, 48, 42, 36, 30, 34, 38, 20, 5, 0, -20]
        candles = candles_from_closes(pips(mirror(closes)))
        state = fold_all_but_last(candles, short_window_config)
        machine = TrendStateMachine(candles, short_window_config)
        machine.state = state
        machine._record_swing_point(len(candles) - 1, [])
        assert state.trend == Trend.BEARISH

        events = apply_consistency_guard(state, candles, short_window_config)

        assert state.trend == Trend.BULLISH
        assert state.current_hl == pytest.approx(1.0962)
        assert state.current_hh == pytest.approx(1.1020)
        assert isinstance(events[-1], PatternFlipEvent)
        assert events[-1].trigger == "consistency_guard"
        assert state.points[-1].label == PointLabel.HH
