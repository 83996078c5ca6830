"""
Consistency Guard

Post-fold check that the reported trend is not contradicted by the final
candle. If the last close has already broken the active reference anchor
(HL when bullish, LH when bearish) by more than the buffer, the trend is
reclassified:

- anchor recent: flip, exactly as a break inside the fold would;
- anchor stale: give the recent pattern scanner one more chance;
- still unconfirmed: degrade to NEUTRAL and clear all anchors.
"""

from typing import List, Optional, Sequence

import numpy as np

from .events import TrendEvent, GuardFlipEvent, TrendDegradedEvent
from .pattern_scanner import apply_pattern_flip, scan_reversal
from .structure_config import ResolvedConfig
from .trend_machine import (
    anchor_is_recent,
    breaks_anchor,
    flip_on_break,
    pattern_flip_event,
    pattern_rejected_event,
    reference_anchor,
)
from .types import Candle, Trend, TrendState


def apply_consistency_guard(
    state: TrendState,
    candles: Sequence[Candle],
    config: ResolvedConfig,
    closes: Optional[np.ndarray] = None,
) -> List[TrendEvent]:
    """
    Reconcile the final trend with the final close.

    Args:
        state: Folded state, mutated in place.
        candles: The candle window the state was folded from.
        config: Resolved run parameters.
        closes: Body closes of the window, recomputed if not given.

    Returns:
        Events describing any correction (empty when the trend stands).
    """
    if state.trend == Trend.NEUTRAL or not candles:
        return []

    last_index = len(candles) - 1
    last = candles[last_index]
    if not breaks_anchor(state, last.close, config):
        return []

    level, anchor_index = reference_anchor(state)
    from_trend = state.trend

    if anchor_is_recent(state, last_index, config):
        flip_on_break(state, last.close, last_index)
        return [GuardFlipEvent(
            candle_index=last_index,
            timestamp=last.timestamp,
            from_trend=from_trend.value,
            to_trend=state.trend.value,
            broken_level=level,
            close=last.close,
        )]

    if closes is None:
        closes = np.asarray([c.close for c in candles], dtype=float)

    events: List[TrendEvent] = []
    match = scan_reversal(state, closes, last_index, config)
    if match is not None and match.confirmed:
        apply_pattern_flip(state, match)
        events.append(pattern_flip_event(match, last, last_index, trigger="consistency_guard"))
        return events

    if match is not None:
        events.append(pattern_rejected_event(match, last, last_index, config.pip_size))

    state.set_neutral()
    events.append(TrendDegradedEvent(
        candle_index=last_index,
        timestamp=last.timestamp,
        from_trend=from_trend.value,
        broken_level=level,
        close=last.close,
        anchor_age=last_index - anchor_index if anchor_index is not None else None,
    ))
    return events
