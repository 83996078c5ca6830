# Market Structure Module
#
# Swing-point trend engine: body-close swing detection, HH/HL and LL/LH
# sequencing, buffered break confirmation and staleness-aware reversals.

from .types import Candle, StructurePoint, TrendState, Trend, PointKind, PointLabel, BreakDirection
from .structure_config import StructureConfig, TimeframeConfig, ResolvedConfig, pip_size_for, normalize_timeframe
from .swing_points import detect_swing_point, is_swing_high, is_swing_low
from .break_validator import is_break, is_recent
from .pattern_scanner import PatternMatch, scan_bearish_flip, scan_bullish_flip
from .trend_machine import TrendStateMachine
from .consistency_guard import apply_consistency_guard
from .calibrate import build_trend, build_trend_from_dataframe, dataframe_to_candles, summarize
from .events import (
    TrendEvent,
    SwingPointEvent,
    TrendSeededEvent,
    AnchorAdvancedEvent,
    StructureBreakEvent,
    BreakIgnoredEvent,
    PatternFlipEvent,
    PatternRejectedEvent,
    GuardFlipEvent,
    TrendDegradedEvent,
)
