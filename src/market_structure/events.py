"""
Trend Engine Events

Defines the trace events emitted while folding candles into a TrendState.
Each event captures one structural decision (seed, anchor advance, break,
ignored break, pattern flip, guard correction). Events are diagnostics only:
the final TrendState never depends on them.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Literal, Optional


@dataclass
class TrendEvent:
    """
    Base event from the trend engine.

    Attributes:
        event_type: Discriminator for event type routing/filtering.
        candle_index: Index of the candle being processed when the event fired.
        timestamp: Timestamp of that candle.
    """

    event_type: str
    candle_index: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result


@dataclass
class SwingPointEvent(TrendEvent):
    """Emitted when a candle qualifies as a swing high or low."""

    event_type: Literal["SWING_POINT"] = field(default="SWING_POINT", init=False)
    kind: str = ""
    price: float = 0.0


@dataclass
class TrendSeededEvent(TrendEvent):
    """
    Emitted when a neutral state acquires its first trend.

    Attributes:
        trend: "bullish" or "bearish".
        extreme_price: Seeded HH (bullish) or LL (bearish).
        extreme_index: Candle index of that point.
        pullback_price: Seeded HL (bullish) or LH (bearish).
        pullback_index: Candle index of that point.
    """

    event_type: Literal["TREND_SEEDED"] = field(default="TREND_SEEDED", init=False)
    trend: str = ""
    extreme_price: float = 0.0
    extreme_index: int = 0
    pullback_price: float = 0.0
    pullback_index: int = 0


@dataclass
class AnchorAdvancedEvent(TrendEvent):
    """
    Emitted when a trend extends: new HH in a bullish run, new LL in a bearish run.

    Attributes:
        label: "HH" or "LL".
        previous_price: Anchor value before the advance.
        new_price: Anchor value after the advance.
        pullback_price: HL/LH after the advance (unchanged if no new pullback).
        pullback_promoted: Whether a new HL/LH point was promoted.
    """

    event_type: Literal["ANCHOR_ADVANCED"] = field(default="ANCHOR_ADVANCED", init=False)
    label: str = ""
    previous_price: Optional[float] = None
    new_price: float = 0.0
    pullback_price: Optional[float] = None
    pullback_promoted: bool = False


@dataclass
class StructureBreakEvent(TrendEvent):
    """
    Emitted when a close confirms a break of a recent anchor and flips the trend.

    Attributes:
        from_trend: Trend before the flip.
        to_trend: Trend after the flip.
        broken_level: The HL (or LH) that was broken.
        close: The breaking body close.
        distance_pips: How far beyond the level the close went, in pips.
        anchor_age: Age of the broken anchor in candles.
    """

    event_type: Literal["STRUCTURE_BREAK"] = field(default="STRUCTURE_BREAK", init=False)
    from_trend: str = ""
    to_trend: str = ""
    broken_level: float = 0.0
    close: float = 0.0
    distance_pips: float = 0.0
    anchor_age: int = 0


@dataclass
class BreakIgnoredEvent(TrendEvent):
    """Emitted when a break is suppressed because its anchor is stale."""

    event_type: Literal["BREAK_IGNORED"] = field(default="BREAK_IGNORED", init=False)
    trend: str = ""
    broken_level: float = 0.0
    close: float = 0.0
    anchor_age: Optional[int] = None
    relevance_window: int = 0


@dataclass
class PatternFlipEvent(TrendEvent):
    """
    Emitted when the recent pattern scanner flips the trend.

    Attributes:
        to_trend: Trend after the flip.
        extreme_price: New LL (bearish) or HH (bullish) point price.
        pullback_price: New LH (bearish) or HL (bullish) point price.
        trigger: "stale_break", "stale_anchor", or "consistency_guard".
    """

    event_type: Literal["PATTERN_FLIP"] = field(default="PATTERN_FLIP", init=False)
    to_trend: str = ""
    extreme_price: float = 0.0
    extreme_index: int = 0
    pullback_price: float = 0.0
    pullback_index: int = 0
    trigger: str = ""


@dataclass
class PatternRejectedEvent(TrendEvent):
    """
    Emitted when a reversal geometry exists but no close confirmed it.

    Attributes:
        direction: "bearish" or "bullish" (the flip that was rejected).
        level: LH (bearish) or HL (bullish) the closes had to break.
        closest_close: Closest approach after the level formed, if any.
        distance_pips: Distance of that approach from the level, in pips.
    """

    event_type: Literal["PATTERN_REJECTED"] = field(default="PATTERN_REJECTED", init=False)
    direction: str = ""
    level: float = 0.0
    closest_close: Optional[float] = None
    distance_pips: Optional[float] = None


@dataclass
class GuardFlipEvent(TrendEvent):
    """Emitted when the consistency guard reclassifies the final trend."""

    event_type: Literal["GUARD_FLIP"] = field(default="GUARD_FLIP", init=False)
    from_trend: str = ""
    to_trend: str = ""
    broken_level: float = 0.0
    close: float = 0.0


@dataclass
class TrendDegradedEvent(TrendEvent):
    """Emitted when the consistency guard drops a stale, violated trend to neutral."""

    event_type: Literal["TREND_DEGRADED"] = field(default="TREND_DEGRADED", init=False)
    from_trend: str = ""
    broken_level: float = 0.0
    close: float = 0.0
    anchor_age: Optional[int] = None
