"""Core data types for market structure analysis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Trend(str, Enum):
    """Structural trend classification."""
    NEUTRAL = "neutral"
    BULLISH = "bullish"
    BEARISH = "bearish"


class PointKind(str, Enum):
    """Swing point type (body-close extremum)."""
    SWING_HIGH = "swing_high"
    SWING_LOW = "swing_low"


class PointLabel(str, Enum):
    """
    Market structure labels.

    HH/HL define a bullish sequence, LL/LH a bearish one.
    """
    HH = "HH"
    HL = "HL"
    LL = "LL"
    LH = "LH"


class BreakDirection(str, Enum):
    """Direction a close must travel past a reference level to count as a break."""
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Candle:
    """Single OHLC candle"""
    open: float
    high: float
    low: float
    close: float
    timestamp: datetime


@dataclass
class StructurePoint:
    """
    A detected swing point.

    Attributes:
        kind: SWING_HIGH or SWING_LOW.
        price: Body close of the candle that formed the point.
        timestamp: Timestamp of that candle.
        index: Position of that candle in the analyzed sequence.
        label: HH/HL/LL/LH once the point takes part in the structure,
            None while unclassified.
    """
    kind: PointKind
    price: float
    timestamp: datetime
    index: int
    label: Optional[PointLabel] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.kind.value,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "index": self.index,
            "label": self.label.value if self.label else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructurePoint":
        """Create from dictionary."""
        label = data.get("label")
        return cls(
            kind=PointKind(data["type"]),
            price=float(data["price"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            index=int(data["index"]),
            label=PointLabel(label) if label else None,
        )


@dataclass
class TrendState:
    """
    Mutable trend state owned by a single fold.

    Exactly one anchor pair is populated while the trend is non-neutral:
    (current_hh, current_hl) when bullish, (current_ll, current_lh) when
    bearish. Each anchor carries the candle index backing it so staleness
    can be judged without looking points up by price.

    Attributes:
        trend: Current structural trend.
        current_hh: Latest higher-high close (bullish only).
        current_hl: Latest higher-low close (bullish only).
        current_ll: Latest lower-low close (bearish only).
        current_lh: Latest lower-high close (bearish only).
        hh_index, hl_index, ll_index, lh_index: Candle index backing each anchor.
        points: All detected swing points in detection order.
    """
    trend: Trend = Trend.NEUTRAL
    current_hh: Optional[float] = None
    current_hl: Optional[float] = None
    current_ll: Optional[float] = None
    current_lh: Optional[float] = None
    hh_index: Optional[int] = None
    hl_index: Optional[int] = None
    ll_index: Optional[int] = None
    lh_index: Optional[int] = None
    points: List[StructurePoint] = field(default_factory=list)

    def set_bullish(self, hh: float, hh_index: int, hl: Optional[float], hl_index: Optional[int]) -> None:
        """Switch to bullish with the given anchors, clearing bearish ones."""
        self.trend = Trend.BULLISH
        self.current_hh, self.hh_index = hh, hh_index
        self.current_hl, self.hl_index = hl, hl_index
        self.current_ll = self.ll_index = None
        self.current_lh = self.lh_index = None

    def set_bearish(self, ll: float, ll_index: int, lh: Optional[float], lh_index: Optional[int]) -> None:
        """Switch to bearish with the given anchors, clearing bullish ones."""
        self.trend = Trend.BEARISH
        self.current_ll, self.ll_index = ll, ll_index
        self.current_lh, self.lh_index = lh, lh_index
        self.current_hh = self.hh_index = None
        self.current_hl = self.hl_index = None

    def set_neutral(self) -> None:
        """Drop back to neutral with no anchors."""
        self.trend = Trend.NEUTRAL
        self.current_hh = self.hh_index = None
        self.current_hl = self.hl_index = None
        self.current_ll = self.ll_index = None
        self.current_lh = self.lh_index = None

    def highs(self) -> List[StructurePoint]:
        return [p for p in self.points if p.kind == PointKind.SWING_HIGH]

    def lows(self) -> List[StructurePoint]:
        return [p for p in self.points if p.kind == PointKind.SWING_LOW]

    @property
    def confidence(self) -> float:
        """Fraction of structure points that carry a label."""
        labeled = sum(1 for p in self.points if p.label is not None)
        return labeled / max(len(self.points), 1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "trend": self.trend.value,
            "current_hh": self.current_hh,
            "current_hl": self.current_hl,
            "current_ll": self.current_ll,
            "current_lh": self.current_lh,
            "hh_index": self.hh_index,
            "hl_index": self.hl_index,
            "ll_index": self.ll_index,
            "lh_index": self.lh_index,
            "structure_points": [p.to_dict() for p in self.points],
            "confidence": self.confidence,
        }
