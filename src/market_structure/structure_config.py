"""
Market Structure Configuration

Centralized configuration for trend engine parameters.
Holds the per-timeframe constant table (break buffer, relevance window,
lookback horizon) and resolves per-symbol pip sizes.
"""

from dataclasses import dataclass, field, asdict, replace
from decimal import Decimal
from typing import Any, Dict, Optional

from .constants import JPY_PIP_SIZE, STANDARD_PIP_SIZE, TIMEFRAME_ALIASES


@dataclass(frozen=True)
class TimeframeConfig:
    """
    Parameters for one timeframe.

    Attributes:
        buffer_pips: Minimum distance (in pips) a body close must travel beyond
            a reference level to count as a structural break.
        relevance_window: Number of candles a structure point stays eligible
            to anchor a break decision. Older points are stale.
        lookback_months: History window fetched from the candle store.
    """
    buffer_pips: int
    relevance_window: int
    lookback_months: int


def _default_timeframes() -> Dict[str, TimeframeConfig]:
    return {
        'W': TimeframeConfig(buffer_pips=40, relevance_window=100, lookback_months=60),
        'D': TimeframeConfig(buffer_pips=25, relevance_window=150, lookback_months=12),
        '4H': TimeframeConfig(buffer_pips=15, relevance_window=100, lookback_months=4),
    }


def pip_size_for(symbol: str) -> float:
    """Pip size for a currency pair: 0.01 for JPY pairs, 0.0001 otherwise."""
    return JPY_PIP_SIZE if 'JPY' in symbol.upper() else STANDARD_PIP_SIZE


def normalize_timeframe(timeframe: Optional[str]) -> Optional[str]:
    """Map accepted aliases ('1D', 'H4', ...) to canonical timeframe keys."""
    if timeframe is None:
        return None
    key = timeframe.strip().upper()
    return TIMEFRAME_ALIASES.get(key, key)


@dataclass(frozen=True)
class ResolvedConfig:
    """
    Effective parameters for one (symbol, timeframe) run.

    Attributes:
        symbol: Currency pair, e.g. 'EURUSD'.
        timeframe: Canonical timeframe key ('W', 'D', '4H').
        pip_size: Price value of one pip for this symbol.
        buffer_pips: Break buffer in pips.
        relevance_window: Staleness threshold in candles.
        lookback_months: History window fetched from the candle store.
    """
    symbol: str
    timeframe: str
    pip_size: float
    buffer_pips: int
    relevance_window: int
    lookback_months: int

    @property
    def buffer(self) -> Decimal:
        """Break buffer in price units, exact."""
        return Decimal(self.buffer_pips) * Decimal(str(self.pip_size))

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["buffer"] = float(self.buffer)
        return result


@dataclass(frozen=True)
class StructureConfig:
    """
    All configurable parameters for the trend engine.

    Attributes:
        timeframes: Map of canonical timeframe key to TimeframeConfig.

    Example:
        >>> config = StructureConfig.default()
        >>> config.resolve('USDJPY', 'D').pip_size
        0.01
    """
    timeframes: Dict[str, TimeframeConfig] = field(default_factory=_default_timeframes)

    @classmethod
    def default(cls) -> "StructureConfig":
        """Create a config with default values."""
        return cls()

    def supports(self, timeframe: Optional[str]) -> bool:
        return normalize_timeframe(timeframe) in self.timeframes

    def for_timeframe(self, timeframe: str) -> TimeframeConfig:
        """
        Look up a timeframe's parameters.

        Raises:
            KeyError: If the timeframe is not configured.
        """
        key = normalize_timeframe(timeframe)
        if key not in self.timeframes:
            raise KeyError(f"Unknown timeframe: {timeframe}")
        return self.timeframes[key]

    def resolve(self, symbol: str, timeframe: str) -> ResolvedConfig:
        """Combine symbol pip size and timeframe parameters for one run."""
        key = normalize_timeframe(timeframe)
        tf = self.for_timeframe(key)
        return ResolvedConfig(
            symbol=symbol.upper(),
            timeframe=key,
            pip_size=pip_size_for(symbol),
            buffer_pips=tf.buffer_pips,
            relevance_window=tf.relevance_window,
            lookback_months=tf.lookback_months,
        )

    def with_timeframe(self, timeframe: str, **kwargs: Any) -> "StructureConfig":
        """
        Create a new config with modified parameters for one timeframe.

        Since StructureConfig is frozen, this creates a new instance.
        Unknown timeframes are added, in which case every field must be given.

        Example:
            >>> config = StructureConfig.default()
            >>> custom = config.with_timeframe('D', relevance_window=50)
            >>> custom.for_timeframe('D').relevance_window
            50
        """
        key = normalize_timeframe(timeframe)
        timeframes = dict(self.timeframes)
        if key in timeframes:
            timeframes[key] = replace(timeframes[key], **kwargs)
        else:
            timeframes[key] = TimeframeConfig(**kwargs)
        return StructureConfig(timeframes=timeframes)
