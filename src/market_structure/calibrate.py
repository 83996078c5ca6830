"""
Fold driver for the trend engine.

Runs the Trend State Machine over a full candle window, applies the
Consistency Guard, and provides DataFrame conversion utilities.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .consistency_guard import apply_consistency_guard
from .events import TrendEvent
from .structure_config import ResolvedConfig
from .trend_machine import TrendStateMachine
from .types import Candle, PointLabel, TrendState


def build_trend(
    candles: Sequence[Candle],
    config: ResolvedConfig,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Tuple[TrendState, List[TrendEvent]]:
    """
    Fold a candle window into a final TrendState.

    This is process_candle() in a loop followed by the consistency guard.
    Short windows are not an error: with fewer than 5 candles no swing point
    can form and the result is NEUTRAL with no structure points.

    Args:
        candles: Candles in strictly ascending timestamp order.
        config: Resolved parameters for the (symbol, timeframe) pair.
        progress_callback: Optional callback(current, total) for progress reporting.

    Returns:
        Tuple of (final state, all trace events generated).

    Example:
        >>> config = StructureConfig.default().resolve('EURUSD', 'D')
        >>> state, events = build_trend(candles, config)
        >>> print(f"{state.trend.value}: {len(state.points)} points")
    """
    machine = TrendStateMachine(candles, config)
    all_events: List[TrendEvent] = []
    total = len(candles)

    for i in range(total):
        all_events.extend(machine.process_candle(i))
        if progress_callback:
            progress_callback(i + 1, total)

    all_events.extend(apply_consistency_guard(machine.state, candles, config, machine.closes))
    return machine.state, all_events


def _to_datetime(value: Any) -> datetime:
    """Convert a timestamp cell to a naive UTC datetime."""
    if pd.api.types.is_number(value):
        value = pd.to_datetime(value, unit="s", utc=True)
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def dataframe_to_candles(df: pd.DataFrame) -> List[Candle]:
    """
    Convert DataFrame with OHLC columns to a Candle list.

    Handles the loader's output (DatetimeIndex named 'timestamp') as well as
    frames carrying a timestamp/time/date/datetime column. Column names are
    matched case-insensitively.

    Args:
        df: DataFrame with open/high/low/close columns.

    Returns:
        List of Candle objects in ascending timestamp order.

    Raises:
        ValueError: If no timestamp can be found.

    Example:
        >>> df = load_ohlc("EURUSD-D.csv")
        >>> candles = dataframe_to_candles(df)
    """
    col_map = {c.lower(): c for c in df.columns}

    ts_col = next(
        (col_map[name] for name in ["timestamp", "time", "date", "datetime"] if name in col_map),
        None,
    )
    if ts_col is None and not isinstance(df.index, pd.DatetimeIndex):
        raise ValueError("DataFrame has no timestamp column or DatetimeIndex")

    candles = []
    for idx, row in df.iterrows():
        timestamp = _to_datetime(row[ts_col] if ts_col is not None else idx)
        candles.append(Candle(
            open=float(row[col_map.get("open", "open")]),
            high=float(row[col_map.get("high", "high")]),
            low=float(row[col_map.get("low", "low")]),
            close=float(row[col_map.get("close", "close")]),
            timestamp=timestamp,
        ))

    candles.sort(key=lambda c: c.timestamp)
    return candles


def build_trend_from_dataframe(
    df: pd.DataFrame,
    config: ResolvedConfig,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Tuple[TrendState, List[TrendEvent]]:
    """
    Convenience wrapper for DataFrame input.

    Example:
        >>> df = load_ohlc("GBPJPY-4H.csv")
        >>> state, events = build_trend_from_dataframe(df, config)
    """
    return build_trend(dataframe_to_candles(df), config, progress_callback)


def summarize(state: TrendState) -> Dict[str, Any]:
    """Trend, anchors, confidence and per-label point counts."""
    label_counts = {label.value: 0 for label in PointLabel}
    for point in state.points:
        if point.label is not None:
            label_counts[point.label.value] += 1

    return {
        "trend": state.trend.value,
        "current_hh": state.current_hh,
        "current_hl": state.current_hl,
        "current_ll": state.current_ll,
        "current_lh": state.current_lh,
        "structure_points": len(state.points),
        "labeled_points": sum(label_counts.values()),
        "label_counts": label_counts,
        "confidence": state.confidence,
    }
