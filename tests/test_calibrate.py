"""
Tests for the fold driver and DataFrame conversion.
"""

from datetime import datetime

import pandas as pd
import pytest

from conftest import BULLISH_PREFIX, candles_from_closes, pips
from src.market_structure.calibrate import (
    build_trend,
    build_trend_from_dataframe,
    dataframe_to_candles,
    summarize,
)
from src.market_structure.types import Trend


def make_frame(closes, index=None) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "open": closes,
            "high": [c + 0.0005 for c in closes],
            "low": [c - 0.0005 for c in closes],
            "close": closes,
        },
        index=index,
    )


class TestDataframeToCandles:
    """Tests for dataframe_to_candles."""

    def test_datetime_index_from_loader(self):
        index = pd.date_range("2024-01-01", periods=3, freq="D", tz="UTC", name="timestamp")
        candles = dataframe_to_candles(make_frame([1.1, 1.2, 1.3], index=index))

        assert len(candles) == 3
        assert candles[0].timestamp == datetime(2024, 1, 1)
        assert candles[0].timestamp.tzinfo is None
        assert candles[2].close == 1.3

    def test_epoch_timestamp_column(self):
        df = make_frame([1.1, 1.2])
        df["time"] = [1704067200, 1704153600]

        candles = dataframe_to_candles(df)

        assert candles[0].timestamp == datetime(2024, 1, 1)
        assert candles[1].timestamp == datetime(2024, 1, 2)

    def test_capitalized_columns(self):
        df = pd.DataFrame({
            "Date": ["2024-01-02", "2024-01-01"],
            "Open": [1.2, 1.1],
            "High": [1.25, 1.15],
            "Low": [1.15, 1.05],
            "Close": [1.2, 1.1],
        })

        candles = dataframe_to_candles(df)

        # Sorted ascending regardless of row order
        assert [c.close for c in candles] == [1.1, 1.2]

    def test_missing_timestamp_raises(self):
        with pytest.raises(ValueError):
            dataframe_to_candles(make_frame([1.1, 1.2]))


class TestBuildTrend:
    """Tests for build_trend and wrappers."""

    def test_progress_callback(self, daily_config):
        candles = candles_from_closes(pips(BULLISH_PREFIX))
        calls = []

        build_trend(candles, daily_config, progress_callback=lambda i, n: calls.append((i, n)))

        assert len(calls) == len(candles)
        assert calls[-1] == (len(candles), len(candles))

    def test_from_dataframe_matches_candles(self, daily_config):
        closes = pips(BULLISH_PREFIX + [60, 55])
        index = pd.date_range("2024-01-01", periods=len(closes), freq="D", tz="UTC", name="timestamp")

        state, _ = build_trend_from_dataframe(make_frame(closes, index=index), daily_config)
        expected, _ = build_trend(candles_from_closes(closes), daily_config)

        assert state.to_dict() == expected.to_dict()

    def test_summarize(self, daily_config):
        candles = candles_from_closes(pips(BULLISH_PREFIX + [60, 55]))
        state, _ = build_trend(candles, daily_config)

        summary = summarize(state)

        assert summary["trend"] == "bullish"
        assert summary["structure_points"] == 6
        assert summary["labeled_points"] == 4
        assert summary["label_counts"] == {"HH": 2, "HL": 2, "LL": 0, "LH": 0}
        assert summary["confidence"] == pytest.approx(4 / 6)

    def test_summarize_empty(self, daily_config):
        state, _ = build_trend([], daily_config)
        summary = summarize(state)

        assert summary["trend"] == Trend.NEUTRAL.value
        assert summary["confidence"] == 0.0
