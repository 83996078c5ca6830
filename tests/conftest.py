"""
Shared test fixtures and helpers for market structure tests.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Sequence

import pytest

from src.market_structure.structure_config import ResolvedConfig, StructureConfig
from src.market_structure.types import Candle
from src.trend_server import db

BASE_TIME = datetime(2024, 1, 1)


def make_candle(
    close: float,
    index: int = 0,
    timestamp: datetime = None,
    spread: float = 0.0005,
) -> Candle:
    """Helper to create Candle objects for testing.

    Args:
        close: Closing price (the only field the engine reads)
        index: Candle index in the sequence, used for the default timestamp
        timestamp: Candle time (defaults to BASE_TIME + index days)
        spread: Distance of high/low from the body

    Returns:
        Candle with open == close and high/low around it
    """
    return Candle(
        open=close,
        high=round(close + spread, 5),
        low=round(close - spread, 5),
        close=close,
        timestamp=timestamp or BASE_TIME + timedelta(days=index),
    )


def candles_from_closes(
    closes: Sequence[float],
    start: datetime = BASE_TIME,
    step: timedelta = timedelta(days=1),
) -> List[Candle]:
    """Build a candle sequence with one candle per close, spaced by step."""
    return [make_candle(c, i, timestamp=start + step * i) for i, c in enumerate(closes)]


def pips(values: Sequence[float], base: float = 1.1000, pip_size: float = 0.0001) -> List[float]:
    """Convert pip offsets from base into prices, e.g. pips([0, 25]) -> [1.1, 1.1025]."""
    return [round(base + v * pip_size, 5) for v in values]


def mirror(values: Sequence[float]) -> List[float]:
    """Negate pip offsets, turning a bullish sequence into its bearish twin."""
    return [-v for v in values]


# Two clean HH -> HL cycles: H 30@3, L 10@5, H 50@8 (seed), L 30@10, H 70@13.
BULLISH_PREFIX = [0, 10, 20, 30, 20, 10, 20, 40, 50, 40, 30, 40, 60, 70]


@pytest.fixture
def daily_config() -> ResolvedConfig:
    """EURUSD daily: 25 pip buffer, 150 candle relevance window."""
    return StructureConfig.default().resolve('EURUSD', 'D')


@pytest.fixture
def short_window_config() -> ResolvedConfig:
    """EURUSD daily with a 10 candle relevance window."""
    return StructureConfig.default().with_timeframe('D', relevance_window=10).resolve('EURUSD', 'D')


@pytest.fixture
def temp_db(tmp_path: Path):
    """Create a temporary database for testing."""
    db_path = tmp_path / "test_market_structure.db"
    db.set_db_path(db_path)
    db.init_db()
    yield db_path
    # Reset db path after test
    db._db_path = None
