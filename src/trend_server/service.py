"""
Market structure orchestration.

Glue between the candle store, the trend engine and the result store:

- build_market_structure: one (symbol, timeframe) run
- update_market_structure: rebuild every major pair with new candles for one timeframe
- backfill_market_structure: rebuild many pairs across timeframes in parallel

Each run reads its candle window once, folds it, and upserts the result once.
Runs share no mutable state, so backfill workers need no coordination beyond
their own database connections.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from ..market_structure.calibrate import build_trend
from ..market_structure.constants import MAJOR_PAIRS, TIMEFRAMES
from ..market_structure.structure_config import StructureConfig, normalize_timeframe
from . import db
from .exceptions import InvalidRequestError, MarketStructureError

logger = logging.getLogger(__name__)

# Parallel builds during backfill
DEFAULT_MAX_WORKERS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def lookback_start(now: datetime, lookback_months: int) -> datetime:
    """Calendar-month lookback: now minus lookback_months months."""
    return (pd.Timestamp(now) - pd.DateOffset(months=lookback_months)).to_pydatetime()


def validate_request(
    symbol: Optional[str],
    timeframe: Optional[str],
    config: Optional[StructureConfig] = None,
) -> tuple:
    """
    Normalize and validate a (symbol, timeframe) request.

    Returns:
        Tuple of (upper-cased symbol, canonical timeframe).

    Raises:
        InvalidRequestError: If either field is missing or the timeframe is unknown.
    """
    config = config or StructureConfig.default()
    if not symbol or not symbol.strip():
        raise InvalidRequestError("symbol is required")
    if not timeframe or not timeframe.strip():
        raise InvalidRequestError("timeframe is required")

    key = normalize_timeframe(timeframe)
    if not config.supports(key):
        raise InvalidRequestError(
            f"Unknown timeframe: {timeframe}. Expected one of {sorted(config.timeframes)}"
        )
    return symbol.strip().upper(), key


def build_market_structure(
    symbol: Optional[str],
    timeframe: Optional[str],
    now: Optional[datetime] = None,
    include_trace: bool = False,
    config: Optional[StructureConfig] = None,
) -> Dict[str, Any]:
    """
    Compute and persist the trend for one (symbol, timeframe) pair.

    Reads candles with timestamp >= now - lookback(timeframe), folds them,
    and upserts the result. An empty window is not an error: the pair is
    stored as neutral with no structure points.

    Args:
        symbol: Currency pair, e.g. 'EURUSD'.
        timeframe: 'W', 'D', '4H' or an accepted alias.
        now: Reference time for the lookback (defaults to now, UTC).
        include_trace: Attach the fold's trace events to the response.
        config: Engine configuration (defaults to StructureConfig.default()).

    Returns:
        Response dict with success, symbol, timeframe, trend,
        structurePoints (count), confidence and optionally trace.

    Raises:
        InvalidRequestError: Before any computation, on bad input.
        PersistenceError: If the candle read or the upsert fails.
    """
    config = config or StructureConfig.default()
    symbol, timeframe = validate_request(symbol, timeframe, config)
    resolved = config.resolve(symbol, timeframe)
    now = now or _utcnow()

    since = lookback_start(now, resolved.lookback_months)
    logger.info(f"Building market structure for {symbol} {timeframe} since {since:%Y-%m-%d}")

    candles = db.fetch_candles(symbol, timeframe, since=since)
    logger.info(f"Loaded {len(candles)} candles for {symbol} {timeframe}")

    state, events = build_trend(candles, resolved)
    last_candle_timestamp = candles[-1].timestamp if candles else None

    logger.info(
        f"{symbol} {timeframe}: {state.trend.value} "
        f"({len(state.points)} structure points, confidence {state.confidence:.2f})"
    )
    db.upsert_trend(symbol, timeframe, state, last_candle_timestamp)

    result = {
        "success": True,
        "symbol": symbol,
        "timeframe": timeframe,
        "trend": state.trend.value,
        "structurePoints": len(state.points),
        "confidence": state.confidence,
    }
    if include_trace:
        result["trace"] = [e.to_dict() for e in events]
    return result


def update_market_structure(
    timeframe: Optional[str],
    symbols: Optional[List[str]] = None,
    now: Optional[datetime] = None,
    config: Optional[StructureConfig] = None,
) -> Dict[str, Any]:
    """
    Rebuild every pair whose candles moved on since its last build.

    For each pair: build if no trend is stored, rebuild if the newest stored
    candle is newer than the stored trend's last candle, otherwise skip.
    A failing pair is counted and reported; the job carries on.

    Args:
        timeframe: Timeframe to update.
        symbols: Pairs to consider (defaults to MAJOR_PAIRS).
        now: Reference time for the lookback.
        config: Engine configuration.

    Returns:
        {success, timeframe, results: {total, updated, skipped, failed, errors}}
    """
    config = config or StructureConfig.default()
    if not timeframe or not config.supports(timeframe):
        raise InvalidRequestError(f"Unknown timeframe: {timeframe}")
    timeframe = normalize_timeframe(timeframe)
    symbols = symbols or MAJOR_PAIRS

    results = {"total": len(symbols), "updated": 0, "skipped": 0, "failed": 0, "errors": []}
    logger.info(f"Updating market structure for {len(symbols)} pairs on {timeframe}")

    for symbol in symbols:
        try:
            stored = db.get_trend(symbol, timeframe)
            latest = db.latest_candle_timestamp(symbol, timeframe)
            stored_last = db.parse_timestamp(stored["last_candle_timestamp"]) if stored else None

            if stored is not None and (latest is None or (stored_last is not None and latest <= stored_last)):
                results["skipped"] += 1
                continue

            build_market_structure(symbol, timeframe, now=now, config=config)
            results["updated"] += 1
        except MarketStructureError as e:
            logger.error(f"Failed to update {symbol} {timeframe}: {e}")
            results["failed"] += 1
            results["errors"].append(f"{symbol}: {e}")

    logger.info(
        f"Update {timeframe} complete: {results['updated']} updated, "
        f"{results['skipped']} skipped, {results['failed']} failed"
    )
    return {"success": True, "timeframe": timeframe, "results": results}


def backfill_market_structure(
    symbols: Optional[List[str]] = None,
    timeframes: Optional[List[str]] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    now: Optional[datetime] = None,
    config: Optional[StructureConfig] = None,
) -> Dict[str, Any]:
    """
    Build every (symbol, timeframe) combination in parallel.

    Args:
        symbols: Pairs to build (defaults to MAJOR_PAIRS).
        timeframes: Timeframes to build (defaults to W, D, 4H).
        max_workers: Thread pool size.
        now: Reference time for the lookback.
        config: Engine configuration.

    Returns:
        {success, results: {total, successful, failed, errors}}

    Raises:
        InvalidRequestError: If any timeframe is unknown or max_workers < 1.
    """
    config = config or StructureConfig.default()
    if max_workers < 1:
        raise InvalidRequestError(f"max_workers must be at least 1, got {max_workers}")

    symbols = [s.strip().upper() for s in (symbols or MAJOR_PAIRS)]
    keys = []
    for tf in timeframes or TIMEFRAMES:
        if not config.supports(tf):
            raise InvalidRequestError(f"Unknown timeframe: {tf}")
        keys.append(normalize_timeframe(tf))

    jobs = [(symbol, tf) for symbol in symbols for tf in keys]
    results = {"total": len(jobs), "successful": 0, "failed": 0, "errors": []}
    logger.info(f"Backfilling {len(jobs)} pair/timeframe combinations with {max_workers} workers")

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(build_market_structure, symbol, tf, now, False, config): (symbol, tf)
            for symbol, tf in jobs
        }
        for future in as_completed(futures):
            symbol, tf = futures[future]
            try:
                future.result()
                results["successful"] += 1
            except MarketStructureError as e:
                logger.error(f"Backfill failed for {symbol} {tf}: {e}")
                results["failed"] += 1
                results["errors"].append(f"{symbol} {tf}: {e}")

    logger.info(f"Backfill complete: {results['successful']} successful, {results['failed']} failed")
    return {"success": True, "results": results}
