"""
Main CLI Module for Market Structure Analysis

Provides command-line access to the trend engine, the candle store and the
batch jobs.

Commands:
- ingest: Load a CSV of candles into the candle store
- analyze: Build a trend straight from a CSV (no database)
- build: Build and store the trend for one pair from the candle store
- update: Refresh every major pair with new candles on one timeframe
- backfill: Rebuild all pairs across all timeframes in parallel
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from src.data.ohlc_loader import load_candles
from src.market_structure.calibrate import build_trend, summarize
from src.market_structure.structure_config import StructureConfig
from src.trend_server import db
from src.trend_server.exceptions import DataUnavailableError, MarketStructureError
from src.trend_server.service import (
    DEFAULT_MAX_WORKERS,
    backfill_market_structure,
    build_market_structure,
    update_market_structure,
    validate_request,
)

logger = logging.getLogger(__name__)


def _read_csv(path: str):
    """Load candles from a CSV, reporting any parse failure as DataUnavailableError."""
    try:
        return load_candles(path)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        raise DataUnavailableError(f"Cannot read candles from {path}: {e}") from e


def run_ingest_command(args) -> bool:
    """Load a CSV file and upsert its candles into the candle store."""
    try:
        symbol, timeframe = validate_request(args.symbol, args.timeframe)
        candles = _read_csv(args.data)
        db.init_db()
        count = db.insert_candles(symbol, timeframe, candles)
    except MarketStructureError as e:
        logger.error(f"Ingest failed: {e}")
        print(f"Error: {e}")
        return False

    print(f"Ingested {count} candles for {symbol} {timeframe}")
    return True


def run_analyze_command(args) -> bool:
    """Build a trend from a CSV file and print the summary."""
    try:
        symbol, timeframe = validate_request(args.symbol, args.timeframe)
        candles = _read_csv(args.data)
    except MarketStructureError as e:
        print(f"Error: {e}")
        return False

    config = StructureConfig.default().resolve(symbol, timeframe)
    state, events = build_trend(candles, config)

    if args.trace:
        for event in events:
            print(json.dumps(event.to_dict()))

    summary = summarize(state)
    print(f"\n{symbol} {timeframe}: {summary['trend'].upper()}")
    print(f"  Candles:          {len(candles)}")
    print(f"  Structure points: {summary['structure_points']} ({summary['labeled_points']} labeled)")
    print(f"  Labels:           {summary['label_counts']}")
    print(f"  Confidence:       {summary['confidence']:.2f}")
    for anchor in ("current_hh", "current_hl", "current_ll", "current_lh"):
        if summary[anchor] is not None:
            print(f"  {anchor[8:].upper()}:               {summary[anchor]}")
    return True


def run_build_command(args) -> bool:
    """Build and store the trend for one pair."""
    try:
        db.init_db()
        result = build_market_structure(args.symbol, args.timeframe, include_trace=args.trace)
    except MarketStructureError as e:
        print(f"Error: {e}")
        return False

    print(json.dumps(result, indent=2))
    return True


def run_update_command(args) -> bool:
    """Refresh every major pair on one timeframe."""
    try:
        db.init_db()
        result = update_market_structure(args.timeframe)
    except MarketStructureError as e:
        print(f"Error: {e}")
        return False

    print(json.dumps(result, indent=2))
    return result["results"]["failed"] == 0


def run_backfill_command(args) -> bool:
    """Rebuild pairs across timeframes in parallel."""
    try:
        db.init_db()
        result = backfill_market_structure(
            symbols=args.symbols,
            timeframes=args.timeframes,
            max_workers=args.workers,
        )
    except MarketStructureError as e:
        print(f"Error: {e}")
        return False

    print(json.dumps(result, indent=2))
    return result["results"]["failed"] == 0


def create_parser():
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Market Structure Trend Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--db',
        help='SQLite database path (default: $MARKET_STRUCTURE_DB or ./local_data/market_structure.db)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    ingest_parser = subparsers.add_parser('ingest', help='Load a CSV of candles into the candle store')
    ingest_parser.add_argument('--data', required=True, help='Path to the CSV file')
    ingest_parser.add_argument('--symbol', required=True, help='Currency pair (e.g. EURUSD)')
    ingest_parser.add_argument('--timeframe', required=True, help='Timeframe: W, D or 4H')

    analyze_parser = subparsers.add_parser('analyze', help='Build a trend from a CSV without a database')
    analyze_parser.add_argument('--data', required=True, help='Path to the CSV file')
    analyze_parser.add_argument('--symbol', required=True, help='Currency pair (e.g. EURUSD)')
    analyze_parser.add_argument('--timeframe', required=True, help='Timeframe: W, D or 4H')
    analyze_parser.add_argument('--trace', action='store_true', help='Print trace events as JSON lines')

    build_parser = subparsers.add_parser('build', help='Build and store the trend for one pair')
    build_parser.add_argument('--symbol', required=True, help='Currency pair (e.g. EURUSD)')
    build_parser.add_argument('--timeframe', required=True, help='Timeframe: W, D or 4H')
    build_parser.add_argument('--trace', action='store_true', help='Include trace events in the output')

    update_parser = subparsers.add_parser('update', help='Refresh pairs with new candles on one timeframe')
    update_parser.add_argument('--timeframe', required=True, help='Timeframe: W, D or 4H')

    backfill_parser = subparsers.add_parser('backfill', help='Rebuild pairs across timeframes in parallel')
    backfill_parser.add_argument('--symbols', nargs='+', help='Pairs to build (default: all major pairs)')
    backfill_parser.add_argument('--timeframes', nargs='+', help='Timeframes to build (default: W D 4H)')
    backfill_parser.add_argument(
        '--workers',
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f'Parallel builds (default: {DEFAULT_MAX_WORKERS})'
    )

    return parser


COMMANDS = {
    'ingest': run_ingest_command,
    'analyze': run_analyze_command,
    'build': run_build_command,
    'update': run_update_command,
    'backfill': run_backfill_command,
}


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.db:
        db.set_db_path(Path(args.db))

    success = COMMANDS[args.command](args)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
