"""
SQLite database layer for candles and computed trends.

Provides the candle store (historical OHLC per symbol/timeframe, read once
per run) and the result store (one upserted trend record per pair).
Uses WAL mode so backfill workers can read while another writes.

Timestamps are stored as naive UTC ISO-8601 strings ("YYYY-MM-DDTHH:MM:SS"),
which sort lexically in chronological order.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..market_structure.constants import ALGORITHM_VERSION
from ..market_structure.types import Candle, TrendState
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

# Environment variable overriding the database location
DB_PATH_ENV = "MARKET_STRUCTURE_DB"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Module-level database path (can be overridden for tests and the server --db flag)
_db_path: Optional[Path] = None


def get_db_path() -> Path:
    """
    Get the database path.

    Uses $MARKET_STRUCTURE_DB when set, otherwise local_data/market_structure.db
    under the project root.

    Returns:
        Path to the SQLite database file.
    """
    global _db_path

    if _db_path is not None:
        return _db_path

    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        _db_path = Path(env_path)
        logger.info(f"Using database path from {DB_PATH_ENV}: {_db_path}")
        return _db_path

    project_root = Path(__file__).parent.parent.parent
    local_db_dir = project_root / "local_data"
    local_db_dir.mkdir(exist_ok=True)
    _db_path = local_db_dir / "market_structure.db"
    logger.info(f"Using local database path: {_db_path}")
    return _db_path


def set_db_path(path: Path) -> None:
    """
    Override the database path (for testing).

    Args:
        path: Custom path for the SQLite database.
    """
    global _db_path
    _db_path = Path(path)
    logger.info(f"Database path set to: {_db_path}")


def get_db() -> sqlite3.Connection:
    """
    Get a database connection.

    Creates a new connection with WAL mode enabled. Each caller (and each
    backfill worker) gets its own connection.

    Returns:
        SQLite connection object.
    """
    conn = sqlite3.connect(get_db_path())
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def connection(action: str) -> Iterator[sqlite3.Connection]:
    """Open a connection, translating sqlite3 failures into PersistenceError."""
    try:
        conn = get_db()
    except sqlite3.Error as e:
        raise PersistenceError(f"Failed to open database for {action}: {e}") from e
    try:
        yield conn
    except sqlite3.Error as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e
    finally:
        conn.close()


def init_db() -> None:
    """
    Initialize the database schema.

    Creates tables if they don't exist. Safe to call multiple times.
    """
    logger.info(f"Initializing database at {get_db_path()}")

    with connection("initialize schema") as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS candles (
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                open REAL NOT NULL,
                high REAL NOT NULL,
                low REAL NOT NULL,
                close REAL NOT NULL,
                PRIMARY KEY (symbol, timeframe, timestamp)
            );

            CREATE TABLE IF NOT EXISTS market_structure_trends (
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                trend TEXT NOT NULL,
                current_hh REAL,
                current_hl REAL,
                current_ll REAL,
                current_lh REAL,
                structure_points TEXT NOT NULL,
                confidence REAL NOT NULL,
                algorithm_version TEXT NOT NULL,
                last_candle_timestamp TEXT,
                last_updated TEXT NOT NULL,
                PRIMARY KEY (symbol, timeframe)
            );

            CREATE INDEX IF NOT EXISTS idx_trends_timeframe
                ON market_structure_trends(timeframe);
        """)
        conn.commit()
    logger.info("Database schema initialized successfully")


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a naive UTC storage string."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, TIMESTAMP_FORMAT) if value else None


# ============================================================================
# Candle Store
# ============================================================================


def insert_candles(symbol: str, timeframe: str, candles: Iterable[Candle]) -> int:
    """
    Upsert candles for a pair. Existing timestamps are overwritten.

    Returns:
        Number of candles written.
    """
    rows = [
        (symbol, timeframe, format_timestamp(c.timestamp), c.open, c.high, c.low, c.close)
        for c in candles
    ]

    with connection(f"insert candles for {symbol} {timeframe}") as conn:
        conn.executemany(
            """
            INSERT INTO candles (symbol, timeframe, timestamp, open, high, low, close)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(symbol, timeframe, timestamp) DO UPDATE SET
                open = excluded.open,
                high = excluded.high,
                low = excluded.low,
                close = excluded.close
            """,
            rows
        )
        conn.commit()

    logger.info(f"Stored {len(rows)} candles for {symbol} {timeframe}")
    return len(rows)


def fetch_candles(symbol: str, timeframe: str, since: Optional[datetime] = None) -> List[Candle]:
    """
    Read candles for a pair in ascending timestamp order.

    Args:
        symbol: Currency pair.
        timeframe: Canonical timeframe key.
        since: Inclusive lower bound on the candle timestamp.

    Returns:
        List of candles (empty when none are stored).
    """
    query = "SELECT timestamp, open, high, low, close FROM candles WHERE symbol = ? AND timeframe = ?"
    params: List[Any] = [symbol, timeframe]
    if since is not None:
        query += " AND timestamp >= ?"
        params.append(format_timestamp(since))
    query += " ORDER BY timestamp ASC"

    with connection(f"read candles for {symbol} {timeframe}") as conn:
        rows = conn.execute(query, params).fetchall()

    return [
        Candle(
            open=row["open"],
            high=row["high"],
            low=row["low"],
            close=row["close"],
            timestamp=parse_timestamp(row["timestamp"]),
        )
        for row in rows
    ]


def latest_candle_timestamp(symbol: str, timeframe: str) -> Optional[datetime]:
    """Timestamp of the newest stored candle for a pair, None if there are none."""
    with connection(f"read latest candle for {symbol} {timeframe}") as conn:
        row = conn.execute(
            "SELECT MAX(timestamp) AS latest FROM candles WHERE symbol = ? AND timeframe = ?",
            (symbol, timeframe)
        ).fetchone()
    return parse_timestamp(row["latest"]) if row else None


# ============================================================================
# Result Store
# ============================================================================


def upsert_trend(
    symbol: str,
    timeframe: str,
    state: TrendState,
    last_candle_timestamp: Optional[datetime],
    last_updated: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Insert or replace the trend record for (symbol, timeframe).

    Args:
        symbol: Currency pair.
        timeframe: Canonical timeframe key.
        state: Final trend state of the run.
        last_candle_timestamp: Timestamp of the last candle the run saw,
            None for an empty window.
        last_updated: Wall-clock time of the run (defaults to now, UTC).

    Returns:
        The stored record as a dict.
    """
    last_updated = last_updated or datetime.now(timezone.utc)
    record = {
        "symbol": symbol,
        "timeframe": timeframe,
        "trend": state.trend.value,
        "current_hh": state.current_hh,
        "current_hl": state.current_hl,
        "current_ll": state.current_ll,
        "current_lh": state.current_lh,
        "structure_points": [p.to_dict() for p in state.points],
        "confidence": state.confidence,
        "algorithm_version": ALGORITHM_VERSION,
        "last_candle_timestamp": format_timestamp(last_candle_timestamp) if last_candle_timestamp else None,
        "last_updated": format_timestamp(last_updated),
    }

    with connection(f"upsert trend for {symbol} {timeframe}") as conn:
        conn.execute(
            """
            INSERT INTO market_structure_trends (
                symbol, timeframe, trend, current_hh, current_hl, current_ll, current_lh,
                structure_points, confidence, algorithm_version,
                last_candle_timestamp, last_updated
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(symbol, timeframe) DO UPDATE SET
                trend = excluded.trend,
                current_hh = excluded.current_hh,
                current_hl = excluded.current_hl,
                current_ll = excluded.current_ll,
                current_lh = excluded.current_lh,
                structure_points = excluded.structure_points,
                confidence = excluded.confidence,
                algorithm_version = excluded.algorithm_version,
                last_candle_timestamp = excluded.last_candle_timestamp,
                last_updated = excluded.last_updated
            """,
            (
                record["symbol"], record["timeframe"], record["trend"],
                record["current_hh"], record["current_hl"],
                record["current_ll"], record["current_lh"],
                json.dumps(record["structure_points"]), record["confidence"],
                record["algorithm_version"],
                record["last_candle_timestamp"], record["last_updated"],
            )
        )
        conn.commit()

    logger.info(f"Upserted {record['trend']} trend for {symbol} {timeframe}")
    return record


def get_trend(symbol: str, timeframe: str) -> Optional[Dict[str, Any]]:
    """
    Get the stored trend record for a pair.

    Returns:
        Record dict (structure_points decoded), or None if never built.
    """
    with connection(f"read trend for {symbol} {timeframe}") as conn:
        row = conn.execute(
            "SELECT * FROM market_structure_trends WHERE symbol = ? AND timeframe = ?",
            (symbol, timeframe)
        ).fetchone()

    if row is None:
        return None

    record = dict(row)
    record["structure_points"] = json.loads(record["structure_points"])
    return record
