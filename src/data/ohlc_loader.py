import pandas as pd
from typing import List, Optional, NamedTuple
import os
import logging
from datetime import datetime

from ..market_structure.calibrate import dataframe_to_candles
from ..market_structure.types import Candle

logger = logging.getLogger(__name__)

# Header names accepted for the timestamp column of comma-separated files.
TIMESTAMP_COLUMNS = ['time', 'timestamp', 'datetime', 'date']


class FileMetrics(NamedTuple):
    """Quick metrics about a candle file."""
    total_candles: int
    file_size_bytes: int
    format: str
    first_timestamp: Optional[datetime]
    last_timestamp: Optional[datetime]


def detect_format(filepath: str) -> str:
    """
    Detects the format of the CSV file.

    Args:
        filepath: Path to the CSV file.

    Returns:
        "format_a" for Semicolon-Separated Historical Data
        (DD/MM/YYYY;HH:MM:SS;Open;High;Low;Close;Volume, no header).
        "format_b" for Comma-Separated Data with a header row
        (time/timestamp/date plus open, high, low, close).

    Raises:
        ValueError: If format cannot be detected.
    """
    try:
        with open(filepath, 'r') as f:
            lines = [f.readline() for _ in range(10)]
            lines = [line.strip() for line in lines if line.strip()]

            if not lines:
                raise ValueError("File is empty")

            first_line = lines[0]

            if ';' in first_line:
                return "format_a"

            if ',' in first_line:
                header = first_line.lower()
                if "open" in header and any(col in header for col in TIMESTAMP_COLUMNS):
                    return "format_b"

            raise ValueError(
                "Could not detect CSV format. Expected semicolon-separated historical "
                "format or comma-separated format with a header row."
            )

    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {filepath}")
    except PermissionError:
        raise PermissionError(f"Permission denied: {filepath}")


def _parse_timestamps(column: pd.Series) -> pd.Series:
    """Epoch seconds for numeric columns, otherwise any pandas-parseable date string."""
    if pd.api.types.is_numeric_dtype(column):
        return pd.to_datetime(column, unit='s', utc=True)
    return pd.to_datetime(column, utc=True)


def load_ohlc(filepath: str) -> pd.DataFrame:
    """
    Loads OHLC data from a CSV file into a standardized DataFrame.

    Rows are sorted by timestamp, duplicate timestamps keep their last
    occurrence, and rows violating low <= open/close <= high are dropped
    (more than 1% invalid rows rejects the file).

    Args:
        filepath: Path to the CSV file.

    Returns:
        DataFrame indexed by UTC timestamp with columns open, high, low, close, volume.

    Raises:
        FileNotFoundError, PermissionError, ValueError.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    if os.path.getsize(filepath) == 0:
        raise ValueError("File is empty")

    fmt = detect_format(filepath)

    try:
        if fmt == "format_a":
            df = pd.read_csv(
                filepath,
                sep=';',
                header=None,
                names=['date', 'time', 'open', 'high', 'low', 'close', 'volume'],
                dtype={
                    'date': str, 'time': str,
                    'open': 'float64', 'high': 'float64', 'low': 'float64', 'close': 'float64',
                },
                engine='c'
            )

            datetime_str = df['date'] + ' ' + df['time']
            df['timestamp'] = pd.to_datetime(datetime_str, format='%d/%m/%Y %H:%M:%S', utc=True)
            df.drop(columns=['date', 'time'], inplace=True)

        else:  # format_b
            df = pd.read_csv(filepath, sep=',', engine='c')
            df.columns = df.columns.str.lower()

            ts_col = next((c for c in TIMESTAMP_COLUMNS if c in df.columns), None)
            required = {'open', 'high', 'low', 'close'}
            if ts_col is None or not required.issubset(df.columns):
                raise ValueError(f"Missing required columns. Found: {df.columns.tolist()}")

            df['timestamp'] = _parse_timestamps(df[ts_col])
            if ts_col != 'timestamp':
                df.drop(columns=[ts_col], inplace=True)

            for c in ['open', 'high', 'low', 'close']:
                df[c] = df[c].astype('float64')

        if 'volume' not in df.columns:
            df['volume'] = 0
        df['volume'] = df['volume'].fillna(0).astype('int64')

    except (KeyError, ValueError, TypeError, pd.errors.ParserError) as e:
        raise ValueError(f"Error parsing file: {e}")

    df = df[['timestamp', 'open', 'high', 'low', 'close', 'volume']]
    df.set_index('timestamp', inplace=True)
    df.sort_index(inplace=True)

    # Keep last occurrence: overlapping exports carry the corrected candle last
    duplicate_timestamps = df.index.duplicated(keep='last')
    if duplicate_timestamps.any():
        duplicate_count = duplicate_timestamps.sum()
        logger.debug(
            f"Duplicate timestamps in {os.path.basename(filepath)}: "
            f"{duplicate_count} removed (kept last occurrence)"
        )
        df = df[~duplicate_timestamps]

    valid_ohlc = (
        (df['low'] <= df['open']) & (df['open'] <= df['high']) &
        (df['low'] <= df['close']) & (df['close'] <= df['high'])
    )
    valid_mask = valid_ohlc & (df['volume'] >= 0)

    if not valid_mask.all():
        invalid_count = (~valid_mask).sum()
        total_count = len(df)

        if invalid_count / total_count > 0.01:
            raise ValueError(f"Too many invalid rows: {invalid_count}/{total_count} ({invalid_count/total_count:.2%})")

        logger.warning(f"Dropping {invalid_count} invalid OHLC row(s) from {filepath}")
        df = df[valid_mask]

    return df


def load_candles(filepath: str) -> List[Candle]:
    """
    Load a CSV file straight into engine candles.

    Example:
        >>> candles = load_candles("EURUSD-D.csv")
        >>> state, events = build_trend(candles, config)
    """
    return dataframe_to_candles(load_ohlc(filepath))


def get_file_metrics(filepath: str) -> FileMetrics:
    """
    Summarize a candle file: row count, size, format and date range.

    Raises:
        FileNotFoundError, ValueError.
    """
    df = load_ohlc(filepath)
    first = df.index[0].to_pydatetime() if len(df) else None
    last = df.index[-1].to_pydatetime() if len(df) else None
    return FileMetrics(
        total_candles=len(df),
        file_size_bytes=os.path.getsize(filepath),
        format=detect_format(filepath),
        first_timestamp=first,
        last_timestamp=last,
    )
