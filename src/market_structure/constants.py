"""Centralized constants for market structure analysis."""

# Major and cross currency pairs tracked by the batch update and backfill jobs.
MAJOR_PAIRS = [
    'EURUSD', 'GBPUSD', 'USDJPY', 'USDCHF', 'AUDUSD', 'USDCAD', 'NZDUSD',
    'EURGBP', 'EURJPY', 'EURCHF', 'EURCAD', 'EURAUD', 'EURNZD',
    'GBPJPY', 'GBPCHF', 'GBPCAD', 'GBPAUD', 'GBPNZD',
    'CHFJPY', 'CADJPY', 'AUDJPY', 'NZDJPY',
    'AUDCHF', 'AUDCAD', 'AUDNZD',
    'NZDCHF', 'NZDCAD',
]

TIMEFRAMES = ['W', 'D', '4H']

# Alternate spellings accepted at the request boundary.
TIMEFRAME_ALIASES = {
    '1W': 'W',
    '1D': 'D',
    'H4': '4H',
}

# Swing detection compares each close against this many candles on each side.
SWING_NEIGHBORS = 2

# Pip size for JPY-quoted pairs vs everything else.
JPY_PIP_SIZE = 0.01
STANDARD_PIP_SIZE = 0.0001

# Bump when the structure algorithm changes in a way that alters stored trends.
ALGORITHM_VERSION = "v1.0"

# Windows shorter than one full swing pattern (2 back + candle + 2 forward)
# produce no structure points.
MIN_STRUCTURE_CANDLES = 2 * SWING_NEIGHBORS + 1
