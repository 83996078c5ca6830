"""
Error kinds for the market structure service.

The HTTP layer maps InvalidRequestError to 400 and PersistenceError to 500.
Batch jobs count any MarketStructureError as a failure for that pair and
carry on with the rest.
"""


class MarketStructureError(Exception):
    """Base class for market structure service errors."""
    pass


class InvalidRequestError(MarketStructureError):
    """Raised when symbol or timeframe is missing, or the timeframe is unknown."""
    pass


class DataUnavailableError(MarketStructureError):
    """Raised when a candle source cannot be read (malformed or missing CSV)."""
    pass


class PersistenceError(MarketStructureError):
    """Raised when the candle or result store fails."""
    pass
