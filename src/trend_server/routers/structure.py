"""
Market structure router.

Endpoints:
- POST /api/market-structure/build - Compute and store the trend for one pair
- POST /api/market-structure/update - Refresh every major pair on one timeframe
- POST /api/market-structure/backfill - Rebuild many pairs across timeframes
- GET /api/market-structure/{symbol}/{timeframe} - Read a stored trend
"""

import logging

from fastapi import APIRouter, HTTPException

from .. import db
from ..exceptions import InvalidRequestError, PersistenceError
from ..schemas import (
    BuildRequest,
    BuildResponse,
    UpdateRequest,
    UpdateResponse,
    BackfillRequest,
    BackfillResponse,
    TrendRecordResponse,
)
from ..service import (
    backfill_market_structure,
    build_market_structure,
    update_market_structure,
    validate_request,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/market-structure", tags=["market-structure"])


@router.post("/build", response_model=BuildResponse, response_model_exclude_none=True)
def build(request: BuildRequest):
    """
    Compute the trend for one (symbol, timeframe) pair and persist it.

    Returns:
        BuildResponse with trend, structure point count and confidence,
        plus the trace events when include_trace is set.
    """
    try:
        return build_market_structure(
            request.symbol,
            request.timeframe,
            include_trace=request.include_trace,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Build failed for {request.symbol} {request.timeframe}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/update", response_model=UpdateResponse)
def update(request: UpdateRequest):
    """Rebuild every major pair whose candles changed since its last build."""
    try:
        return update_market_structure(request.timeframe)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/backfill", response_model=BackfillResponse)
def backfill(request: BackfillRequest):
    """Rebuild the requested pairs and timeframes in parallel."""
    try:
        return backfill_market_structure(
            symbols=request.symbols,
            timeframes=request.timeframes,
            max_workers=request.max_workers,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{symbol}/{timeframe}", response_model=TrendRecordResponse)
def get_stored_trend(symbol: str, timeframe: str):
    """
    Get the stored trend record for a pair.

    Raises:
        HTTPException 400 for an unknown timeframe, 404 if never built.
    """
    try:
        symbol, timeframe = validate_request(symbol, timeframe)
        record = db.get_trend(symbol, timeframe)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if record is None:
        raise HTTPException(status_code=404, detail=f"No trend stored for {symbol} {timeframe}")
    return record
