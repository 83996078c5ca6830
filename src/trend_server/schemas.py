"""
Pydantic models for the Market Structure API.

All request/response schemas for market structure endpoints.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Build
# ============================================================================


class BuildRequest(BaseModel):
    """Request to compute the trend for one pair.

    Both fields are optional at the schema level so that a missing field is
    reported as a 400 by the service validation rather than a 422.
    """
    symbol: Optional[str] = None
    timeframe: Optional[str] = None
    include_trace: bool = False


class BuildResponse(BaseModel):
    """Summary of a completed build."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    symbol: str
    timeframe: str
    trend: str
    structure_points: int = Field(alias="structurePoints")
    confidence: float
    trace: Optional[List[Dict[str, Any]]] = None


# ============================================================================
# Batch jobs
# ============================================================================


class UpdateRequest(BaseModel):
    """Request to refresh every major pair on one timeframe."""
    timeframe: Optional[str] = None


class UpdateResults(BaseModel):
    total: int
    updated: int
    skipped: int
    failed: int
    errors: List[str]


class UpdateResponse(BaseModel):
    success: bool
    timeframe: str
    results: UpdateResults


class BackfillRequest(BaseModel):
    """Request to rebuild many pairs across timeframes."""
    symbols: Optional[List[str]] = None
    timeframes: Optional[List[str]] = None
    max_workers: int = 5


class BackfillResults(BaseModel):
    total: int
    successful: int
    failed: int
    errors: List[str]


class BackfillResponse(BaseModel):
    success: bool
    results: BackfillResults


# ============================================================================
# Stored trends
# ============================================================================


class StructurePointResponse(BaseModel):
    """A persisted swing point."""
    type: str
    price: float
    timestamp: str
    index: int
    label: Optional[str] = None


class TrendRecordResponse(BaseModel):
    """The stored trend record for a pair."""
    symbol: str
    timeframe: str
    trend: str
    current_hh: Optional[float] = None
    current_hl: Optional[float] = None
    current_ll: Optional[float] = None
    current_lh: Optional[float] = None
    structure_points: List[StructurePointResponse]
    confidence: float
    algorithm_version: str
    last_candle_timestamp: Optional[str] = None
    last_updated: str
