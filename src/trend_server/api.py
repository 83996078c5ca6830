"""
FastAPI backend for the Market Structure service.

Minimal server for:
- Computing and storing the trend of a (symbol, timeframe) pair
- Batch update and backfill across the major pairs
- Reading stored trends
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..market_structure.constants import ALGORITHM_VERSION
from . import db

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info(f"Market structure server ready (algorithm {ALGORITHM_VERSION})")
    yield


app = FastAPI(
    title="Market Structure Server",
    description="Swing-point trend engine for forex pairs",
    version=VERSION,
    lifespan=lifespan,
)

# Enable CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": VERSION,
        "algorithm_version": ALGORITHM_VERSION,
    }


# ============================================================================
# Wire up routers
# ============================================================================

from .routers import structure_router

app.include_router(structure_router)
