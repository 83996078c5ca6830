"""
Router package for the Market Structure Server.

Routers:
- structure.py: Build, update, backfill and stored-trend lookup
"""

from .structure import router as structure_router

__all__ = [
    "structure_router",
]
