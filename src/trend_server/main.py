"""
Main entry point for the Market Structure Server.

Usage:
    python -m src.trend_server.main
    python -m src.trend_server.main --port 8080 --db ./local_data/market_structure.db
"""

import argparse
import logging
from pathlib import Path

import uvicorn

from . import db
from .api import app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Market Structure Server - HH/HL vs LL/LH trends for forex pairs"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (default: $MARKET_STRUCTURE_DB or ./local_data/market_structure.db)"
    )

    args = parser.parse_args()

    if args.db:
        db_path = Path(args.db)
        if not db_path.parent.exists():
            logger.error(f"Directory not found: {db_path.parent}")
            return 1
        db.set_db_path(db_path.resolve())

    logger.info(f"Serving market structure on http://{args.host}:{args.port}/ (db: {db.get_db_path()})")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
