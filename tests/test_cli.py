"""
Tests for the market structure CLI.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import BULLISH_PREFIX, pips
from src.cli.main import create_parser, main
from src.trend_server import db


@pytest.fixture
def bullish_csv(tmp_path):
    """Comma-separated daily EURUSD file ending yesterday."""
    closes = pips(BULLISH_PREFIX + [60, 55])
    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    start = today - timedelta(days=len(closes))

    lines = ["time,open,high,low,close"]
    for i, close in enumerate(closes):
        epoch = int((start + timedelta(days=i)).timestamp())
        lines.append(f"{epoch},{close:.5f},{close + 0.0005:.5f},{close - 0.0005:.5f},{close:.5f}")

    p = tmp_path / "EURUSD-D.csv"
    p.write_text("\n".join(lines) + "\n")
    return str(p)


class TestParser:
    """Tests for argument parsing."""

    def test_backfill_defaults(self):
        args = create_parser().parse_args(["backfill"])

        assert args.symbols is None
        assert args.timeframes is None
        assert args.workers == 5

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestCommands:
    """End-to-end command tests."""

    def test_analyze(self, bullish_csv, capsys):
        code = main(["analyze", "--data", bullish_csv, "--symbol", "EURUSD", "--timeframe", "D"])

        assert code == 0
        out = capsys.readouterr().out
        assert "EURUSD D: BULLISH" in out
        assert "Structure points: 6 (4 labeled)" in out

    def test_analyze_trace_lines_are_json(self, bullish_csv, capsys):
        main(["analyze", "--data", bullish_csv, "--symbol", "EURUSD", "--timeframe", "D", "--trace"])

        first_line = capsys.readouterr().out.splitlines()[0]
        assert json.loads(first_line)["event_type"] == "SWING_POINT"

    def test_analyze_missing_file(self, tmp_path, capsys):
        code = main(["analyze", "--data", str(tmp_path / "nope.csv"), "--symbol", "EURUSD", "--timeframe", "D"])

        assert code == 1
        assert "Error" in capsys.readouterr().out

    def test_analyze_bad_timeframe(self, bullish_csv, capsys):
        code = main(["analyze", "--data", bullish_csv, "--symbol", "EURUSD", "--timeframe", "1M"])

        assert code == 1

    def test_ingest_then_build(self, temp_db, bullish_csv, capsys):
        assert main(["--db", str(temp_db), "ingest", "--data", bullish_csv,
                     "--symbol", "eurusd", "--timeframe", "1D"]) == 0
        assert len(db.fetch_candles("EURUSD", "D")) == 16
        capsys.readouterr()

        assert main(["--db", str(temp_db), "build", "--symbol", "EURUSD", "--timeframe", "D"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["trend"] == "bullish"
        assert db.get_trend("EURUSD", "D")["trend"] == "bullish"

    def test_backfill(self, temp_db, capsys):
        code = main(["--db", str(temp_db), "backfill", "--symbols", "EURUSD", "GBPUSD",
                     "--timeframes", "W", "--workers", "2"])

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["results"]["successful"] == 2

    def test_update_unknown_timeframe(self, temp_db, capsys):
        assert main(["--db", str(temp_db), "update", "--timeframe", "15m"]) == 1
