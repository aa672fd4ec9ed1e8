"""Tests for candle ingestion and the CLI summary."""

import math
from datetime import datetime, timezone

import pandas as pd
import pytest

from smctrader.backtest.models import BacktestMetrics, BacktestResult
from smctrader.config import BacktestConfig
from smctrader.data.loader import candles_from_frame, clean_candles, load_candles_csv
from smctrader.main import format_summary


def _frame(rows):
    return pd.DataFrame(rows, columns=["time", "open", "high", "low", "close", "volume"])


# ── Cleaning ─────────────────────────────────────────────────────────────


class TestCleanCandles:
    def test_drops_weekends_and_duplicates(self):
        df = _frame([
            ("2025-03-07 21:00", 1.0, 1.1, 0.9, 1.05, 10),  # Friday
            ("2025-03-08 10:00", 1.0, 1.1, 0.9, 1.05, 10),  # Saturday
            ("2025-03-09 22:00", 1.0, 1.1, 0.9, 1.05, 10),  # Sunday
            ("2025-03-10 00:00", 2.0, 2.1, 1.9, 2.05, 10),
            ("2025-03-10 00:00", 3.0, 3.1, 2.9, 3.05, 10),  # duplicate
        ])
        cleaned = clean_candles(df)
        assert len(cleaned) == 2
        assert cleaned["open"].tolist() == [1.0, 2.0]

    def test_sorts_and_localises(self):
        df = _frame([
            ("2025-03-10 01:00", 2.0, 2.1, 1.9, 2.0, 0),
            ("2025-03-10 00:00", 1.0, 1.1, 0.9, 1.0, 0),
        ])
        df["time"] = pd.to_datetime(df["time"])
        cleaned = clean_candles(df)
        assert cleaned["open"].tolist() == [1.0, 2.0]
        assert str(cleaned["time"].dt.tz) == "UTC"

    def test_empty_frame(self):
        assert clean_candles(_frame([])).empty


class TestCandlesFromFrame:
    def test_converts_rows(self):
        df = clean_candles(_frame([("2025-03-10 00:00", 1.0, 1.1, 0.9, 1.05, 42)]))
        (candle,) = candles_from_frame(df, symbol="XAUUSD.s", timeframe="M15")
        assert candle.time == datetime(2025, 3, 10, tzinfo=timezone.utc)
        assert candle.close == 1.05
        assert candle.volume == 42
        assert candle.timeframe == "M15"

    def test_volume_optional(self):
        df = clean_candles(_frame([("2025-03-10 00:00", 1.0, 1.1, 0.9, 1.05, 0)]).drop(columns="volume"))
        assert candles_from_frame(df)[0].volume == 0.0

    def test_missing_columns(self):
        df = pd.DataFrame({"time": [], "open": [], "close": []})
        with pytest.raises(ValueError, match="high, low"):
            candles_from_frame(df)

    def test_inconsistent_ohlc(self):
        df = clean_candles(_frame([("2025-03-10 00:00", 1.0, 0.95, 0.9, 1.05, 0)]))
        with pytest.raises(ValueError, match="high"):
            candles_from_frame(df)


class TestLoadCsv:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "m15.csv"
        path.write_text(
            "time,open,high,low,close,volume\n"
            "2025-03-10T00:15:00Z,2.0,2.2,1.9,2.1,5\n"
            "2025-03-10T00:00:00Z,1.0,1.1,0.9,1.05,5\n"
            "2025-03-09T23:45:00Z,1.0,1.1,0.9,1.05,5\n"
        )
        candles = load_candles_csv(path, "XAUUSD.s", "M15")
        assert len(candles) == 2
        assert candles[0].time < candles[1].time
        assert candles[1].close == 2.1


# ── CLI summary ──────────────────────────────────────────────────────────


def _result(profit_factor, cancelled=False):
    metrics = BacktestMetrics(
        total_trades=3, winning_trades=3, losing_trades=0, win_rate=100.0,
        profit_factor=profit_factor, max_drawdown=0.0, max_drawdown_percent=0.0,
        sharpe_ratio=1.5, average_win=50.0, average_loss=0.0, average_rr=2.0,
        total_pnl=150.0, total_pnl_percent=1.5, final_balance=10_150.0,
    )
    return BacktestResult(
        config=BacktestConfig(strategy="ORDER_BLOCK", symbol="XAUUSD.s"),
        metrics=metrics, trades=[], equity_curve=[], drawdown_curve=[],
        cancelled=cancelled,
    )


class TestFormatSummary:
    def test_infinite_profit_factor(self):
        text = format_summary(_result(math.inf))
        assert "Profit factor:  inf" in text
        assert "Final balance:  10150.00" in text
        assert text.splitlines()[0] == "Backtest XAUUSD.s / ORDER_BLOCK"

    def test_cancelled_marker(self):
        text = format_summary(_result(2.0, cancelled=True))
        assert text.splitlines()[0].endswith("(cancelled)")
        assert "Profit factor:  2.00" in text
