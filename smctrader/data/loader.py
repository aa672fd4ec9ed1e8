"""Candle ingestion — pandas frames and CSV files to ``Candle`` lists.

Expected columns: ``time, open, high, low, close`` and optionally
``volume``.  Times are parsed as UTC.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from smctrader.analysis.models import Candle

logger = logging.getLogger("smctrader.data")

REQUIRED_COLUMNS = ["time", "open", "high", "low", "close"]


# ── Data quality ─────────────────────────────────────────────────────────


def clean_candles(df: pd.DataFrame) -> pd.DataFrame:
    """Normalise a raw candle frame.

    1. Parse ``time`` as UTC.
    2. Remove weekend candles (Sat/Sun UTC).
    3. Sort by time and drop duplicate timestamps (first kept).
    """
    if df.empty:
        return df

    df = df.copy()
    if not pd.api.types.is_datetime64_any_dtype(df["time"]):
        df["time"] = pd.to_datetime(df["time"], utc=True)
    elif df["time"].dt.tz is None:
        df["time"] = df["time"].dt.tz_localize("UTC")

    df = df[~df["time"].dt.weekday.isin([5, 6])]
    df = df.sort_values("time").drop_duplicates(subset="time", keep="first")
    return df.reset_index(drop=True)


def candles_from_frame(
    df: pd.DataFrame, symbol: str = "", timeframe: str = "",
) -> list[Candle]:
    """Convert a cleaned frame to validated candles.

    Raises:
        ValueError: A required column is missing, or a row has a high/low
            that does not bound its open and close.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Candle data missing column(s): {', '.join(missing)}")

    volumes = df["volume"] if "volume" in df.columns else pd.Series(0.0, index=df.index)
    candles: list[Candle] = []
    for row, volume in zip(df[REQUIRED_COLUMNS].itertuples(index=False), volumes):
        candle = Candle(
            time=row.time.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(volume),
            symbol=symbol,
            timeframe=timeframe,
        )
        candle.validate()
        candles.append(candle)
    return candles


def load_candles_csv(
    path: Union[str, Path], symbol: str = "", timeframe: str = "",
) -> list[Candle]:
    """Read, clean and convert one CSV file."""
    df = pd.read_csv(path)
    raw = len(df)
    df = clean_candles(df)
    candles = candles_from_frame(df, symbol=symbol, timeframe=timeframe)
    logger.info(
        "Loaded %d %s candles from %s (%d dropped)",
        len(candles), timeframe or "?", path, raw - len(candles),
    )
    return candles
