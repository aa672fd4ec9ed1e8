"""Technical indicators — ATR and EMA.  Pure functions, no I/O."""

from smctrader.analysis.models import Candle


def calculate_atr(candles: list[Candle], period: int = 14) -> float:
    """Calculate the Average True Range over the last *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` candles (need a previous close for TR).
    Returns ``0.0`` when there is not enough data; callers treat a zero ATR
    as "no volatility reading" and skip volatility-normalised detection.
    """
    if len(candles) < period + 1:
        return 0.0

    total = 0.0
    for i in range(len(candles) - period, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        total += max(
            high - low,
            abs(high - prev_close),
            abs(low - prev_close),
        )
    return total / period


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    values.  Returns the full series (same length as *values*); entries
    before the seed period are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* values are provided.
    """
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for EMA({period}), "
            f"got {len(values)}"
        )

    k = 2.0 / (period + 1)
    ema: list[float] = [float("nan")] * len(values)

    # Seed: SMA of first *period* values
    ema[period - 1] = sum(values[:period]) / period

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    return ema


def latest_ema(values: list[float], period: int) -> float:
    """Last value of the EMA series, or the last input when too short."""
    if len(values) < period:
        return values[-1]
    return calculate_ema(values, period)[-1]
