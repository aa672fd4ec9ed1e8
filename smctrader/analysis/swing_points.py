"""Swing point detection — local extremes over a fixed left/right window.

A candle is a swing HIGH when its high is *strictly* greater than every
other high within ``lookback`` candles on both sides; equal highs inside
the window mean no swing at that index.  Swing LOWs mirror the rule on
lows.
"""

from smctrader.analysis.models import Candle, SwingPoint

SWING_LOOKBACK = 5


def _is_swing_high(candles: list[Candle], i: int, lookback: int) -> bool:
    current = candles[i].high
    for j in range(i - lookback, i + lookback + 1):
        if j != i and candles[j].high >= current:
            return False
    return True


def _is_swing_low(candles: list[Candle], i: int, lookback: int) -> bool:
    current = candles[i].low
    for j in range(i - lookback, i + lookback + 1):
        if j != i and candles[j].low <= current:
            return False
    return True


def find_swing_points(
    candles: list[Candle],
    lookback: int = SWING_LOOKBACK,
) -> list[SwingPoint]:
    """Return swing highs and lows sorted by time.

    Sequences shorter than ``2 * lookback + 1`` yield an empty list.
    """
    points: list[SwingPoint] = []
    if len(candles) < lookback * 2 + 1:
        return points

    for i in range(lookback, len(candles) - lookback):
        candle = candles[i]
        if _is_swing_high(candles, i, lookback):
            points.append(SwingPoint("HIGH", candle.high, candle.time, i))
        if _is_swing_low(candles, i, lookback):
            points.append(SwingPoint("LOW", candle.low, candle.time, i))

    # Stable sort keeps HIGH before LOW when both land on one candle
    return sorted(points, key=lambda p: p.time)


def swing_highs(points: list[SwingPoint]) -> list[SwingPoint]:
    return [p for p in points if p.type == "HIGH"]


def swing_lows(points: list[SwingPoint]) -> list[SwingPoint]:
    return [p for p in points if p.type == "LOW"]
