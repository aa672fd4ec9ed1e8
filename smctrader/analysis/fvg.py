"""Fair value gap detection.

A fair value gap is a three-candle imbalance: the wicks of the first and
third candle do not overlap, leaving a zone the market skipped through.
Gaps smaller than 0.1 % of price are ignored.
"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from smctrader.analysis.models import Candle, FairValueGap, Polarity

MIN_GAP_PERCENT = 0.1
DEFAULT_LOOKBACK = 50
DEFAULT_PARTIAL_FILL = 0.5


def _find_index(candles: list[Candle], when: datetime) -> int:
    for i, candle in enumerate(candles):
        if candle.time == when:
            return i
    return -1


def identify_fvgs(
    candles: list[Candle], lookback: int = DEFAULT_LOOKBACK,
) -> list[FairValueGap]:
    """Detect bullish and bearish gaps in the last *lookback* candles.

    Each gap is stamped with the middle candle's time and marked filled if
    a later candle has already reached its far edge.
    """
    gaps: list[FairValueGap] = []
    if len(candles) < 3:
        return gaps

    for i in range(max(0, len(candles) - lookback), len(candles) - 2):
        c1, c2, c3 = candles[i], candles[i + 1], candles[i + 2]

        gap: Optional[FairValueGap] = None
        if c3.low > c1.high and (c3.low - c1.high) / c1.high * 100 >= MIN_GAP_PERCENT:
            gap = FairValueGap("BULLISH", high=c3.low, low=c1.high, gap_time=c2.time)
        elif c3.high < c1.low and (c1.low - c3.high) / c1.low * 100 >= MIN_GAP_PERCENT:
            gap = FairValueGap("BEARISH", high=c1.low, low=c3.high, gap_time=c2.time)
        if gap is None:
            continue

        filled_at = _first_fill(gap, candles[i + 2:])
        if filled_at is not None:
            gap = replace(gap, is_filled=True, filled_at=filled_at)
        gaps.append(gap)

    return sorted(gaps, key=lambda g: g.gap_time)


def _first_fill(gap: FairValueGap, later: Iterable[Candle]) -> Optional[datetime]:
    for candle in later:
        if check_fvg_filled(gap, candle):
            return candle.time
    return None


# ── Fill checks ──────────────────────────────────────────────────────────


def check_fvg_filled(gap: FairValueGap, candle: Candle) -> bool:
    """Full fill: the candle reaches the gap's far edge."""
    if gap.type == "BULLISH":
        return candle.low <= gap.low
    return candle.high >= gap.high


def check_fvg_partially_filled(
    gap: FairValueGap, candle: Candle, fill_percent: float = DEFAULT_PARTIAL_FILL,
) -> bool:
    """At least *fill_percent* of the gap has been retraced by *candle*."""
    retrace = gap.size * fill_percent
    if gap.type == "BULLISH":
        return candle.low <= gap.high - retrace
    return candle.high >= gap.low + retrace


def is_price_in_fvg(price: float, gap: FairValueGap) -> bool:
    return gap.low <= price <= gap.high


def get_fvg_midpoint(gap: FairValueGap) -> float:
    return (gap.high + gap.low) / 2


def filter_unfilled_fvgs(
    gaps: list[FairValueGap], candles: list[Candle],
) -> list[FairValueGap]:
    """Keep gaps no candle after the gap's middle candle has filled.

    Gaps whose time is not in *candles* fall back to their own
    ``is_filled`` flag.
    """
    result = []
    for gap in gaps:
        idx = _find_index(candles, gap.gap_time)
        if idx == -1:
            if not gap.is_filled:
                result.append(gap)
        elif _first_fill(gap, candles[idx + 1:]) is None:
            result.append(gap)
    return result


# ── Queries ──────────────────────────────────────────────────────────────


def get_nearest_fvg(
    gaps: list[FairValueGap], price: float, fvg_type: Polarity,
) -> Optional[FairValueGap]:
    """Nearest unfilled gap below price (bullish) or above it (bearish)."""
    candidates = [g for g in gaps if g.type == fvg_type and not g.is_filled]
    if fvg_type == "BULLISH":
        below = [g for g in candidates if g.high < price]
        return min(below, key=lambda g: price - g.high, default=None)
    above = [g for g in candidates if g.low > price]
    return min(above, key=lambda g: g.low - price, default=None)


def find_fvg_with_ob_confluence(
    gaps: list[FairValueGap], blocks: list, tolerance: float = 0.001,
) -> list[FairValueGap]:
    """Gaps overlapping a same-polarity block widened by *tolerance* (fraction)."""
    def overlaps(gap: FairValueGap, block) -> bool:
        return (
            gap.type == block.type
            and gap.low <= block.high * (1 + tolerance)
            and gap.high >= block.low * (1 - tolerance)
        )

    return [g for g in gaps if any(overlaps(g, b) for b in blocks)]


def identify_strong_fvgs(
    candles: list[Candle],
    lookback: int = DEFAULT_LOOKBACK,
    momentum_threshold: float = 2.0,
) -> list[FairValueGap]:
    """Gaps whose impulse candle body is at least *momentum_threshold* × average."""
    gaps = identify_fvgs(candles, lookback)
    recent = candles[-lookback:]
    if not recent:
        return gaps
    avg_body = sum(c.body for c in recent) / len(recent)

    strong = []
    for gap in gaps:
        idx = _find_index(candles, gap.gap_time)
        if idx == -1 or candles[idx].body >= avg_body * momentum_threshold:
            strong.append(gap)
    return strong
