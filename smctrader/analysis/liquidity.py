"""Liquidity analysis — resting stop clusters above highs and below lows.

Buy-side liquidity sits above swing highs, sell-side liquidity below swing
lows.  A zone is *swept* once a later candle trades through its price; a
sweep whose candle closes back on the original side is a stop-hunt
reversal, the tradable pattern.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from smctrader.analysis.models import Candle, LiquidityZone, Side, SwingPoint
from smctrader.analysis.swing_points import find_swing_points

EQUAL_LEVELS_TOLERANCE = 0.001
DEFAULT_EQUAL_LOOKBACK = 50


def _find_index(candles: list[Candle], when: datetime) -> int:
    for i, candle in enumerate(candles):
        if candle.time == when:
            return i
    return -1


def _first_sweep(zone: LiquidityZone, later: list[Candle]) -> Optional[datetime]:
    for candle in later:
        if check_liquidity_sweep(zone, candle):
            return candle.time
    return None


# ── Detection ────────────────────────────────────────────────────────────


def identify_liquidity_zones(
    candles: list[Candle],
    swings: Optional[list[SwingPoint]] = None,
) -> list[LiquidityZone]:
    """One zone per swing point, sorted by time (HIGH before LOW on ties).

    Each zone is marked swept if a candle after its swing has traded
    through it.
    """
    if swings is None:
        swings = find_swing_points(candles)

    zones: list[LiquidityZone] = []
    for side in ("HIGH", "LOW"):
        for swing in swings:
            if swing.type != side:
                continue
            zone = LiquidityZone(side, swing.price, swing.time)
            swept_at = _first_sweep(zone, candles[swing.index + 1:])
            if swept_at is not None:
                zone = replace(zone, is_swept=True, swept_at=swept_at)
            zones.append(zone)

    return sorted(zones, key=lambda z: z.candle_time)


def _equal_levels(
    candles: list[Candle], side: Side, lookback: int, min_touches: int,
) -> list[LiquidityZone]:
    """Cluster extremes lying within 0.1 % of each cluster's lowest price.

    Levels are sorted by price, so a cluster's anchor is its first member.
    The zone sits at the cluster's outer edge (highest high / lowest low),
    stamped with its latest touch.
    """
    points = sorted(
        ((c.high if side == "HIGH" else c.low), c.time) for c in candles[-lookback:]
    )
    clusters: list[list[tuple[float, datetime]]] = []
    for price, time in points:
        if clusters:
            anchor = clusters[-1][0][0]
            if price - anchor <= abs(anchor) * EQUAL_LEVELS_TOLERANCE:
                clusters[-1].append((price, time))
                continue
        clusters.append([(price, time)])

    zones = []
    for cluster in clusters:
        if len(cluster) < min_touches:
            continue
        prices = [p for p, _ in cluster]
        edge = max(prices) if side == "HIGH" else min(prices)
        zones.append(LiquidityZone(side, edge, max(t for _, t in cluster)))
    return sorted(zones, key=lambda z: z.candle_time)


def identify_equal_highs(
    candles: list[Candle],
    lookback: int = DEFAULT_EQUAL_LOOKBACK,
    min_touches: int = 2,
) -> list[LiquidityZone]:
    """Highs within 0.1 % of one another touched at least *min_touches* times."""
    return _equal_levels(candles, "HIGH", lookback, min_touches)


def identify_equal_lows(
    candles: list[Candle],
    lookback: int = DEFAULT_EQUAL_LOOKBACK,
    min_touches: int = 2,
) -> list[LiquidityZone]:
    return _equal_levels(candles, "LOW", lookback, min_touches)


# ── Sweeps ───────────────────────────────────────────────────────────────


def check_liquidity_sweep(zone: LiquidityZone, candle: Candle) -> bool:
    if zone.type == "HIGH":
        return candle.high > zone.price
    return candle.low < zone.price


def detect_liquidity_sweep_reversal(
    zone: LiquidityZone, candles: list[Candle], lookback: int = 3,
) -> Optional[Candle]:
    """Return the first rejection candle among the last *lookback* candles.

    A rejection candle wicks through the zone and closes back on the
    original side of it.
    """
    for candle in candles[-lookback:]:
        if zone.type == "HIGH":
            if candle.high > zone.price and candle.close < zone.price:
                return candle
        elif candle.low < zone.price and candle.close > zone.price:
            return candle
    return None


def filter_unswept_liquidity(
    zones: list[LiquidityZone], candles: list[Candle],
) -> list[LiquidityZone]:
    """Keep zones no candle after the zone's own candle has swept."""
    result = []
    for zone in zones:
        idx = _find_index(candles, zone.candle_time)
        if idx == -1:
            if not zone.is_swept:
                result.append(zone)
        elif _first_sweep(zone, candles[idx + 1:]) is None:
            result.append(zone)
    return result


# ── Queries ──────────────────────────────────────────────────────────────


def get_nearest_liquidity_zone(
    zones: list[LiquidityZone], price: float, side: Side,
) -> Optional[LiquidityZone]:
    """Closest unswept zone of *side* by absolute distance, either direction."""
    candidates = [z for z in zones if z.type == side and not z.is_swept]
    return min(candidates, key=lambda z: abs(z.price - price), default=None)


def get_distance_to_liquidity(price: float, zone: LiquidityZone) -> tuple[float, float]:
    """Return ``(distance, distance_percent)`` from *price* to *zone*."""
    distance = abs(zone.price - price)
    return distance, distance / price * 100


def identify_inducement(
    major: LiquidityZone, candles: list[Candle],
) -> Optional[LiquidityZone]:
    """Minor liquidity formed after *major*, in front of it.

    For a HIGH zone: the highest high strictly below the zone among the
    candles after it.  For a LOW zone: the lowest low strictly above.
    Returns ``None`` when the zone's candle is absent or the last one.
    """
    idx = _find_index(candles, major.candle_time)
    if idx == -1 or idx >= len(candles) - 1:
        return None

    best: Optional[Candle] = None
    for candle in candles[idx + 1:]:
        if major.type == "HIGH":
            if candle.high < major.price and (best is None or candle.high > best.high):
                best = candle
        elif candle.low > major.price and (best is None or candle.low < best.low):
            best = candle

    if best is None:
        return None
    price = best.high if major.type == "HIGH" else best.low
    return LiquidityZone(major.type, price, best.time)
