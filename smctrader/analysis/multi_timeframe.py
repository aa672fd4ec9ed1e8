"""Multi-timeframe analysis — fuses HTF, MTF and LTF reads into one view.

HTF sets the bias, MTF supplies structure and points of interest, LTF
refines entries.  The result is a value object recomputed from scratch on
every call; nothing is carried between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from smctrader.analysis.fvg import filter_unfilled_fvgs, identify_fvgs
from smctrader.analysis.liquidity import (
    detect_liquidity_sweep_reversal,
    filter_unswept_liquidity,
    identify_inducement,
    identify_liquidity_zones,
)
from smctrader.analysis.market_structure import (
    analyze_market_structure,
    calculate_premium_discount,
    detect_choch,
)
from smctrader.analysis.models import (
    Bias,
    Candle,
    InducementLevel,
    LiquiditySweep,
    MultiTimeframeAnalysis,
    PremiumDiscountZone,
    PriceRange,
    TimeframeAnalysis,
)
from smctrader.analysis.order_blocks import (
    MIN_MOVE_MULTIPLIER,
    filter_valid_order_blocks,
    identify_order_blocks,
)
from smctrader.analysis.swing_points import find_swing_points, swing_highs, swing_lows

logger = logging.getLogger("smctrader.analysis.mtf")

INDUCEMENT_ZONE_LIMIT = 5
SWEEP_LOOKBACK = 5


@dataclass(frozen=True)
class PointOfInterest:
    type: Literal["OB", "FVG"]
    price: float
    zone: PriceRange


# ── Analysis ─────────────────────────────────────────────────────────────


def perform_mtf_analysis(
    htf: list[Candle],
    mtf: list[Candle],
    ltf: list[Candle],
    symbol: str = "",
    htf_tf: str = "H4",
    mtf_tf: str = "H1",
    ltf_tf: str = "M15",
    atr_multiplier: float = MIN_MOVE_MULTIPLIER,
) -> MultiTimeframeAnalysis:
    """Run every detector on the three windows and score their agreement.

    *atr_multiplier* is the displacement threshold for order blocks.
    """
    htf_swings = find_swing_points(htf)
    htf_structure = analyze_market_structure(htf, htf_swings)
    htf_blocks = filter_valid_order_blocks(identify_order_blocks(htf, atr_multiplier=atr_multiplier))
    htf_liquidity = filter_unswept_liquidity(identify_liquidity_zones(htf, htf_swings), htf)

    mtf_swings = find_swing_points(mtf)
    mtf_structure = analyze_market_structure(mtf, mtf_swings)
    mtf_blocks = filter_valid_order_blocks(identify_order_blocks(mtf, atr_multiplier=atr_multiplier))
    mtf_fvgs = filter_unfilled_fvgs(identify_fvgs(mtf), mtf)
    mtf_all_liquidity = identify_liquidity_zones(mtf, mtf_swings)
    mtf_liquidity = filter_unswept_liquidity(mtf_all_liquidity, mtf)

    ltf_structure = analyze_market_structure(ltf)
    ltf_fvgs = filter_unfilled_fvgs(identify_fvgs(ltf), ltf)

    htf_view = TimeframeAnalysis(
        htf_tf, htf_structure.bias, htf_structure,
        order_blocks=htf_blocks, liquidity_zones=htf_liquidity,
    )
    mtf_view = TimeframeAnalysis(
        mtf_tf, mtf_structure.bias, mtf_structure,
        order_blocks=mtf_blocks, fvgs=mtf_fvgs, liquidity_zones=mtf_liquidity,
    )
    ltf_view = TimeframeAnalysis(ltf_tf, ltf_structure.bias, ltf_structure, fvgs=ltf_fvgs)

    score = calculate_confluence_score(htf_view, mtf_view, ltf_view)
    logger.debug(
        "%s bias HTF=%s MTF=%s LTF=%s confluence=%d",
        symbol, htf_view.bias, mtf_view.bias, ltf_view.bias, score,
    )

    return MultiTimeframeAnalysis(
        symbol=symbol,
        htf=htf_view,
        mtf=mtf_view,
        ltf=ltf_view,
        confluence_score=score,
        premium_discount=_premium_discount(htf_swings),
        recent_choch=detect_choch(mtf, mtf_structure),
        inducements=_inducements(htf_liquidity + mtf_liquidity, mtf),
        # All MTF zones, swept ones included
        recent_liquidity_sweep=_recent_sweep(mtf_all_liquidity, mtf),
    )


def calculate_confluence_score(
    htf: TimeframeAnalysis, mtf: TimeframeAnalysis, ltf: TimeframeAnalysis,
) -> int:
    """Capped sum of agreement points, 0–100.

    Bias alignment: HTF=MTF +20, MTF=LTF +15, HTF=LTF +5 (non-neutral only).
    Zones present: HTF OBs +10, MTF OBs +15, MTF FVGs +15, HTF liquidity
    +10, MTF liquidity +10.
    """
    score = 0
    if htf.bias == mtf.bias and htf.bias != "NEUTRAL":
        score += 20
    if mtf.bias == ltf.bias and mtf.bias != "NEUTRAL":
        score += 15
    if htf.bias == ltf.bias and htf.bias != "NEUTRAL":
        score += 5

    if htf.order_blocks:
        score += 10
    if mtf.order_blocks:
        score += 15
    if mtf.fvgs:
        score += 15
    if htf.liquidity_zones:
        score += 10
    if mtf.liquidity_zones:
        score += 10

    return max(0, min(score, 100))


def _premium_discount(swings) -> Optional[PremiumDiscountZone]:
    highs, lows = swing_highs(swings), swing_lows(swings)
    if not highs or not lows:
        return None
    return calculate_premium_discount(highs[-1].price, lows[-1].price)


def _inducements(zones, candles: list[Candle]) -> list[InducementLevel]:
    levels = []
    for major in zones[:INDUCEMENT_ZONE_LIMIT]:
        minor = identify_inducement(major, candles)
        if minor is not None:
            levels.append(InducementLevel(major, minor))
    return levels


def _recent_sweep(zones, candles: list[Candle]) -> Optional[LiquiditySweep]:
    """Most recent zone with a stop-hunt reversal in the last few candles."""
    for zone in reversed(zones):
        rejection = detect_liquidity_sweep_reversal(zone, candles, SWEEP_LOOKBACK)
        if rejection is not None:
            return LiquiditySweep(zone, rejection.time)
    return None


# ── Queries ──────────────────────────────────────────────────────────────


def get_overall_bias(analysis: MultiTimeframeAnalysis) -> Bias:
    """Resolve one bias from the three timeframes.

    HTF and MTF agreeing wins; a clear HTF over a neutral MTF wins next;
    MTF and LTF agreeing under a neutral HTF wins last.  Anything else is
    NEUTRAL.
    """
    htf, mtf, ltf = analysis.htf.bias, analysis.mtf.bias, analysis.ltf.bias
    if htf == mtf and htf != "NEUTRAL":
        return htf
    if htf != "NEUTRAL" and mtf == "NEUTRAL":
        return htf
    if mtf == ltf and mtf != "NEUTRAL" and htf == "NEUTRAL":
        return mtf
    return "NEUTRAL"


def _zone_polarity(direction: str) -> str:
    return "BULLISH" if direction == "BUY" else "BEARISH"


def is_price_in_poi(analysis: MultiTimeframeAnalysis, direction: str, price: float) -> bool:
    """Whether *price* sits inside an MTF block or gap matching *direction*."""
    wanted = _zone_polarity(direction)
    zones = [*analysis.mtf.order_blocks, *analysis.mtf.fvgs]
    return any(z.type == wanted and z.low <= price <= z.high for z in zones)


def get_nearest_poi(
    analysis: MultiTimeframeAnalysis, direction: str, price: float,
) -> Optional[PointOfInterest]:
    """Closest MTF block or gap below price (BUY) or above it (SELL)."""
    wanted = _zone_polarity(direction)
    nearest: Optional[PointOfInterest] = None
    best = float("inf")

    candidates = [("OB", z) for z in analysis.mtf.order_blocks]
    candidates += [("FVG", z) for z in analysis.mtf.fvgs]
    for kind, zone in candidates:
        if zone.type != wanted:
            continue
        if direction == "BUY" and zone.high < price:
            distance = price - zone.high
        elif direction == "SELL" and zone.low > price:
            distance = zone.low - price
        else:
            continue
        if distance < best:
            best = distance
            nearest = PointOfInterest(
                kind, (zone.high + zone.low) / 2, PriceRange(zone.high, zone.low)
            )
    return nearest


def get_liquidity_target(
    analysis: MultiTimeframeAnalysis, direction: str, price: float,
) -> Optional[float]:
    """Nearest HIGH liquidity above price (BUY) or LOW below it (SELL)."""
    zones = [*analysis.htf.liquidity_zones, *analysis.mtf.liquidity_zones]
    if direction == "BUY":
        above = [z.price for z in zones if z.type == "HIGH" and z.price > price]
        return min(above, default=None)
    below = [z.price for z in zones if z.type == "LOW" and z.price < price]
    return max(below, default=None)


def validate_trade_setup(
    analysis: MultiTimeframeAnalysis,
    direction: str,
    price: float,
    min_score: int = 50,
) -> tuple[bool, list[str]]:
    """Check a setup against confluence and bias.

    Returns ``(is_valid, reasons)``.  A missing point of interest or
    liquidity target is reported but does not invalidate the setup.
    """
    reasons: list[str] = []
    is_valid = True

    if analysis.confluence_score < min_score:
        is_valid = False
        reasons.append(f"Confluence score too low: {analysis.confluence_score}/{min_score}")

    bias = get_overall_bias(analysis)
    if bias == "NEUTRAL":
        is_valid = False
        reasons.append("No clear directional bias")
    elif direction == "BUY" and bias == "BEARISH":
        is_valid = False
        reasons.append("Buy signal against bearish bias")
    elif direction == "SELL" and bias == "BULLISH":
        is_valid = False
        reasons.append("Sell signal against bullish bias")

    if not is_price_in_poi(analysis, direction, price):
        reasons.append("Price not at a valid Point of Interest")
    if get_liquidity_target(analysis, direction, price) is None:
        reasons.append("No clear liquidity target found")

    return is_valid, reasons
