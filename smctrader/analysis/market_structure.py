"""Market structure analysis — bias, BOS / CHoCH, premium & discount.

Structure is read from the most recent swing points.  The static
classification is an ordered rule table evaluated top to bottom; the first
matching rule wins.  A fresh break of the second-most-recent opposite swing
by the current close then overrides the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from smctrader.analysis.models import (
    Bias,
    Candle,
    MarketStructure,
    PremiumDiscountZone,
    PriceRange,
    StructureBreak,
    StructureEvent,
    StructureType,
    SwingPoint,
)
from smctrader.analysis.swing_points import find_swing_points, swing_highs, swing_lows

logger = logging.getLogger("smctrader.analysis.structure")

RECENT_SWING_COUNT = 8
MIN_SWING_COUNT = 4


# ── Classification table ─────────────────────────────────────────────────


@dataclass(frozen=True)
class SwingFlags:
    """Comparison of the last two swing highs and the last two swing lows."""

    higher_high: bool
    higher_low: bool
    lower_high: bool
    lower_low: bool


@dataclass(frozen=True)
class StructureRule:
    name: str
    matches: Callable[[SwingFlags], bool]
    bias: Bias
    structure: StructureType


# Order is precedence.  "reversal_choch" can never fire after
# "reversal_bos" (same predicate); it is kept so the precedence is explicit.
STRUCTURE_RULES: tuple[StructureRule, ...] = (
    StructureRule("bullish_trend", lambda f: f.higher_high and f.higher_low, "BULLISH", "HH"),
    StructureRule("bearish_trend", lambda f: f.lower_high and f.lower_low, "BEARISH", "LL"),
    StructureRule("reversal_bos", lambda f: f.higher_high and f.lower_low, "BULLISH", "BOS"),
    StructureRule("reversal_choch", lambda f: f.lower_low and f.higher_high, "NEUTRAL", "CHOCH"),
)

DEFAULT_CLASSIFICATION: tuple[Bias, StructureType] = ("NEUTRAL", "HL")


def classify_structure(flags: SwingFlags) -> tuple[Optional[StructureRule], Bias, StructureType]:
    """Apply :data:`STRUCTURE_RULES` in order.

    Returns ``(rule, bias, structure)``; *rule* is ``None`` when nothing
    matched and the default classification applies.
    """
    for rule in STRUCTURE_RULES:
        if rule.matches(flags):
            return rule, rule.bias, rule.structure
    bias, structure = DEFAULT_CLASSIFICATION
    return None, bias, structure


# ── Analysis ─────────────────────────────────────────────────────────────


def analyze_market_structure(
    candles: list[Candle],
    swings: Optional[list[SwingPoint]] = None,
) -> MarketStructure:
    """Classify the structure of *candles*.

    Fewer than four swing points gives ``NEUTRAL`` with the default ``HL``
    label; this is not an error.
    """
    if swings is None:
        swings = find_swing_points(candles)

    if len(swings) < MIN_SWING_COUNT:
        return MarketStructure(bias="NEUTRAL", last_structure="HL", swing_points=swings)

    recent = swings[-RECENT_SWING_COUNT:]
    highs = swing_highs(recent)
    lows = swing_lows(recent)

    bias, structure = DEFAULT_CLASSIFICATION
    last_bos: Optional[StructureEvent] = None
    last_choch: Optional[StructureEvent] = None

    if len(highs) >= 2 and len(lows) >= 2:
        last_high, prev_high = highs[-1], highs[-2]
        last_low, prev_low = lows[-1], lows[-2]

        flags = SwingFlags(
            higher_high=last_high.price > prev_high.price,
            higher_low=last_low.price > prev_low.price,
            lower_high=last_high.price < prev_high.price,
            lower_low=last_low.price < prev_low.price,
        )
        rule, bias, structure = classify_structure(flags)
        if rule is not None and rule.structure == "BOS":
            last_bos = StructureEvent("BOS", last_high.price, last_high.time)
        elif rule is not None and rule.structure == "CHOCH":
            last_choch = StructureEvent("CHOCH", last_low.price, last_low.time)

        # Fresh break by the current close overrides the static read
        current = candles[-1]
        if bias == "BEARISH" and current.close > prev_high.price:
            last_bos = StructureEvent("BOS", prev_high.price, current.time)
            bias, structure = "BULLISH", "BOS"
        if bias == "BULLISH" and current.close < prev_low.price:
            last_bos = StructureEvent("BOS", prev_low.price, current.time)
            bias, structure = "BEARISH", "BOS"

    return MarketStructure(
        bias=bias,
        last_structure=structure,
        swing_points=swings,
        last_bos=last_bos,
        last_choch=last_choch,
    )


# ── Swing lookups ────────────────────────────────────────────────────────


def find_nearest_swing_high(
    swings: list[SwingPoint], above_price: float,
) -> Optional[SwingPoint]:
    """Lowest swing high strictly above *above_price*."""
    candidates = [s for s in swings if s.type == "HIGH" and s.price > above_price]
    return min(candidates, key=lambda s: s.price, default=None)


def find_nearest_swing_low(
    swings: list[SwingPoint], below_price: float,
) -> Optional[SwingPoint]:
    """Highest swing low strictly below *below_price*."""
    candidates = [s for s in swings if s.type == "LOW" and s.price < below_price]
    return max(candidates, key=lambda s: s.price, default=None)


# ── Premium / discount ───────────────────────────────────────────────────


def calculate_premium_discount(swing_high: float, swing_low: float) -> PremiumDiscountZone:
    """Split a swing range into premium and discount halves.

    Fibonacci levels are measured up from the swing low:
    ``equilibrium`` at 50 %, ``fib_618`` and ``fib_786`` at 61.8 % / 78.6 %.
    """
    span = swing_high - swing_low
    equilibrium = swing_low + span * 0.5
    return PremiumDiscountZone(
        premium=PriceRange(high=swing_high, low=equilibrium),
        discount=PriceRange(high=equilibrium, low=swing_low),
        equilibrium=equilibrium,
        fib_50=equilibrium,
        fib_618=swing_low + span * 0.618,
        fib_786=swing_low + span * 0.786,
    )


def is_price_in_discount(price: float, swing_high: float, swing_low: float) -> bool:
    zone = calculate_premium_discount(swing_high, swing_low)
    return zone.discount.low <= price <= zone.discount.high


def is_price_in_premium(price: float, swing_high: float, swing_low: float) -> bool:
    zone = calculate_premium_discount(swing_high, swing_low)
    return zone.premium.low <= price <= zone.premium.high


# ── BOS / CHoCH detection ────────────────────────────────────────────────


def detect_bos(
    candles: list[Candle], swings: list[SwingPoint],
) -> Optional[StructureBreak]:
    """Detect a close that crossed one of the last three swing levels.

    Bullish breaks are checked first.  Needs at least two swings and two
    candles.
    """
    if len(swings) < 2 or len(candles) < 2:
        return None

    current, prev = candles[-1], candles[-2]

    for high in swing_highs(swings)[-3:]:
        if prev.close <= high.price < current.close:
            return StructureBreak("BULLISH", high.price, current.time)

    for low in swing_lows(swings)[-3:]:
        if prev.close >= low.price > current.close:
            return StructureBreak("BEARISH", low.price, current.time)

    return None


def detect_choch(
    candles: list[Candle], structure: MarketStructure,
) -> Optional[StructureBreak]:
    """Detect a change of character against the current bias.

    A bearish structure whose latest close clears the last swing high is a
    bullish CHoCH, and vice versa.
    """
    swings = structure.swing_points
    if len(swings) < MIN_SWING_COUNT or not candles:
        return None

    highs = swing_highs(swings)
    lows = swing_lows(swings)
    if len(highs) < 2 or len(lows) < 2:
        return None

    current = candles[-1]
    if structure.bias == "BEARISH" and current.close > highs[-1].price:
        logger.debug("Bullish CHoCH above %.5f", highs[-1].price)
        return StructureBreak("BULLISH", highs[-1].price, current.time)
    if structure.bias == "BULLISH" and current.close < lows[-1].price:
        logger.debug("Bearish CHoCH below %.5f", lows[-1].price)
        return StructureBreak("BEARISH", lows[-1].price, current.time)
    return None
