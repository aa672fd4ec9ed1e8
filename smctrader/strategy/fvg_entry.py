"""Standalone fair value gap fill strategy.

Unlike ORDER_BLOCK, which only uses gaps as confluence, the gap itself is
the trigger here: price retraces into a fresh MTF gap aligned with the
overall bias and the last LTF candle reacts away from it.
"""

from typing import Optional

from smctrader.analysis.models import FairValueGap
from smctrader.analysis.multi_timeframe import get_liquidity_target, get_overall_bias
from smctrader.strategy.base import (
    BaseStrategy,
    StrategyContext,
    StrategySignal,
    build_signal,
    direction_for_bias,
    get_entry_price,
    has_choch,
    in_discount_or_premium,
    signed,
)

MIN_GAP_SIZE_PCT = 0.0005
MAX_CANDIDATES = 3
DEFAULT_RR = 2.5


def quality_gaps(gaps: list[FairValueGap], bias: str, price: float) -> list[FairValueGap]:
    """Unfilled gaps of *bias* polarity, at least 0.05 % of price wide and
    within one gap-size of *price*; nearest midpoint first, at most three."""
    min_size = price * MIN_GAP_SIZE_PCT
    candidates = [
        g for g in gaps
        if g.type == bias
        and not g.is_filled
        and g.size >= min_size
        and g.low - g.size <= price <= g.high + g.size
    ]
    candidates.sort(key=lambda g: abs(price - (g.high + g.low) / 2))
    return candidates[:MAX_CANDIDATES]


class FVGEntryStrategy(BaseStrategy):
    name = "FVG_ENTRY"
    description = "Standalone FVG Fill Entry Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        if len(context.mtf_candles) < 20 or len(context.ltf_candles) < 10:
            return None

        direction = direction_for_bias(get_overall_bias(context.analysis))
        if direction is None:
            return None

        bias = "BULLISH" if direction == "BUY" else "BEARISH"
        for gap in quality_gaps(context.analysis.mtf.fvgs, bias, context.current_price):
            signal = self._fill_entry(context, gap, direction)
            if self.is_acceptable(signal):
                return signal
        return None

    def _fill_entry(
        self, context: StrategyContext, gap: FairValueGap, direction: str,
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        price = context.current_price
        sign = signed(direction)
        midpoint = (gap.high + gap.low) / 2
        last = context.ltf_candles[-1]

        # Allow 20 % of the gap on the approach side
        if direction == "BUY":
            in_zone = gap.low - gap.size * 0.2 <= price <= gap.high
            reacted = last.is_bullish and last.low <= gap.high
            deep = price <= midpoint
        else:
            in_zone = gap.low <= price <= gap.high + gap.size * 0.2
            reacted = last.is_bearish and last.high >= gap.low
            deep = price >= midpoint
        if not in_zone or not reacted:
            return None

        entry = get_entry_price(context, direction)
        far_edge = gap.low if direction == "BUY" else gap.high
        stop = far_edge - sign * gap.size * 0.3

        target = get_liquidity_target(analysis, direction, price)
        if target is None:
            target = entry + sign * abs(entry - stop) * DEFAULT_RR

        side = "Bullish" if direction == "BUY" else "Bearish"
        reasons = [f"{side} FVG fill at {gap.low:.2f}-{gap.high:.2f}"]
        confidence = 0.55
        if deep:
            confidence += 0.1
            reasons.append("Deep fill")
        if analysis.htf.bias == gap.type:
            confidence += 0.1
            reasons.append(f"HTF {gap.type.lower()}")
        if any(
            ob.type == gap.type and ob.high >= gap.low and ob.low <= gap.high
            for ob in analysis.mtf.order_blocks
        ):
            confidence += 0.15
            reasons.append("OB+FVG confluence")
        if in_discount_or_premium(context, direction):
            confidence += 0.1
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        if analysis.ltf.structure.last_structure in labels:
            confidence += 0.05
            reasons.append(f"LTF {gap.type.lower()}")
        if has_choch(context, direction):
            confidence += 0.05
            reasons.append("CHoCH")

        return build_signal(direction, entry, stop, target, confidence, reasons)
