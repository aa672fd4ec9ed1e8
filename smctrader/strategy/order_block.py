"""Order block + FVG confluence strategy.

Trade with the overall bias from an MTF order block of matching polarity.
Price must sit within one block-range of the block, or the MTF structure
must carry a BOS (momentum entry off the most recent block).  Stop goes
20 % of the block's range beyond it; the target comes from the standard
take-profit chain.
"""

from typing import Optional

from smctrader.analysis.models import OrderBlock
from smctrader.analysis.multi_timeframe import get_overall_bias
from smctrader.strategy.base import (
    BaseStrategy,
    StrategyContext,
    StrategySignal,
    build_signal,
    direction_for_bias,
    get_entry_price,
    has_choch,
    has_sweep_reversal,
    in_discount_or_premium,
    polarity,
    signed,
)
from smctrader.strategy.targets import resolve_take_profit

STOP_BUFFER_RATIO = 0.2


class OrderBlockStrategy(BaseStrategy):
    name = "ORDER_BLOCK"
    description = "Order Block + FVG Confluence Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        direction = direction_for_bias(get_overall_bias(context.analysis))
        if direction is None:
            return None

        analysis = context.analysis
        price = context.current_price
        wanted = polarity(direction)
        blocks = [
            ob for ob in analysis.mtf.order_blocks
            if ob.type == wanted and ob.score >= context.min_ob_score
        ]
        if not blocks:
            return None

        active: Optional[OrderBlock] = None
        for ob in blocks:
            if ob.low - ob.size <= price <= ob.high + ob.size:
                active = ob
                break

        fvg_confluence = False
        if active is not None:
            fvg_confluence = any(
                g.type == wanted and g.low <= active.high and g.high >= active.low
                for g in analysis.mtf.fvgs
            )
        elif analysis.mtf.structure.last_bos is not None:
            active = blocks[0]
        else:
            return None

        entry = get_entry_price(context, direction)
        edge = active.low if direction == "BUY" else active.high
        stop = edge - signed(direction) * active.size * STOP_BUFFER_RATIO
        target = resolve_take_profit(context, direction, entry, stop)

        side = "Bullish" if direction == "BUY" else "Bearish"
        reasons = [f"{side} OB at {active.low:.2f}-{active.high:.2f}"]
        confidence = 0.5
        if analysis.htf.bias == wanted:
            confidence += 0.15
        if fvg_confluence:
            confidence += 0.15
            reasons.append("FVG confluence")
        trend_labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        if analysis.mtf.structure.last_structure in trend_labels:
            confidence += 0.1
        if analysis.mtf.structure.last_bos is not None:
            confidence += 0.1
        if in_discount_or_premium(context, direction):
            confidence += 0.1
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        if has_choch(context, direction):
            confidence += 0.1
            reasons.append("CHoCH confirmed")
        if has_sweep_reversal(context, direction):
            confidence += 0.15
            reasons.append("Liquidity sweep")

        return build_signal(direction, entry, stop, target, confidence, reasons)
