"""Break of structure continuation strategy.

After an MTF break of structure, wait for a pullback into the 50–78.6 %
retracement band of the last swing leg (discount for buys, premium for
sells), or an MTF order block / gap overlapping that band.  LTF structure
must agree unless the zone confluence is present.  The stop sits 10 % of
the leg beyond the swing; the target is liquidity beyond the leg or its
1.618 extension.
"""

from typing import Optional

from smctrader.analysis.multi_timeframe import get_liquidity_target, get_overall_bias
from smctrader.analysis.swing_points import swing_highs, swing_lows
from smctrader.strategy.base import (
    BaseStrategy,
    StrategyContext,
    StrategySignal,
    build_signal,
    get_entry_price,
    has_choch,
    has_sweep_reversal,
    polarity,
)

EXTENSION = 0.618
STOP_BUFFER_RATIO = 0.1


class BOSStrategy(BaseStrategy):
    name = "BOS"
    description = "Break of Structure Continuation Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        structure = context.analysis.mtf.structure
        if structure.last_bos is None:
            return None

        highs = swing_highs(structure.swing_points)[-3:]
        lows = swing_lows(structure.swing_points)[-3:]
        if len(highs) < 2 or len(lows) < 2:
            return None

        for direction in ("BUY", "SELL"):
            if direction == "BUY":
                leg_high = highs[-1].price
                leg_low = min(lows[-1].price, lows[-2].price)
            else:
                leg_high = max(highs[-1].price, highs[-2].price)
                leg_low = lows[-1].price
            signal = self._pullback_setup(context, direction, leg_high, leg_low)
            if self.is_acceptable(signal):
                return signal
        return None

    def _pullback_setup(
        self, context: StrategyContext, direction: str, leg_high: float, leg_low: float,
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        wanted = polarity(direction)
        opposing = "BEARISH" if direction == "BUY" else "BULLISH"

        if get_overall_bias(analysis) != wanted and analysis.mtf.structure.last_structure != "BOS":
            return None
        if analysis.htf.bias == opposing:
            return None

        span = leg_high - leg_low
        if span <= 0:
            return None
        # Retracement band measured back from the end of the leg
        if direction == "BUY":
            band_low, band_high = leg_high - span * 0.786, leg_high - span * 0.5
        else:
            band_low, band_high = leg_low + span * 0.5, leg_low + span * 0.786

        price = context.current_price
        in_band = band_low <= price <= band_high
        confluence = any(
            z.type == wanted and z.high >= band_low and z.low <= band_high
            for z in [*analysis.mtf.fvgs, *analysis.mtf.order_blocks]
        )
        if not in_band and not confluence:
            return None

        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        ltf_agrees = (
            analysis.ltf.bias == wanted
            or analysis.ltf.structure.last_structure in labels
        )
        if not ltf_agrees and not confluence:
            return None

        entry = get_entry_price(context, direction)
        if direction == "BUY":
            stop = leg_low - span * STOP_BUFFER_RATIO
            target = get_liquidity_target(analysis, direction, price)
            if target is None or target <= leg_high:
                target = leg_high + span * EXTENSION
        else:
            stop = leg_high + span * STOP_BUFFER_RATIO
            target = get_liquidity_target(analysis, direction, price)
            if target is None or target >= leg_low:
                target = leg_low - span * EXTENSION

        side = "Bullish" if direction == "BUY" else "Bearish"
        reasons = [f"{side} BOS pullback"]
        confidence = 0.5
        if in_band:
            confidence += 0.15
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        if analysis.htf.bias == wanted:
            confidence += 0.1
        if confluence:
            confidence += 0.15
            reasons.append("OB/FVG confluence")
        if ltf_agrees:
            confidence += 0.1
            reasons.append("LTF shift")
        if has_choch(context, direction):
            confidence += 0.1
            reasons.append("CHoCH confirmed")
        if has_sweep_reversal(context, direction):
            confidence += 0.1
            reasons.append("Liquidity swept")

        return build_signal(direction, entry, stop, target, confidence, reasons)
