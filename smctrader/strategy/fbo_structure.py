"""Failed break of structure strategy.

One of the last ten LTF candles breaks the previous MTF swing low (or
high), and the current candle closes back beyond it.  The trapped breakout
is faded with the stop 30 % of the break candle's range past its extreme.
"""

from typing import Optional

from smctrader.analysis.multi_timeframe import get_liquidity_target
from smctrader.analysis.swing_points import swing_highs, swing_lows
from smctrader.strategy.base import (
    BaseStrategy,
    StrategyContext,
    StrategySignal,
    build_signal,
    get_entry_price,
    has_choch,
    in_discount_or_premium,
    near_block,
    polarity,
    signed,
)

RECENT_CANDLES = 10
MIN_TARGET_R = 1.5


class FBOStructureStrategy(BaseStrategy):
    name = "FBO_STRUCTURE"
    description = "Failed Break of Structure Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        swings = context.analysis.mtf.structure.swing_points
        if len(swings) < 4 or not context.ltf_candles:
            return None

        highs = swing_highs(swings)[-4:]
        lows = swing_lows(swings)[-4:]
        if len(highs) < 2 or len(lows) < 2:
            return None

        # BUY fades a failed break of the previous low; the last high is the target
        for direction, level, default_target in (
            ("BUY", lows[-2].price, highs[-1].price),
            ("SELL", highs[-2].price, lows[-1].price),
        ):
            signal = self._failed_break_setup(context, direction, level, default_target)
            if self.is_acceptable(signal):
                return signal
        return None

    def _failed_break_setup(
        self,
        context: StrategyContext,
        direction: str,
        level: float,
        default_target: float,
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        sign = signed(direction)
        recent = context.ltf_candles[-RECENT_CANDLES:]

        if direction == "BUY":
            breaks = [c for c in recent if c.low < level]
            break_candle = min(breaks, key=lambda c: c.low, default=None)
        else:
            breaks = [c for c in recent if c.high > level]
            break_candle = max(breaks, key=lambda c: c.high, default=None)
        if break_candle is None:
            return None

        current = context.ltf_candles[-1]
        if (current.close - level) * sign <= 0:
            return None

        wanted = polarity(direction)
        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        ltf_shift = (
            analysis.ltf.bias == wanted
            or analysis.ltf.structure.last_structure in labels
            or has_choch(context, direction)
        )

        entry = get_entry_price(context, direction)
        extreme = break_candle.low if direction == "BUY" else break_candle.high
        stop = extreme - sign * break_candle.range * 0.3

        target = get_liquidity_target(analysis, direction, context.current_price)
        if target is None:
            target = default_target
        min_target = entry + sign * abs(entry - stop) * MIN_TARGET_R
        if (min_target - target) * sign > 0:
            target = min_target

        side = "bearish" if direction == "BUY" else "bullish"
        reasons = [f"Failed {side} BOS at {level:.2f}"]
        confidence = 0.5
        if ltf_shift:
            confidence += 0.15
            reasons.append(f"LTF {wanted.lower()} shift")
        if analysis.htf.bias == wanted:
            confidence += 0.1
            reasons.append(f"HTF {wanted.lower()}")
        elif analysis.htf.bias == "NEUTRAL":
            confidence += 0.05

        if current.range > 0 and (current.close - level) * sign / current.range > 0.5:
            confidence += 0.1
            reasons.append("Strong reclaim")

        if direction == "BUY":
            engulfs = current.is_bullish and current.close > break_candle.high
        else:
            engulfs = current.is_bearish and current.close < break_candle.low
        if engulfs:
            confidence += 0.1
            reasons.append("Bullish engulfing" if direction == "BUY" else "Bearish engulfing")

        if near_block(analysis.mtf.order_blocks, context.current_price, direction):
            confidence += 0.1
            reasons.append("OB confluence")
        if in_discount_or_premium(context, direction):
            confidence += 0.05
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")

        return build_signal(direction, entry, stop, target, confidence, reasons)
