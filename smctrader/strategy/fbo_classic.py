"""Classic fake breakout strategy.

A recent LTF candle pokes through one of the last five MTF swing levels
without closing more than 0.5 % beyond it, and the next candle closes back
inside.  Trade the reversal with the stop half a candle-range beyond the
breakout wick.
"""

from typing import Optional

from smctrader.analysis.models import Candle
from smctrader.analysis.multi_timeframe import get_liquidity_target, get_overall_bias
from smctrader.analysis.swing_points import swing_highs, swing_lows
from smctrader.strategy.base import (
    BaseStrategy,
    StrategyContext,
    StrategySignal,
    build_signal,
    get_entry_price,
    in_discount_or_premium,
    near_block,
    polarity,
    signed,
)

RECENT_CANDLES = 5
LEVEL_COUNT = 5
MAX_CLOSE_BEYOND = 0.005


def find_fake_breakout(
    candles: list[Candle], level: float, direction: str,
) -> Optional[tuple[Candle, Candle]]:
    """First (breakout, reversal) pair around *level* in *candles*.

    For buys the breakout wicks below a support and the reversal closes
    back above it; sells mirror this at resistance.
    """
    for breakout, reversal in zip(candles, candles[1:]):
        if direction == "BUY":
            if (
                breakout.low < level
                and reversal.close > level
                and breakout.close > level * (1 - MAX_CLOSE_BEYOND)
            ):
                return breakout, reversal
        elif (
            breakout.high > level
            and reversal.close < level
            and breakout.close < level * (1 + MAX_CLOSE_BEYOND)
        ):
            return breakout, reversal
    return None


class FBOClassicStrategy(BaseStrategy):
    name = "FBO_CLASSIC"
    description = "Classic Fake Breakout Reversal Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        if len(context.ltf_candles) < RECENT_CANDLES:
            return None

        swings = context.analysis.mtf.structure.swing_points
        supports = [s.price for s in swing_lows(swings)][-LEVEL_COUNT:]
        resistances = [s.price for s in swing_highs(swings)][-LEVEL_COUNT:]

        for direction, levels, opposite in (
            ("BUY", supports, resistances),
            ("SELL", resistances, supports),
        ):
            signal = self._fbo_setup(context, direction, levels, opposite)
            if self.is_acceptable(signal):
                return signal
        return None

    def _fbo_setup(
        self,
        context: StrategyContext,
        direction: str,
        levels: list[float],
        opposite_levels: list[float],
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        opposing = "BEARISH" if direction == "BUY" else "BULLISH"
        if get_overall_bias(analysis) == opposing and analysis.htf.bias == opposing:
            return None

        recent = context.ltf_candles[-RECENT_CANDLES:]
        price = context.current_price

        for level in levels:
            found = find_fake_breakout(recent, level, direction)
            if found is None:
                continue
            breakout, reversal = found

            entry = get_entry_price(context, direction)
            extreme = breakout.low if direction == "BUY" else breakout.high
            stop = extreme - signed(direction) * breakout.range * 0.5

            target = get_liquidity_target(analysis, direction, price)
            if target is None:
                if direction == "BUY":
                    target = min((lv for lv in opposite_levels if lv > price), default=None)
                else:
                    target = max((lv for lv in opposite_levels if lv < price), default=None)
            if target is None:
                target = entry + signed(direction) * abs(entry - stop) * 2

            if direction == "BUY":
                reasons = [f"FBO below support {level:.2f}"]
                wick = min(breakout.open, breakout.close) - breakout.low
            else:
                reasons = [f"FBO above resistance {level:.2f}"]
                wick = breakout.high - max(breakout.open, breakout.close)

            confidence = 0.55
            if analysis.htf.bias == polarity(direction):
                confidence += 0.15
                reasons.append(f"HTF {polarity(direction).lower()}")
            if wick > breakout.body * 1.5:
                confidence += 0.1
                reasons.append("Strong rejection")
            if (reversal.is_bullish if direction == "BUY" else reversal.is_bearish):
                confidence += 0.05
                reasons.append("Bullish reversal" if direction == "BUY" else "Bearish reversal")
            if near_block(analysis.mtf.order_blocks, price, direction):
                confidence += 0.1
                reasons.append("OB confluence")
            if in_discount_or_premium(context, direction):
                confidence += 0.1
                reasons.append("Discount zone" if direction == "BUY" else "Premium zone")

            return build_signal(direction, entry, stop, target, confidence, reasons)

        return None
