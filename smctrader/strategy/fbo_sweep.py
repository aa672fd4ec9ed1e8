"""Fake breakout sweep-and-reverse strategy.

Equal highs / equal lows on the MTF mark a range boundary where stops pool.
A rejection through one of them in the last three of the five most recent
LTF candles is traded back toward the other side of the range, extended to
liquidity beyond it, and never closer than 1.5 R.
"""

from typing import Optional

from smctrader.analysis.liquidity import (
    detect_liquidity_sweep_reversal,
    identify_equal_highs,
    identify_equal_lows,
)
from smctrader.analysis.models import LiquidityZone
from smctrader.analysis.multi_timeframe import get_liquidity_target, get_overall_bias
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

MIN_LTF_CANDLES = 20
MIN_MTF_CANDLES = 30
MIN_TARGET_R = 1.5


class FBOSweepStrategy(BaseStrategy):
    name = "FBO_SWEEP"
    description = "Fake Breakout Sweep & Reverse Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        if len(context.ltf_candles) < MIN_LTF_CANDLES or len(context.mtf_candles) < MIN_MTF_CANDLES:
            return None

        equal_lows = identify_equal_lows(context.mtf_candles)
        equal_highs = identify_equal_highs(context.mtf_candles)

        for direction, zones in (("BUY", equal_lows), ("SELL", equal_highs)):
            signal = self._sweep_setup(context, direction, zones)
            if self.is_acceptable(signal):
                return signal
        return None

    def _range_edge(self, context: StrategyContext, zone: LiquidityZone, direction: str) -> float:
        """Far side of the range: recent opposite swings formed after *zone*."""
        price = context.current_price
        swings = [
            s.price for s in context.analysis.mtf.structure.swing_points
            if s.type == ("HIGH" if direction == "BUY" else "LOW") and s.time > zone.candle_time
        ][-3:]
        if direction == "BUY":
            return max([*swings, price * 1.01])
        return min([*swings, price * 0.99])

    def _sweep_setup(
        self, context: StrategyContext, direction: str, zones: list[LiquidityZone],
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        opposing = "BEARISH" if direction == "BUY" else "BULLISH"
        if get_overall_bias(analysis) == opposing and analysis.htf.bias == opposing:
            return None

        recent = context.ltf_candles[-5:]
        price = context.current_price
        sign = signed(direction)

        for zone in zones:
            rejection = detect_liquidity_sweep_reversal(zone, recent, 3)
            if rejection is None:
                continue

            entry = get_entry_price(context, direction)
            extreme = rejection.low if direction == "BUY" else rejection.high
            stop = extreme - sign * rejection.range * 0.3

            target = self._range_edge(context, zone, direction)
            extended = get_liquidity_target(analysis, direction, price)
            if extended is not None and (extended - target) * sign > 0:
                target = extended
            min_target = entry + sign * abs(entry - stop) * MIN_TARGET_R
            if (min_target - target) * sign > 0:
                target = min_target

            where = "below" if direction == "BUY" else "above"
            reasons = [f"Sweep {where} {zone.price:.2f}"]
            confidence = 0.55
            if analysis.htf.bias == polarity(direction):
                confidence += 0.15
                reasons.append(f"HTF {polarity(direction).lower()}")

            if direction == "BUY":
                wick = min(rejection.open, rejection.close) - rejection.low
                closes_with_trade = rejection.is_bullish
                swept = sum(1 for z in zones if rejection.low < z.price)
            else:
                wick = rejection.high - max(rejection.open, rejection.close)
                closes_with_trade = rejection.is_bearish
                swept = sum(1 for z in zones if rejection.high > z.price)

            if wick > rejection.body * 1.5:
                confidence += 0.1
                reasons.append("Strong rejection")
            if closes_with_trade:
                confidence += 0.05
                reasons.append("Bullish close" if direction == "BUY" else "Bearish close")
            if swept > 1:
                confidence += 0.1
                reasons.append("Multi-level sweep")
            if near_block(analysis.mtf.order_blocks, price, direction):
                confidence += 0.1
                reasons.append("OB confluence")
            if in_discount_or_premium(context, direction):
                confidence += 0.1
                reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
            if has_choch(context, direction):
                confidence += 0.05
                reasons.append("CHoCH")

            return build_signal(direction, entry, stop, target, confidence, reasons)

        return None
