"""Liquidity sweep reversal strategy.

Looks for a stop hunt in the last ten LTF candles: a wick through an
unswept HTF/MTF liquidity level that closes back inside.  Trades away from
the sweep with the stop half a candle-range beyond the rejection wick.
Buys are tried first; each side needs the overall bias not to oppose it.
"""

from typing import Optional

from smctrader.analysis.liquidity import detect_liquidity_sweep_reversal
from smctrader.analysis.multi_timeframe import get_overall_bias
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
from smctrader.strategy.targets import resolve_take_profit

RECENT_CANDLES = 10


class LiquiditySweepStrategy(BaseStrategy):
    name = "LIQUIDITY_SWEEP"
    description = "Liquidity Sweep Reversal Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        for direction in ("BUY", "SELL"):
            signal = self._sweep_setup(context, direction)
            if self.is_acceptable(signal):
                return signal
        return None

    def _sweep_setup(self, context: StrategyContext, direction: str) -> Optional[StrategySignal]:
        analysis = context.analysis
        opposing = "BEARISH" if direction == "BUY" else "BULLISH"
        if get_overall_bias(analysis) == opposing:
            return None

        side = "LOW" if direction == "BUY" else "HIGH"
        pool = [
            z for z in [*analysis.mtf.liquidity_zones, *analysis.htf.liquidity_zones]
            if z.type == side and not z.is_swept
        ]
        recent = context.ltf_candles[-RECENT_CANDLES:]

        for zone in pool:
            rejection = detect_liquidity_sweep_reversal(zone, recent)
            if rejection is None:
                continue

            entry = get_entry_price(context, direction)
            extreme = rejection.low if direction == "BUY" else rejection.high
            stop = extreme - signed(direction) * rejection.range * 0.5
            target = resolve_take_profit(context, direction, entry, stop)

            where = "below" if direction == "BUY" else "above"
            reasons = [f"Liquidity sweep {where} {zone.price:.2f}"]
            confidence = 0.55
            if analysis.htf.bias == polarity(direction):
                confidence += 0.15

            wick = rejection.close - rejection.low if direction == "BUY" else rejection.high - rejection.close
            if wick > rejection.body * 1.5:
                confidence += 0.1
                reasons.append("Strong rejection")

            if direction == "BUY":
                swept = sum(1 for z in pool if rejection.low < z.price)
            else:
                swept = sum(1 for z in pool if rejection.high > z.price)
            if swept > 1:
                confidence += 0.1
                reasons.append(f"{swept} levels swept")

            if near_block(analysis.htf.order_blocks, context.current_price, direction):
                confidence += 0.1
                reasons.append("OB confluence")
            if in_discount_or_premium(context, direction):
                confidence += 0.1
                reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
            if has_choch(context, direction):
                confidence += 0.1
                reasons.append("CHoCH confirmed")

            return build_signal(direction, entry, stop, target, confidence, reasons)

        return None

