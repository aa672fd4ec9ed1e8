"""Previous day high / low sweep strategy.

The previous day's extremes hold resting stops and breakout orders.  A wick
through PDH (or PDL) that closes back near the level, followed by a
reversal candle, is faded toward the opposite daily level.  Only active
between 07:00 and 20:00 UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from smctrader.analysis.kill_zones import to_utc
from smctrader.analysis.models import Candle
from smctrader.analysis.multi_timeframe import get_liquidity_target
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

ACTIVE_HOURS = (7, 20)
RECENT_CANDLES = 10
MIN_LTF_DAY_CANDLES = 10
LEVEL_BUFFER = 0.05  # fraction of the previous day's range
MIN_TARGET_R = 2.0


@dataclass(frozen=True)
class DailyLevels:
    high: float
    low: float
    close: float

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def midpoint(self) -> float:
        return (self.high + self.low) / 2


def _levels(candles: list[Candle]) -> DailyLevels:
    return DailyLevels(
        high=max(c.high for c in candles),
        low=min(c.low for c in candles),
        close=candles[-1].close,
    )


def previous_day_levels(
    htf_candles: list[Candle], ltf_candles: list[Candle], now: datetime,
) -> Optional[DailyLevels]:
    """High, low and close of the last trading day before *now*'s UTC date.

    HTF candles are aggregated over that day when any exist; otherwise the
    LTF candles of the calendar day before are used, needing at least ten.
    """
    today = now.date()
    earlier = [c for c in htf_candles if c.time.date() < today]
    if earlier:
        last_day: date = earlier[-1].time.date()
        return _levels([c for c in earlier if c.time.date() == last_day])

    yesterday = today - timedelta(days=1)
    day = [c for c in ltf_candles if c.time.date() == yesterday]
    if len(day) < MIN_LTF_DAY_CANDLES:
        return None
    return _levels(day)


def find_sweep_candle(
    candles: list[Candle], levels: DailyLevels, direction: str,
) -> Optional[Candle]:
    """Deepest candle wicking through the level it fades and closing within
    5 % of the day's range of it.  BUY fades PDL, SELL fades PDH."""
    buffer = levels.range * LEVEL_BUFFER
    if direction == "BUY":
        sweeps = [c for c in candles if c.low < levels.low and c.close >= levels.low - buffer]
        return min(sweeps, key=lambda c: c.low, default=None)
    sweeps = [c for c in candles if c.high > levels.high and c.close <= levels.high + buffer]
    return max(sweeps, key=lambda c: c.high, default=None)


class PDHPDLSweepStrategy(BaseStrategy):
    name = "PDH_PDL_SWEEP"
    description = "Previous Day High/Low Sweep Reversal Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        candles = context.ltf_candles
        if len(candles) < 50 or len(context.htf_candles) < 10:
            return None

        now = to_utc(candles[-1].time)
        if not ACTIVE_HOURS[0] <= now.hour <= ACTIVE_HOURS[1]:
            return None

        levels = previous_day_levels(context.htf_candles, candles, now)
        if levels is None:
            return None

        recent = candles[-RECENT_CANDLES:]
        for direction in ("SELL", "BUY"):
            signal = self._sweep_reversal(context, direction, levels, recent)
            if self.is_acceptable(signal):
                return signal
        return None

    def _sweep_reversal(
        self,
        context: StrategyContext,
        direction: str,
        levels: DailyLevels,
        recent: list[Candle],
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        price = context.current_price
        sign = signed(direction)

        sweep = find_sweep_candle(recent, levels, direction)
        if sweep is None:
            return None

        swept_level = levels.low if direction == "BUY" else levels.high
        if (price - swept_level) * sign < 0:
            return None

        last = recent[-1]
        if direction == "BUY":
            reversal = last.is_bullish and last.close > levels.low
            wick = min(sweep.open, sweep.close) - sweep.low
        else:
            reversal = last.is_bearish and last.close < levels.high
            wick = sweep.high - max(sweep.open, sweep.close)
        if not reversal:
            return None

        wanted = polarity(direction)
        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        ltf_shift = (
            analysis.ltf.bias == wanted
            or analysis.ltf.structure.last_structure in labels
            or has_choch(context, direction)
        )
        rejection = wick > sweep.body * 0.5
        if not ltf_shift and not rejection:
            return None

        entry = get_entry_price(context, direction)
        extreme = sweep.low if direction == "BUY" else sweep.high
        stop = extreme - sign * levels.range * LEVEL_BUFFER

        target = levels.high if direction == "BUY" else levels.low
        liquidity = get_liquidity_target(analysis, direction, price)
        if liquidity is not None and (liquidity - target) * sign > 0:
            target = liquidity
        min_target = entry + sign * abs(entry - stop) * MIN_TARGET_R
        if (min_target - target) * sign > 0:
            target = min_target

        name = "PDL" if direction == "BUY" else "PDH"
        reasons = [f"{name} sweep at {swept_level:.2f}"]
        confidence = 0.6
        if analysis.htf.bias == wanted:
            confidence += 0.1
            reasons.append(f"HTF {wanted.lower()}")
        if ltf_shift:
            confidence += 0.1
            reasons.append(f"LTF {wanted.lower()} shift")
        if rejection:
            confidence += 0.1
            reasons.append("Rejection wick")
        if near_block(analysis.mtf.order_blocks, price, direction):
            confidence += 0.1
            reasons.append("OB confluence")
        if in_discount_or_premium(context, direction):
            confidence += 0.05
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        if (levels.close - levels.midpoint) * sign > 0:
            confidence += 0.05
            reasons.append(f"PDC {wanted.lower()}")

        return build_signal(direction, entry, stop, target, confidence, reasons)
