"""M1 trend strategy — triple-EMA trend following on the LTF.

EMA(9/21/50) alignment, or a fresh 9/21 crossover, with price on the
trend side of EMA(50) sets the direction.  Entries need a pullback to
EMA(9) followed by a momentum candle closing back through it.  Stops go
beyond the 10-candle extreme plus 10 % of the distance; targets are 2 R.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from smctrader.analysis.indicators import latest_ema
from smctrader.analysis.models import Candle
from smctrader.strategy.base import BaseStrategy, StrategyContext, StrategySignal

FAST_PERIOD = 9
MEDIUM_PERIOD = 21
SLOW_PERIOD = 50
MIN_CANDLES = 55
SWING_LOOKBACK = 10
PULLBACK_TOLERANCE = 0.0005
DEFAULT_RR = 2.0


@dataclass(frozen=True)
class EmaTrend:
    """EMA snapshot plus the trend it implies."""

    direction: Literal["BULLISH", "BEARISH", "NEUTRAL"]
    fast: float
    medium: float
    slow: float
    crossover: bool


def detect_ema_trend(closes: list[float], price: float) -> EmaTrend:
    """Classify the trend from EMA(9/21/50) of *closes*.

    Rules:
        - **Bullish**: (9 > 21 > 50 or a fresh 9-over-21 cross) and price > EMA50.
        - **Bearish**: mirror.
        - **Neutral**: everything else.
    """
    fast = latest_ema(closes, FAST_PERIOD)
    medium = latest_ema(closes, MEDIUM_PERIOD)
    slow = latest_ema(closes, SLOW_PERIOD)
    prev_fast = latest_ema(closes[:-1], FAST_PERIOD)
    prev_medium = latest_ema(closes[:-1], MEDIUM_PERIOD)

    bull_cross = prev_fast <= prev_medium and fast > medium
    bear_cross = prev_fast >= prev_medium and fast < medium

    if (fast > medium > slow or bull_cross) and price > slow:
        return EmaTrend("BULLISH", fast, medium, slow, bull_cross)
    if (fast < medium < slow or bear_cross) and price < slow:
        return EmaTrend("BEARISH", fast, medium, slow, bear_cross)
    return EmaTrend("NEUTRAL", fast, medium, slow, False)


def is_pullback_entry(
    direction: str, price: float, current: Candle, prev: Candle, ema_fast: float,
) -> bool:
    tolerance = price * PULLBACK_TOLERANCE
    if direction == "BUY":
        at_ema = abs(price - ema_fast) < tolerance or (
            current.low <= ema_fast * 1.001 and price > ema_fast
        )
        was_pullback = prev.is_bearish or prev.low <= ema_fast * 1.002
        momentum = current.is_bullish and current.close > ema_fast
    else:
        at_ema = abs(price - ema_fast) < tolerance or (
            current.high >= ema_fast * 0.999 and price < ema_fast
        )
        was_pullback = prev.is_bullish or prev.high >= ema_fast * 0.998
        momentum = current.is_bearish and current.close < ema_fast
    return (at_ema or was_pullback) and momentum


class M1TrendStrategy(BaseStrategy):
    name = "M1_TREND"
    description = "EMA-based trend following on LTF with pullback entries"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        candles = context.ltf_candles
        if len(candles) < MIN_CANDLES:
            return None

        price = context.current_price
        trend = detect_ema_trend([c.close for c in candles], price)
        if trend.direction == "NEUTRAL":
            return None

        direction = "BUY" if trend.direction == "BULLISH" else "SELL"
        if not is_pullback_entry(direction, price, candles[-1], candles[-2], trend.fast):
            return None

        recent = candles[-SWING_LOOKBACK:]
        if direction == "BUY":
            swing = min(c.low for c in recent)
            if swing >= price:
                return None
            stop = swing - (price - swing) * 0.1
            target = price + (price - stop) * DEFAULT_RR
            spread = (trend.fast - trend.slow) / trend.slow
            extended = price > trend.slow * 1.005
        else:
            swing = max(c.high for c in recent)
            if swing <= price:
                return None
            stop = swing + (swing - price) * 0.1
            target = price - (stop - price) * DEFAULT_RR
            spread = (trend.slow - trend.fast) / trend.slow
            extended = price < trend.slow * 0.995

        confidence = 0.6
        if spread > 0.002:
            confidence += 0.1
        if trend.crossover:
            confidence += 0.1
        if extended:
            confidence += 0.1

        side = "Bullish" if direction == "BUY" else "Bearish"
        return StrategySignal(
            direction=direction,
            entry_price=price,
            stop_loss=stop,
            take_profit=target,
            confidence=min(confidence, 0.95),
            reason=(
                f"M1 Trend: {side} EMA alignment "
                f"({FAST_PERIOD}/{MEDIUM_PERIOD}/{SLOW_PERIOD}), "
                f"pullback entry at {trend.fast:.2f}"
            ),
        )
