"""Judas swing strategy — session-open fake move and reversal.

The Asian range (00:00–07:00 UTC) is marked for the current day from the
finest series that reaches back to the session start (LTF, else MTF).  During
the session open (London 07–09, New York 12–14) price sweeps one side of
that range; during the following reversal window (London 09–11, New York
AM 14–15) a close back inside the range is traded toward the other side.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from smctrader.analysis.kill_zones import is_hour_in_range, to_utc
from smctrader.analysis.models import Candle
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

ASIAN_WINDOW = (0, 7)
LONDON_JUDAS_WINDOW = (7, 9)
NY_JUDAS_WINDOW = (12, 14)
LONDON_REVERSAL_WINDOW = (9, 11)
NY_REVERSAL_WINDOW = (14, 15)

MIN_LTF_CANDLES = 50
MIN_MTF_CANDLES = 20
MIN_ASIAN_CANDLES = 5
MIN_JUDAS_CANDLES = 3
MIN_TARGET_R = 2.0


@dataclass(frozen=True)
class SessionRange:
    high: float
    low: float

    @property
    def size(self) -> float:
        return self.high - self.low


def candles_in_window(
    candles: list[Candle], day: datetime, window: tuple[int, int],
) -> list[Candle]:
    """Candles on *day*'s UTC date whose UTC hour falls in *window*."""
    start, end = window
    date = to_utc(day).date()
    selected = []
    for c in candles:
        time = to_utc(c.time)
        if time.date() == date and is_hour_in_range(time.hour, start, end):
            selected.append(c)
    return selected


def session_candles(
    context: StrategyContext, day: datetime, window: tuple[int, int],
) -> list[Candle]:
    """*window*'s candles on *day*, from the LTF series when it opens at or
    before the window start, otherwise from the MTF series.

    Empty when neither series reaches back that far.
    """
    start = to_utc(day).replace(hour=window[0], minute=0, second=0, microsecond=0)
    for candles in (context.ltf_candles, context.mtf_candles):
        if candles and to_utc(candles[0].time) <= start:
            return candles_in_window(candles, day, window)
    return []


def asian_range(candles: list[Candle], day: datetime) -> Optional[SessionRange]:
    session = candles_in_window(candles, day, ASIAN_WINDOW)
    if len(session) < MIN_ASIAN_CANDLES:
        return None
    return SessionRange(max(c.high for c in session), min(c.low for c in session))


class JudasSwingStrategy(BaseStrategy):
    name = "JUDAS_SWING"
    description = "ICT Judas Swing / Silver Bullet Session Reversal"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        candles = context.ltf_candles
        if len(candles) < MIN_LTF_CANDLES or len(context.mtf_candles) < MIN_MTF_CANDLES:
            return None

        now = to_utc(candles[-1].time)
        if is_hour_in_range(now.hour, *LONDON_REVERSAL_WINDOW):
            judas_window = LONDON_JUDAS_WINDOW
        elif is_hour_in_range(now.hour, *NY_REVERSAL_WINDOW):
            judas_window = NY_JUDAS_WINDOW
        else:
            return None

        session = asian_range(session_candles(context, now, ASIAN_WINDOW), now)
        if session is None:
            return None

        judas = session_candles(context, now, judas_window)
        if len(judas) < MIN_JUDAS_CANDLES:
            return None

        judas_high = max(c.high for c in judas)
        judas_low = min(c.low for c in judas)
        swept_above = judas_high > session.high
        swept_below = judas_low < session.low
        if not swept_above and not swept_below:
            return None

        bias = get_overall_bias(context.analysis)
        recent = candles[-5:]

        # Both sides swept: the bias decides which reversal is allowed
        if swept_above and (not swept_below or bias in ("BEARISH", "NEUTRAL")):
            signal = self._reversal(context, "SELL", session, judas_high, recent)
            if self.is_acceptable(signal):
                return signal
        if swept_below and (not swept_above or bias in ("BULLISH", "NEUTRAL")):
            signal = self._reversal(context, "BUY", session, judas_low, recent)
            if self.is_acceptable(signal):
                return signal
        return None

    def _reversal(
        self,
        context: StrategyContext,
        direction: str,
        session: SessionRange,
        judas_extreme: float,
        recent: list[Candle],
    ) -> Optional[StrategySignal]:
        analysis = context.analysis
        price = context.current_price
        sign = signed(direction)

        if direction == "BUY" and price < session.low:
            return None
        if direction == "SELL" and price > session.high:
            return None

        last = recent[-1]
        prev = recent[-2] if len(recent) > 1 else None
        if direction == "BUY":
            closes_back = last.is_bullish and last.close > session.low
        else:
            closes_back = last.is_bearish and last.close < session.high
        if not closes_back:
            return None

        wanted = polarity(direction)
        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        ltf_shift = analysis.ltf.bias == wanted or analysis.ltf.structure.last_structure in labels

        rejection = False
        if prev is not None:
            if direction == "BUY":
                wick = min(prev.open, prev.close) - prev.low
            else:
                wick = prev.high - max(prev.open, prev.close)
            rejection = wick > prev.body * 0.8
        if not ltf_shift and not rejection:
            return None

        entry = get_entry_price(context, direction)
        stop = judas_extreme - sign * session.size * 0.1

        target = session.high if direction == "BUY" else session.low
        liquidity = get_liquidity_target(analysis, direction, price)
        if liquidity is not None and (liquidity - target) * sign > 0:
            target = liquidity
        min_target = entry + sign * abs(entry - stop) * MIN_TARGET_R
        if (min_target - target) * sign > 0:
            target = min_target

        side = "Bullish" if direction == "BUY" else "Bearish"
        reasons = [f"{side} Judas Swing reversal"]
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
        if in_discount_or_premium(context, direction):
            confidence += 0.05
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        if near_block(analysis.mtf.order_blocks, price, direction):
            confidence += 0.1
            reasons.append("OB confluence")
        if has_choch(context, direction):
            confidence += 0.05
            reasons.append("CHoCH")

        return build_signal(direction, entry, stop, target, confidence, reasons)
