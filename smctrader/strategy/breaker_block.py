"""Breaker block strategy — a broken order block flips polarity.

A bullish block that price later closes below becomes resistance (a
bearish breaker), and vice versa.  Once price has moved away and comes
back to the zone, the retest is traded in the breaker's new direction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from smctrader.analysis.market_structure import find_nearest_swing_high, find_nearest_swing_low
from smctrader.analysis.models import Candle, OrderBlock
from smctrader.analysis.multi_timeframe import get_liquidity_target
from smctrader.strategy.base import (
    BaseStrategy,
    Direction,
    StrategyContext,
    StrategySignal,
    build_signal,
    get_entry_price,
    has_sweep_reversal,
    in_discount_or_premium,
    signed,
)

MAX_BREAKERS = 3
DEFAULT_RR = 2.5
MIN_TARGET_R = 2.0


@dataclass(frozen=True)
class BreakerBlock:
    """A mitigated order block acting as a zone in the opposite direction."""

    high: float
    low: float
    original: OrderBlock
    direction: Direction
    broken_at: datetime
    strength: float  # 0–1

    @property
    def size(self) -> float:
        return self.high - self.low


def breaker_strength(block: OrderBlock, breaking: Candle, after: list[Candle]) -> float:
    """Rate a breaker from 0 to 1.

    Rules:
        - Base 0.5.
        - Breaking body > 1.5× the block range: +0.2; > 1×: +0.1.
        - More than five candles since the break: +0.1.
        - At most one retest: +0.15; more than three: -0.2.
    """
    strength = 0.5
    if breaking.body > block.size * 1.5:
        strength += 0.2
    elif breaking.body > block.size:
        strength += 0.1
    if len(after) > 5:
        strength += 0.1

    retests = sum(1 for c in after if c.low <= block.high and c.high >= block.low)
    if retests <= 1:
        strength += 0.15
    elif retests > 3:
        strength -= 0.2
    return max(0.0, min(1.0, strength))


def identify_breaker_blocks(
    blocks: list[OrderBlock], candles: list[Candle], price: float,
) -> list[BreakerBlock]:
    """Blocks closed through by a later candle, with price within 1.5 block
    ranges of the zone.  Strongest first, at most three."""
    breakers: list[BreakerBlock] = []
    for block in blocks:
        later = [c for c in candles if c.time > block.candle_time]
        if block.type == "BULLISH":
            breaking = next((c for c in later if c.close < block.low), None)
        else:
            breaking = next((c for c in later if c.close > block.high), None)
        if breaking is None:
            continue

        after = [c for c in later if c.time > breaking.time]
        if len(after) < 2:
            continue

        tolerance = block.size * 1.5
        if not block.low - tolerance <= price <= block.high + tolerance:
            continue

        breakers.append(BreakerBlock(
            high=block.high,
            low=block.low,
            original=block,
            direction="SELL" if block.type == "BULLISH" else "BUY",
            broken_at=breaking.time,
            strength=breaker_strength(block, breaking, after),
        ))

    breakers.sort(key=lambda b: b.strength, reverse=True)
    return breakers[:MAX_BREAKERS]


class BreakerBlockStrategy(BaseStrategy):
    name = "BREAKER_BLOCK"
    description = "Mitigated Order Block Polarity Flip Strategy"

    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        if len(context.mtf_candles) < 30 or len(context.ltf_candles) < 10:
            return None

        blocks = [
            ob for ob in context.analysis.mtf.order_blocks
            if ob.score >= context.min_ob_score
        ]
        breakers = identify_breaker_blocks(blocks, context.mtf_candles, context.current_price)

        for breaker in breakers:
            signal = self._retest(context, breaker)
            if self.is_acceptable(signal):
                return signal
        return None

    def _retest(self, context: StrategyContext, breaker: BreakerBlock) -> Optional[StrategySignal]:
        analysis = context.analysis
        price = context.current_price
        direction = breaker.direction
        sign = signed(direction)
        last = context.ltf_candles[-1]

        if direction == "BUY":
            in_zone = breaker.low - breaker.size * 0.3 <= price <= breaker.high
            reacted = last.is_bullish and last.low <= breaker.high
        else:
            in_zone = breaker.low <= price <= breaker.high + breaker.size * 0.3
            reacted = last.is_bearish and last.high >= breaker.low
        if not in_zone or not reacted:
            return None

        entry = get_entry_price(context, direction)
        far_edge = breaker.low if direction == "BUY" else breaker.high
        stop = far_edge - sign * breaker.size * 0.3

        target = get_liquidity_target(analysis, direction, price)
        if target is None:
            swings = analysis.mtf.structure.swing_points
            swing = (
                find_nearest_swing_high(swings, price) if direction == "BUY"
                else find_nearest_swing_low(swings, price)
            )
            target = swing.price if swing else entry + sign * abs(entry - stop) * DEFAULT_RR
        min_target = entry + sign * abs(entry - stop) * MIN_TARGET_R
        if (min_target - target) * sign > 0:
            target = min_target

        wanted = "BULLISH" if direction == "BUY" else "BEARISH"
        reasons = [f"{wanted.title()} Breaker at {breaker.low:.2f}-{breaker.high:.2f}"]
        confidence = 0.55
        if breaker.strength > 0.7:
            confidence += 0.1
            reasons.append("Strong breaker")
        if analysis.htf.bias == wanted:
            confidence += 0.1
            reasons.append(f"HTF {wanted.lower()}")
        if any(
            g.type == wanted and g.high >= breaker.low and g.low <= breaker.high
            for g in analysis.mtf.fvgs
        ):
            confidence += 0.1
            reasons.append("FVG confluence")
        if in_discount_or_premium(context, direction):
            confidence += 0.1
            reasons.append("Discount zone" if direction == "BUY" else "Premium zone")
        labels = ("HH", "HL") if direction == "BUY" else ("LL", "LH")
        if analysis.ltf.structure.last_structure in labels:
            confidence += 0.05
            reasons.append(f"LTF {wanted.lower()}")
        if has_sweep_reversal(context, direction):
            confidence += 0.1
            reasons.append("Liquidity swept")

        return build_signal(direction, entry, stop, target, confidence, reasons)
