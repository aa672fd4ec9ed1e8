"""Take-profit resolution — an ordered chain of target resolvers.

Each resolver is a small function returning a price or ``None``; the first
price wins.  The default chain is liquidity target, then nearest MTF swing,
then a fixed multiple of the risk.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from smctrader.analysis.market_structure import find_nearest_swing_high, find_nearest_swing_low
from smctrader.analysis.multi_timeframe import get_liquidity_target
from smctrader.strategy.base import StrategyContext, signed

TargetResolver = Callable[[StrategyContext, str, float, float], Optional[float]]

DEFAULT_RR_MULTIPLE = 2.0


def liquidity_target(
    context: StrategyContext, direction: str, entry: float, stop: float,
) -> Optional[float]:
    return get_liquidity_target(context.analysis, direction, context.current_price)


def swing_target(
    context: StrategyContext, direction: str, entry: float, stop: float,
) -> Optional[float]:
    swings = context.analysis.mtf.structure.swing_points
    if direction == "BUY":
        swing = find_nearest_swing_high(swings, context.current_price)
    else:
        swing = find_nearest_swing_low(swings, context.current_price)
    return swing.price if swing else None


def fixed_r_target(multiple: float = DEFAULT_RR_MULTIPLE) -> TargetResolver:
    def resolve(context: StrategyContext, direction: str, entry: float, stop: float) -> float:
        return entry + signed(direction) * abs(entry - stop) * multiple
    return resolve


DEFAULT_CHAIN: tuple[TargetResolver, ...] = (
    liquidity_target,
    swing_target,
    fixed_r_target(),
)


def resolve_take_profit(
    context: StrategyContext,
    direction: str,
    entry: float,
    stop: float,
    chain: Sequence[TargetResolver] = DEFAULT_CHAIN,
) -> Optional[float]:
    """Return the first target any resolver in *chain* produces."""
    for resolver in chain:
        target = resolver(context, direction, entry, stop)
        if target is not None:
            return target
    return None
