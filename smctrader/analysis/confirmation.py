"""Confirmation candle checks for order-block entries.

Types:
    none    enter on the touch
    close   candle closes in trade direction with a body of 30 %+ of range
    strong  as ``close`` with a 50 %+ body
    engulf  candle body engulfs the previous candle's body
"""

from typing import Literal, Optional

from smctrader.analysis.models import Candle

ConfirmationType = Literal["none", "close", "strong", "engulf"]
CONFIRMATION_TYPES: tuple[str, ...] = ("none", "close", "strong", "engulf")

CLOSE_MIN_BODY_RATIO = 0.3
STRONG_MIN_BODY_RATIO = 0.5
REJECTION_WICK_RATIO = 0.3


def body_ratio(candle: Candle) -> float:
    if candle.range == 0:
        return 0.0
    return candle.body / candle.range


def upper_wick(candle: Candle) -> float:
    return candle.high - max(candle.open, candle.close)


def lower_wick(candle: Candle) -> float:
    return min(candle.open, candle.close) - candle.low


def _directional(candle: Candle, direction: str) -> bool:
    return candle.is_bullish if direction == "BUY" else candle.is_bearish


def has_close_confirmation(candle: Candle, direction: str) -> bool:
    return _directional(candle, direction) and body_ratio(candle) >= CLOSE_MIN_BODY_RATIO


def has_strong_confirmation(candle: Candle, direction: str) -> bool:
    return _directional(candle, direction) and body_ratio(candle) >= STRONG_MIN_BODY_RATIO


def has_engulfing_confirmation(current: Candle, prev: Candle, direction: str) -> bool:
    if not _directional(current, direction) or current.body <= prev.body:
        return False
    prev_top = max(prev.open, prev.close)
    prev_bottom = min(prev.open, prev.close)
    if direction == "BUY":
        return current.close > prev_top and current.open < prev_bottom
    return current.close < prev_bottom and current.open > prev_top


def check_confirmation(
    confirmation_type: str,
    current: Candle,
    prev: Optional[Candle],
    direction: str,
) -> bool:
    """Dispatch on *confirmation_type*; unknown types pass."""
    if confirmation_type == "close":
        return has_close_confirmation(current, direction)
    if confirmation_type == "strong":
        return has_strong_confirmation(current, direction)
    if confirmation_type == "engulf":
        return prev is not None and has_engulfing_confirmation(current, prev, direction)
    return True


def has_rejection_wick(candle: Candle, direction: str) -> bool:
    """Lower wick (BUY) or upper wick (SELL) over 30 % of the body."""
    wick = lower_wick(candle) if direction == "BUY" else upper_wick(candle)
    return wick > candle.body * REJECTION_WICK_RATIO


def has_low_score_entry(candle: Candle, direction: str) -> bool:
    """Entry check for marginal blocks: directional close or a rejection wick."""
    return _directional(candle, direction) or has_rejection_wick(candle, direction)
