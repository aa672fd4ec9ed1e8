"""Order block detection — pure functions, no I/O.

A bullish order block is the last bearish candle before a displacement up
of at least ``ATR × 0.8`` within ten candles, where the candle right after
it is impulsive (bullish, body over 30 % of the block's body) or closes
above the block.  Bearish blocks mirror the rule.

A block is *mitigated* once a later candle trades back into it: for a
bullish block a low inside ``[low, high]``, for a bearish block a high
inside ``[low, high]``.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from smctrader.analysis.indicators import calculate_atr
from smctrader.analysis.models import Candle, OrderBlock, Polarity, SwingPoint
from smctrader.analysis.swing_points import find_swing_points

MIN_MOVE_MULTIPLIER = 0.8
DEFAULT_LOOKBACK = 50
MOVE_SCAN_CANDLES = 10
IMPULSE_BODY_RATIO = 0.3
KEEP_RECENT_PER_TYPE = 5


# ── Detection ────────────────────────────────────────────────────────────


def _has_displacement(
    candles: list[Candle], i: int, ob_type: Polarity, min_move: float,
) -> bool:
    """True when price travels *min_move* away from the block within the scan."""
    block = candles[i]
    end = min(i + MOVE_SCAN_CANDLES, len(candles))
    if ob_type == "BULLISH":
        extreme = block.high
        for j in range(i + 1, end):
            extreme = max(extreme, candles[j].high)
            if extreme - block.low >= min_move:
                return True
    else:
        extreme = block.low
        for j in range(i + 1, end):
            extreme = min(extreme, candles[j].low)
            if block.high - extreme >= min_move:
                return True
    return False


def _is_impulsive_follow_through(block: Candle, nxt: Candle, ob_type: Polarity) -> bool:
    if ob_type == "BULLISH":
        impulsive = nxt.is_bullish and nxt.body > block.body * IMPULSE_BODY_RATIO
        return impulsive or nxt.close > block.high
    impulsive = nxt.is_bearish and nxt.body > block.body * IMPULSE_BODY_RATIO
    return impulsive or nxt.close < block.low


def identify_order_blocks(
    candles: list[Candle],
    lookback: int = DEFAULT_LOOKBACK,
    atr_multiplier: float = MIN_MOVE_MULTIPLIER,
) -> list[OrderBlock]:
    """Detect bullish and bearish order blocks, sorted by candle time.

    Returns an empty list when fewer than *lookback* candles are supplied
    or ATR is zero.  Each block carries its mitigation state and quality
    score.
    """
    atr = calculate_atr(candles)
    if atr == 0 or len(candles) < lookback:
        return []

    min_move = atr * atr_multiplier
    blocks: list[OrderBlock] = []

    for i in range(max(0, len(candles) - lookback), len(candles) - 3):
        candle = candles[i]
        if candle.is_bearish:
            ob_type: Optional[Polarity] = "BULLISH"
        elif candle.is_bullish:
            ob_type = "BEARISH"
        else:
            continue

        if not _has_displacement(candles, i, ob_type, min_move):
            continue
        if not _is_impulsive_follow_through(candle, candles[i + 1], ob_type):
            continue

        block = OrderBlock(
            type=ob_type,
            high=candle.high,
            low=candle.low,
            open=candle.open,
            close=candle.close,
            candle_time=candle.time,
            score=score_order_block(candle, candles[: i + 1], ob_type, atr),
        )
        mitigated_at = check_order_block_mitigation(block, candles[i + 1:])
        if mitigated_at is not None:
            block = replace(block, is_valid=False, mitigated_at=mitigated_at)
        blocks.append(block)

    return sorted(blocks, key=lambda b: b.candle_time)


def score_order_block(
    candle: Candle,
    preceding: list[Candle],
    ob_type: Polarity,
    atr: float,
) -> float:
    """Quality score (0–100) for an order-block candle.

    Base 50, +15 for a dominant body (over 60 % of the range), +10 for
    freshness, +15 when the block edge sits within half an ATR of a swing
    of the matching side among the preceding ten candles, +10 for the
    displacement that qualified it.
    """
    score = 50.0
    if candle.range > 0 and candle.body > candle.range * 0.6:
        score += 15
    score += 10

    swings = find_swing_points(preceding[-10:], lookback=2)
    for swing in swings:
        if ob_type == "BULLISH" and swing.type == "LOW":
            if abs(swing.price - candle.low) < atr * 0.5:
                score += 15
                break
        if ob_type == "BEARISH" and swing.type == "HIGH":
            if abs(swing.price - candle.high) < atr * 0.5:
                score += 15
                break

    score += 10
    return min(score, 100.0)


# ── Mitigation & filtering ───────────────────────────────────────────────


def is_mitigated_by(block: OrderBlock, candle: Candle) -> bool:
    """Whether *candle* trades back into *block*."""
    if block.type == "BULLISH":
        return block.low <= candle.low <= block.high
    return block.low <= candle.high <= block.high


def check_order_block_mitigation(
    block: OrderBlock, later_candles: list[Candle],
) -> Optional[datetime]:
    """Return the time of the first candle mitigating *block*, else ``None``."""
    for candle in later_candles:
        if candle.time > block.candle_time and is_mitigated_by(block, candle):
            return candle.time
    return None


def filter_valid_order_blocks(
    blocks: list[OrderBlock],
    keep_recent: int = KEEP_RECENT_PER_TYPE,
) -> list[OrderBlock]:
    """Drop older mitigated blocks.

    The *keep_recent* most recent blocks of each polarity are always kept,
    mitigated or not, so retest entries remain possible.  Output is most
    recent first.
    """
    kept: list[OrderBlock] = []
    counts = {"BULLISH": 0, "BEARISH": 0}
    for block in sorted(blocks, key=lambda b: b.candle_time, reverse=True):
        if counts[block.type] < keep_recent:
            counts[block.type] += 1
            kept.append(block)
        elif block.is_valid:
            kept.append(block)
    return kept


# ── Queries ──────────────────────────────────────────────────────────────


def is_price_at_order_block(
    price: float, block: OrderBlock, tolerance: float = 0.0,
) -> bool:
    return block.low - tolerance <= price <= block.high + tolerance


def get_nearest_order_block(
    blocks: list[OrderBlock], price: float, ob_type: Polarity,
) -> Optional[OrderBlock]:
    """Nearest unmitigated block below price (bullish) or above it (bearish)."""
    candidates = [b for b in blocks if b.type == ob_type and b.is_valid]
    if ob_type == "BULLISH":
        below = [b for b in candidates if b.high < price]
        return min(below, key=lambda b: price - b.high, default=None)
    above = [b for b in candidates if b.low > price]
    return min(above, key=lambda b: b.low - price, default=None)


def identify_order_blocks_with_swings(
    candles: list[Candle], swings: list[SwingPoint],
) -> list[OrderBlock]:
    """Blocks anchored on swing points.

    The opposite-colour candle immediately before a swing low (bullish) or
    swing high (bearish) becomes the block.
    """
    blocks: list[OrderBlock] = []
    for swing in swings:
        idx = swing.index
        if idx < 1 or idx >= len(candles) - 1:
            continue
        prev = candles[idx - 1]
        if swing.type == "LOW" and prev.is_bearish:
            ob_type: Polarity = "BULLISH"
        elif swing.type == "HIGH" and prev.is_bullish:
            ob_type = "BEARISH"
        else:
            continue
        blocks.append(
            OrderBlock(
                type=ob_type,
                high=prev.high,
                low=prev.low,
                open=prev.open,
                close=prev.close,
                candle_time=prev.time,
            )
        )
    return blocks
