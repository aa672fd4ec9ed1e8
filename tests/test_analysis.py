"""Tests for the SMC detectors — indicators, swings, structure, order
blocks, fair value gaps and liquidity.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from smctrader.analysis.fvg import (
    check_fvg_partially_filled,
    filter_unfilled_fvgs,
    get_fvg_midpoint,
    identify_fvgs,
)
from smctrader.analysis.indicators import calculate_atr, calculate_ema
from smctrader.analysis.liquidity import (
    check_liquidity_sweep,
    detect_liquidity_sweep_reversal,
    identify_equal_highs,
    identify_equal_lows,
    identify_inducement,
    identify_liquidity_zones,
)
from smctrader.analysis.market_structure import (
    analyze_market_structure,
    calculate_premium_discount,
    detect_bos,
    find_nearest_swing_high,
    find_nearest_swing_low,
    is_price_in_discount,
    is_price_in_premium,
)
from smctrader.analysis.models import Candle, LiquidityZone, OrderBlock, SwingPoint
from smctrader.analysis.order_blocks import (
    filter_valid_order_blocks,
    identify_order_blocks,
    is_mitigated_by,
)
from smctrader.analysis.swing_points import find_swing_points


# ── Helpers ──────────────────────────────────────────────────────────────

BASE = datetime(2025, 3, 3, tzinfo=timezone.utc)


def _t(i):
    return BASE + timedelta(hours=i)


def _make_candle(i, o, h, l, c):
    return Candle(time=_t(i), open=o, high=h, low=l, close=c)


def _doji(i, price, half_range=0.5):
    return _make_candle(i, price, price + half_range, price - half_range, price)


def _swing(kind, price, i):
    return SwingPoint(kind, price, _t(i), i)


def _order_block_fixture():
    """50 flat dojis, a bearish candle, then a two-candle rally.

    Exactly one bullish order block at 99.5–100.5 (index 50); nothing
    trades back into it.
    """
    candles = [_doji(i, 100.0) for i in range(50)]
    candles.append(_make_candle(50, 100.2, 100.5, 99.5, 99.8))
    candles.append(_make_candle(51, 100.6, 102.2, 100.6, 102.0))
    candles.append(_make_candle(52, 102.0, 103.2, 101.9, 103.0))
    candles.append(_doji(53, 103.0))
    candles.append(_doji(54, 103.0))
    return candles


# ── Candle ───────────────────────────────────────────────────────────────


class TestCandle:
    def test_properties(self):
        c = _make_candle(0, 100, 105, 98, 103)
        assert c.body == pytest.approx(3)
        assert c.range == pytest.approx(7)
        assert c.is_bullish
        assert not c.is_bearish

    def test_validate_rejects_inconsistent_high(self):
        c = _make_candle(0, 100, 99, 98, 101)
        with pytest.raises(ValueError, match="high"):
            c.validate()

    def test_validate_rejects_inconsistent_low(self):
        c = _make_candle(0, 100, 105, 101, 102)
        with pytest.raises(ValueError, match="low"):
            c.validate()


# ── Indicators ───────────────────────────────────────────────────────────


class TestIndicators:
    def test_atr_constant_range(self):
        candles = [_doji(i, 100.0, half_range=1.0) for i in range(20)]
        assert calculate_atr(candles) == pytest.approx(2.0)

    def test_atr_insufficient_data_is_zero(self):
        candles = [_doji(i, 100.0) for i in range(14)]
        assert calculate_atr(candles) == 0.0

    def test_ema_seeded_with_sma(self):
        ema = calculate_ema([1, 2, 3, 4, 5], 3)
        assert math.isnan(ema[0]) and math.isnan(ema[1])
        assert ema[2:] == pytest.approx([2.0, 3.0, 4.0])

    def test_ema_rejects_short_input(self):
        with pytest.raises(ValueError, match="Need at least"):
            calculate_ema([1, 2], 3)


# ── Swing points ─────────────────────────────────────────────────────────


class TestSwingPoints:
    def _peak(self, highs):
        return [_make_candle(i, h - 0.2, h, h - 0.5, h - 0.3) for i, h in enumerate(highs)]

    def test_single_peak_is_swing_high(self):
        candles = self._peak([1, 2, 3, 4, 5, 10, 5, 4, 3, 2, 1])
        points = find_swing_points(candles)
        highs = [p for p in points if p.type == "HIGH"]
        assert len(highs) == 1
        assert highs[0].price == 10
        assert highs[0].index == 5

    def test_equal_high_in_window_blocks_swing(self):
        candles = self._peak([1, 2, 3, 10, 5, 10, 5, 4, 3, 2, 1])
        assert [p for p in find_swing_points(candles) if p.type == "HIGH"] == []

    def test_short_series_returns_empty(self):
        candles = self._peak([1, 2, 3, 4, 5, 4, 3, 2, 1, 0])
        assert find_swing_points(candles) == []


# ── Market structure ─────────────────────────────────────────────────────


class TestMarketStructure:
    def test_bullish_trend(self):
        swings = [_swing("LOW", 100, 1), _swing("HIGH", 110, 2), _swing("LOW", 105, 3), _swing("HIGH", 120, 4)]
        ms = analyze_market_structure([_doji(5, 115)], swings)
        assert ms.bias == "BULLISH"
        assert ms.last_structure == "HH"

    def test_bearish_trend(self):
        swings = [_swing("HIGH", 120, 1), _swing("LOW", 100, 2), _swing("HIGH", 110, 3), _swing("LOW", 90, 4)]
        ms = analyze_market_structure([_doji(5, 95)], swings)
        assert ms.bias == "BEARISH"
        assert ms.last_structure == "LL"

    def test_fresh_break_overrides_bearish_read(self):
        swings = [_swing("HIGH", 120, 1), _swing("LOW", 100, 2), _swing("HIGH", 110, 3), _swing("LOW", 90, 4)]
        ms = analyze_market_structure([_doji(5, 125)], swings)
        assert ms.bias == "BULLISH"
        assert ms.last_structure == "BOS"
        assert ms.last_bos.price == 120

    def test_too_few_swings_is_neutral(self):
        swings = [_swing("LOW", 100, 1), _swing("HIGH", 110, 2)]
        ms = analyze_market_structure([_doji(3, 105)], swings)
        assert ms.bias == "NEUTRAL"
        assert ms.last_structure == "HL"

    def test_detect_bos_bullish_close_through(self):
        swings = [_swing("LOW", 100, 1), _swing("HIGH", 110, 2)]
        candles = [_make_candle(3, 107, 109, 106, 108), _make_candle(4, 108, 113, 107, 112)]
        brk = detect_bos(candles, swings)
        assert brk.type == "BULLISH"
        assert brk.price == 110

    def test_nearest_swings(self):
        swings = [
            _swing("HIGH", 120, 1), _swing("HIGH", 110, 2),
            _swing("LOW", 90, 3), _swing("LOW", 95, 4),
        ]
        assert find_nearest_swing_high(swings, 105).price == 110
        assert find_nearest_swing_low(swings, 100).price == 95
        assert find_nearest_swing_high(swings, 130) is None


class TestPremiumDiscount:
    def test_levels(self):
        zone = calculate_premium_discount(200, 100)
        assert zone.equilibrium == pytest.approx(150)
        assert zone.fib_618 == pytest.approx(161.8)
        assert zone.fib_786 == pytest.approx(178.6)
        assert (zone.premium.low, zone.premium.high) == (150, 200)
        assert (zone.discount.low, zone.discount.high) == (100, 150)

    def test_price_sides(self):
        assert is_price_in_discount(120, 200, 100)
        assert not is_price_in_discount(180, 200, 100)
        assert is_price_in_premium(180, 200, 100)


# ── Order blocks ─────────────────────────────────────────────────────────


class TestOrderBlocks:
    def test_detects_bullish_block_before_rally(self):
        blocks = identify_order_blocks(_order_block_fixture())
        assert len(blocks) == 1
        ob = blocks[0]
        assert ob.type == "BULLISH"
        assert (ob.low, ob.high) == (99.5, 100.5)
        assert ob.is_valid
        assert ob.score == pytest.approx(70)

    def test_block_mitigated_by_later_retest(self):
        candles = _order_block_fixture()
        candles.append(_make_candle(55, 101.0, 101.5, 100.0, 101.0))
        blocks = [b for b in identify_order_blocks(candles) if b.type == "BULLISH"]
        assert len(blocks) == 1
        assert not blocks[0].is_valid
        assert blocks[0].mitigated_at == _t(55)

    def test_high_atr_multiplier_filters_block(self):
        assert identify_order_blocks(_order_block_fixture(), atr_multiplier=10) == []

    def test_short_series_returns_empty(self):
        assert identify_order_blocks(_order_block_fixture()[:40]) == []

    def test_is_mitigated_by(self):
        ob = OrderBlock("BULLISH", high=101, low=100, open=101, close=100, candle_time=_t(0))
        assert is_mitigated_by(ob, _make_candle(1, 102, 103, 100.5, 102))
        assert not is_mitigated_by(ob, _make_candle(1, 102, 103, 101.5, 102))

    def test_filter_keeps_recent_and_valid(self):
        blocks = [
            OrderBlock("BULLISH", 101, 100, 101, 100, _t(i), is_valid=(i % 2 == 0))
            for i in range(8)
        ]
        kept = filter_valid_order_blocks(blocks, keep_recent=3)
        times = [b.candle_time for b in kept]
        # Three most recent regardless of state, then only the valid older ones
        assert times == [_t(7), _t(6), _t(5), _t(4), _t(2), _t(0)]


# ── Fair value gaps ──────────────────────────────────────────────────────


class TestFairValueGaps:
    def _gap_candles(self):
        return [
            _make_candle(0, 99.5, 100.0, 99.0, 99.8),
            _make_candle(1, 99.8, 101.8, 99.7, 101.6),
            _make_candle(2, 101.6, 102.0, 101.0, 101.9),
        ]

    def test_bullish_gap(self):
        gaps = identify_fvgs(self._gap_candles())
        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.type == "BULLISH"
        assert (gap.low, gap.high) == (100.0, 101.0)
        assert gap.gap_time == _t(1)
        assert not gap.is_filled
        assert get_fvg_midpoint(gap) == pytest.approx(100.5)

    def test_gap_filled_by_later_candle(self):
        candles = self._gap_candles() + [_make_candle(3, 101.5, 101.6, 99.9, 100.2)]
        gap = identify_fvgs(candles)[0]
        assert gap.is_filled
        assert gap.filled_at == _t(3)
        assert filter_unfilled_fvgs([gap], candles) == []

    def test_tiny_gap_ignored(self):
        candles = self._gap_candles()
        candles[2] = _make_candle(2, 100.1, 100.5, 100.05, 100.4)
        assert identify_fvgs(candles) == []

    def test_partial_fill(self):
        gap = identify_fvgs(self._gap_candles())[0]
        assert check_fvg_partially_filled(gap, _make_candle(3, 101, 101.2, 100.5, 101))
        assert not check_fvg_partially_filled(gap, _make_candle(3, 101, 101.2, 100.8, 101))


# ── Liquidity ────────────────────────────────────────────────────────────


class TestLiquidity:
    def test_zones_from_swings_marked_swept(self):
        candles = [_doji(i, 100) for i in range(4)]
        candles.append(_make_candle(4, 100, 111, 99.5, 100))
        swings = [_swing("HIGH", 110, 1), _swing("LOW", 95, 2)]
        zones = identify_liquidity_zones(candles, swings)
        high = next(z for z in zones if z.type == "HIGH")
        low = next(z for z in zones if z.type == "LOW")
        assert high.is_swept and high.swept_at == _t(4)
        assert not low.is_swept

    def test_sweep_checks(self):
        zone = LiquidityZone("LOW", 100, _t(0))
        assert check_liquidity_sweep(zone, _make_candle(1, 101, 102, 99.5, 101))
        assert not check_liquidity_sweep(zone, _make_candle(1, 101, 102, 100.5, 101))

    def test_sweep_reversal_needs_close_back_inside(self):
        zone = LiquidityZone("LOW", 100, _t(0))
        through = _make_candle(1, 100.5, 100.8, 99.0, 99.2)
        rejection = _make_candle(2, 100.2, 100.9, 99.5, 100.6)
        assert detect_liquidity_sweep_reversal(zone, [through]) is None
        assert detect_liquidity_sweep_reversal(zone, [through, rejection]) == rejection

    def test_equal_highs(self):
        candles = [
            _make_candle(0, 99, 100.0, 98, 99),
            _make_candle(1, 99, 100.0, 98, 99),
            _make_candle(2, 99, 101.0, 98, 99),
        ]
        zones = identify_equal_highs(candles)
        assert len(zones) == 1
        assert zones[0].price == pytest.approx(100.0)
        assert zones[0].candle_time == _t(1)

    def test_near_equal_highs_cluster(self):
        # 2000.0 and 2000.5 are 0.025 % apart; 2003 is 0.15 % away
        candles = [
            _make_candle(0, 1995, 2000.0, 1990, 1995),
            _make_candle(1, 1995, 2003.0, 1990, 1995),
            _make_candle(2, 1995, 2000.5, 1990, 1995),
        ]
        zones = identify_equal_highs(candles)
        assert len(zones) == 1
        assert zones[0].price == pytest.approx(2000.5)
        assert zones[0].candle_time == _t(2)

    def test_near_equal_lows_cluster(self):
        candles = [
            _make_candle(0, 2005, 2010, 2000.0, 2005),
            _make_candle(1, 2005, 2010, 2001.5, 2005),
            _make_candle(2, 2005, 2010, 1998.0, 2005),
        ]
        zones = identify_equal_lows(candles)
        assert [z.price for z in zones] == pytest.approx([2000.0])

    def test_inducement_in_front_of_major_high(self):
        candles = [
            _make_candle(0, 108, 110, 107, 108),
            _make_candle(1, 104, 105, 103, 104),
            _make_candle(2, 107, 108, 106, 107),
            _make_candle(3, 110, 112, 109, 111),
        ]
        major = LiquidityZone("HIGH", 110, _t(0))
        minor = identify_inducement(major, candles)
        assert minor.price == 108
        assert minor.candle_time == _t(2)
