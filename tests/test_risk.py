"""Tests for the risk management module.

Covers position sizing, trade-level validation, drawdown tracking, the
daily loss lock and breakeven stop management.
"""

from datetime import datetime, timezone

import pytest

from smctrader.risk.breakeven import BreakevenStop
from smctrader.risk.drawdown import DailyDrawdownTracker, DrawdownTracker
from smctrader.risk.position_sizer import (
    SymbolInfo,
    calculate_breakeven_price,
    calculate_position_size,
    calculate_potential_pnl,
    get_max_lot_size_by_margin,
    get_symbol_info,
    get_symbol_pip_info,
    pip_value_per_lot,
    validate_trade_params,
)


# ── Symbol info ──────────────────────────────────────────────────────────


class TestSymbolInfo:
    def test_known_symbol(self):
        info = get_symbol_info("BTCUSD")
        assert info.pip_size == 1
        assert info.max_volume == 10

    def test_unknown_symbol_falls_back_to_gold_spec(self):
        info = get_symbol_info("EURUSD")
        assert info.symbol == "EURUSD"
        assert info.contract_size == 100

    def test_overrides(self):
        info = get_symbol_info("XAUUSD.s", {"max_volume": 5})
        assert info.max_volume == 5
        assert info.pip_size == 0.1

    def test_pip_value(self):
        assert pip_value_per_lot(get_symbol_info("XAUUSD.s")) == pytest.approx(10.0)
        assert pip_value_per_lot(get_symbol_info("ETHUSD")) == pytest.approx(1.0)
        assert pip_value_per_lot(get_symbol_info("XAGUSD.s")) == pytest.approx(50.0)

    @pytest.mark.parametrize(
        "symbol,expected",
        [("XAUUSD", (0.1, 1)), ("XAGUSD", (0.01, 2)), ("BTCUSD", (1.0, 0)),
         ("USDJPY", (0.01, 2)), ("EURUSD", (0.0001, 4))],
    )
    def test_pip_info(self, symbol, expected):
        assert get_symbol_pip_info(symbol) == expected


# ── Position sizing ──────────────────────────────────────────────────────


class TestPositionSizing:
    def test_gold_one_percent(self):
        """$10,000, 1 % risk, 10.0 stop on gold → 100 pips at 10.0 per pip → 0.10 lot."""
        size = calculate_position_size(10_000, 1.0, 2000.0, 1990.0, get_symbol_info("XAUUSD.s"))
        assert size.lot_size == pytest.approx(0.1)
        assert size.pip_value == pytest.approx(10.0)
        assert size.risk_amount == pytest.approx(100.0)
        assert size.pip_risk == pytest.approx(100.0)
        assert not size.was_clamped_to_min

    def test_small_account_clamped_to_min(self):
        size = calculate_position_size(50, 1.0, 2000.0, 1990.0, get_symbol_info("XAUUSD.s"))
        assert size.lot_size == pytest.approx(0.01)
        assert size.was_clamped_to_min

    def test_exact_minimum_not_flagged(self):
        size = calculate_position_size(1_000, 1.0, 2000.0, 1990.0, get_symbol_info("XAUUSD.s"))
        assert size.lot_size == pytest.approx(0.01)
        assert not size.was_clamped_to_min

    def test_clamped_to_max(self):
        size = calculate_position_size(100_000, 1.0, 60_000, 59_990, get_symbol_info("BTCUSD"))
        # raw = 1,000 / (10 × 1) = 100 lots
        assert size.lot_size == pytest.approx(10)
        assert not size.was_clamped_to_min

    def test_floors_to_volume_step(self):
        # raw = 100 / (30 × 1) = 3.333 → 3.33
        size = calculate_position_size(10_000, 1.0, 3000.0, 2970.0, get_symbol_info("ETHUSD"))
        assert size.lot_size == pytest.approx(3.33)

    def test_rejects_zero_stop_distance(self):
        with pytest.raises(ValueError, match="stop_loss"):
            calculate_position_size(10_000, 1.0, 2000.0, 2000.0, get_symbol_info("XAUUSD.s"))

    def test_rejects_non_positive_balance(self):
        with pytest.raises(ValueError, match="balance"):
            calculate_position_size(0, 1.0, 2000.0, 1990.0, get_symbol_info("XAUUSD.s"))


EURUSD = SymbolInfo(
    "EURUSD", pip_size=0.0001, contract_size=100_000, min_volume=0.01,
    max_volume=100, volume_step=0.01, tick_size=0.00001, tick_value=1, digits=5,
)


class TestRealizedRisk:
    """A stop-out never loses more than the amount the size was built from."""

    @pytest.mark.parametrize(
        "info,entry,stop",
        [
            (EURUSD, 1.1000, 1.0950),
            (get_symbol_info("XAUUSD.s"), 2000.0, 1990.0),
            (get_symbol_info("BTCUSD"), 60_000.0, 59_000.0),
        ],
        ids=["fx", "gold", "btc"],
    )
    def test_stop_out_loses_intended_risk(self, info, entry, stop):
        size = calculate_position_size(10_000, 1.0, entry, stop, info)
        result = calculate_potential_pnl(size.lot_size, entry, stop, "BUY", info)
        assert result["pnl"] == pytest.approx(-size.risk_amount, abs=0.01)

    @pytest.mark.parametrize("stop", [1987.0, 1993.3, 1999.1])
    def test_flooring_keeps_loss_within_risk(self, stop):
        info = get_symbol_info("XAUUSD.s")
        size = calculate_position_size(10_000, 1.0, 2000.0, stop, info)
        result = calculate_potential_pnl(size.lot_size, 2000.0, stop, "BUY", info)
        assert not size.was_clamped_to_min
        assert -result["pnl"] <= size.risk_amount + 1e-9
        assert -result["pnl"] > 0

    def test_sell_side(self):
        info = get_symbol_info("XAUUSD.s")
        size = calculate_position_size(10_000, 2.0, 2000.0, 2005.0, info)
        assert size.lot_size == pytest.approx(0.4)
        result = calculate_potential_pnl(size.lot_size, 2000.0, 2005.0, "SELL", info)
        assert result["pnl"] == pytest.approx(-200.0)


class TestTradeParams:
    def test_valid_buy(self):
        assert validate_trade_params("BUY", 100, 99, 102) == []

    def test_wrong_sides_reported(self):
        errors = validate_trade_params("SELL", 100, 99, 101)
        assert "Stop loss must be above entry price for SELL orders" in errors
        assert "Take profit must be above" not in " ".join(errors)
        assert len(errors) == 3

    def test_potential_pnl(self):
        pnl = calculate_potential_pnl(0.5, 2000.0, 2010.0, "BUY", get_symbol_info("XAUUSD.s"))
        assert pnl["pnl"] == pytest.approx(500.0)
        assert pnl["pips"] == pytest.approx(100.0)
        assert pnl["percentage"] == pytest.approx(0.5)

    def test_max_lot_by_margin(self):
        # margin per lot = 100 × 2000 / 100 = 2000
        lots = get_max_lot_size_by_margin(5000, get_symbol_info("XAUUSD.s"), 2000.0, 100)
        assert lots == pytest.approx(2.5)

    def test_breakeven_price_includes_costs(self):
        price = calculate_breakeven_price(2000.0, "BUY", 0.3, 7.0, 1.0, get_symbol_info("XAUUSD.s"))
        # commission 14 over 100 units = 0.14
        assert price == pytest.approx(2000.44)


# ── Drawdown ─────────────────────────────────────────────────────────────


class TestDrawdownTracker:
    def test_tracks_peak_and_max_drawdown(self):
        tracker = DrawdownTracker(10_000)
        tracker.update(11_000)
        tracker.update(9_900)
        tracker.update(10_500)
        assert tracker.peak_equity == 11_000
        assert tracker.max_drawdown == pytest.approx(1_100)
        assert tracker.max_drawdown_pct == pytest.approx(10.0)
        assert tracker.drawdown_pct == pytest.approx(500 / 11_000 * 100)

    def test_rejects_non_positive_equity(self):
        with pytest.raises(ValueError, match="initial_equity"):
            DrawdownTracker(0)


class TestDailyDrawdown:
    def _at(self, day, hour):
        return datetime(2025, 3, day, hour, tzinfo=timezone.utc)

    def test_locks_for_rest_of_day(self):
        tracker = DailyDrawdownTracker(6.0)
        assert tracker.can_trade(self._at(5, 9), 10_000)
        assert not tracker.can_trade(self._at(5, 10), 9_400)
        assert tracker.is_locked
        assert tracker.days_locked_out == 1
        # Recovery the same day does not unlock
        assert not tracker.can_trade(self._at(5, 11), 10_000)

    def test_new_day_resets(self):
        tracker = DailyDrawdownTracker(6.0)
        tracker.can_trade(self._at(5, 9), 10_000)
        tracker.can_trade(self._at(5, 10), 9_000)
        assert tracker.can_trade(self._at(6, 0), 9_000)
        assert tracker.starting_balance == 9_000
        assert tracker.days_locked_out == 1

    def test_below_limit_keeps_trading(self):
        tracker = DailyDrawdownTracker(6.0)
        tracker.can_trade(self._at(5, 9), 10_000)
        assert tracker.can_trade(self._at(5, 10), 9_500)
        assert tracker.daily_drawdown_pct(9_500) == pytest.approx(5.0)


# ── Breakeven ────────────────────────────────────────────────────────────


class TestBreakevenStop:
    def test_buy_moves_once_at_trigger(self):
        be = BreakevenStop(100.0, 99.0, "BUY")
        assert be.update(100.5) is None
        assert be.update(101.0) == pytest.approx(100.0)
        assert be.update(102.0) is None
        assert be.moved

    def test_sell_with_buffer(self):
        be = BreakevenStop(100.0, 101.0, "SELL", trigger_r=1.5, buffer=0.2)
        assert be.update(99.0) is None
        assert be.update(98.5) == pytest.approx(99.8)

    def test_never_loosens(self):
        be = BreakevenStop(100.0, 99.0, "BUY", buffer=-2.0)
        assert be.update(101.0) is None
        assert be.current_sl == 99.0

    def test_rejects_non_positive_trigger(self):
        with pytest.raises(ValueError, match="trigger_r"):
            BreakevenStop(100.0, 99.0, "BUY", trigger_r=0)
