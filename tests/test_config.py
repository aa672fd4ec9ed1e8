"""Tests for smctrader.config and strategy profiles."""

import dataclasses
from datetime import datetime, timezone

import pytest

from smctrader.config import BacktestConfig, load_backtest_config
from smctrader.strategy.profiles import (
    STRATEGY_PROFILES,
    get_optimal_profile_for_symbol,
    get_profile,
    get_profiles_by_tier,
    get_recommended_profile,
    get_symbol_timeframes,
    validate_profile,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure backtest env vars are cleared between tests."""
    for var in [
        "BACKTEST_SYMBOL",
        "BACKTEST_STRATEGY",
        "BACKTEST_START",
        "BACKTEST_END",
        "BACKTEST_INITIAL_BALANCE",
        "BACKTEST_RISK_PERCENT",
        "USE_KILL_ZONES",
        "KILL_ZONES",
        "REQUIRE_OTE",
        "MIN_OB_SCORE",
        "FIXED_RR",
        "MAX_SL_PIPS",
        "MAX_DAILY_DRAWDOWN_PCT",
        "REQUIRE_CONFIRMATION",
        "CONFIRMATION_TYPE",
        "ENABLE_BREAKEVEN",
        "SL_TP_TIE_BREAK",
        "LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_env_file(tmp_path):
    # Non-existent path so load_dotenv doesn't pick up a real .env file
    return str(tmp_path / "missing.env")


def _set_required(monkeypatch):
    monkeypatch.setenv("BACKTEST_SYMBOL", "XAUUSD.s")
    monkeypatch.setenv("BACKTEST_STRATEGY", "ORDER_BLOCK")


class TestLoadBacktestConfig:
    def test_loads_required_vars(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        cfg = load_backtest_config(no_env_file)
        assert cfg.symbol == "XAUUSD.s"
        assert cfg.strategy == "ORDER_BLOCK"

    def test_defaults(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        cfg = load_backtest_config(no_env_file)
        assert cfg.initial_balance == 10_000.0
        assert cfg.risk_percent == 1.0
        assert cfg.max_daily_drawdown_percent == 6.0
        assert cfg.rr_mode == "structure"
        assert cfg.fixed_rr is None
        assert cfg.use_kill_zones is False
        assert cfg.confirmation_type == "none"
        assert cfg.sl_tp_tie_break == "sl_first"
        assert cfg.log_level == "INFO"

    def test_missing_var(self, monkeypatch, no_env_file):
        monkeypatch.setenv("BACKTEST_SYMBOL", "XAUUSD.s")
        with pytest.raises(ValueError, match="BACKTEST_STRATEGY"):
            load_backtest_config(no_env_file)

    def test_overrides_satisfy_required(self, no_env_file):
        cfg = load_backtest_config(no_env_file, symbol="BTCUSD", strategy="BOS")
        assert cfg.symbol == "BTCUSD"
        assert cfg.strategy == "BOS"

    def test_overrides_take_precedence(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        monkeypatch.setenv("BACKTEST_RISK_PERCENT", "2.0")
        cfg = load_backtest_config(no_env_file, risk_percent=0.5)
        assert cfg.risk_percent == 0.5

    def test_fixed_rr_selects_fixed_mode(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        monkeypatch.setenv("FIXED_RR", "2.5")
        cfg = load_backtest_config(no_env_file)
        assert cfg.rr_mode == "fixed"
        assert cfg.fixed_rr == 2.5

    def test_parses_flags_lists_and_dates(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        monkeypatch.setenv("USE_KILL_ZONES", "true")
        monkeypatch.setenv("KILL_ZONES", "LONDON_OPEN, NY_OPEN")
        monkeypatch.setenv("ENABLE_BREAKEVEN", "1")
        monkeypatch.setenv("BACKTEST_START", "2025-01-01")
        monkeypatch.setenv("BACKTEST_END", "2025-02-01T00:00:00+00:00")
        cfg = load_backtest_config(no_env_file)
        assert cfg.use_kill_zones is True
        assert cfg.kill_zones == ("LONDON_OPEN", "NY_OPEN")
        assert cfg.enable_breakeven is True
        assert cfg.start_date == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert cfg.end_date == datetime(2025, 2, 1, tzinfo=timezone.utc)

    def test_invalid_values_rejected(self, monkeypatch, no_env_file):
        _set_required(monkeypatch)
        monkeypatch.setenv("MIN_OB_SCORE", "40")
        with pytest.raises(ValueError, match="min_ob_score"):
            load_backtest_config(no_env_file)


class TestBacktestConfig:
    def test_valid(self):
        cfg = BacktestConfig(strategy="ORDER_BLOCK", symbol="XAUUSD.s")
        assert cfg.validate() == []

    def test_reports_all_errors(self):
        with pytest.raises(ValueError) as exc_info:
            BacktestConfig(
                strategy="NOPE", symbol="XAUUSD.s", fixed_rr=6, min_ob_score=40,
                sl_tp_tie_break="coin_flip",
            )
        message = str(exc_info.value)
        assert message.startswith("Invalid backtest config")
        assert "unknown strategy 'NOPE'" in message
        assert "fixed_rr" in message
        assert "min_ob_score" in message
        assert "sl_tp_tie_break" in message

    def test_unknown_strategy_in_set(self):
        with pytest.raises(ValueError, match="unknown strategy 'MISSING'"):
            BacktestConfig(strategy="BOS", symbol="BTCUSD", strategies=("BOS", "MISSING"))

    def test_unknown_kill_zone(self):
        with pytest.raises(ValueError, match="kill zone"):
            BacktestConfig(strategy="BOS", symbol="BTCUSD", kill_zones=("TOKYO",))

    def test_start_after_end(self):
        with pytest.raises(ValueError, match="start_date"):
            BacktestConfig(
                strategy="BOS", symbol="BTCUSD",
                start_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
                end_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            )

    def test_from_profile(self):
        cfg = BacktestConfig.from_profile(get_profile("XAU_OPTIMAL"), "XAUUSD.s")
        assert cfg.strategy == "ORDER_BLOCK"
        assert cfg.rr_mode == "fixed"
        assert cfg.fixed_rr == 2
        assert cfg.atr_multiplier == 1.5
        assert cfg.min_ob_score == 70
        assert cfg.max_daily_drawdown_percent == 8
        assert cfg.require_confirmation is False

    def test_from_profile_with_confirmation_and_overrides(self):
        cfg = BacktestConfig.from_profile(
            get_profile("AGGRESSIVE_ENGULF"), "BTCUSD", initial_balance=5_000,
        )
        assert cfg.require_confirmation is True
        assert cfg.confirmation_type == "engulf"
        assert cfg.initial_balance == 5_000


# ── Profiles ─────────────────────────────────────────────────────────────


class TestProfiles:
    def test_all_profiles_valid(self):
        for key, profile in STRATEGY_PROFILES.items():
            assert validate_profile(profile) == [], key

    def test_validate_reports_ranges(self):
        bad = dataclasses.replace(
            get_profile("SAFE_KZ"), min_ob_score=30, risk_reward=8, max_concurrent_trades=0,
        )
        errors = validate_profile(bad)
        assert len(errors) == 3
        assert "risk_reward must be between 1 and 5" in errors

    def test_unknown_profile(self):
        with pytest.raises(KeyError, match="Unknown profile 'NOPE'"):
            get_profile("NOPE")

    def test_recommended_and_optimal(self):
        assert get_recommended_profile("BTCUSD").name == "BTC Optimal"
        assert get_recommended_profile("ETHUSD").name == "Balanced Strong"
        assert get_optimal_profile_for_symbol("XAGUSD.s").min_ob_score == 65
        assert get_optimal_profile_for_symbol("ETHUSD").name == "Universal NoConf"

    def test_tiers(self):
        names = {p.name for p in get_profiles_by_tier("conservative")}
        assert names == {"Safe Kill Zones", "Safe Strict"}
        assert [p.name for p in get_profiles_by_tier("balanced")] == ["Balanced Strong"]

    def test_symbol_timeframes(self):
        assert get_symbol_timeframes("BTCUSD") == ("H4", "M30", "M5")
        assert get_symbol_timeframes("ETHUSD") == ("H4", "H1", "M15")
