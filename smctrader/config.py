"""SMC Trader — backtest configuration.

Loads .env variables into a typed config object.
Validates every field on construction and reports all problems at once.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from smctrader.analysis.confirmation import CONFIRMATION_TYPES
from smctrader.analysis.kill_zones import DEFAULT_KILL_ZONES, KILL_ZONES
from smctrader.analysis.order_blocks import MIN_MOVE_MULTIPLIER
from smctrader.strategy.profiles import StrategyProfile
from smctrader.strategy.registry import STRATEGY_REGISTRY


_REQUIRED_VARS = [
    "BACKTEST_SYMBOL",
    "BACKTEST_STRATEGY",
]

TIE_BREAK_POLICIES = ("sl_first", "tp_first")
RR_MODES = ("structure", "fixed")


@dataclass(frozen=True)
class BacktestConfig:
    """Typed configuration for one backtest run."""

    strategy: str
    symbol: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    initial_balance: float = 10_000.0
    risk_percent: float = 1.0
    # Non-empty: best signal of these strategies instead of ``strategy`` alone
    strategies: tuple[str, ...] = ()
    use_kill_zones: bool = False
    kill_zones: tuple[str, ...] = DEFAULT_KILL_ZONES
    require_liquidity_sweep: bool = False
    require_premium_discount: bool = False
    require_ote: bool = False
    ote_threshold: float = 0.618
    min_ob_score: Optional[float] = None
    atr_multiplier: float = MIN_MOVE_MULTIPLIER
    rr_mode: str = "structure"
    fixed_rr: Optional[float] = None
    max_sl_pips: Optional[float] = None
    max_daily_drawdown_percent: float = 6.0
    require_confirmation: bool = False
    confirmation_type: str = "none"
    enable_breakeven: bool = False
    breakeven_trigger_r: float = 1.0
    be_buffer_pips: float = 0.0
    sl_tp_tie_break: str = "sl_first"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        errors = self.validate()
        if errors:
            raise ValueError("Invalid backtest config: " + "; ".join(errors))

    def validate(self) -> list[str]:
        errors: list[str] = []
        for name in (self.strategy, *self.strategies):
            if name not in STRATEGY_REGISTRY:
                errors.append(f"unknown strategy '{name}'")
        unknown_zones = [z for z in self.kill_zones if z not in KILL_ZONES]
        if unknown_zones:
            errors.append(f"unknown kill zone(s): {', '.join(unknown_zones)}")
        if self.initial_balance <= 0:
            errors.append(f"initial_balance must be positive, got {self.initial_balance}")
        if not 0 < self.risk_percent <= 100:
            errors.append(f"risk_percent must be in (0, 100], got {self.risk_percent}")
        if self.min_ob_score is not None and not 50 <= self.min_ob_score <= 100:
            errors.append(f"min_ob_score must be between 50 and 100, got {self.min_ob_score}")
        if self.fixed_rr is not None and not 1 <= self.fixed_rr <= 5:
            errors.append(f"fixed_rr must be between 1 and 5, got {self.fixed_rr}")
        if self.rr_mode not in RR_MODES:
            errors.append(f"rr_mode must be one of {', '.join(RR_MODES)}, got '{self.rr_mode}'")
        if self.max_sl_pips is not None and self.max_sl_pips <= 0:
            errors.append(f"max_sl_pips must be positive, got {self.max_sl_pips}")
        if self.max_daily_drawdown_percent <= 0:
            errors.append(
                f"max_daily_drawdown_percent must be positive, got {self.max_daily_drawdown_percent}"
            )
        if self.atr_multiplier <= 0:
            errors.append(f"atr_multiplier must be positive, got {self.atr_multiplier}")
        if self.confirmation_type not in CONFIRMATION_TYPES:
            errors.append(f"unknown confirmation_type '{self.confirmation_type}'")
        if self.breakeven_trigger_r <= 0:
            errors.append(f"breakeven_trigger_r must be positive, got {self.breakeven_trigger_r}")
        if self.sl_tp_tie_break not in TIE_BREAK_POLICIES:
            errors.append(
                f"sl_tp_tie_break must be one of {', '.join(TIE_BREAK_POLICIES)}, "
                f"got '{self.sl_tp_tie_break}'"
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors.append("start_date must not be after end_date")
        return errors

    @classmethod
    def from_profile(
        cls, profile: StrategyProfile, symbol: str, **overrides,
    ) -> "BacktestConfig":
        """Config running *profile*'s settings on *symbol*.

        The profile's risk:reward becomes a fixed target multiple.
        """
        settings = dict(
            strategy=profile.strategy,
            symbol=symbol,
            risk_percent=profile.risk_percent,
            use_kill_zones=profile.use_kill_zones,
            kill_zones=profile.kill_zones or DEFAULT_KILL_ZONES,
            min_ob_score=profile.min_ob_score,
            atr_multiplier=profile.atr_multiplier,
            rr_mode="fixed",
            fixed_rr=profile.risk_reward,
            max_daily_drawdown_percent=profile.max_daily_drawdown,
            require_confirmation=profile.confirmation_type != "none",
            confirmation_type=profile.confirmation_type,
        )
        settings.update(overrides)
        return cls(**settings)


# ── Environment loading ──────────────────────────────────────────────────


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    return float(value) if value else None


def _env_date(name: str) -> Optional[datetime]:
    value = os.environ.get(name)
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _env_list(name: str) -> Optional[tuple[str, ...]]:
    value = os.environ.get(name)
    if not value:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_backtest_config(env_path: str | None = None, **overrides) -> BacktestConfig:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or listing every invalid setting.
    Keyword *overrides* take precedence over the environment.
    """
    load_dotenv(dotenv_path=env_path)

    provided = {
        "BACKTEST_SYMBOL": overrides.get("symbol"),
        "BACKTEST_STRATEGY": overrides.get("strategy"),
    }
    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v) and not provided[v]]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    settings: dict = dict(
        symbol=os.environ.get("BACKTEST_SYMBOL"),
        strategy=os.environ.get("BACKTEST_STRATEGY"),
        start_date=_env_date("BACKTEST_START"),
        end_date=_env_date("BACKTEST_END"),
        initial_balance=float(os.environ.get("BACKTEST_INITIAL_BALANCE", "10000")),
        risk_percent=float(os.environ.get("BACKTEST_RISK_PERCENT", "1.0")),
        use_kill_zones=_env_bool("USE_KILL_ZONES"),
        kill_zones=_env_list("KILL_ZONES") or DEFAULT_KILL_ZONES,
        require_ote=_env_bool("REQUIRE_OTE"),
        min_ob_score=_env_float("MIN_OB_SCORE"),
        fixed_rr=_env_float("FIXED_RR"),
        max_sl_pips=_env_float("MAX_SL_PIPS"),
        max_daily_drawdown_percent=float(os.environ.get("MAX_DAILY_DRAWDOWN_PCT", "6.0")),
        require_confirmation=_env_bool("REQUIRE_CONFIRMATION"),
        confirmation_type=os.environ.get("CONFIRMATION_TYPE", "none"),
        enable_breakeven=_env_bool("ENABLE_BREAKEVEN"),
        sl_tp_tie_break=os.environ.get("SL_TP_TIE_BREAK", "sl_first"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if settings["fixed_rr"] is not None:
        settings["rr_mode"] = "fixed"
    settings.update(overrides)
    return BacktestConfig(**settings)
