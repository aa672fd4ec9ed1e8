"""Strategy profiles — named, pre-tuned backtest configurations.

A profile bundles the strategy, its filters and the risk settings that
worked well together for a symbol.  ``BacktestConfig.from_profile`` turns
one into a runnable configuration.
"""

from dataclasses import dataclass, field
from typing import Literal

from smctrader.analysis.confirmation import ConfirmationType
from smctrader.analysis.kill_zones import DEFAULT_KILL_ZONES

RiskTier = Literal["aggressive", "balanced", "conservative"]


@dataclass(frozen=True)
class StrategyProfile:
    name: str
    description: str
    risk_tier: RiskTier
    strategy: str
    min_ob_score: float
    use_kill_zones: bool
    kill_zones: tuple[str, ...]
    max_daily_drawdown: float
    confirmation_type: ConfirmationType
    risk_reward: float
    risk_percent: float
    atr_multiplier: float
    max_concurrent_trades: int
    recommended_symbols: tuple[str, ...] = field(default_factory=tuple)


def _order_block_profile(name: str, description: str, **overrides) -> StrategyProfile:
    settings = dict(
        risk_tier="aggressive",
        strategy="ORDER_BLOCK",
        min_ob_score=70,
        use_kill_zones=False,
        kill_zones=(),
        max_daily_drawdown=8,
        confirmation_type="none",
        risk_reward=2,
        risk_percent=2,
        atr_multiplier=1.0,
        max_concurrent_trades=3,
    )
    settings.update(overrides)
    return StrategyProfile(name=name, description=description, **settings)


STRATEGY_PROFILES: dict[str, StrategyProfile] = {
    "BTC_OPTIMAL": _order_block_profile(
        "BTC Optimal", "ATR0.8|RR1.5|NoConf - tuned for BTCUSD",
        risk_reward=1.5, atr_multiplier=0.8, recommended_symbols=("BTCUSD",),
    ),
    "XAU_OPTIMAL": _order_block_profile(
        "Gold Optimal", "ATR1.5|RR2|NoConf - tuned for XAUUSD",
        atr_multiplier=1.5, recommended_symbols=("XAUUSD.s",),
    ),
    "XAG_OPTIMAL": _order_block_profile(
        "Silver Optimal", "OB65|RR2|NoConf - tuned for XAGUSD",
        min_ob_score=65, recommended_symbols=("XAGUSD.s",),
    ),
    "UNIVERSAL_NOCONF": _order_block_profile(
        "Universal NoConf", "OB70|All|DD8%|NoConf|RR2 - works across all symbols",
        recommended_symbols=("BTCUSD", "XAUUSD.s", "XAGUSD.s"),
    ),
    "UNIVERSAL_RR15": _order_block_profile(
        "Universal RR1.5", "OB70|All|DD8%|NoConf|RR1.5 - higher win rate, smaller targets",
        risk_reward=1.5, recommended_symbols=("BTCUSD", "XAUUSD.s", "XAGUSD.s"),
    ),
    "SAFE_KZ": _order_block_profile(
        "Safe Kill Zones", "OB70|KZ|DD6%|NoConf - lower drawdown for prop firms",
        risk_tier="conservative", use_kill_zones=True, kill_zones=DEFAULT_KILL_ZONES,
        max_daily_drawdown=6, risk_percent=1, max_concurrent_trades=1,
        recommended_symbols=("XAUUSD.s", "XAGUSD.s"),
    ),
    "SAFE_STRICT": _order_block_profile(
        "Safe Strict", "OB65|KZ|DD5%|NoConf - very conservative for challenges",
        risk_tier="conservative", min_ob_score=65, use_kill_zones=True,
        kill_zones=DEFAULT_KILL_ZONES, max_daily_drawdown=5, risk_percent=1,
        max_concurrent_trades=1, recommended_symbols=("XAUUSD.s", "XAGUSD.s"),
    ),
    "AGGRESSIVE_ENGULF": _order_block_profile(
        "Aggressive Engulfing", "OB70|All|DD8%|Engulf",
        confirmation_type="engulf", recommended_symbols=("BTCUSD", "XAUUSD.s"),
    ),
    "BALANCED_STRONG": _order_block_profile(
        "Balanced Strong", "OB70|KZ|DD6%|Strong",
        risk_tier="balanced", use_kill_zones=True, kill_zones=DEFAULT_KILL_ZONES,
        max_daily_drawdown=6, confirmation_type="strong", risk_percent=1.5,
        max_concurrent_trades=2, recommended_symbols=("XAUUSD.s", "XAGUSD.s"),
    ),
}

SYMBOL_RECOMMENDED_PROFILES: dict[str, tuple[str, ...]] = {
    "BTCUSD": ("BTC_OPTIMAL", "UNIVERSAL_RR15", "UNIVERSAL_NOCONF"),
    "XAUUSD.s": ("XAU_OPTIMAL", "UNIVERSAL_NOCONF", "SAFE_KZ"),
    "XAGUSD.s": ("XAG_OPTIMAL", "UNIVERSAL_NOCONF", "SAFE_KZ"),
}

# (htf, mtf, ltf) per symbol
SYMBOL_TIMEFRAMES: dict[str, tuple[str, str, str]] = {
    "BTCUSD": ("H4", "M30", "M5"),
    "XAUUSD.s": ("H1", "M15", "M1"),
    "XAGUSD.s": ("H1", "M15", "M1"),
}
DEFAULT_TIMEFRAMES = ("H4", "H1", "M15")

_OPTIMAL_PROFILES = {
    "BTCUSD": "BTC_OPTIMAL",
    "XAUUSD.s": "XAU_OPTIMAL",
    "XAGUSD.s": "XAG_OPTIMAL",
}


def get_profile(name: str) -> StrategyProfile:
    """Look up a profile by key.

    Raises ``KeyError`` if the profile name is not registered.
    """
    if name not in STRATEGY_PROFILES:
        raise KeyError(
            f"Unknown profile '{name}'. "
            f"Available: {', '.join(STRATEGY_PROFILES.keys())}"
        )
    return STRATEGY_PROFILES[name]


def get_optimal_profile_for_symbol(symbol: str) -> StrategyProfile:
    return STRATEGY_PROFILES[_OPTIMAL_PROFILES.get(symbol, "UNIVERSAL_NOCONF")]


def get_recommended_profile(symbol: str) -> StrategyProfile:
    recommended = SYMBOL_RECOMMENDED_PROFILES.get(symbol)
    if recommended:
        return STRATEGY_PROFILES[recommended[0]]
    return STRATEGY_PROFILES["BALANCED_STRONG"]


def get_profiles_by_tier(tier: RiskTier) -> list[StrategyProfile]:
    return [p for p in STRATEGY_PROFILES.values() if p.risk_tier == tier]


def get_symbol_timeframes(symbol: str) -> tuple[str, str, str]:
    return SYMBOL_TIMEFRAMES.get(symbol, DEFAULT_TIMEFRAMES)


def validate_profile(profile: StrategyProfile) -> list[str]:
    """Return every range violation in *profile*; empty when valid."""
    errors: list[str] = []
    if not 50 <= profile.min_ob_score <= 100:
        errors.append("min_ob_score must be between 50 and 100")
    if not 1 <= profile.max_daily_drawdown <= 20:
        errors.append("max_daily_drawdown must be between 1% and 20%")
    if not 1 <= profile.risk_reward <= 5:
        errors.append("risk_reward must be between 1 and 5")
    if not 0.1 <= profile.risk_percent <= 5:
        errors.append("risk_percent must be between 0.1% and 5%")
    if not 1 <= profile.max_concurrent_trades <= 10:
        errors.append("max_concurrent_trades must be between 1 and 10")
    return errors
