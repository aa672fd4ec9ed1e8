"""Strategy registry — maps strategy names to classes.

Used by the backtest simulator to instantiate the configured strategy and
to pick the best signal when several strategies are enabled.  Registration
order is significant: it is the evaluation order, and ties on confidence
go to the earlier strategy.
"""

import dataclasses
import logging
from typing import Iterable, Optional

from smctrader.strategy.base import BaseStrategy, StrategyContext, StrategySignal
from smctrader.strategy.bos import BOSStrategy
from smctrader.strategy.breaker_block import BreakerBlockStrategy
from smctrader.strategy.fbo_classic import FBOClassicStrategy
from smctrader.strategy.fbo_structure import FBOStructureStrategy
from smctrader.strategy.fbo_sweep import FBOSweepStrategy
from smctrader.strategy.fvg_entry import FVGEntryStrategy
from smctrader.strategy.judas_swing import JudasSwingStrategy
from smctrader.strategy.liquidity_sweep import LiquiditySweepStrategy
from smctrader.strategy.m1_trend import M1TrendStrategy
from smctrader.strategy.order_block import OrderBlockStrategy
from smctrader.strategy.pdh_pdl_sweep import PDHPDLSweepStrategy

logger = logging.getLogger("smctrader.strategy.registry")


STRATEGY_REGISTRY: dict[str, type[BaseStrategy]] = {
    "ORDER_BLOCK": OrderBlockStrategy,
    "LIQUIDITY_SWEEP": LiquiditySweepStrategy,
    "BOS": BOSStrategy,
    "FBO_CLASSIC": FBOClassicStrategy,
    "FBO_SWEEP": FBOSweepStrategy,
    "FBO_STRUCTURE": FBOStructureStrategy,
    "M1_TREND": M1TrendStrategy,
    "JUDAS_SWING": JudasSwingStrategy,
    "FVG_ENTRY": FVGEntryStrategy,
    "BREAKER_BLOCK": BreakerBlockStrategy,
    "PDH_PDL_SWEEP": PDHPDLSweepStrategy,
}

DEFAULT_ENABLED: tuple[str, ...] = ("ORDER_BLOCK", "LIQUIDITY_SWEEP", "BOS")


def get_strategy(name: str) -> BaseStrategy:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]()


def _tagged(name: str, signal: Optional[StrategySignal]) -> Optional[StrategySignal]:
    if signal is None:
        return None
    return dataclasses.replace(signal, strategy=name)


def run_strategy(name: str, context: StrategyContext) -> Optional[StrategySignal]:
    """Evaluate one strategy.  Exceptions propagate to the caller."""
    return _tagged(name, get_strategy(name).evaluate(context))


def _evaluate_each(
    context: StrategyContext, enabled: Iterable[str],
) -> list[tuple[str, StrategySignal]]:
    """Signals from every enabled strategy, in the order given.

    Unknown names are skipped.  A strategy that raises is logged and
    treated as having no signal.
    """
    results: list[tuple[str, StrategySignal]] = []
    for name in enabled:
        cls = STRATEGY_REGISTRY.get(name)
        if cls is None:
            logger.warning("Skipping unknown strategy %s", name)
            continue
        try:
            signal = cls().evaluate(context)
        except Exception:
            logger.exception("Strategy %s failed", name)
            continue
        if signal is not None:
            results.append((name, _tagged(name, signal)))
    return results


def select_best_signal(
    candidates: Iterable[tuple[str, StrategySignal]],
) -> Optional[StrategySignal]:
    """Highest confidence wins; on a tie the earlier candidate is kept."""
    best: Optional[StrategySignal] = None
    for name, signal in candidates:
        if best is None or signal.confidence > best.confidence:
            best = _tagged(name, signal)
    return best


def run_all_strategies(
    context: StrategyContext, enabled: Iterable[str] = DEFAULT_ENABLED,
) -> Optional[StrategySignal]:
    return select_best_signal(_evaluate_each(context, enabled))


def run_first_enabled(
    context: StrategyContext, enabled: Iterable[str] = DEFAULT_ENABLED,
) -> Optional[StrategySignal]:
    """First enabled strategy that fires, in the order given."""
    for name in enabled:
        cls = STRATEGY_REGISTRY.get(name)
        if cls is None:
            continue
        try:
            signal = cls().evaluate(context)
        except Exception:
            logger.exception("Strategy %s failed", name)
            continue
        if signal is not None:
            return _tagged(name, signal)
    return None


def get_all_signals(
    context: StrategyContext, enabled: Iterable[str] = DEFAULT_ENABLED,
) -> list[StrategySignal]:
    """Every signal produced, highest confidence first."""
    signals = [signal for _, signal in _evaluate_each(context, enabled)]
    return sorted(signals, key=lambda s: s.confidence, reverse=True)
