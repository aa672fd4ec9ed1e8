"""Strategy contract, shared signal types and helpers.

Every strategy reads a ``StrategyContext`` and proposes at most one
``StrategySignal``.  ``BaseStrategy.evaluate`` runs the strategy's own
``analyze`` and then the shared quality gate, so a strategy never has to
re-implement R:R, confidence or side checks.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, Optional, Protocol, runtime_checkable

from smctrader.analysis.models import Candle, MultiTimeframeAnalysis

logger = logging.getLogger("smctrader.strategy")

Direction = Literal["BUY", "SELL"]

DEFAULT_MIN_RR = 1.5
DEFAULT_MIN_CONFIDENCE = 0.6


@dataclass(frozen=True)
class StrategySignal:
    """A proposed trade.  ``strategy`` is filled in by the registry."""

    direction: Direction
    entry_price: float
    stop_loss: float
    take_profit: float
    confidence: float
    reason: str
    strategy: str = ""

    @property
    def risk_reward(self) -> float:
        return calculate_risk_reward(self.entry_price, self.stop_loss, self.take_profit)


@dataclass(frozen=True)
class StrategyContext:
    """Everything a strategy may look at for one evaluation."""

    symbol: str
    current_price: float
    bid: float
    ask: float
    analysis: MultiTimeframeAnalysis
    htf_candles: list[Candle]
    mtf_candles: list[Candle]
    ltf_candles: list[Candle]
    min_ob_score: float = 0.0


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all trading strategies must satisfy."""

    name: str

    def evaluate(self, context: StrategyContext) -> Optional[StrategySignal]:
        """Return a validated signal or None."""
        ...


class BaseStrategy(ABC):
    """Shared plumbing for the SMC strategies.

    Subclasses set ``name`` and ``description`` and implement
    :meth:`analyze`.  Thresholds for the quality gate can be raised per
    strategy through ``min_rr`` and ``min_confidence``.
    """

    name: str = ""
    description: str = ""
    min_rr: float = DEFAULT_MIN_RR
    min_confidence: float = DEFAULT_MIN_CONFIDENCE

    @abstractmethod
    def analyze(self, context: StrategyContext) -> Optional[StrategySignal]:
        """Inspect the context and propose a raw, unvalidated signal."""

    def is_acceptable(self, signal: Optional[StrategySignal]) -> bool:
        return signal is not None and validate_signal(
            signal, self.min_rr, self.min_confidence
        )

    def evaluate(self, context: StrategyContext) -> Optional[StrategySignal]:
        signal = self.analyze(context)
        if signal is None:
            return None
        if not self.is_acceptable(signal):
            logger.debug(
                "%s: rejected %s signal (rr=%.2f conf=%.2f)",
                self.name, signal.direction, signal.risk_reward, signal.confidence,
            )
            return None
        return signal


# ── Helpers ──────────────────────────────────────────────────────────────


def calculate_risk_reward(entry: float, stop: float, target: float) -> float:
    """Reward-to-risk ratio; 0 when the stop sits at entry."""
    risk = abs(entry - stop)
    if risk == 0:
        return 0.0
    return abs(target - entry) / risk


def validate_signal(
    signal: StrategySignal,
    min_rr: float = DEFAULT_MIN_RR,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> bool:
    """Quality gate applied to every signal before it is accepted.

    Checks, in order: R:R at least *min_rr*, confidence at least
    *min_confidence*, stop and target on the correct side of entry.
    """
    if signal.risk_reward < min_rr:
        return False
    if signal.confidence < min_confidence:
        return False
    if signal.direction == "BUY":
        return signal.stop_loss < signal.entry_price < signal.take_profit
    return signal.take_profit < signal.entry_price < signal.stop_loss


def get_entry_price(context: StrategyContext, direction: str) -> float:
    """Buys fill at the ask, sells at the bid."""
    return context.ask if direction == "BUY" else context.bid


def add_stop_loss_buffer(stop: float, direction: str, buffer: float) -> float:
    """Push *stop* further from entry by *buffer* (a price distance)."""
    return stop - buffer if direction == "BUY" else stop + buffer


def signed(direction: str) -> int:
    """+1 for buys, -1 for sells; lets one code path serve both sides."""
    return 1 if direction == "BUY" else -1


def polarity(direction: str) -> str:
    return "BULLISH" if direction == "BUY" else "BEARISH"


def direction_for_bias(bias: str) -> Optional[Direction]:
    if bias == "BULLISH":
        return "BUY"
    if bias == "BEARISH":
        return "SELL"
    return None


def in_discount_or_premium(context: StrategyContext, direction: str) -> bool:
    """Price in the discount half for buys, the premium half for sells."""
    pd = context.analysis.premium_discount
    if pd is None:
        return False
    price = context.current_price
    if direction == "BUY":
        return pd.discount.low <= price <= pd.discount.high
    return pd.premium.low <= price <= pd.premium.high


def has_choch(context: StrategyContext, direction: str) -> bool:
    choch = context.analysis.recent_choch
    return choch is not None and choch.type == polarity(direction)


def has_sweep_reversal(context: StrategyContext, direction: str) -> bool:
    """A recent stop hunt of the liquidity on the opposite side of the trade."""
    sweep = context.analysis.recent_liquidity_sweep
    wanted = "LOW" if direction == "BUY" else "HIGH"
    return sweep is not None and sweep.is_reversal and sweep.zone.type == wanted


def near_block(blocks, price: float, direction: str) -> bool:
    """Price inside a block of the trade's polarity, allowing 2 % past its far edge."""
    for ob in blocks:
        if direction == "BUY" and ob.type == "BULLISH" and ob.low <= price <= ob.high * 1.02:
            return True
        if direction == "SELL" and ob.type == "BEARISH" and ob.low * 0.98 <= price <= ob.high:
            return True
    return False


def build_signal(
    direction: Direction,
    entry: float,
    stop: float,
    target: float,
    confidence: float,
    reasons: list[str],
) -> StrategySignal:
    """Assemble a signal with confidence capped at 1 and the R:R appended."""
    rr = calculate_risk_reward(entry, stop, target)
    return StrategySignal(
        direction=direction,
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        confidence=min(confidence, 1.0),
        reason=" + ".join([*reasons, f"RR: {rr:.2f}"]),
    )
