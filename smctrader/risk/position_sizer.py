"""Position sizing — pure math, no I/O.

Calculates the lot size to trade from account balance, risk percentage,
stop distance and the instrument's contract specification.
"""

import dataclasses
import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SymbolInfo:
    """Contract specification for one instrument."""

    symbol: str
    pip_size: float
    contract_size: float
    min_volume: float
    max_volume: float
    volume_step: float
    tick_size: float
    tick_value: float
    digits: int = 2
    description: str = ""


@dataclass(frozen=True)
class PositionSize:
    lot_size: float
    risk_amount: float
    pip_risk: float
    pip_value: float
    was_clamped_to_min: bool = False


DEFAULT_SYMBOL = "XAUUSD.s"

DEFAULT_SYMBOL_INFO: dict[str, SymbolInfo] = {
    "XAUUSD.s": SymbolInfo(
        "XAUUSD.s", pip_size=0.1, contract_size=100, min_volume=0.01,
        max_volume=100, volume_step=0.01, tick_size=0.01, tick_value=1,
        digits=2, description="Gold vs US Dollar",
    ),
    "XAGUSD.s": SymbolInfo(
        "XAGUSD.s", pip_size=0.01, contract_size=5000, min_volume=0.01,
        max_volume=100, volume_step=0.01, tick_size=0.001, tick_value=1,
        digits=3, description="Silver vs US Dollar",
    ),
    "BTCUSD": SymbolInfo(
        "BTCUSD", pip_size=1, contract_size=1, min_volume=0.01,
        max_volume=10, volume_step=0.01, tick_size=0.01, tick_value=1,
        digits=2, description="Bitcoin vs US Dollar",
    ),
    "ETHUSD": SymbolInfo(
        "ETHUSD", pip_size=1, contract_size=1, min_volume=0.01,
        max_volume=100, volume_step=0.01, tick_size=0.1, tick_value=1,
        digits=2, description="Ethereum vs US Dollar",
    ),
}


def get_symbol_info(symbol: str, overrides: Optional[dict] = None) -> SymbolInfo:
    """Specification for *symbol*, falling back to XAUUSD.s when unknown.

    *overrides* replaces individual fields, e.g. ``{"max_volume": 5}``.
    """
    info = DEFAULT_SYMBOL_INFO.get(symbol)
    if info is None:
        info = dataclasses.replace(DEFAULT_SYMBOL_INFO[DEFAULT_SYMBOL], symbol=symbol)
    if overrides:
        info = dataclasses.replace(info, **overrides)
    return info


def pip_value_per_lot(info: SymbolInfo) -> float:
    """Account-currency value of a one-pip move on one lot.

    Matches realised P&L, which is ``price_diff × lots × contract_size``.
    """
    return info.pip_size * info.contract_size


def _floor_to_step(lots: float, step: float) -> float:
    # Round before flooring so 0.29999999 lots stays 0.30
    return math.floor(round(lots / step, 8)) * step


def calculate_position_size(
    balance: float,
    risk_percent: float,
    entry_price: float,
    stop_loss: float,
    symbol_info: SymbolInfo,
) -> PositionSize:
    """Lot size risking *risk_percent* of *balance* between entry and stop.

    Formula::

        risk_amount = balance × (risk_percent / 100)
        pip_risk    = |entry − stop| / pip_size
        lots        = risk_amount / (pip_risk × pip_value_per_lot)

    The result is floored to ``volume_step``, clamped to
    ``[min_volume, max_volume]`` and rounded to 2 decimals.  When the
    floored size falls below ``min_volume`` the trade risks more than
    requested; ``was_clamped_to_min`` flags it.  Otherwise a stop-out
    realises at most ``risk_amount``.

    Raises:
        ValueError: If balance or risk is non-positive, or the stop sits
            at the entry price.
    """
    if balance <= 0:
        raise ValueError(f"balance must be positive, got {balance}")
    if risk_percent <= 0:
        raise ValueError(f"risk_percent must be positive, got {risk_percent}")

    pip_risk = abs(entry_price - stop_loss) / symbol_info.pip_size
    if pip_risk == 0:
        raise ValueError("stop_loss must differ from entry_price")

    risk_amount = balance * (risk_percent / 100.0)
    pip_value = pip_value_per_lot(symbol_info)
    raw = risk_amount / (pip_risk * pip_value)

    lots = _floor_to_step(raw, symbol_info.volume_step)
    clamped_to_min = lots < symbol_info.min_volume
    lots = max(symbol_info.min_volume, min(lots, symbol_info.max_volume))

    return PositionSize(
        lot_size=round(lots, 2),
        risk_amount=risk_amount,
        pip_risk=pip_risk,
        pip_value=pip_value,
        was_clamped_to_min=clamped_to_min,
    )


def calculate_risk_reward(entry_price: float, stop_loss: float, take_profit: float) -> float:
    risk = abs(entry_price - stop_loss)
    if risk == 0:
        return 0.0
    return abs(take_profit - entry_price) / risk


def validate_trade_params(
    direction: str,
    entry_price: float,
    stop_loss: float,
    take_profit: float,
    min_rr: float = 1.5,
) -> list[str]:
    """Return every problem with the trade levels; empty when valid."""
    errors: list[str] = []
    if direction == "BUY":
        if stop_loss >= entry_price:
            errors.append("Stop loss must be below entry price for BUY orders")
        if take_profit <= entry_price:
            errors.append("Take profit must be above entry price for BUY orders")
    else:
        if stop_loss <= entry_price:
            errors.append("Stop loss must be above entry price for SELL orders")
        if take_profit >= entry_price:
            errors.append("Take profit must be below entry price for SELL orders")

    rr = calculate_risk_reward(entry_price, stop_loss, take_profit)
    if rr < min_rr:
        errors.append(f"Risk-reward ratio ({rr:.2f}) is below minimum ({min_rr})")
    return errors


def calculate_potential_pnl(
    lot_size: float,
    entry_price: float,
    exit_price: float,
    direction: str,
    symbol_info: SymbolInfo,
) -> dict[str, float]:
    """P&L in account currency, pips, and percent of the position's notional."""
    diff = exit_price - entry_price if direction == "BUY" else entry_price - exit_price
    pnl = diff * lot_size * symbol_info.contract_size
    notional = entry_price * lot_size * symbol_info.contract_size
    return {
        "pnl": round(pnl, 2),
        "pips": round(diff / symbol_info.pip_size, 1),
        "percentage": round(pnl / notional * 100, 2) if notional else 0.0,
    }


def get_max_lot_size_by_margin(
    free_margin: float,
    symbol_info: SymbolInfo,
    entry_price: float,
    leverage: float,
) -> float:
    margin_per_lot = symbol_info.contract_size * entry_price / leverage
    if margin_per_lot == 0:
        return symbol_info.min_volume
    lots = _floor_to_step(free_margin / margin_per_lot, symbol_info.volume_step)
    return max(symbol_info.min_volume, min(lots, symbol_info.max_volume))


def calculate_breakeven_price(
    entry_price: float,
    direction: str,
    spread: float,
    commission_per_lot: float,
    lot_size: float,
    symbol_info: SymbolInfo,
) -> float:
    """Price at which the trade nets zero after spread and round-trip commission."""
    commission = commission_per_lot * lot_size * 2
    commission_in_price = commission / (lot_size * symbol_info.contract_size)
    if direction == "BUY":
        return entry_price + spread + commission_in_price
    return entry_price - spread - commission_in_price


def get_symbol_pip_info(symbol: str) -> tuple[float, int]:
    """``(pip_size, pip_digits)`` inferred from the symbol name."""
    upper = symbol.upper()
    if "XAU" in upper or "GOLD" in upper:
        return 0.1, 1
    if "XAG" in upper or "SILVER" in upper:
        return 0.01, 2
    if "BTC" in upper:
        return 1.0, 0
    if "JPY" in upper:
        return 0.01, 2
    return 0.0001, 4
