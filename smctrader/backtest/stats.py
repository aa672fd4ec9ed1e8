"""Backtest statistics — pure functions for trade-series analysis."""

import math

import numpy as np

from smctrader.backtest.models import BacktestMetrics, BacktestTrade, DrawdownPoint, EquityPoint


def calculate_metrics(
    trades: list[BacktestTrade],
    equity_curve: list[EquityPoint],
    initial_balance: float,
    final_balance: float,
) -> BacktestMetrics:
    """Summary statistics for a finished run.

    ``win_rate`` is a percentage.  ``profit_factor`` is ``inf`` when there
    are winners and no losers, and 0 when nothing was won.  Drawdown is
    measured over the sampled equity curve, starting from
    *initial_balance* as the first peak.
    """
    pnls = np.array([t.pnl for t in trades], dtype=float)
    wins = pnls[pnls > 0]
    losses = pnls[pnls <= 0]

    total = len(trades)
    gross_profit = float(wins.sum())
    gross_loss = float(abs(losses.sum()))
    total_pnl = float(pnls.sum())

    max_dd, max_dd_pct = _max_drawdown(equity_curve, initial_balance)

    return BacktestMetrics(
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total * 100 if total else 0.0,
        profit_factor=profit_factor(gross_profit, gross_loss),
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_pct,
        sharpe_ratio=_sharpe([t.pnl_percent for t in trades]),
        average_win=float(wins.mean()) if len(wins) else 0.0,
        average_loss=float(abs(losses.mean())) if len(losses) else 0.0,
        average_rr=float(np.mean([t.planned_rr for t in trades])) if trades else 0.0,
        total_pnl=total_pnl,
        total_pnl_percent=total_pnl / initial_balance * 100,
        final_balance=final_balance,
    )


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    if gross_loss > 0:
        return gross_profit / gross_loss
    return math.inf if gross_profit > 0 else 0.0


def calculate_drawdown_curve(
    equity_curve: list[EquityPoint], initial_balance: float,
) -> list[DrawdownPoint]:
    """Percent below the running peak at every equity sample."""
    if not equity_curve:
        return []
    equity = np.array([p.equity for p in equity_curve], dtype=float)
    peaks = np.maximum.accumulate(np.concatenate(([initial_balance], equity)))[1:]
    drawdown = np.where(peaks > 0, (peaks - equity) / peaks * 100, 0.0)
    return [DrawdownPoint(p.time, float(dd)) for p, dd in zip(equity_curve, drawdown)]


# ── Helpers ──────────────────────────────────────────────────────────────


def _sharpe(returns: list[float]) -> float:
    """Annualised Sharpe ratio from a per-trade return series.

    Uses sample standard deviation (n − 1).  Returns 0.0 when the series
    has fewer than 2 observations or zero variance.
    """
    if len(returns) < 2:
        return 0.0
    arr = np.array(returns, dtype=float)
    std = float(arr.std(ddof=1))
    if std == 0 or not math.isfinite(std):
        return 0.0
    return float(arr.mean() / std * math.sqrt(252))


def _max_drawdown(
    equity_curve: list[EquityPoint], initial_balance: float,
) -> tuple[float, float]:
    """Largest peak-to-trough fall as ``(amount, percent)``.

    The two maxima are taken independently, so they may come from
    different troughs.
    """
    if not equity_curve:
        return 0.0, 0.0
    equity = np.array([p.equity for p in equity_curve], dtype=float)
    peaks = np.maximum.accumulate(np.concatenate(([initial_balance], equity)))[1:]
    drawdown = peaks - equity
    pct = np.where(peaks > 0, drawdown / peaks * 100, 0.0)
    return max(0.0, float(drawdown.max())), max(0.0, float(pct.max()))
