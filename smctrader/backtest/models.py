"""Backtest records — trades, metrics, curves and progress snapshots."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from smctrader.config import BacktestConfig

ExitReason = Literal["TP", "SL", "SIGNAL"]
Phase = Literal["initializing", "analyzing", "complete"]


@dataclass
class SimulatedPosition:
    """The single open position.  Mutable: breakeven moves ``stop_loss``."""

    direction: str
    entry_price: float
    stop_loss: float
    take_profit: float
    lot_size: float
    entry_time: datetime
    initial_stop_loss: float
    strategy: str = ""


@dataclass(frozen=True)
class BacktestTrade:
    symbol: str
    direction: str
    entry_price: float
    exit_price: float
    stop_loss: float
    take_profit: float
    lot_size: float
    entry_time: datetime
    exit_time: datetime
    pnl: float
    pnl_percent: float
    is_winner: bool
    exit_reason: ExitReason
    initial_stop_loss: Optional[float] = None
    strategy: str = ""

    @property
    def planned_rr(self) -> float:
        """Reward-to-risk at entry, from the original stop."""
        stop = self.initial_stop_loss if self.initial_stop_loss is not None else self.stop_loss
        risk = abs(self.entry_price - stop)
        if risk == 0:
            return 0.0
        return abs(self.take_profit - self.entry_price) / risk


@dataclass(frozen=True)
class EquityPoint:
    time: datetime
    equity: float


@dataclass(frozen=True)
class DrawdownPoint:
    time: datetime
    drawdown: float  # percent below the running peak


@dataclass(frozen=True)
class BacktestMetrics:
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float  # percent
    profit_factor: float
    max_drawdown: float
    max_drawdown_percent: float
    sharpe_ratio: float
    average_win: float
    average_loss: float
    average_rr: float
    total_pnl: float
    total_pnl_percent: float
    final_balance: float


@dataclass(frozen=True)
class BacktestProgress:
    phase: Phase
    progress: int  # 0–100
    candles_processed: int
    total_candles: int
    trades_executed: int
    winning_trades: int
    losing_trades: int
    current_balance: float
    total_pnl: float
    win_rate: float
    profit_factor: float
    max_drawdown: float
    current_date: Optional[datetime] = None
    last_trade_direction: Optional[str] = None
    last_trade_result: Optional[Literal["WIN", "LOSS"]] = None


@dataclass(frozen=True)
class BacktestResult:
    config: BacktestConfig
    metrics: BacktestMetrics
    trades: list[BacktestTrade]
    equity_curve: list[EquityPoint]
    drawdown_curve: list[DrawdownPoint]
    days_locked_out: int = 0
    cancelled: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
