"""Backtest simulator — replays historical candles through strategy and risk.

Iterates the entry-timeframe candles chronologically, runs the full
multi-timeframe analysis on trailing windows, evaluates the configured
strategy and simulates one position at a time with virtual equity.  No
real orders are placed.
"""

import asyncio
import dataclasses
import logging
from bisect import bisect_right
from typing import Callable, Generator, Optional, Protocol

from smctrader.analysis.confirmation import check_confirmation
from smctrader.analysis.kill_zones import get_kill_zone_bonus, is_in_kill_zone
from smctrader.analysis.models import Candle, MultiTimeframeAnalysis
from smctrader.analysis.multi_timeframe import perform_mtf_analysis
from smctrader.backtest.models import (
    BacktestProgress,
    BacktestResult,
    BacktestTrade,
    EquityPoint,
    ExitReason,
    Phase,
    SimulatedPosition,
)
from smctrader.backtest.stats import calculate_drawdown_curve, calculate_metrics
from smctrader.config import BacktestConfig
from smctrader.risk.breakeven import BreakevenStop
from smctrader.risk.drawdown import DailyDrawdownTracker, DrawdownTracker
from smctrader.risk.position_sizer import SymbolInfo, calculate_position_size, get_symbol_info
from smctrader.strategy.base import StrategyContext, StrategySignal
from smctrader.strategy.registry import run_all_strategies

logger = logging.getLogger("smctrader.backtest")

WARMUP_CANDLES = 100
HTF_WINDOW = 100
MTF_WINDOW = 200
LTF_WINDOW = 100
MIN_HTF_CANDLES = 50
MIN_MTF_CANDLES = 100
MIN_LTF_CANDLES = 50
EQUITY_SAMPLE_SECONDS = 3600
PROGRESS_STEPS = 50  # one update per 2 %

ProgressCallback = Callable[[BacktestProgress], None]


class CancelEvent(Protocol):
    def is_set(self) -> bool: ...


class BacktestSimulator:
    """Simulates trading on historical candle data.

    Args:
        config: Backtest configuration.
        symbol_info: Contract specification; defaults to the built-in
            table entry for ``config.symbol``.
        on_progress: Called with a :class:`BacktestProgress` snapshot.
        cancel_event: Checked once per candle; when set the run stops and
            returns what it has so far with ``cancelled=True``.
    """

    def __init__(
        self,
        config: BacktestConfig,
        symbol_info: Optional[SymbolInfo] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[CancelEvent] = None,
    ) -> None:
        self._config = config
        self._info = symbol_info or get_symbol_info(config.symbol)
        self._on_progress = on_progress
        self._cancel_event = cancel_event
        self._reset()

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        htf_candles: list[Candle],
        mtf_candles: list[Candle],
        ltf_candles: list[Candle],
    ) -> BacktestResult:
        """Execute a full backtest and return its result."""
        steps = self._simulate(htf_candles, mtf_candles, ltf_candles)
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value

    async def run_async(
        self,
        htf_candles: list[Candle],
        mtf_candles: list[Candle],
        ltf_candles: list[Candle],
    ) -> BacktestResult:
        """Same as :meth:`run`, yielding to the event loop at every progress step."""
        steps = self._simulate(htf_candles, mtf_candles, ltf_candles)
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value
            await asyncio.sleep(0)

    # ── Simulation loop ──────────────────────────────────────────────────

    def _reset(self) -> None:
        cfg = self._config
        self._balance = cfg.initial_balance
        self._position: Optional[SimulatedPosition] = None
        self._breakeven: Optional[BreakevenStop] = None
        self._trades: list[BacktestTrade] = []
        self._equity_curve: list[EquityPoint] = []
        self._gross_profit = 0.0
        self._gross_loss = 0.0
        self._tracker = DrawdownTracker(cfg.initial_balance)
        self._daily = DailyDrawdownTracker(cfg.max_daily_drawdown_percent)

    def _simulate(
        self,
        htf: list[Candle],
        mtf: list[Candle],
        ltf: list[Candle],
    ) -> Generator[None, None, BacktestResult]:
        self._reset()
        cfg = self._config
        htf_times = [c.time for c in htf]
        mtf_times = [c.time for c in mtf]
        if cfg.end_date is not None:
            ltf = [c for c in ltf if c.time <= cfg.end_date]

        total = max(0, len(ltf) - WARMUP_CANDLES)
        last_step = 0
        cancelled = False

        logger.info(
            "Backtest %s %s: HTF=%d MTF=%d LTF=%d candles",
            cfg.symbol, cfg.strategies or cfg.strategy, len(htf), len(mtf), len(ltf),
        )
        self._emit("initializing", 0, total)

        for i in range(WARMUP_CANDLES, len(ltf)):
            if self._cancel_event is not None and self._cancel_event.is_set():
                logger.info("Backtest cancelled after %d candles", i - WARMUP_CANDLES)
                cancelled = True
                break

            candle = ltf[i]
            now = candle.time
            processed = i - WARMUP_CANDLES

            step = processed * PROGRESS_STEPS // total
            if step > last_step:
                last_step = step
                self._emit("analyzing", processed, total, candle)
                yield

            self._update_equity_curve(candle)

            # 1. Manage the open position; no entries on the same candle
            if self._position is not None:
                result = self._check_exit(self._position, candle, cfg.sl_tp_tie_break)
                if result is not None:
                    exit_price, reason = result
                    trade = self._close_position(exit_price, now, reason)
                    self._emit("analyzing", processed, total, candle, trade)
                elif self._breakeven is not None:
                    favourable = candle.high if self._position.direction == "BUY" else candle.low
                    new_sl = self._breakeven.update(favourable)
                    if new_sl is not None:
                        logger.debug("Stop moved to breakeven %.5f at %s", new_sl, now)
                        self._position.stop_loss = new_sl
                continue

            if cfg.start_date is not None and now < cfg.start_date:
                continue

            # Nothing left to size a position from
            if self._balance <= 0:
                continue

            # 2. Daily loss limit
            locked_before = self._daily.days_locked_out
            if not self._daily.can_trade(now, self._balance):
                if self._daily.days_locked_out > locked_before:
                    logger.warning(
                        "Daily drawdown limit hit (%.2f%%) on %s. Trading paused for the day.",
                        self._daily.daily_drawdown_pct(self._balance), now.date(),
                    )
                continue

            # 3. Session filter
            if cfg.use_kill_zones and not is_in_kill_zone(now, cfg.kill_zones):
                continue

            # 4. Trailing windows, no look-ahead
            hi = bisect_right(htf_times, now)
            mi = bisect_right(mtf_times, now)
            htf_window = htf[max(0, hi - HTF_WINDOW):hi]
            mtf_window = mtf[max(0, mi - MTF_WINDOW):mi]
            ltf_window = ltf[max(0, i - LTF_WINDOW):i + 1]
            if (
                len(htf_window) < MIN_HTF_CANDLES
                or len(mtf_window) < MIN_MTF_CANDLES
                or len(ltf_window) < MIN_LTF_CANDLES
            ):
                continue

            analysis, signal = self._evaluate(candle, htf_window, mtf_window, ltf_window)
            if signal is None:
                continue
            self._open_position(signal, analysis, candle, ltf[i - 1])

        if not cancelled and self._position is not None and ltf:
            last = ltf[-1]
            self._close_position(last.close, last.time, "SIGNAL")

        result = self._build_result(cancelled)
        self._emit("complete", total, total)
        logger.info(
            "Backtest finished: %d trades, win rate %.1f%%, P&L %.2f, final balance %.2f",
            result.metrics.total_trades, result.metrics.win_rate,
            result.metrics.total_pnl, result.metrics.final_balance,
        )
        return result

    # ── Entry pipeline ───────────────────────────────────────────────────

    def _evaluate(
        self,
        candle: Candle,
        htf_window: list[Candle],
        mtf_window: list[Candle],
        ltf_window: list[Candle],
    ) -> tuple[MultiTimeframeAnalysis, Optional[StrategySignal]]:
        """Analysis, filters and strategy for one candle; no signal means skip."""
        cfg = self._config
        analysis = perform_mtf_analysis(
            htf_window, mtf_window, ltf_window,
            symbol=cfg.symbol, atr_multiplier=cfg.atr_multiplier,
        )

        sweep = analysis.recent_liquidity_sweep
        if cfg.require_liquidity_sweep and (sweep is None or not sweep.is_reversal):
            return analysis, None

        pd = analysis.premium_discount
        # Equilibrium is neither premium nor discount
        if cfg.require_premium_discount and pd is not None and candle.close == pd.equilibrium:
            return analysis, None

        context = StrategyContext(
            symbol=cfg.symbol,
            current_price=candle.close,
            bid=candle.close,
            ask=candle.close + self._info.pip_size,
            analysis=analysis,
            htf_candles=htf_window,
            mtf_candles=mtf_window,
            ltf_candles=ltf_window,
            min_ob_score=cfg.min_ob_score or 0.0,
        )
        return analysis, run_all_strategies(context, cfg.strategies or (cfg.strategy,))

    def _in_ote(self, direction: str, price: float, analysis: MultiTimeframeAnalysis) -> bool:
        """Price on the trade's side of the ``ote_threshold`` retracement level.

        Buys need ``discount.low ≤ price ≤ level``; sells need
        ``level ≤ price ≤ premium.high``.  Passes when no range is known.
        """
        pd = analysis.premium_discount
        if pd is None:
            return True
        swing_low, swing_high = pd.discount.low, pd.premium.high
        level = swing_low + (swing_high - swing_low) * self._config.ote_threshold
        if direction == "BUY":
            return swing_low <= price <= level
        return level <= price <= swing_high

    def _open_position(
        self,
        signal: StrategySignal,
        analysis: MultiTimeframeAnalysis,
        candle: Candle,
        prev: Candle,
    ) -> None:
        cfg = self._config
        if cfg.require_ote and not self._in_ote(signal.direction, candle.close, analysis):
            return
        if cfg.require_confirmation and not check_confirmation(
            cfg.confirmation_type, candle, prev, signal.direction,
        ):
            logger.debug("%s signal at %s lacks %s confirmation", signal.direction, candle.time, cfg.confirmation_type)
            return

        if cfg.use_kill_zones:
            bonus = get_kill_zone_bonus(candle.time)
            signal = dataclasses.replace(signal, confidence=min(signal.confidence + bonus, 1.0))

        take_profit = signal.take_profit
        risk = abs(signal.entry_price - signal.stop_loss)
        if cfg.rr_mode == "fixed" and cfg.fixed_rr:
            if signal.direction == "BUY":
                take_profit = signal.entry_price + risk * cfg.fixed_rr
            else:
                take_profit = signal.entry_price - risk * cfg.fixed_rr

        if cfg.max_sl_pips is not None and risk / self._info.pip_size > cfg.max_sl_pips:
            logger.debug("Stop %.1f pips wider than %.1f, skipped", risk / self._info.pip_size, cfg.max_sl_pips)
            return

        size = calculate_position_size(
            self._balance, cfg.risk_percent, signal.entry_price, signal.stop_loss, self._info,
        )
        if size.was_clamped_to_min:
            logger.debug("Lot size raised to minimum %.2f; risk exceeds target", size.lot_size)

        self._position = SimulatedPosition(
            direction=signal.direction,
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            take_profit=take_profit,
            lot_size=size.lot_size,
            entry_time=candle.time,
            initial_stop_loss=signal.stop_loss,
            strategy=signal.strategy,
        )
        self._breakeven = None
        if cfg.enable_breakeven:
            self._breakeven = BreakevenStop(
                signal.entry_price, signal.stop_loss, signal.direction,
                trigger_r=cfg.breakeven_trigger_r,
                buffer=cfg.be_buffer_pips * self._info.pip_size,
            )
        logger.debug(
            "Opened %s %.2f lots at %.5f SL=%.5f TP=%.5f (%s)",
            signal.direction, size.lot_size, signal.entry_price,
            signal.stop_loss, take_profit, signal.reason,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _check_exit(
        position: SimulatedPosition, candle: Candle, tie_break: str = "sl_first",
    ) -> Optional[tuple[float, ExitReason]]:
        """Check if *candle* triggers an SL or TP exit.

        Returns ``(exit_price, reason)`` or ``None``.  When both levels
        fall inside one candle, *tie_break* decides which filled first.
        """
        if position.direction == "BUY":
            sl_hit = candle.low <= position.stop_loss
            tp_hit = candle.high >= position.take_profit
        else:
            sl_hit = candle.high >= position.stop_loss
            tp_hit = candle.low <= position.take_profit

        if sl_hit and tp_hit:
            if tie_break == "tp_first":
                sl_hit = False
            else:
                tp_hit = False

        if sl_hit:
            return position.stop_loss, "SL"
        if tp_hit:
            return position.take_profit, "TP"
        return None

    @staticmethod
    def _calc_pnl(position: SimulatedPosition, exit_price: float, contract_size: float) -> float:
        """Compute P&L for a position exiting at *exit_price*."""
        if position.direction == "BUY":
            diff = exit_price - position.entry_price
        else:
            diff = position.entry_price - exit_price
        return diff * position.lot_size * contract_size

    def _close_position(self, exit_price: float, exit_time, reason: ExitReason) -> BacktestTrade:
        pos = self._position
        pnl = self._calc_pnl(pos, exit_price, self._info.contract_size)
        pnl_percent = pnl / self._balance * 100

        if pnl > 0:
            self._gross_profit += pnl
        else:
            self._gross_loss += abs(pnl)
        self._balance += pnl
        self._tracker.update(self._balance)

        trade = BacktestTrade(
            symbol=self._config.symbol,
            direction=pos.direction,
            entry_price=pos.entry_price,
            exit_price=exit_price,
            stop_loss=pos.stop_loss,
            take_profit=pos.take_profit,
            lot_size=pos.lot_size,
            entry_time=pos.entry_time,
            exit_time=exit_time,
            pnl=pnl,
            pnl_percent=pnl_percent,
            is_winner=pnl > 0,
            exit_reason=reason,
            initial_stop_loss=pos.initial_stop_loss,
            strategy=pos.strategy,
        )
        self._trades.append(trade)
        self._position = None
        self._breakeven = None
        logger.debug("Closed %s at %.5f (%s) P&L %.2f", trade.direction, exit_price, reason, pnl)
        return trade

    def _update_equity_curve(self, candle: Candle) -> None:
        """Mark-to-market equity, sampled at most once per hour."""
        equity = self._balance
        if self._position is not None:
            equity += self._calc_pnl(self._position, candle.close, self._info.contract_size)

        last = self._equity_curve[-1] if self._equity_curve else None
        if last is None or (candle.time - last.time).total_seconds() >= EQUITY_SAMPLE_SECONDS:
            self._equity_curve.append(EquityPoint(candle.time, equity))

    def _emit(
        self,
        phase: Phase,
        processed: int,
        total: int,
        candle: Optional[Candle] = None,
        trade: Optional[BacktestTrade] = None,
    ) -> None:
        if self._on_progress is None:
            return
        wins = sum(1 for t in self._trades if t.is_winner)
        count = len(self._trades)
        if phase == "complete":
            progress = 100
        else:
            progress = round(processed / total * 100) if total > 0 else 0
        self._on_progress(BacktestProgress(
            phase=phase,
            progress=progress,
            candles_processed=processed,
            total_candles=total,
            trades_executed=count,
            winning_trades=wins,
            losing_trades=count - wins,
            current_balance=self._balance,
            total_pnl=self._balance - self._config.initial_balance,
            win_rate=wins / count * 100 if count else 0.0,
            # No losses yet reads as 0 here rather than inf
            profit_factor=self._gross_profit / self._gross_loss if self._gross_loss > 0 else 0.0,
            max_drawdown=self._tracker.max_drawdown_pct,
            current_date=candle.time if candle else None,
            last_trade_direction=trade.direction if trade else None,
            last_trade_result=("WIN" if trade.is_winner else "LOSS") if trade else None,
        ))

    def _build_result(self, cancelled: bool) -> BacktestResult:
        cfg = self._config
        return BacktestResult(
            config=cfg,
            metrics=calculate_metrics(
                self._trades, self._equity_curve, cfg.initial_balance, self._balance,
            ),
            trades=list(self._trades),
            equity_curve=list(self._equity_curve),
            drawdown_curve=calculate_drawdown_curve(self._equity_curve, cfg.initial_balance),
            days_locked_out=self._daily.days_locked_out,
            cancelled=cancelled,
        )


def run_backtest(
    config: BacktestConfig,
    htf_candles: list[Candle],
    mtf_candles: list[Candle],
    ltf_candles: list[Candle],
    symbol_info: Optional[SymbolInfo] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[CancelEvent] = None,
) -> BacktestResult:
    """Helper to create a simulator and run it."""
    simulator = BacktestSimulator(config, symbol_info, on_progress, cancel_event)
    return simulator.run(htf_candles, mtf_candles, ltf_candles)
