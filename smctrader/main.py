"""SMC Trader — CLI entry point.

Runs a backtest over three CSV candle files (higher, middle and entry
timeframe) and prints a summary.  Settings come from the environment /
``.env`` file, or from a named strategy profile.
"""

import argparse
import logging
import math
from typing import Optional, Sequence

from smctrader.backtest.engine import run_backtest
from smctrader.backtest.models import BacktestProgress, BacktestResult
from smctrader.config import BacktestConfig, load_backtest_config
from smctrader.data.loader import load_candles_csv
from smctrader.strategy.profiles import get_profile, get_symbol_timeframes

logger = logging.getLogger("smctrader")


def format_summary(result: BacktestResult) -> str:
    """Human-readable multi-line summary of a finished run."""
    m = result.metrics
    pf = "inf" if math.isinf(m.profit_factor) else f"{m.profit_factor:.2f}"
    lines = [
        f"Backtest {result.config.symbol} / {result.config.strategy}"
        + (" (cancelled)" if result.cancelled else ""),
        f"  Trades:         {m.total_trades} ({m.winning_trades} W / {m.losing_trades} L)",
        f"  Win rate:       {m.win_rate:.1f}%",
        f"  Profit factor:  {pf}",
        f"  Total P&L:      {m.total_pnl:.2f} ({m.total_pnl_percent:.2f}%)",
        f"  Max drawdown:   {m.max_drawdown:.2f} ({m.max_drawdown_percent:.2f}%)",
        f"  Sharpe:         {m.sharpe_ratio:.2f}",
        f"  Average R:R:    {m.average_rr:.2f}",
        f"  Final balance:  {m.final_balance:.2f}",
        f"  Days locked:    {result.days_locked_out}",
    ]
    return "\n".join(lines)


def _log_progress(progress: BacktestProgress) -> None:
    if progress.last_trade_result is not None:
        logger.info(
            "%s %s, balance %.2f (%d trades)",
            progress.last_trade_direction, progress.last_trade_result,
            progress.current_balance, progress.trades_executed,
        )
    elif progress.progress % 10 == 0:
        logger.debug("Progress %d%%", progress.progress)


def _build_config(args: argparse.Namespace) -> BacktestConfig:
    overrides = {}
    if args.symbol:
        overrides["symbol"] = args.symbol
    if args.strategy:
        overrides["strategy"] = args.strategy
    if args.profile:
        if not args.symbol:
            raise ValueError("--symbol is required with --profile")
        overrides.pop("symbol")
        return BacktestConfig.from_profile(get_profile(args.profile), args.symbol, **overrides)
    return load_backtest_config(args.env, **overrides)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse CLI arguments and run one backtest."""
    parser = argparse.ArgumentParser(description="SMC Trader backtest")
    parser.add_argument("--htf", required=True, help="Higher-timeframe CSV")
    parser.add_argument("--mtf", required=True, help="Middle-timeframe CSV")
    parser.add_argument("--ltf", required=True, help="Entry-timeframe CSV")
    parser.add_argument("--symbol", help="Symbol (overrides BACKTEST_SYMBOL)")
    parser.add_argument("--strategy", help="Strategy name (overrides BACKTEST_STRATEGY)")
    parser.add_argument("--profile", help="Run a named strategy profile instead of .env settings")
    parser.add_argument("--env", help="Path to a .env file")
    args = parser.parse_args(argv)

    config = _build_config(args)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    htf_tf, mtf_tf, ltf_tf = get_symbol_timeframes(config.symbol)
    htf = load_candles_csv(args.htf, config.symbol, htf_tf)
    mtf = load_candles_csv(args.mtf, config.symbol, mtf_tf)
    ltf = load_candles_csv(args.ltf, config.symbol, ltf_tf)

    result = run_backtest(config, htf, mtf, ltf, on_progress=_log_progress)
    print(format_summary(result))


if __name__ == "__main__":
    main()
