"""Drawdown tracking — pure math, no I/O.

``DrawdownTracker`` follows peak equity and the deepest drawdown seen over
a whole run.  ``DailyDrawdownTracker`` locks trading for the rest of a UTC
day once the balance has fallen a set percentage below that day's start.
"""

from datetime import date, datetime
from typing import Optional


class DrawdownTracker:
    """Tracks equity peaks and computes drawdown metrics.

    Args:
        initial_equity: Starting account equity.
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown: float = 0.0
        self._max_drawdown_pct: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Update with the latest equity value.

        If *equity* exceeds the current peak, the peak is raised.
        """
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        self._max_drawdown = max(self._max_drawdown, self._peak_equity - equity)
        self._max_drawdown_pct = max(self._max_drawdown_pct, self.drawdown_pct)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        return self._current_equity

    @property
    def max_drawdown(self) -> float:
        """Largest peak-to-trough fall seen, in account currency."""
        return self._max_drawdown

    @property
    def max_drawdown_pct(self) -> float:
        return self._max_drawdown_pct

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        if self._peak_equity == 0:
            return 0.0
        return (
            (self._peak_equity - self._current_equity) / self._peak_equity
        ) * 100.0


class DailyDrawdownTracker:
    """Per-UTC-day loss limit.

    The first check on a new date records the balance as the day's start.
    Once the loss from that start reaches *max_daily_drawdown_pct* the day
    is locked; every later check that day returns ``False``.

    Args:
        max_daily_drawdown_pct: Daily loss limit in percent (e.g. 6.0).
    """

    def __init__(self, max_daily_drawdown_pct: float = 6.0) -> None:
        if max_daily_drawdown_pct <= 0:
            raise ValueError(
                f"max_daily_drawdown_pct must be positive, got {max_daily_drawdown_pct}"
            )
        self.max_daily_drawdown_pct = max_daily_drawdown_pct
        self.day: Optional[date] = None
        self.starting_balance: float = 0.0
        self.lowest_balance: float = 0.0
        self.is_locked: bool = False
        self.days_locked_out: int = 0

    def can_trade(self, time: datetime, balance: float) -> bool:
        """Record *balance* at *time* and report whether entries are allowed."""
        today = time.date()
        if self.day != today:
            self.day = today
            self.starting_balance = balance
            self.lowest_balance = balance
            self.is_locked = False

        if self.is_locked:
            return False

        self.lowest_balance = min(self.lowest_balance, balance)
        if self.daily_drawdown_pct(balance) >= self.max_daily_drawdown_pct:
            self.is_locked = True
            self.days_locked_out += 1
            return False
        return True

    def daily_drawdown_pct(self, balance: float) -> float:
        if self.starting_balance <= 0:
            return 0.0
        return (self.starting_balance - balance) / self.starting_balance * 100.0
