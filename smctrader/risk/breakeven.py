"""Breakeven stop — one-shot SL management for an open position.

Rule:
  - At ``trigger_r`` × R favourable excursion → move SL to entry ± buffer.
  - The stop moves once and never back.
"""


class BreakevenStop:
    """Tracks and updates SL for a single position.

    Args:
        entry_price: Original entry price.
        initial_sl: Original stop-loss price.
        direction: ``"BUY"`` or ``"SELL"``.
        trigger_r: Profit, in multiples of the initial risk, that arms the move.
        buffer: Price distance beyond entry to lock in (covers spread).
    """

    def __init__(
        self,
        entry_price: float,
        initial_sl: float,
        direction: str,
        trigger_r: float = 1.0,
        buffer: float = 0.0,
    ) -> None:
        if trigger_r <= 0:
            raise ValueError(f"trigger_r must be positive, got {trigger_r}")
        self.entry_price = entry_price
        self.initial_sl = initial_sl
        self.direction = direction
        self.trigger_r = trigger_r
        self.buffer = buffer
        self.current_sl = initial_sl
        self.moved = False
        self._risk = abs(entry_price - initial_sl)

    @property
    def breakeven_price(self) -> float:
        if self.direction == "BUY":
            return self.entry_price + self.buffer
        return self.entry_price - self.buffer

    def update(self, current_price: float) -> float | None:
        """Evaluate the current price and return a new SL if it should move.

        Returns:
            New SL price if the stop should be adjusted, ``None`` if no change.
        """
        if self.moved or self._risk == 0:
            return None

        if self.direction == "BUY":
            profit = current_price - self.entry_price
        else:
            profit = self.entry_price - current_price
        if profit / self._risk < self.trigger_r:
            return None

        new_sl = self.breakeven_price
        self.moved = True
        # Only ever tighten
        if self.direction == "BUY" and new_sl <= self.current_sl:
            return None
        if self.direction == "SELL" and new_sl >= self.current_sl:
            return None
        self.current_sl = new_sl
        return new_sl
