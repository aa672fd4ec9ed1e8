"""Market data and SMC analysis models — typed value objects for detectors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

Bias = Literal["BULLISH", "BEARISH", "NEUTRAL"]
Polarity = Literal["BULLISH", "BEARISH"]
Side = Literal["HIGH", "LOW"]
StructureType = Literal["HH", "HL", "LH", "LL", "BOS", "CHOCH"]


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.  ``time`` is the UTC open time of the bar."""

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    symbol: str = ""
    timeframe: str = ""

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    def validate(self) -> None:
        """Raise ``ValueError`` if the OHLC values are inconsistent."""
        if self.high < max(self.open, self.close, self.low):
            raise ValueError(
                f"Candle at {self.time.isoformat()}: high {self.high} "
                f"below open/close/low"
            )
        if self.low > min(self.open, self.close, self.high):
            raise ValueError(
                f"Candle at {self.time.isoformat()}: low {self.low} "
                f"above open/close/high"
            )


@dataclass(frozen=True)
class SwingPoint:
    """A local extreme in a candle window."""

    type: Side
    price: float
    time: datetime
    index: int


@dataclass(frozen=True)
class OrderBlock:
    """Last opposite-colour candle before a displacement move."""

    type: Polarity
    high: float
    low: float
    open: float
    close: float
    candle_time: datetime
    is_valid: bool = True
    mitigated_at: Optional[datetime] = None
    score: float = 0.0  # 0–100 quality score

    @property
    def size(self) -> float:
        return self.high - self.low

    @property
    def midpoint(self) -> float:
        return (self.high + self.low) / 2


@dataclass(frozen=True)
class FairValueGap:
    """A three-candle price imbalance."""

    type: Polarity
    high: float
    low: float
    gap_time: datetime
    is_filled: bool = False
    filled_at: Optional[datetime] = None

    @property
    def size(self) -> float:
        return self.high - self.low


@dataclass(frozen=True)
class LiquidityZone:
    """A resting-liquidity level above a swing high or below a swing low."""

    type: Side
    price: float
    candle_time: datetime
    is_swept: bool = False
    swept_at: Optional[datetime] = None


@dataclass(frozen=True)
class StructureEvent:
    """A BOS or CHoCH label attached to a ``MarketStructure``."""

    type: StructureType
    price: float
    time: datetime


@dataclass(frozen=True)
class StructureBreak:
    """A directional break of a swing level (BOS or CHoCH detection)."""

    type: Polarity
    price: float
    time: datetime


@dataclass(frozen=True)
class MarketStructure:
    """Directional read of one timeframe."""

    bias: Bias
    last_structure: StructureType
    swing_points: list[SwingPoint] = field(default_factory=list)
    last_bos: Optional[StructureEvent] = None
    last_choch: Optional[StructureEvent] = None


@dataclass(frozen=True)
class PriceRange:
    high: float
    low: float


@dataclass(frozen=True)
class PremiumDiscountZone:
    """Fibonacci split of a swing range."""

    premium: PriceRange
    discount: PriceRange
    equilibrium: float
    fib_50: float
    fib_618: float
    fib_786: float


@dataclass(frozen=True)
class InducementLevel:
    """Minor liquidity resting in front of a major zone."""

    major_liquidity: LiquidityZone
    inducement_zone: LiquidityZone
    is_swept: bool = False


@dataclass(frozen=True)
class LiquiditySweep:
    """A zone that was wicked through and closed back (stop hunt)."""

    zone: LiquidityZone
    sweep_time: datetime
    is_reversal: bool = True


# ── Multi-timeframe aggregate ────────────────────────────────────────────


@dataclass(frozen=True)
class TimeframeAnalysis:
    """Per-timeframe slice of a ``MultiTimeframeAnalysis``."""

    timeframe: str
    bias: Bias
    structure: MarketStructure
    order_blocks: list[OrderBlock] = field(default_factory=list)
    fvgs: list[FairValueGap] = field(default_factory=list)
    liquidity_zones: list[LiquidityZone] = field(default_factory=list)


@dataclass(frozen=True)
class MultiTimeframeAnalysis:
    """Fused HTF/MTF/LTF read, recomputed from scratch on each call."""

    symbol: str
    htf: TimeframeAnalysis
    mtf: TimeframeAnalysis
    ltf: TimeframeAnalysis
    confluence_score: int
    premium_discount: Optional[PremiumDiscountZone] = None
    recent_choch: Optional[StructureBreak] = None
    inducements: list[InducementLevel] = field(default_factory=list)
    recent_liquidity_sweep: Optional[LiquiditySweep] = None
